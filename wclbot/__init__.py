"""WarcraftLogs parse tracker bot package.

Modules:
- config: environment and logging
- errors: error taxonomy
- models: characters, reports, rankings and performance snapshots
- http: session and request helpers
- wclogs: Warcraft Logs API client
- storage: durable key/value store and migrations
- tracker: report and parse change detection
- scheduler: per-chat polling loops
- registry: chat lifecycle and tracking actions
- notifier: message delivery
- formatting: message building utilities
- charts: parse charts
- reminders: one-shot reminders
- auth: access control helpers
- commands: telegram command handlers
- app: application bootstrap and wiring

Public facade (re-export) for tests and callers.
"""

from .config import Config, POLL_SECS
from .errors import (
    AlreadyTrackedError,
    AuthenticationError,
    CharacterNotFoundError,
    CredentialsMissingError,
    NotFoundError,
    NotTrackedError,
    ServiceError,
    StoreError,
    TrackingError,
)
from .models import (
    Character,
    Credentials,
    Flavor,
    PerformanceSnapshot,
    Ranking,
    Report,
    ReportMetadata,
    TrackedCharacter,
)
from .http import make_session, fetch_token, post_graphql
from .wclogs import WCLogsClient
from .storage import SnapshotStore
from .tracker import ParseTracker, CheckResult, ParseImprovement
from .scheduler import TrackingScheduler
from .registry import TenantRegistry, TenantState, RegisterOutcome
from .notifier import TelegramNotifier
from .app import main, open_store, build_registry

__all__ = [
    # Config / HTTP
    "Config", "POLL_SECS", "make_session", "fetch_token", "post_graphql",
    # Errors
    "AlreadyTrackedError", "AuthenticationError", "CharacterNotFoundError", "CredentialsMissingError",
    "NotFoundError", "NotTrackedError", "ServiceError", "StoreError", "TrackingError",
    # Models
    "Character", "Credentials", "Flavor", "PerformanceSnapshot", "Ranking", "Report", "ReportMetadata",
    "TrackedCharacter",
    # Engine
    "WCLogsClient", "SnapshotStore", "ParseTracker", "CheckResult", "ParseImprovement",
    "TrackingScheduler", "TenantRegistry", "TenantState", "RegisterOutcome", "TelegramNotifier",
    # App
    "main", "open_store", "build_registry",
]
