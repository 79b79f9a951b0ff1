"""
Tenant lifecycle and command actions.

A tenant is a chat with its own WarcraftLogs credentials and tracked
characters. The registry owns one ``TenantState`` per active tenant; the
state's lock guards its tracked list together with that list's persistence.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from .config import logger
from .errors import (
    AlreadyTrackedError,
    CharacterNotFoundError,
    CredentialsMissingError,
    NotFoundError,
    NotTrackedError,
    StoreError,
    TrackingError,
)
from .models import Character, Credentials, PerformanceSnapshot, Report, TrackedCharacter
from .scheduler import TrackingScheduler
from .storage import SnapshotStore
from .wclogs import TRANSIENT_ERRORS, WCLogsClient


class RegisterOutcome(Enum):
    STORED = "Congrats, API credentials are valid"
    INVALID_CREDENTIALS = "These API credentials cannot be used"
    STORE_FAILED = "API credentials are valid, but I failed to store them"
    SERVICE_UNAVAILABLE = "Cannot reach WarcraftLogs right now, try again later"


@dataclass
class TenantState:
    tenant_id: int
    client: Optional[WCLogsClient] = None
    tracked: List[TrackedCharacter] = field(default_factory=list)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    stop_event: Optional[asyncio.Event] = None
    worker: Optional[asyncio.Task] = None


def character_slug(name: str, server: str, region: str) -> str:
    return f"{name} {region.upper()}-{server}"


class TenantRegistry:
    def __init__(
        self,
        store: SnapshotStore,
        scheduler: TrackingScheduler,
        client_factory: Callable[[Credentials], WCLogsClient] = WCLogsClient,
    ):
        self.store = store
        self.scheduler = scheduler
        self.client_factory = client_factory
        self._tenants: Dict[int, TenantState] = {}
        # Serialises activate/deactivate/register/unregister of one chat
        self._lifecycle_locks: Dict[int, asyncio.Lock] = {}

    def get(self, tenant_id: int) -> Optional[TenantState]:
        return self._tenants.get(tenant_id)

    def active_tenants(self) -> List[int]:
        return sorted(self._tenants)

    def _load_tracked(self, tenant_id: int) -> List[TrackedCharacter]:
        try:
            tracked = self.store.fetch_tracked_characters(tenant_id)
        except StoreError as e:
            logger.error(f"Cannot read tracked characters for chat {tenant_id}: {e}")
            return []
        if tracked is None:
            logger.info(f"No currently tracked characters for chat {tenant_id}")
            return []
        return tracked

    def _active_state(self, tenant_id: int) -> TenantState:
        state = self._tenants.get(tenant_id)
        if state is None or state.client is None:
            raise CredentialsMissingError()
        return state

    # Lifecycle

    def _lifecycle_lock(self, tenant_id: int) -> asyncio.Lock:
        return self._lifecycle_locks.setdefault(tenant_id, asyncio.Lock())

    async def activate(self, tenant_id: int) -> bool:
        """Bring a tenant up from its stored credentials. A tenant without valid credentials stays inert."""
        async with self._lifecycle_lock(tenant_id):
            return await self._activate(tenant_id)

    async def _activate(self, tenant_id: int) -> bool:
        state = self._tenants.get(tenant_id)
        if state is not None and self.scheduler.is_running(state):
            return True

        try:
            creds = self.store.fetch_credentials(tenant_id)
        except StoreError as e:
            logger.error(f"Cannot read WarcraftLogs credentials for chat {tenant_id}: {e}")
            creds = None
        if creds is None or not creds.is_complete():
            logger.debug(f"Missing credentials for chat {tenant_id}")
            return False

        client = self.client_factory(creds)
        try:
            valid = await client.check()
        except TRANSIENT_ERRORS as e:
            # Stored credentials stay in use until the service rejects them
            logger.warning(f"Cannot validate credentials for chat {tenant_id}, tracking anyway: {e}")
            valid = True
        if not valid:
            logger.warning(f"Failed to reuse credentials for chat {tenant_id}")
            return False

        state = self._tenants.setdefault(tenant_id, TenantState(tenant_id=tenant_id))
        async with state.lock:
            state.client = client
            state.tracked = self._load_tracked(tenant_id)
        self.scheduler.start(state)
        logger.info(f"WarcraftLogs tracking active for chat {tenant_id} ({len(state.tracked)} characters)")
        return True

    async def deactivate(self, tenant_id: int) -> bool:
        """Stop tracking and forget the in-memory state; returns once the worker has exited."""
        async with self._lifecycle_lock(tenant_id):
            return await self._deactivate(tenant_id)

    async def _deactivate(self, tenant_id: int) -> bool:
        state = self._tenants.get(tenant_id)
        if state is None:
            return False
        try:
            await self.scheduler.stop(state)
        finally:
            self._tenants.pop(tenant_id, None)
        logger.info(f"WarcraftLogs tracking stopped for chat {tenant_id}")
        return True

    async def register(self, tenant_id: int, creds: Credentials) -> RegisterOutcome:
        client = self.client_factory(creds)
        try:
            valid = await client.check()
        except TRANSIENT_ERRORS as e:
            logger.warning(f"Cannot validate credentials for chat {tenant_id}: {e}")
            return RegisterOutcome.SERVICE_UNAVAILABLE
        if not valid:
            return RegisterOutcome.INVALID_CREDENTIALS

        async with self._lifecycle_lock(tenant_id):
            state = self._tenants.setdefault(tenant_id, TenantState(tenant_id=tenant_id))
            async with state.lock:
                state.client = client
                try:
                    tracked = self.store.fetch_tracked_characters(tenant_id)
                    if tracked is None:
                        tracked = []
                        self.store.store_tracked_characters(tenant_id, tracked)
                    state.tracked = tracked
                except StoreError as e:
                    logger.error(f"Cannot initialize tracked characters for chat {tenant_id}: {e}")

            outcome = RegisterOutcome.STORED
            try:
                self.store.store_credentials(tenant_id, creds)
            except StoreError as e:
                logger.error(f"Cannot store WarcraftLogs credentials for chat {tenant_id}: {e}")
                outcome = RegisterOutcome.STORE_FAILED

            await self.scheduler.restart(state)
        logger.info(f"WarcraftLogs credentials registered for chat {tenant_id}")
        return outcome

    async def unregister(self, tenant_id: int) -> bool:
        """Deactivate and clear the stored credentials so the tenant is not resumed on restart."""
        async with self._lifecycle_lock(tenant_id):
            was_active = await self._deactivate(tenant_id)
            removed = self.store.delete_credentials(tenant_id)
        return was_active or removed

    async def resume_all(self) -> int:
        try:
            tenants = self.store.registered_tenants()
        except StoreError as e:
            logger.error(f"Cannot list registered chats: {e}")
            return 0
        resumed = 0
        for tenant_id in tenants:
            if await self.activate(tenant_id):
                resumed += 1
        logger.info(f"Resumed tracking for {resumed}/{len(tenants)} chats")
        return resumed

    async def shutdown(self) -> None:
        for tenant_id in list(self._tenants):
            await self.deactivate(tenant_id)

    # Command actions

    async def track(self, tenant_id: int, name: str, server: str, region: str, channel_id: int) -> Tuple[TrackedCharacter, bool]:
        """Track a character, returns it and whether an existing entry was replaced.

        Re-tracking to another chat replaces the list entry and keeps the
        character's stored report and parses.
        """
        state = self._active_state(tenant_id)
        slug = character_slug(name, server, region)
        try:
            character = await state.client.get_character(name, server, region)
        except NotFoundError as e:
            logger.error(f"Character lookup failed for {slug}: {e}")
            raise CharacterNotFoundError(slug) from e

        tracked = TrackedCharacter.from_character(character, channel_id)
        async with state.lock:
            existing = next((c for c in state.tracked if c.id == character.id), None)
        if existing is not None and existing.channel_id == channel_id:
            logger.warning(f"{character.slug} already tracked in chat {tenant_id}")
            raise AlreadyTrackedError(character.slug)

        if existing is None:
            await self._record_baseline(tenant_id, state, tracked)

        async with state.lock:
            updated = [c for c in state.tracked if c.id != character.id]
            updated.append(tracked)
            try:
                self.store.store_tracked_characters(tenant_id, updated)
            except StoreError as e:
                logger.error(f"Cannot store tracked characters for chat {tenant_id}: {e}")
                raise TrackingError(f"Failed to track {character.slug}") from e
            state.tracked = updated

        logger.info(f"{character.slug} tracked in chat {tenant_id}, notifications to {channel_id}")
        return tracked, existing is not None

    async def _record_baseline(self, tenant_id: int, state: TenantState, character: TrackedCharacter) -> None:
        # Runs before the character joins the list, so no tick can race it
        try:
            if self.store.fetch_latest_report(tenant_id, character.id) is not None:
                return
        except StoreError as e:
            logger.error(f"Cannot read latest report of {character.slug}: {e}")
            return
        try:
            metadata = await state.client.get_latest_report_metadata(character)
        except NotFoundError:
            # The first tick records the baseline once a report exists
            logger.info(f"No recent report for {character.slug}")
            return
        try:
            self.store.store_latest_report(tenant_id, character.id, metadata)
        except StoreError as e:
            logger.error(f"Cannot store baseline report of {character.slug}: {e}")
            raise TrackingError(f"Failed to track {character.slug}") from e

    async def untrack(self, tenant_id: int, name: str, server: str, region: str) -> TrackedCharacter:
        state = self._active_state(tenant_id)
        async with state.lock:
            match = next((c for c in state.tracked if c.matches(name, server, region)), None)
            if match is None:
                raise NotTrackedError(character_slug(name, server, region))
            updated = [c for c in state.tracked if c.id != match.id]
            try:
                self.store.store_tracked_characters(tenant_id, updated)
            except StoreError as e:
                logger.error(f"Cannot store tracked characters for chat {tenant_id}: {e}")
                raise TrackingError(f"Failed to untrack {match.slug}") from e
            state.tracked = updated
        logger.info(f"{match.slug} untracked in chat {tenant_id}")
        return match

    async def list_tracked(self, tenant_id: int) -> List[TrackedCharacter]:
        state = self._tenants.get(tenant_id)
        if state is None:
            return self._load_tracked(tenant_id)
        async with state.lock:
            return list(state.tracked)

    async def current_parses(self, tenant_id: int, name: str, server: str, region: str) -> Tuple[Character, Report, PerformanceSnapshot]:
        """Live rankings of a character for the zone and size of its latest report. Nothing is stored."""
        state = self._active_state(tenant_id)
        slug = character_slug(name, server, region)
        try:
            character = await state.client.get_character(name, server, region)
        except NotFoundError as e:
            raise CharacterNotFoundError(slug) from e
        try:
            report = await state.client.get_latest_report(character)
        except NotFoundError as e:
            raise TrackingError(f"No ranked report for {character.slug}") from e
        rankings = await state.client.get_metric_rankings(character, report.zone_id, report.size)
        snapshot = PerformanceSnapshot()
        snapshot.merge(report.zone_id, report.size, rankings)
        return character, report, snapshot
