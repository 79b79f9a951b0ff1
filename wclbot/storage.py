"""
Durable key/value store for credentials, tracked characters and snapshots.

The whole keyspace lives in one JSON file. Every ``set``/``delete`` rewrites
the file atomically (temp file then rename) under a lock, so each call is an
atomic single-key transaction. There are no cross-key transactions.
"""
from __future__ import annotations

import json
import os
import re
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple

from .config import logger
from .errors import StoreError
from .models import Credentials, PerformanceSnapshot, ReportMetadata, TrackedCharacter

SCHEMA_VERSION_KEY = "db-version"


def credentials_key(tenant_id: int) -> str:
    return f"wclogs-creds-{tenant_id}"


def tracked_characters_key(tenant_id: int) -> str:
    return f"wclogs-tracked-characters-{tenant_id}"


def latest_report_key(tenant_id: int, char_id: int) -> str:
    return f"wclogs-latest-report-{tenant_id}-{char_id}"


def parses_key(tenant_id: int, char_id: int) -> str:
    return f"wclogs-parses-{tenant_id}-{char_id}"


class SnapshotStore:
    def __init__(self, path: str):
        self.path = path
        self._lock = threading.RLock()
        self._data: Dict[str, Any] = {}
        self._load()

    def _load(self) -> None:
        with self._lock:
            if not os.path.exists(self.path):
                logger.info(f"No existing database file found at {self.path}")
                self._data = {}
                return
            try:
                with open(self.path, "r") as f:
                    self._data = json.load(f)
            except (OSError, ValueError) as e:
                logger.error(f"Could not load database {self.path}: {e}")
                raise StoreError(f"Could not load database {self.path}: {e}") from e
            logger.info(f"Loaded {len(self._data)} records from {self.path}")

    def _flush(self) -> None:
        tmp_path = f"{self.path}.tmp"
        try:
            with open(tmp_path, "w") as f:
                json.dump(self._data, f, indent=2, sort_keys=True)
            os.replace(tmp_path, self.path)
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Could not save database {self.path}: {e}")
            raise StoreError(f"Could not save database {self.path}: {e}") from e

    # Raw key/value access

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            value = self._data.get(key)
            # Hand out copies so callers never mutate the stored state in place
            return json.loads(json.dumps(value)) if value is not None else None

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            previous = self._data.get(key)
            self._data[key] = value
            try:
                self._flush()
            except StoreError:
                if previous is None:
                    self._data.pop(key, None)
                else:
                    self._data[key] = previous
                raise
        logger.debug(f"Stored {key}")

    def delete(self, key: str) -> bool:
        with self._lock:
            if key not in self._data:
                return False
            previous = self._data.pop(key)
            try:
                self._flush()
            except StoreError:
                self._data[key] = previous
                raise
        logger.debug(f"Deleted {key}")
        return True

    def keys(self, prefix: str = "") -> List[str]:
        with self._lock:
            return sorted(k for k in self._data if k.startswith(prefix))

    def delete_matching(self, predicate: Callable[[str, Any], bool]) -> int:
        """Delete every record for which ``predicate(key, value)`` holds, in one write."""
        with self._lock:
            doomed = [k for k, v in self._data.items() if predicate(k, v)]
            if not doomed:
                return 0
            removed = {k: self._data.pop(k) for k in doomed}
            try:
                self._flush()
            except StoreError:
                self._data.update(removed)
                raise
        return len(doomed)

    # Credentials

    def fetch_credentials(self, tenant_id: int) -> Optional[Credentials]:
        data = self.get(credentials_key(tenant_id))
        return Credentials.from_dict(data) if data else None

    def store_credentials(self, tenant_id: int, creds: Credentials) -> None:
        self.set(credentials_key(tenant_id), creds.to_dict())

    def delete_credentials(self, tenant_id: int) -> bool:
        return self.delete(credentials_key(tenant_id))

    def registered_tenants(self) -> List[int]:
        prefix = credentials_key(0)[:-1]
        tenants = []
        for key in self.keys(prefix):
            try:
                tenants.append(int(key[len(prefix):]))
            except ValueError:
                logger.warning(f"Ignoring malformed credentials key {key}")
        return tenants

    # Tracked characters

    def fetch_tracked_characters(self, tenant_id: int) -> Optional[List[TrackedCharacter]]:
        data = self.get(tracked_characters_key(tenant_id))
        if data is None:
            return None
        return [TrackedCharacter.from_dict(c) for c in data]

    def store_tracked_characters(self, tenant_id: int, characters: List[TrackedCharacter]) -> None:
        self.set(tracked_characters_key(tenant_id), [c.to_dict() for c in characters])

    # Per-character report metadata and parses

    def fetch_latest_report(self, tenant_id: int, char_id: int) -> Optional[ReportMetadata]:
        data = self.get(latest_report_key(tenant_id, char_id))
        return ReportMetadata.from_dict(data) if data else None

    def store_latest_report(self, tenant_id: int, char_id: int, report: ReportMetadata) -> None:
        self.set(latest_report_key(tenant_id, char_id), report.to_dict())

    def fetch_parses(self, tenant_id: int, char_id: int) -> Optional[PerformanceSnapshot]:
        data = self.get(parses_key(tenant_id, char_id))
        return PerformanceSnapshot.from_dict(data) if data is not None else None

    def store_parses(self, tenant_id: int, char_id: int, snapshot: PerformanceSnapshot) -> None:
        self.set(parses_key(tenant_id, char_id), snapshot.to_dict())

    # Schema migrations

    def schema_version(self) -> int:
        return int(self.get(SCHEMA_VERSION_KEY) or 0)

    def migrate(self) -> int:
        """Apply pending migrations in increasing version order, returns the resulting version."""
        current = self.schema_version()
        for version, description, migration in sorted(MIGRATIONS, key=lambda m: m[0]):
            if version <= current:
                continue
            removed = migration(self)
            self.set(SCHEMA_VERSION_KEY, version)
            current = version
            logger.info(f"Applied migration {version} ({description}), {removed} records removed")
        return current


_LEGACY_CHARACTER_KEY = re.compile(r"^wclogs-(latest-report|parses)-\d+$")
_TRACKED_PREFIX = tracked_characters_key(0)[:-1]


def _drop_old_credentials(store: SnapshotStore) -> int:
    return store.delete_matching(lambda key, _: key.startswith("warcraft-logs-"))


def _drop_untenanted_records(store: SnapshotStore) -> int:
    def obsolete(key: str, value: Any) -> bool:
        if _LEGACY_CHARACTER_KEY.match(key):
            return True
        # Tracked lists used to hold bare character ids
        return key.startswith(_TRACKED_PREFIX) and isinstance(value, list) and any(
            not isinstance(item, dict) for item in value
        )

    return store.delete_matching(obsolete)


MIGRATIONS: List[Tuple[int, str, Callable[[SnapshotStore], int]]] = [
    (1, "drop obsolete warcraft-logs credentials", _drop_old_credentials),
    (2, "drop untenanted character records", _drop_untenanted_records),
]
