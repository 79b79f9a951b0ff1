"""Shared fakes for the test suite: no network, no Telegram."""
import asyncio
from datetime import datetime, timedelta, timezone
from pathlib import Path
import sys

import pytest

sys.path.insert(0, str(Path(__file__).parent))

from wclbot.errors import NotFoundError, ServiceError, StoreError  # noqa: E402
from wclbot.models import (  # noqa: E402
    Character,
    Fight,
    Flavor,
    Ranking,
    Report,
    ReportMetadata,
    TrackedCharacter,
)
from wclbot.storage import SnapshotStore  # noqa: E402

T0 = datetime(2024, 3, 1, 20, 0, 0, tzinfo=timezone.utc)

ZONE = 1002
SIZE = 25


def at(seconds: float) -> datetime:
    return T0 + timedelta(seconds=seconds)


def make_report(code: str, seconds: float, zone_id: int = ZONE, size: int = SIZE) -> Report:
    return Report(
        code=code,
        end_time=at(seconds),
        zone_id=zone_id,
        size=size,
        fights=[Fight(id=1, encounter_id=601, name="Boss A", size=size)],
    )


def ranking(percent: float, encounter_id: int = 601, name: str = "Boss A") -> Ranking:
    return Ranking(encounter_id=encounter_id, encounter_name=name, rank_percent=percent)


class FakeNotifier:
    def __init__(self):
        self.messages = []
        self.rich_messages = []

    async def send_message(self, channel_id, text):
        self.messages.append((channel_id, text))
        return True

    async def send_rich_message(self, channel_id, title, url, description):
        self.rich_messages.append((channel_id, title, url, description))
        return True


class FakeClient:
    """Scriptable stand-in for WCLogsClient."""

    def __init__(self, valid: bool = True):
        self.flavor = Flavor.CLASSIC
        self.valid = valid
        self.characters = {}
        self.metadata = None
        self.report = None
        self.rankings = {}
        self.failing = set()
        self.calls = []
        # When set, get_latest_report_metadata waits on it
        self.gate = None
        self.entered = asyncio.Event()

    def add_character(self, character: Character) -> None:
        self.characters[character.name.lower()] = character

    def _call(self, name: str) -> None:
        self.calls.append(name)
        if name in self.failing:
            raise ServiceError(f"{name} failed")

    async def check(self):
        return self.valid

    async def get_character(self, name, server, region):
        self._call("get_character")
        try:
            return self.characters[name.lower()]
        except KeyError:
            raise NotFoundError(f"Character {name} not found") from None

    async def get_latest_report_metadata(self, character):
        self._call("get_latest_report_metadata")
        self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.metadata is None:
            raise NotFoundError("no recent report")
        return self.metadata

    async def get_latest_report(self, character):
        self._call("get_latest_report")
        if self.report is None:
            raise NotFoundError("no recent report")
        return self.report

    async def get_metric_rankings(self, character, zone_id, size):
        self._call("get_metric_rankings")
        return {metric: list(entries) for metric, entries in self.rankings.items()}


class CountingStore(SnapshotStore):
    """SnapshotStore counting writes, optionally failing writes for keys with a given prefix."""

    def __init__(self, path: str):
        self.writes = 0
        self.fail_prefix = None
        super().__init__(path)

    def set(self, key, value):
        if self.fail_prefix and key.startswith(self.fail_prefix):
            raise StoreError(f"disk full writing {key}")
        self.writes += 1
        super().set(key, value)

    def delete(self, key):
        self.writes += 1
        return super().delete(key)


@pytest.fixture
def store(tmp_path):
    return CountingStore(str(tmp_path / "data.json"))


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def client():
    return FakeClient()


@pytest.fixture
def character():
    return TrackedCharacter(id=42, name="Kaelis", server="firemaw", region="EU", class_id=2, channel_id=-1001)


def metadata(code: str, seconds: float) -> ReportMetadata:
    return ReportMetadata(code=code, end_time=at(seconds))
