from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

# Classes able to heal: paladin, priest, death knight, shaman, druid
HEALER_CLASS_IDS = (2, 5, 6, 7, 9)

PERCENT_PRECISION = 3


class Flavor(Enum):
    """World of Warcraft release, selects the API host and the zone list."""
    RETAIL = "retail"
    CLASSIC = "classic"
    TBC = "tbc"
    WOTLK = "wotlk"
    VANILLA = "vanilla"

    @property
    def host(self) -> str:
        if self is Flavor.RETAIL:
            return "www.warcraftlogs.com"
        if self is Flavor.VANILLA:
            return "vanilla.warcraftlogs.com"
        return "classic.warcraftlogs.com"

    @property
    def latest_expansion(self) -> int:
        # TODO: read the expansion list from worldData instead of this table
        return {
            Flavor.RETAIL: 4,
            Flavor.CLASSIC: 1000,
            Flavor.TBC: 1001,
            Flavor.WOTLK: 1002,
            Flavor.VANILLA: 2000,
        }[self]

    def report_url(self, code: str) -> str:
        return f"https://{self.host}/reports/{code}"


def round_percent(value: float) -> float:
    """Lower float resolution; the API returns precision that is not a real rank."""
    return round(float(value), PERCENT_PRECISION)


def server_slug(server: str) -> str:
    """Server names compare as slugs: 'Pyrewood Village' is 'pyrewood-village'."""
    return "-".join(server.lower().split()).replace("'", "")


def from_millis(value: float) -> datetime:
    return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)


def to_millis(value: datetime) -> int:
    return int(round(value.timestamp() * 1000))


@dataclass
class Credentials:
    client_id: str
    client_secret: str

    def to_dict(self) -> Dict[str, str]:
        return {"client_id": self.client_id, "client_secret": self.client_secret}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Credentials":
        return cls(client_id=data.get("client_id", ""), client_secret=data.get("client_secret", ""))

    def is_complete(self) -> bool:
        return bool(self.client_id and self.client_secret)


@dataclass
class Character:
    id: int
    name: str
    server: str
    region: str
    class_id: int = 0

    @property
    def slug(self) -> str:
        return f"{self.name} {self.region.upper()}-{self.server}"

    def can_heal(self) -> bool:
        return self.class_id in HEALER_CLASS_IDS

    def matches(self, name: str, server: str, region: str) -> bool:
        return (
            self.name.lower() == name.lower()
            and server_slug(self.server) == server_slug(server)
            and self.region.lower() == region.lower()
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "server": self.server,
            "region": self.region,
            "class_id": self.class_id,
        }


@dataclass
class TrackedCharacter(Character):
    """A character tracked by one tenant, with the chat that receives its notifications."""
    channel_id: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["channel_id"] = self.channel_id
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrackedCharacter":
        return cls(
            id=int(data["id"]),
            name=data.get("name", ""),
            server=data.get("server", ""),
            region=data.get("region", ""),
            class_id=int(data.get("class_id", 0)),
            channel_id=int(data.get("channel_id", 0)),
        )

    @classmethod
    def from_character(cls, character: Character, channel_id: int) -> "TrackedCharacter":
        return cls(
            id=character.id,
            name=character.name,
            server=character.server,
            region=character.region,
            class_id=character.class_id,
            channel_id=channel_id,
        )


@dataclass
class ReportMetadata:
    code: str
    end_time: datetime

    @property
    def end_second(self) -> int:
        """End time at whole-second resolution, sub-second jitter is ignored."""
        return int(self.end_time.timestamp())

    def same_end_time(self, other: "ReportMetadata") -> bool:
        return self.end_second == other.end_second

    def ends_after(self, other: "ReportMetadata") -> bool:
        return self.end_second > other.end_second

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "end_time": to_millis(self.end_time)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReportMetadata":
        return cls(code=data["code"], end_time=from_millis(data["end_time"]))


@dataclass
class Fight:
    id: int
    encounter_id: int
    name: str
    size: int


@dataclass
class Report(ReportMetadata):
    """Latest report with the zone (partition) and raid size (sub-partition) of its last kill."""
    zone_id: int = 0
    size: int = 0
    fights: List[Fight] = field(default_factory=list)
    characters: List[int] = field(default_factory=list)

    @property
    def metadata(self) -> ReportMetadata:
        return ReportMetadata(code=self.code, end_time=self.end_time)


@dataclass
class Ranking:
    encounter_id: int
    encounter_name: str
    rank_percent: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "encounter": {"id": self.encounter_id, "name": self.encounter_name},
            "rank_percent": self.rank_percent,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Ranking":
        encounter = data.get("encounter") or {}
        return cls(
            encounter_id=int(encounter.get("id", 0)),
            encounter_name=encounter.get("name", ""),
            rank_percent=round_percent(data.get("rank_percent", 0.0)),
        )


# metric ("dps" / "hps") -> rankings of one zone and size
MetricRankings = Dict[str, List[Ranking]]

BucketKey = Tuple[int, int, str]


class PerformanceSnapshot:
    """Last durably known rankings of one character.

    Buckets are keyed by ``(zone_id, size, metric)`` and hold at most one
    ranking per encounter id. ``merge`` is the only way rankings enter a
    snapshot, so that invariant is enforced here and nowhere else.
    """

    def __init__(self) -> None:
        self._buckets: Dict[BucketKey, Dict[int, Ranking]] = {}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PerformanceSnapshot):
            return NotImplemented
        return self._buckets == other._buckets

    def keys(self) -> List[BucketKey]:
        return sorted(self._buckets)

    def bucket(self, zone_id: int, size: int, metric: str) -> Optional[Dict[int, Ranking]]:
        """Rankings of one bucket by encounter id, ``None`` if never stored."""
        rankings = self._buckets.get((zone_id, size, metric))
        return dict(rankings) if rankings is not None else None

    def rankings(self, zone_id: int, size: int) -> MetricRankings:
        return {
            metric: list(by_encounter.values())
            for (z, s, metric), by_encounter in sorted(self._buckets.items())
            if z == zone_id and s == size
        }

    def merge(self, zone_id: int, size: int, rankings: MetricRankings) -> None:
        """Merge fresh rankings, overwriting stored entries by encounter id."""
        for metric, fresh in rankings.items():
            by_encounter = self._buckets.setdefault((zone_id, size, metric), {})
            for ranking in fresh:
                by_encounter[ranking.encounter_id] = Ranking(
                    encounter_id=ranking.encounter_id,
                    encounter_name=ranking.encounter_name,
                    rank_percent=round_percent(ranking.rank_percent),
                )

    def to_dict(self) -> Dict[str, Dict[str, Dict[str, List[Dict[str, Any]]]]]:
        data: Dict[str, Dict[str, Dict[str, List[Dict[str, Any]]]]] = {}
        for (zone_id, size, metric), by_encounter in sorted(self._buckets.items()):
            sizes = data.setdefault(str(zone_id), {})
            metrics = sizes.setdefault(str(size), {})
            metrics[metric] = [r.to_dict() for r in by_encounter.values()]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PerformanceSnapshot":
        snapshot = cls()
        for zone_id, sizes in (data or {}).items():
            for size, metrics in sizes.items():
                snapshot.merge(
                    int(zone_id),
                    int(size),
                    {metric: [Ranking.from_dict(r) for r in rankings] for metric, rankings in metrics.items()},
                )
        return snapshot


@dataclass
class Zone:
    id: int
    name: str
    sizes: List[int] = field(default_factory=list)
    encounter_ids: List[int] = field(default_factory=list)


@dataclass
class RateLimitData:
    limit_per_hour: int
    points_spent_this_hour: float
    points_reset_in: int
