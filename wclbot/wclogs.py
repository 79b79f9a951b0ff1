"""
Warcraft Logs v2 GraphQL client.

https://www.warcraftlogs.com/v2-api-docs/warcraft/

One client per tenant, holding that tenant's API credentials. Every call is a
single round-trip on its own short-lived session; the OAuth access token is
kept on the client until shortly before it expires.
"""
from __future__ import annotations

import asyncio
import time
from functools import wraps
from typing import Any, Dict, List, Optional

import aiohttp
from cachetools import TTLCache

from .config import Config, logger
from .errors import AuthenticationError, NotFoundError, ServiceError
from .http import fetch_token, make_session, post_graphql
from .models import (
    Character,
    Credentials,
    Fight,
    Flavor,
    MetricRankings,
    Ranking,
    RateLimitData,
    Report,
    ReportMetadata,
    Zone,
    from_millis,
    round_percent,
)

# Zones with a difficulty of at least this raid size are tracked
MIN_TRACKED_RAID_SIZE = 10

# Refresh the access token this many seconds before it expires
TOKEN_EXPIRY_MARGIN = 60

# Failures that say nothing about the credentials; the call can be retried later
TRANSIENT_ERRORS = (ServiceError, aiohttp.ClientError, asyncio.TimeoutError)

# Zone lists are static data for each expansion
zone_cache: TTLCache = TTLCache(maxsize=16, ttl=Config.ZONE_CACHE_TTL)


def cached_zone_call(cache_key_func):
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            key = cache_key_func(*args, **kwargs)
            if key in zone_cache:
                logger.debug(f"Zone cache hit for: {key}")
                return zone_cache[key]
            logger.debug(f"Zone cache miss, calling API for: {key}")
            result = await func(*args, **kwargs)
            zone_cache[key] = result
            return result
        return wrapper
    return decorator


RATE_LIMIT_QUERY = """
query {
    rateLimitData {
        limitPerHour
        pointsSpentThisHour
        pointsResetIn
    }
}
"""

CHARACTER_QUERY = """
query ($name: String!, $server: String!, $region: String!) {
    characterData {
        character(name: $name, serverSlug: $server, serverRegion: $region) {
            id
            name
            classID
            server {
                slug
                region {
                    slug
                }
            }
        }
    }
}
"""

LATEST_REPORT_METADATA_QUERY = """
query ($id: Int!) {
    characterData {
        character(id: $id) {
            recentReports(limit: 1) {
                data {
                    code
                    endTime
                }
            }
        }
    }
}
"""

LATEST_REPORT_QUERY = """
query ($id: Int!) {
    characterData {
        character(id: $id) {
            recentReports(limit: 1) {
                data {
                    code
                    endTime
                    zone {
                        id
                    }
                    fights(killType: Kills) {
                        id
                        encounterID
                        name
                        size
                    }
                    rankedCharacters {
                        id
                    }
                }
            }
        }
    }
}
"""

METRIC_RANKINGS_QUERY = """
query ($id: Int!, $zoneID: Int!, $size: Int!, $withHps: Boolean!) {
    characterData {
        character(id: $id) {
            hpsZoneRankings: zoneRankings(metric: hps, zoneID: $zoneID, size: $size) @include(if: $withHps)
            dpsZoneRankings: zoneRankings(metric: dps, zoneID: $zoneID, size: $size)
        }
    }
}
"""

ZONES_QUERY = """
query ($expansion: Int!) {
    worldData {
        zones(expansion_id: $expansion) {
            id
            name
            difficulties {
                id
                name
                sizes
            }
            encounters {
                id
                name
            }
        }
    }
}
"""


class WCLogsClient:
    def __init__(self, credentials: Credentials, flavor: Flavor = Flavor.CLASSIC, token_url: str | None = None):
        self.credentials = credentials
        self.flavor = flavor
        self.api_url = f"https://{flavor.host}/api/v2/client"
        self.token_url = token_url or Config.WCL_TOKEN_URL
        self._access_token: Optional[str] = None
        self._token_expires_at = 0.0

    async def _ensure_token(self, session) -> str:
        if self._access_token and time.monotonic() < self._token_expires_at:
            return self._access_token
        data = await fetch_token(session, self.token_url, self.credentials)
        self._access_token = data["access_token"]
        expires_in = float(data.get("expires_in", 3600))
        self._token_expires_at = time.monotonic() + max(expires_in - TOKEN_EXPIRY_MARGIN, 0)
        return self._access_token

    async def _query(self, query: str, variables: Dict[str, Any] | None = None) -> Dict[str, Any]:
        async with make_session() as session:
            token = await self._ensure_token(session)
            return await post_graphql(session, self.api_url, query, variables, access_token=token)

    async def check(self) -> bool:
        """Validate credentials with the cheapest query available.

        Returns False only when the credentials are rejected. Transient
        failures (see ``TRANSIENT_ERRORS``) propagate to the caller.
        """
        try:
            limits = await self.get_rate_limits()
        except AuthenticationError as e:
            logger.warning(f"WarcraftLogs credentials rejected: {e}")
            return False
        logger.debug(f"Rate limit: {limits.points_spent_this_hour}/{limits.limit_per_hour} points")
        return True

    async def get_rate_limits(self) -> RateLimitData:
        data = await self._query(RATE_LIMIT_QUERY)
        limits = data.get("rateLimitData") or {}
        return RateLimitData(
            limit_per_hour=int(limits.get("limitPerHour", 0)),
            points_spent_this_hour=float(limits.get("pointsSpentThisHour", 0.0)),
            points_reset_in=int(limits.get("pointsResetIn", 0)),
        )

    async def get_character(self, name: str, server: str, region: str) -> Character:
        data = await self._query(CHARACTER_QUERY, {"name": name, "server": server, "region": region})
        character = (data.get("characterData") or {}).get("character")
        if not character:
            raise NotFoundError(f"Character {name}-{server} [{region}] not found")
        return parse_character(character, name, server, region)

    async def get_latest_report_metadata(self, character: Character) -> ReportMetadata:
        data = await self._query(LATEST_REPORT_METADATA_QUERY, {"id": character.id})
        report = _first_recent_report(data, character)
        return ReportMetadata(code=report["code"], end_time=from_millis(report["endTime"]))

    async def get_latest_report(self, character: Character) -> Report:
        data = await self._query(LATEST_REPORT_QUERY, {"id": character.id})
        raw = _first_recent_report(data, character)
        fights = [
            Fight(
                id=int(f.get("id", 0)),
                encounter_id=int(f.get("encounterID", 0)),
                name=f.get("name", ""),
                size=int(f.get("size") or 0),
            )
            for f in raw.get("fights") or []
        ]
        if not fights:
            raise NotFoundError(f"No kill in latest report {raw['code']} for {character.slug}")

        last_fight = fights[-1]
        zone_id = int((raw.get("zone") or {}).get("id") or 0)
        if not zone_id:
            zone_id = zone_for_encounter(await self.get_zones(), last_fight.encounter_id)

        return Report(
            code=raw["code"],
            end_time=from_millis(raw["endTime"]),
            zone_id=zone_id,
            size=last_fight.size,
            fights=fights,
            characters=[int(c["id"]) for c in raw.get("rankedCharacters") or [] if c.get("id")],
        )

    async def get_metric_rankings(self, character: Character, zone_id: int, size: int) -> MetricRankings:
        with_hps = character.can_heal()
        data = await self._query(
            METRIC_RANKINGS_QUERY,
            {"id": character.id, "zoneID": zone_id, "size": size, "withHps": with_hps},
        )
        raw = (data.get("characterData") or {}).get("character")
        if raw is None:
            raise NotFoundError(f"Character {character.slug} not found")

        parses: MetricRankings = {"dps": parse_zone_rankings(raw.get("dpsZoneRankings"))}
        if with_hps:
            parses["hps"] = parse_zone_rankings(raw.get("hpsZoneRankings"))
        return parses

    @cached_zone_call(lambda self: f"zones:{self.flavor.value}")
    async def get_zones(self) -> List[Zone]:
        data = await self._query(ZONES_QUERY, {"expansion": self.flavor.latest_expansion})
        zones = [parse_zone(z) for z in (data.get("worldData") or {}).get("zones") or []]
        relevant = [z for z in zones if is_relevant_zone(z)]
        logger.info(f"Loaded {len(relevant)} relevant zones for {self.flavor.value}")
        return relevant


def _first_recent_report(data: Dict[str, Any], character: Character) -> Dict[str, Any]:
    raw = (data.get("characterData") or {}).get("character")
    if raw is None:
        raise NotFoundError(f"Character {character.slug} not found")
    reports = (raw.get("recentReports") or {}).get("data") or []
    if not reports:
        raise NotFoundError(f"No recent report for {character.slug}")
    return reports[0]


def parse_character(raw: Dict[str, Any], name: str, server: str, region: str) -> Character:
    server_data = raw.get("server") or {}
    return Character(
        id=int(raw["id"]),
        name=raw.get("name") or name,
        server=server_data.get("slug") or server,
        region=((server_data.get("region") or {}).get("slug") or region).upper(),
        class_id=int(raw.get("classID") or 0),
    )


def parse_zone_rankings(raw: Dict[str, Any] | None) -> List[Ranking]:
    """Turn a zoneRankings JSON scalar into rankings, skipping encounters without a kill."""
    rankings: List[Ranking] = []
    for item in (raw or {}).get("rankings") or []:
        percent = item.get("rankPercent")
        encounter = item.get("encounter") or {}
        if percent is None or not encounter.get("id"):
            continue
        rankings.append(Ranking(
            encounter_id=int(encounter["id"]),
            encounter_name=encounter.get("name", ""),
            rank_percent=round_percent(percent),
        ))
    return rankings


def parse_zone(raw: Dict[str, Any]) -> Zone:
    sizes = sorted({int(s) for d in raw.get("difficulties") or [] for s in d.get("sizes") or []})
    return Zone(
        id=int(raw["id"]),
        name=raw.get("name", ""),
        sizes=sizes,
        encounter_ids=[int(e["id"]) for e in raw.get("encounters") or []],
    )


def is_relevant_zone(zone: Zone) -> bool:
    return any(size >= MIN_TRACKED_RAID_SIZE for size in zone.sizes)


def zone_for_encounter(zones: List[Zone], encounter_id: int) -> int:
    for zone in zones:
        if encounter_id in zone.encounter_ids:
            return zone.id
    return 0
