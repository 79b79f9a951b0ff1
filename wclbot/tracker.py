"""
Change detection for tracked characters.

Each check compares what Warcraft Logs reports now against the durable copy in
the store, never against memory, so a check can be repeated or resumed after a
crash and re-derives the same decision from whatever was last written.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Optional, TypeVar

from .config import logger
from .errors import NotFoundError, StoreError
from .formatting import fmt_new_parse, fmt_new_report
from .models import PerformanceSnapshot, TrackedCharacter, round_percent
from .storage import SnapshotStore

T = TypeVar("T")


@dataclass
class ParseImprovement:
    metric: str
    encounter_id: int
    encounter_name: str
    old_percent: float
    new_percent: float


@dataclass
class CheckResult:
    baseline_established: bool = False
    report_advanced: bool = False
    new_report: bool = False
    improvements: List[ParseImprovement] = field(default_factory=list)
    snapshot_written: bool = False
    metadata_written: bool = False


class ParseTracker:
    def __init__(self, store: SnapshotStore, notifier):
        self.store = store
        self.notifier = notifier

    def _read(self, what: str, fetch: Callable[[], Optional[T]]) -> Optional[T]:
        # An unreadable record is treated as unknown and re-derived
        try:
            return fetch()
        except StoreError as e:
            logger.error(f"Cannot read {what}: {e}")
            return None

    def _write(self, what: str, store: Callable[[], None]) -> bool:
        try:
            store()
            return True
        except StoreError as e:
            logger.error(f"Cannot write {what}: {e}")
            return False

    async def check_character(self, tenant_id: int, client, character: TrackedCharacter) -> CheckResult:
        """Poll one character and announce new reports and improved parses.

        Network failures propagate to the caller; store failures are logged.
        """
        result = CheckResult()
        slug = character.slug

        stored = self._read(
            f"latest report of {slug}",
            lambda: self.store.fetch_latest_report(tenant_id, character.id),
        )
        if stored is None:
            # First check: record a baseline, announce nothing
            try:
                live = await client.get_latest_report_metadata(character)
            except NotFoundError as e:
                logger.debug(f"No report yet for {slug}: {e}")
                return result
            if self._write(
                f"baseline report of {slug}",
                lambda: self.store.store_latest_report(tenant_id, character.id, live),
            ):
                result.baseline_established = True
                result.metadata_written = True
                logger.info(f"Baseline report {live.code} recorded for {slug} (chat {tenant_id})")
            return result

        live = await client.get_latest_report_metadata(character)
        if live.same_end_time(stored):
            logger.debug(f"No latest report changes for {slug}")
            return result

        logger.debug(f"Latest report changes for {slug}: {stored.end_time} -> {live.end_time}")

        report = await client.get_latest_report(character)
        snapshot = self._read(
            f"parses of {slug}",
            lambda: self.store.fetch_parses(tenant_id, character.id),
        )
        if snapshot is None:
            # Expected before the first ranked report
            snapshot = PerformanceSnapshot()

        result.report_advanced = report.ends_after(stored)
        if report.code != stored.code:
            if result.report_advanced:
                title, description = fmt_new_report(character, report)
                await self.notifier.send_rich_message(
                    character.channel_id, title, client.flavor.report_url(report.code), description
                )
                result.new_report = True
                logger.info(f"New report {report.code} for {slug}")
            else:
                logger.warning(
                    f"Latest report of {slug} changed from {stored.code} to {report.code} "
                    f"without moving forward in time, previous report was edited or deleted"
                )

        rankings = await client.get_metric_rankings(character, report.zone_id, report.size)

        dirty = False
        for metric, fresh in rankings.items():
            stored_bucket = snapshot.bucket(report.zone_id, report.size, metric)
            if stored_bucket is None:
                dirty = True
                continue
            for ranking in fresh:
                previous = stored_bucket.get(ranking.encounter_id)
                if previous is None:
                    dirty = True
                    continue
                old = round_percent(previous.rank_percent)
                new = round_percent(ranking.rank_percent)
                if new > old:
                    dirty = True
                    improvement = ParseImprovement(
                        metric=metric,
                        encounter_id=ranking.encounter_id,
                        encounter_name=ranking.encounter_name,
                        old_percent=old,
                        new_percent=new,
                    )
                    result.improvements.append(improvement)
                    logger.info(f"New parse ! {slug} {ranking.encounter_name} {metric}: {old} -> {new}")
                    await self.notifier.send_message(
                        character.channel_id,
                        fmt_new_parse(character, metric, ranking.encounter_name, old, new),
                    )
                elif new != old:
                    dirty = True

        if dirty:
            snapshot.merge(report.zone_id, report.size, rankings)
            if not self._write(
                f"parses of {slug}",
                lambda: self.store.store_parses(tenant_id, character.id, snapshot),
            ):
                # Leave the metadata alone so the next tick redoes this comparison
                return result
            result.snapshot_written = True

        if result.report_advanced:
            result.metadata_written = self._write(
                f"latest report of {slug}",
                lambda: self.store.store_latest_report(tenant_id, character.id, report.metadata),
            )

        return result
