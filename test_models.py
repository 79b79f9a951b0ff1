from conftest import SIZE, ZONE, at, metadata, ranking
from wclbot.models import (
    Character,
    Flavor,
    PerformanceSnapshot,
    ReportMetadata,
    TrackedCharacter,
    round_percent,
    server_slug,
)


def test_merge_keeps_one_ranking_per_encounter():
    snapshot = PerformanceSnapshot()
    snapshot.merge(ZONE, SIZE, {"dps": [ranking(50.0), ranking(60.0, encounter_id=602, name="Boss B")]})
    snapshot.merge(ZONE, SIZE, {"dps": [ranking(75.5)]})

    bucket = snapshot.bucket(ZONE, SIZE, "dps")
    assert sorted(bucket) == [601, 602]
    assert bucket[601].rank_percent == 75.5
    assert snapshot.bucket(ZONE, 10, "dps") is None


def test_merge_rounds_percentiles():
    snapshot = PerformanceSnapshot()
    snapshot.merge(ZONE, SIZE, {"hps": [ranking(33.33339)]})

    assert snapshot.bucket(ZONE, SIZE, "hps")[601].rank_percent == 33.333


def test_bucket_is_a_copy():
    snapshot = PerformanceSnapshot()
    snapshot.merge(ZONE, SIZE, {"dps": [ranking(50.0)]})

    snapshot.bucket(ZONE, SIZE, "dps").clear()

    assert len(snapshot.bucket(ZONE, SIZE, "dps")) == 1


def test_snapshot_dict_form():
    snapshot = PerformanceSnapshot()
    snapshot.merge(ZONE, SIZE, {"dps": [ranking(50.0)], "hps": []})

    data = snapshot.to_dict()

    assert data == {
        "1002": {"25": {
            "dps": [{"encounter": {"id": 601, "name": "Boss A"}, "rank_percent": 50.0}],
            "hps": [],
        }},
    }
    assert PerformanceSnapshot.from_dict(data) == snapshot
    assert snapshot.keys() == [(ZONE, SIZE, "dps"), (ZONE, SIZE, "hps")]


def test_end_times_compare_at_second_resolution():
    stored = metadata("R1", 10)

    assert metadata("R1", 10.999).same_end_time(stored)
    assert not metadata("R1", 11).same_end_time(stored)
    assert metadata("R2", 11).ends_after(stored)
    assert not metadata("R2", 9).ends_after(stored)


def test_report_metadata_stores_milliseconds():
    data = metadata("R1", 1.5).to_dict()

    assert data["end_time"] == int(at(1.5).timestamp() * 1000)
    assert ReportMetadata.from_dict(data) == metadata("R1", 1.5)


def test_character_matching():
    character = Character(id=1, name="Varok", server="Pyrewood Village", region="EU")

    assert character.matches("varok", "pyrewood-village", "eu")
    assert character.matches("VAROK", "Pyrewood Village", "EU")
    assert not character.matches("Varok", "Firemaw", "EU")
    assert character.slug == "Varok EU-Pyrewood Village"
    assert server_slug("Zul'jin") == "zuljin"


def test_healers():
    assert Character(id=1, name="a", server="s", region="EU", class_id=7).can_heal()
    assert not Character(id=1, name="a", server="s", region="EU", class_id=4).can_heal()


def test_tracked_character_dict_form(character):
    assert TrackedCharacter.from_dict(character.to_dict()) == character
    assert TrackedCharacter.from_dict({"id": "9"}).channel_id == 0


def test_flavor_report_url():
    assert Flavor.RETAIL.report_url("abc") == "https://www.warcraftlogs.com/reports/abc"
    assert Flavor("classic").report_url("abc") == "https://classic.warcraftlogs.com/reports/abc"


def test_round_percent():
    assert round_percent(72.3454) == round_percent(72.345)
    assert round_percent("99.9996") == 100.0
