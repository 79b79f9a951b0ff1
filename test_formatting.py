from conftest import make_report, ranking
from wclbot.formatting import (
    fmt_help,
    fmt_new_parse,
    fmt_new_report,
    fmt_parses,
    fmt_rich_message,
    fmt_tracked_list,
    parse_color,
)
from wclbot.models import Character


def test_parse_colors():
    assert parse_color(100) == "🟨"
    assert parse_color(99.2) == "🩷"
    assert parse_color(96) == "🟧"
    assert parse_color(80) == "🟪"
    assert parse_color(50) == "🟦"
    assert parse_color(30) == "🟩"
    assert parse_color(3) == "⬜"


def test_new_report(character):
    title, description = fmt_new_report(character, make_report("R2", 0))

    assert title == "New report for Kaelis EU-firemaw"
    assert "<code>R2</code>" in description
    assert "Boss A" in description
    assert "2024-03-01 20:00 UTC" in description


def test_rich_message_escapes_title():
    text = fmt_rich_message("A <b> & C", "https://x/reports/R2", "body")

    assert text.startswith('<b><a href="https://x/reports/R2">A &lt;b&gt; &amp; C</a></b>')


def test_new_parse(character):
    text = fmt_new_parse(character, "hps", "Boss <A>", 80.0, 92.5)

    assert "Boss &lt;A&gt; (HPS)" in text
    assert "<code>80.0</code>" in text and "<code>92.5</code>" in text


def test_tracked_list(character):
    assert fmt_tracked_list([]) == "<i>No tracked characters</i>"
    assert "<code>-1001</code>" in fmt_tracked_list([character])


def test_parses_without_rankings():
    text = fmt_parses(Character(1, "A", "s", "EU"), make_report("R1", 0), {"dps": []})

    assert "No ranked encounter" in text


def test_parses_lists_metrics():
    text = fmt_parses(Character(1, "A", "s", "EU"), make_report("R1", 0), {"dps": [ranking(55.5)], "hps": [ranking(12.0)]})

    assert text.index("<b>DPS</b>") < text.index("<b>HPS</b>")
    assert "<code>55.5</code>" in text


def test_help_mentions_every_command():
    text = fmt_help("group")

    for command in ("/tracked", "/parses", "/remind", "/zg", "/ony", "/ping", "/register", "/unregister", "/track", "/untrack"):
        assert command in text
