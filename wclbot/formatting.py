from __future__ import annotations

from datetime import datetime
from typing import List, Tuple

from .models import Character, MetricRankings, Report, TrackedCharacter

METRIC_NAMES = {"dps": "DPS", "hps": "HPS"}


def _escape_html(text: str) -> str:
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def parse_color(percent: float) -> str:
    """Warcraft Logs colour tier of a percentile."""
    if percent >= 100:
        return "🟨"
    if percent >= 99:
        return "🩷"
    if percent >= 95:
        return "🟧"
    if percent >= 75:
        return "🟪"
    if percent >= 50:
        return "🟦"
    if percent >= 25:
        return "🟩"
    return "⬜"


def fmt_time(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M UTC")


def fmt_rich_message(title: str, url: str, description: str) -> str:
    return f'<b><a href="{url}">{_escape_html(title)}</a></b>\n\n{description}'


def fmt_new_report(character: Character, report: Report) -> Tuple[str, str]:
    """Title and description of a "new report" announcement."""
    title = f"New report for {character.slug}"
    kills = ", ".join(_escape_html(f.name) for f in report.fights) or "no kill"
    description = (
        f"📜 <code>{_escape_html(report.code)}</code> · {report.size}-man\n"
        f"🗡️ {kills}\n"
        f"🕒 <i>Ended {fmt_time(report.end_time)}</i>"
    )
    return title, description


def fmt_new_parse(character: Character, metric: str, encounter_name: str, old: float, new: float) -> str:
    metric_name = METRIC_NAMES.get(metric, metric.upper())
    return (
        f"🎉 <b>New parse !</b> {_escape_html(character.slug)}\n"
        f"{_escape_html(encounter_name)} ({metric_name}): "
        f"{parse_color(old)} <code>{old:.1f}</code> → {parse_color(new)} <code>{new:.1f}</code>"
    )


def fmt_tracked_list(characters: List[TrackedCharacter]) -> str:
    if not characters:
        return "<i>No tracked characters</i>"
    lines = ["👀 <b>Tracked characters</b>\n"]
    for n, c in enumerate(characters, start=1):
        lines.append(f"{n:>2}. <b>{_escape_html(c.slug)}</b> ({c.id}) → <code>{c.channel_id}</code>")
    return "\n".join(lines)


def fmt_parses(character: Character, report: Report, rankings: MetricRankings) -> str:
    title = (
        f"📊 <b>{_escape_html(character.slug)}</b>\n"
        f"🧭 Zone {report.zone_id} · {report.size}-man (latest report <code>{_escape_html(report.code)}</code>)"
    )
    sections = []
    for metric, entries in sorted(rankings.items()):
        if not entries:
            continue
        lines = [f"<b>{METRIC_NAMES.get(metric, metric.upper())}</b>"]
        for r in entries:
            lines.append(f"{parse_color(r.rank_percent)} {_escape_html(r.encounter_name)} · <code>{r.rank_percent:.1f}</code>")
        sections.append("\n".join(lines))
    body = "\n\n".join(sections) if sections else "<i>No ranked encounter</i>"
    return f"{title}\n\n{body}"


def fmt_help(chat_type: str) -> str:
    where = "this chat" if chat_type == "private" else "this group"
    return (
        "🤖 <b>WarcraftLogs Parse Tracker</b>\n\n"
        "<b>Commands for All Members:</b>\n"
        "/tracked - List tracked characters\n"
        "/parses &lt;name&gt; &lt;server&gt; &lt;region&gt; - Show current parses\n"
        "/remind &lt;HH:MM&gt; [reason] - Set a reminder\n"
        "/zg &lt;HH:MM&gt; - ZG buff reminder, 5 minutes ahead\n"
        "/ony &lt;HH:MM&gt; - Onyxia buff reminder, 5 minutes ahead\n"
        "/ping - Check the bot is alive\n\n"
        "<b>Admin Only Commands:</b>\n"
        f"/register &lt;client_id&gt; &lt;client_secret&gt; - Setup WarcraftLogs API credentials for {where}\n"
        "/unregister - Forget credentials and stop tracking\n"
        "/track &lt;name&gt; &lt;server&gt; &lt;region&gt; [chat_id] - Track a character\n"
        "/untrack &lt;name&gt; &lt;server&gt; &lt;region&gt; - Stop tracking a character"
    )


def fmt_reminder(reason: str, at: datetime) -> str:
    label = _escape_html(reason) if reason else "REMINDER"
    return f"⏰ <b>Reminder</b> {label} ({at.strftime('%H:%M')})"
