import asyncio
from datetime import datetime, timedelta

import pytest

from conftest import FakeNotifier
from wclbot.reminders import (
    PENDING_REMINDERS,
    WORLD_BUFF_LEAD_MINUTES,
    cancel_reminders,
    parse_time,
    schedule_reminder,
)

NOW = datetime(2024, 3, 1, 18, 30)


@pytest.mark.parametrize("text, expected", [
    ("21", datetime(2024, 3, 1, 21, 0)),
    ("21:15", datetime(2024, 3, 1, 21, 15)),
    ("21h15", datetime(2024, 3, 1, 21, 15)),
    ("2115", datetime(2024, 3, 1, 21, 15)),
    ("08:00", datetime(2024, 3, 2, 8, 0)),
    ("18:30", datetime(2024, 3, 2, 18, 30)),
])
def test_parse_time(text, expected):
    assert parse_time(text, now=NOW) == expected


@pytest.mark.parametrize("text", ["soon", "25:00", "12:75"])
def test_parse_time_rejects_garbage(text):
    assert parse_time(text, now=NOW) is None


@pytest.mark.asyncio
async def test_reminder_is_sent():
    notifier = FakeNotifier()
    now = datetime.now()

    assert schedule_reminder(notifier, -1001, "raid invites", now, now=now)
    await asyncio.sleep(0.05)

    [(chat_id, text)] = notifier.messages
    assert chat_id == -1001
    assert "raid invites" in text


@pytest.mark.asyncio
async def test_past_reminders_are_refused():
    now = datetime.now()

    assert not schedule_reminder(FakeNotifier(), 1, "late", now - timedelta(minutes=1), now=now)


@pytest.mark.asyncio
async def test_cancel_pending_reminders():
    notifier = FakeNotifier()
    now = datetime.now()
    schedule_reminder(notifier, 1, "later", now + timedelta(hours=1), now=now)

    assert cancel_reminders() == 1
    await asyncio.sleep(0)
    await asyncio.sleep(0)

    assert notifier.messages == []
    assert not [t for t in PENDING_REMINDERS if not t.done()]


@pytest.mark.asyncio
async def test_world_buff_reminder_fires_ahead_of_time():
    notifier = FakeNotifier()
    now = datetime.now()
    drop = now + timedelta(minutes=WORLD_BUFF_LEAD_MINUTES)

    fire_at = schedule_reminder(notifier, -1001, "ZG", drop, now=now, lead_minutes=WORLD_BUFF_LEAD_MINUTES)
    await asyncio.sleep(0.05)

    assert fire_at == now
    [(chat_id, text)] = notifier.messages
    assert chat_id == -1001
    assert "ZG" in text
    assert drop.strftime("%H:%M") in text


@pytest.mark.asyncio
async def test_world_buff_reminder_inside_the_lead_is_refused():
    now = datetime.now()

    assert schedule_reminder(FakeNotifier(), 1, "ONY", now + timedelta(minutes=2), now=now, lead_minutes=WORLD_BUFF_LEAD_MINUTES) is None
