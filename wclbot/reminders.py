"""
One-shot chat reminders ("/remind 21:00 raid invites") and world buff
reminders ("/zg 17:53") sent a few minutes before the buff drops.

Reminders live only in memory: they are asyncio tasks sleeping until their
time and are lost on restart.
"""
from __future__ import annotations

import asyncio
import re
from datetime import datetime, timedelta
from typing import Optional, Set

from .config import logger
from .formatting import fmt_reminder

# 21, 21:00, 21h00, 21H00, 21-00, 2100
TIME_PATTERN = re.compile(r"(\d{1,2})(?:[hH:\-]?(\d{2}))?")

# World buff reminders fire this many minutes before the drop
WORLD_BUFF_LEAD_MINUTES = 5

# command -> reminder label
WORLD_BUFFS = {"zg": "ZG", "ony": "ONY"}

PENDING_REMINDERS: Set[asyncio.Task] = set()


def parse_time(text: str, now: Optional[datetime] = None) -> Optional[datetime]:
    """Next occurrence of a wall-clock time, today or tomorrow."""
    now = now or datetime.now()
    match = TIME_PATTERN.search(text)
    if not match:
        return None
    hours = int(match.group(1))
    minutes = int(match.group(2) or 0)
    if hours > 23 or minutes > 59:
        logger.debug(f"Rejected reminder time {text!r}")
        return None

    at = now.replace(hour=hours, minute=minutes, second=0, microsecond=0)
    if at <= now:
        at += timedelta(days=1)
    return at


def schedule_reminder(
    notifier,
    chat_id: int,
    reason: str,
    at: datetime,
    now: Optional[datetime] = None,
    lead_minutes: int = 0,
) -> Optional[datetime]:
    """Send a reminder about ``at`` to ``chat_id``, ``lead_minutes`` ahead of it.

    Returns when the reminder fires, or None when that is already past.
    """
    now = now or datetime.now()
    fire_at = at - timedelta(minutes=lead_minutes)
    delay = (fire_at - now).total_seconds()
    if delay < 0:
        return None

    async def scheduled_task():
        try:
            logger.debug(f"Scheduling reminder for chat {chat_id} in {delay:.0f}s")
            await asyncio.sleep(delay)
            await notifier.send_message(chat_id, fmt_reminder(reason, at))
            logger.info(f"Sent reminder for chat {chat_id}")
        except asyncio.CancelledError:
            logger.debug(f"Cancelled reminder task for chat {chat_id}")
            raise

    task = asyncio.create_task(scheduled_task())
    PENDING_REMINDERS.add(task)
    task.add_done_callback(PENDING_REMINDERS.discard)
    logger.info(f"Reminder '{reason}' set for chat {chat_id} at {fire_at.isoformat()} ({lead_minutes} min ahead)")
    return fire_at


def cancel_reminders() -> int:
    pending = [t for t in PENDING_REMINDERS if not t.done()]
    for task in pending:
        task.cancel()
    return len(pending)
