from __future__ import annotations

from typing import List, Optional, Tuple

from telegram import ChatMember, Update
from telegram.error import TelegramError
from telegram.ext import ContextTypes

from .auth import guard_admin, guard_read
from .charts import generate_parses_chart
from .config import logger
from .errors import TrackingError
from .formatting import fmt_help, fmt_parses, fmt_tracked_list
from .models import Credentials
from .registry import RegisterOutcome, TenantRegistry
from .reminders import WORLD_BUFF_LEAD_MINUTES, WORLD_BUFFS, parse_time, schedule_reminder

# Telegram caps photo captions
MAX_CAPTION_LENGTH = 1024

TRACK_USAGE = "Usage: /track <name> <server> <region> [chat_id]"


def get_registry(context: ContextTypes.DEFAULT_TYPE) -> TenantRegistry:
    return context.application.bot_data["registry"]


def parse_character_args(args: List[str], allow_channel: bool = False) -> Optional[Tuple[str, str, str, Optional[int]]]:
    """Split ``<name> <server...> <region> [chat_id]``; server names may contain spaces."""
    args = [a.strip() for a in args if a.strip()]
    channel_id = None
    if allow_channel and len(args) >= 4 and args[-1].lstrip("-").isdigit():
        channel_id = int(args[-1])
        args = args[:-1]
    if len(args) < 3:
        return None
    return args[0], " ".join(args[1:-1]), args[-1], channel_id


async def _reply_error(update: Update, e: Exception) -> None:
    if isinstance(e, TrackingError):
        await update.message.reply_text(f"❌ {e}")
    elif isinstance(e, PermissionError):
        await update.message.reply_text(f"🔐 {e}")
    else:
        logger.error(f"Command failed in chat {update.effective_chat.id}: {e}")
        await update.message.reply_text(f"❌ Error: {e}")


async def start_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    if not await guard_read(update, context):
        return
    await update.message.reply_text(fmt_help(update.effective_chat.type), parse_mode="HTML")


async def ping_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    if not await guard_read(update, context):
        return
    await update.message.reply_text("Pong !")


async def register_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    if not await guard_admin(update, context):
        return

    chat_id = update.effective_chat.id
    if len(context.args) != 2:
        await update.message.reply_text("Usage: /register <client_id> <client_secret>")
        return

    # The message holds the client secret
    try:
        await update.message.delete()
    except TelegramError as e:
        logger.warning(f"Could not delete /register message in chat {chat_id}: {e}")

    creds = Credentials(client_id=context.args[0].strip(), client_secret=context.args[1].strip())
    outcome = await get_registry(context).register(chat_id, creds)
    prefix = "✅" if outcome is RegisterOutcome.STORED else "❌"
    await context.bot.send_message(chat_id, f"{prefix} {outcome.value}")


async def unregister_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    if not await guard_admin(update, context):
        return

    try:
        removed = await get_registry(context).unregister(update.effective_chat.id)
    except Exception as e:
        await _reply_error(update, e)
        return
    if removed:
        await update.message.reply_text("🛑 Credentials removed, tracking stopped.")
    else:
        await update.message.reply_text("❓ No WarcraftLogs credentials registered here.")


async def track_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    if not await guard_admin(update, context):
        return

    parsed = parse_character_args(context.args, allow_channel=True)
    if not parsed:
        await update.message.reply_text(TRACK_USAGE)
        return
    name, server, region, channel_id = parsed
    chat_id = update.effective_chat.id
    if channel_id is None:
        channel_id = chat_id

    try:
        character, replaced = await get_registry(context).track(chat_id, name, server, region, channel_id)
    except Exception as e:
        await _reply_error(update, e)
        return

    if replaced:
        await update.message.reply_text(f"🔁 {character.slug} ({character.id}) notifications now go to {channel_id}")
    else:
        await update.message.reply_text(f"👀 {character.slug} ({character.id}) is now tracked")


async def untrack_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    if not await guard_admin(update, context):
        return

    parsed = parse_character_args(context.args)
    if not parsed:
        await update.message.reply_text("Usage: /untrack <name> <server> <region>")
        return
    name, server, region, _ = parsed

    try:
        character = await get_registry(context).untrack(update.effective_chat.id, name, server, region)
    except Exception as e:
        await _reply_error(update, e)
        return
    await update.message.reply_text(f"🛑 {character.slug} is no longer tracked")


async def tracked_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    if not await guard_read(update, context):
        return
    characters = await get_registry(context).list_tracked(update.effective_chat.id)
    await update.message.reply_text(fmt_tracked_list(characters), parse_mode="HTML")


async def parses_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    if not await guard_read(update, context):
        return

    parsed = parse_character_args(context.args)
    if not parsed:
        await update.message.reply_text("Usage: /parses <name> <server> <region>")
        return
    name, server, region, _ = parsed

    try:
        character, report, snapshot = await get_registry(context).current_parses(
            update.effective_chat.id, name, server, region
        )
    except Exception as e:
        await _reply_error(update, e)
        return

    rankings = snapshot.rankings(report.zone_id, report.size)
    caption = fmt_parses(character, report, rankings)
    chart = generate_parses_chart(character.slug, rankings)
    if chart is not None and len(caption) <= MAX_CAPTION_LENGTH:
        await update.message.reply_photo(photo=chart, caption=caption, parse_mode="HTML")
        return
    if chart is not None:
        await update.message.reply_photo(photo=chart)
    await update.message.reply_text(caption, parse_mode="HTML")


async def _set_reminder(update: Update, context: ContextTypes.DEFAULT_TYPE, time_text: str, reason: str, lead_minutes: int = 0):
    at = parse_time(time_text)
    if at is None:
        await update.message.reply_text("❌ Failed to parse time")
        return

    notifier = context.application.bot_data["notifier"]
    fire_at = schedule_reminder(notifier, update.effective_chat.id, reason, at, lead_minutes=lead_minutes)
    if fire_at is None:
        await update.message.reply_text("❌ Cannot set a reminder in the past")
        return
    await update.message.reply_text(f"⏰ Reminder set for {fire_at.strftime('%Y-%m-%d %H:%M')}")


async def remind_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    if not await guard_read(update, context):
        return

    if not context.args:
        await update.message.reply_text("Usage: /remind <HH:MM> [reason]")
        return
    await _set_reminder(update, context, context.args[0], " ".join(context.args[1:]).strip())


async def _world_buff_reminder(update: Update, context: ContextTypes.DEFAULT_TYPE, command: str):
    if not await guard_read(update, context):
        return

    if not context.args:
        await update.message.reply_text(f"Usage: /{command} <HH:MM>")
        return
    await _set_reminder(update, context, context.args[0], WORLD_BUFFS[command], lead_minutes=WORLD_BUFF_LEAD_MINUTES)


async def zg_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    await _world_buff_reminder(update, context, "zg")


async def ony_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    await _world_buff_reminder(update, context, "ony")


async def my_chat_member_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Activate a chat when the bot joins it, deactivate it when the bot leaves (stored data is kept)."""
    member_update = update.my_chat_member
    if member_update is None:
        return

    chat_id = member_update.chat.id
    old_status = member_update.old_chat_member.status
    new_status = member_update.new_chat_member.status
    gone = (ChatMember.LEFT, ChatMember.BANNED)
    present = (ChatMember.MEMBER, ChatMember.ADMINISTRATOR)

    registry = get_registry(context)
    if old_status in gone and new_status in present:
        logger.info(f"Joined chat {chat_id}")
        await registry.activate(chat_id)
    elif new_status in gone:
        logger.info(f"Left chat {chat_id}")
        await registry.deactivate(chat_id)
