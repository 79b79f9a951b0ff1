from __future__ import annotations

from telegram import ChatMember, Update
from telegram.error import TelegramError
from telegram.ext import ContextTypes

from .config import ALLOWED_USER_ID, logger

GROUP_CHAT_TYPES = ("group", "supergroup")


async def get_member_status(update: Update, context: ContextTypes.DEFAULT_TYPE) -> str | None:
    if not update.effective_chat or not update.effective_user:
        return None
    try:
        member = await context.bot.get_chat_member(update.effective_chat.id, update.effective_user.id)
    except TelegramError as e:
        logger.warning(f"Cannot read membership in chat {update.effective_chat.id}: {e}")
        return None
    return member.status


def is_owner(update: Update) -> bool:
    return bool(ALLOWED_USER_ID) and update.effective_user is not None and update.effective_user.id == ALLOWED_USER_ID


async def is_authorized_admin(update: Update, context: ContextTypes.DEFAULT_TYPE) -> bool:
    chat = update.effective_chat
    if not chat or not update.effective_user:
        return False
    if chat.type == "private":
        return is_owner(update)
    if chat.type in GROUP_CHAT_TYPES:
        return await get_member_status(update, context) in (ChatMember.ADMINISTRATOR, ChatMember.OWNER)
    return False


async def is_authorized_read(update: Update, context: ContextTypes.DEFAULT_TYPE) -> bool:
    chat = update.effective_chat
    if not chat or not update.effective_user:
        return False
    if chat.type == "private":
        return is_owner(update)
    if chat.type in GROUP_CHAT_TYPES:
        return await get_member_status(update, context) in (
            ChatMember.MEMBER,
            ChatMember.ADMINISTRATOR,
            ChatMember.OWNER,
        )
    return False


async def guard_admin(update: Update, context: ContextTypes.DEFAULT_TYPE) -> bool:
    if not await is_authorized_admin(update, context):
        if update.effective_chat:
            await context.bot.send_message(update.effective_chat.id, "❌ Not authorized, admins only.")
        return False
    return True


async def guard_read(update: Update, context: ContextTypes.DEFAULT_TYPE) -> bool:
    if not await is_authorized_read(update, context):
        if update.effective_chat and update.effective_chat.type == "private":
            await context.bot.send_message(update.effective_chat.id, "❌ Not authorized.")
        return False
    return True
