from __future__ import annotations

from telegram import LinkPreviewOptions
from telegram.error import TelegramError

from .config import logger
from .formatting import fmt_rich_message


class TelegramNotifier:
    """Delivers tracking announcements to chats. Delivery failures are logged, never raised."""

    def __init__(self, bot):
        self.bot = bot

    async def send_message(self, channel_id: int, text: str) -> bool:
        try:
            await self.bot.send_message(channel_id, text, parse_mode="HTML")
            return True
        except TelegramError as e:
            logger.error(f"Failed to send message to chat {channel_id}: {e}")
            return False

    async def send_rich_message(self, channel_id: int, title: str, url: str, description: str) -> bool:
        try:
            await self.bot.send_message(
                channel_id,
                fmt_rich_message(title, url, description),
                parse_mode="HTML",
                link_preview_options=LinkPreviewOptions(is_disabled=True),
            )
            return True
        except TelegramError as e:
            logger.error(f"Failed to send rich message to chat {channel_id}: {e}")
            return False
