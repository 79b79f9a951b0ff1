from __future__ import annotations

from functools import partial

from telegram import BotCommand
from telegram.ext import Application, ChatMemberHandler, CommandHandler
from telegram.request import HTTPXRequest

from .commands import (
    my_chat_member_handler,
    ony_cmd,
    parses_cmd,
    ping_cmd,
    register_cmd,
    remind_cmd,
    start_cmd,
    track_cmd,
    tracked_cmd,
    unregister_cmd,
    untrack_cmd,
    zg_cmd,
)
from .config import Config, logger
from .models import Flavor
from .notifier import TelegramNotifier
from .registry import TenantRegistry
from .reminders import cancel_reminders
from .scheduler import TrackingScheduler
from .storage import SnapshotStore
from .tracker import ParseTracker
from .wclogs import WCLogsClient

BOT_COMMANDS = [
    BotCommand("start", "Show help and available commands"),
    BotCommand("ping", "Check the bot is alive"),
    BotCommand("register", "Setup WarcraftLogs API credentials"),
    BotCommand("unregister", "Forget credentials and stop tracking"),
    BotCommand("track", "Track a character's parses"),
    BotCommand("untrack", "Stop tracking a character"),
    BotCommand("tracked", "List tracked characters"),
    BotCommand("parses", "Show a character's current parses"),
    BotCommand("remind", "Set a reminder"),
    BotCommand("zg", "Remind 5 minutes before a ZG buff drop"),
    BotCommand("ony", "Remind 5 minutes before an Onyxia buff drop"),
]


def open_store(path: str) -> SnapshotStore:
    """Open the database and bring its schema up to date before any chat is activated."""
    store = SnapshotStore(path)
    version = store.migrate()
    logger.info(f"Database {path} at schema version {version}")
    return store


def build_registry(store: SnapshotStore, bot, flavor: Flavor, interval: float) -> TenantRegistry:
    notifier = TelegramNotifier(bot)
    tracker = ParseTracker(store, notifier)
    scheduler = TrackingScheduler(tracker, interval=interval)
    return TenantRegistry(store, scheduler, client_factory=partial(WCLogsClient, flavor=flavor))


def main():
    Config.validate_config()
    flavor = Flavor(Config.WCL_FLAVOR)
    store = open_store(Config.DB_FILE)

    # Configure request with longer timeout to prevent startup failures
    request = HTTPXRequest(
        connection_pool_size=8,
        connect_timeout=30.0,
        read_timeout=30.0,
        write_timeout=30.0,
        pool_timeout=30.0,
    )

    app = Application.builder().token(Config.BOT_TOKEN).request(request).build()

    async def post_init(application: Application) -> None:
        registry = build_registry(store, application.bot, flavor, Config.POLL_SECS)
        application.bot_data["registry"] = registry
        application.bot_data["notifier"] = registry.scheduler.tracker.notifier

        try:
            logger.info("🔧 Setting up bot commands...")
            await application.bot.set_my_commands(BOT_COMMANDS)
            logger.info("✅ Bot commands configured successfully")
        except Exception as e:
            logger.error(f"❌ Failed to set bot commands: {e}")
            logger.warning("⚠️ Bot will continue but commands may not be visible in Telegram")

        await registry.resume_all()

    async def post_shutdown(application: Application) -> None:
        cancelled = cancel_reminders()
        if cancelled:
            logger.info(f"Dropped {cancelled} pending reminders")
        registry = application.bot_data.get("registry")
        if registry is not None:
            await registry.shutdown()
        logger.info("Graceful shutdown")

    app.post_init = post_init
    app.post_shutdown = post_shutdown

    app.add_handler(CommandHandler(["start", "help"], start_cmd))
    app.add_handler(CommandHandler("ping", ping_cmd))
    app.add_handler(CommandHandler("register", register_cmd))
    app.add_handler(CommandHandler("unregister", unregister_cmd))
    app.add_handler(CommandHandler("track", track_cmd))
    app.add_handler(CommandHandler("untrack", untrack_cmd))
    app.add_handler(CommandHandler("tracked", tracked_cmd))
    app.add_handler(CommandHandler("parses", parses_cmd))
    app.add_handler(CommandHandler("remind", remind_cmd))
    app.add_handler(CommandHandler("zg", zg_cmd))
    app.add_handler(CommandHandler("ony", ony_cmd))
    app.add_handler(ChatMemberHandler(my_chat_member_handler, ChatMemberHandler.MY_CHAT_MEMBER))

    logger.info(f"Tracking WarcraftLogs {flavor.value} every {Config.POLL_SECS}s")
    app.run_polling(drop_pending_updates=True, allowed_updates=["message", "my_chat_member"])
