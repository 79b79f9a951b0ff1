import os
import logging

from dotenv import load_dotenv


# Load env early
load_dotenv()

# Logging configuration
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, log_level, logging.INFO),
)
logger = logging.getLogger(__name__)

# Reduce noisy libraries
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("telegram.ext.ExtBot").setLevel(logging.WARNING)
logging.getLogger("telegram.ext.Updater").setLevel(logging.WARNING)
logging.getLogger("telegram.ext.Application").setLevel(logging.WARNING)
logging.getLogger("telegram.bot").setLevel(logging.WARNING)
logging.getLogger("asyncio").setLevel(logging.WARNING)
logging.getLogger("matplotlib").setLevel(logging.WARNING)
logging.getLogger("matplotlib.font_manager").setLevel(logging.WARNING)


class Config:
    """Application configuration read from the environment."""

    # Telegram Bot Configuration
    BOT_TOKEN: str | None = os.getenv("BOT_TOKEN")
    # Owner allowed to use the bot in a private chat (0 disables private chats)
    ALLOWED_USER_ID: int = int(os.getenv("ALLOWED_USER_ID", "0"))

    # Tracking
    POLL_SECS: int = int(os.getenv("POLL_SECS", "60"))
    DB_FILE: str = os.getenv("DB_FILE", "data.json").strip()

    # Warcraft Logs API Configuration
    WCL_FLAVOR: str = os.getenv("WCL_FLAVOR", "classic").strip().lower()
    WCL_TOKEN_URL: str = os.getenv("WCL_TOKEN_URL", "https://www.warcraftlogs.com/oauth/token").strip()
    HTTP_TIMEOUT: int = int(os.getenv("HTTP_TIMEOUT", "25"))
    ZONE_CACHE_TTL: int = int(os.getenv("ZONE_CACHE_TTL", "86400"))  # zones are static per expansion

    @classmethod
    def validate_config(cls) -> None:
        if not cls.BOT_TOKEN:
            raise ValueError("BOT_TOKEN environment variable is required")
        if cls.POLL_SECS < 1:
            raise ValueError("POLL_SECS must be a positive number of seconds")
        if cls.ALLOWED_USER_ID == 0:
            logger.warning("ALLOWED_USER_ID not configured - private chat commands are disabled")


# Expose commonly used constants
BOT_TOKEN = Config.BOT_TOKEN
ALLOWED_USER_ID = Config.ALLOWED_USER_ID
POLL_SECS = Config.POLL_SECS
DB_FILE = Config.DB_FILE
