"""Application configuration, command line flags and logging setup."""

import os
import json
import logging
import logging.config
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Sequence

from dotenv import find_dotenv, load_dotenv

logger = logging.getLogger(__name__)

# Below DEBUG, used for raw protocol events in the trace log file
TRACE = 5
logging.addLevelName(TRACE, "TRACE")

DEFAULT_AUTH_DIR = "tg_auth_info"
DEFAULT_STORE_FILE = "tg_store_multi.json"
DEFAULT_LOG_FILE = "tg-logs.txt"


class ConfigurationError(RuntimeError):
    """Raised when required settings are missing or malformed."""


class JsonFormatter(logging.Formatter):
    """One JSON object per line, for the trace log file."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "level": record.levelno,
            "levelname": record.levelname,
            "time": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "name": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["err"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(log_file: str = DEFAULT_LOG_FILE, console_level: Optional[str] = None):
    """Configure application logging."""
    if os.path.exists("logging.conf"):
        logging.config.fileConfig("logging.conf")
        return

    root = logging.getLogger()
    root.setLevel(TRACE)
    root.handlers.clear()

    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(TRACE)
    file_handler.setFormatter(JsonFormatter())
    root.addHandler(file_handler)

    level_name = (console_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    console_handler = logging.StreamHandler()
    console_handler.setLevel(getattr(logging, level_name, logging.INFO))
    console_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    root.addHandler(console_handler)

    # Telethon is chatty at DEBUG; its network internals belong in the file only
    logging.getLogger("telethon").setLevel(logging.INFO)


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_number(name: str, default, cast=float):
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return cast(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {value!r}")


@dataclass
class Settings:
    """Runtime settings assembled from the environment and argv flags."""

    api_id: int
    api_hash: str
    phone_number: Optional[str] = None
    auth_dir: str = DEFAULT_AUTH_DIR
    store_file: str = DEFAULT_STORE_FILE
    log_file: str = DEFAULT_LOG_FILE
    store_flush_interval: float = 10.0
    use_store: bool = True
    do_reply: bool = False
    use_pairing_code: bool = False
    simulate_typing: bool = False
    reconnect_base_delay: float = 1.0
    reconnect_max_delay: float = 60.0
    reconnect_max_attempts: int = 10

    @classmethod
    def from_env(cls, argv: Sequence[str] = ()) -> "Settings":
        """Build settings from os.environ (after .env loading) and presence flags."""
        load_dotenv(find_dotenv(usecwd=True))

        api_id = os.getenv("TELEGRAM_API_ID")
        api_hash = os.getenv("TELEGRAM_API_HASH")
        if not api_id or not api_hash:
            raise ConfigurationError(
                "TELEGRAM_API_ID and TELEGRAM_API_HASH environment variables are required"
            )
        try:
            api_id_value = int(api_id)
        except ValueError:
            raise ConfigurationError(f"TELEGRAM_API_ID must be an integer, got {api_id!r}")

        flags = parse_flags(argv)
        return cls(
            api_id=api_id_value,
            api_hash=api_hash,
            phone_number=os.getenv("TELEGRAM_PHONE") or None,
            auth_dir=os.getenv("AUTH_DIR", DEFAULT_AUTH_DIR),
            store_file=os.getenv("STORE_FILE", DEFAULT_STORE_FILE),
            log_file=os.getenv("LOG_FILE", DEFAULT_LOG_FILE),
            store_flush_interval=_env_number("STORE_FLUSH_INTERVAL", 10.0),
            simulate_typing=_env_bool("SIMULATE_TYPING"),
            reconnect_base_delay=_env_number("RECONNECT_BASE_DELAY", 1.0),
            reconnect_max_delay=_env_number("RECONNECT_MAX_DELAY", 60.0),
            reconnect_max_attempts=_env_number("RECONNECT_MAX_ATTEMPTS", 10, int),
            **flags,
        )


def parse_flags(argv: Sequence[str]) -> dict:
    """Boolean presence checks, no argument parsing beyond that."""
    return {
        "use_store": "--no-store" not in argv,
        "do_reply": "--do-reply" in argv,
        "use_pairing_code": "--use-pairing-code" in argv,
    }
