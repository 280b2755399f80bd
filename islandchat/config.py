"""Configuration management for islandchat."""

from __future__ import annotations

import logging
import logging.handlers
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv
from pydantic import TypeAdapter, ValidationError

from islandchat.chat.models import ChatPreferences
from islandchat.constants import ChatConstants
from islandchat.search.models import SearchEngineConfig, default_search_engine

logger = logging.getLogger(__name__)

_ENGINE_LIST = TypeAdapter(list[SearchEngineConfig])

_APP_LOGGER = "islandchat"
_QUIET_LOGGERS = ("httpcore", "httpx", "ollama", "asyncio", "aiohttp")


def _load_dotenv() -> None:
    """Load .env file from the working directory if present."""
    env_path = Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(env_path)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_search_engines(raw: str | None) -> list[SearchEngineConfig]:
    """
    Parse the SEARCH_ENGINES JSON list.

    Falls back to just the default engine when unset or invalid, and always keeps
    the default engine in the list.
    """
    if not raw:
        return [default_search_engine()]
    try:
        engines = _ENGINE_LIST.validate_json(raw)
    except ValidationError as e:
        logger.warning("Ignoring invalid SEARCH_ENGINES: %s", e)
        return [default_search_engine()]
    if not any(e.id == ChatConstants.DEFAULT_SEARCH_ENGINE_ID for e in engines):
        engines.insert(0, default_search_engine())
    return engines


def _collect_env_vars() -> dict:
    """Read all config environment variables and return as constructor kwargs."""
    return {
        "ollama_api_url": os.getenv("OLLAMA_API_URL", "http://localhost:11434"),
        "ollama_api_key": os.getenv("OLLAMA_API_KEY") or None,
        "ollama_model": os.getenv("OLLAMA_MODEL") or None,
        "web_search_enabled": _env_bool("WEB_SEARCH_ENABLED", True),
        "streaming_enabled": _env_bool("STREAMING_ENABLED", True),
        "search_engines": _parse_search_engines(os.getenv("SEARCH_ENGINES")),
        "selected_search_engine": os.getenv(
            "SELECTED_SEARCH_ENGINE", ChatConstants.DEFAULT_SEARCH_ENGINE_ID
        ),
        "duckduckgo_url": os.getenv("DUCKDUCKGO_URL", ChatConstants.DUCKDUCKGO_URL),
        "ollama_connect_timeout": float(
            os.getenv("OLLAMA_CONNECT_TIMEOUT", str(ChatConstants.CONNECT_TIMEOUT))
        ),
        "ollama_read_timeout": float(
            os.getenv("OLLAMA_READ_TIMEOUT", str(ChatConstants.READ_TIMEOUT))
        ),
        "search_timeout": float(os.getenv("SEARCH_TIMEOUT", str(ChatConstants.SEARCH_TIMEOUT))),
        "max_search_rounds": int(
            os.getenv("MAX_SEARCH_ROUNDS", str(ChatConstants.MAX_SEARCH_ROUNDS))
        ),
        "log_level": os.getenv("LOG_LEVEL", "INFO"),
        "log_file": os.getenv("LOG_FILE"),
        "log_max_bytes": int(os.getenv("LOG_MAX_BYTES", str(10 * 1024 * 1024))),
        "log_backup_count": int(os.getenv("LOG_BACKUP_COUNT", "5")),
    }


@dataclass
class Config:
    """Application configuration loaded from .env file."""

    # Ollama server
    ollama_api_url: str
    ollama_api_key: str | None = None
    ollama_model: str | None = None

    # Initial chat preferences
    web_search_enabled: bool = True
    streaming_enabled: bool = True
    search_engines: list[SearchEngineConfig] = field(
        default_factory=lambda: [default_search_engine()]
    )
    selected_search_engine: str = ChatConstants.DEFAULT_SEARCH_ENGINE_ID

    # Search
    duckduckgo_url: str = ChatConstants.DUCKDUCKGO_URL
    search_timeout: float = ChatConstants.SEARCH_TIMEOUT
    max_search_rounds: int = ChatConstants.MAX_SEARCH_ROUNDS  # Searches per answer

    # Ollama HTTP timeouts (seconds)
    ollama_connect_timeout: float = ChatConstants.CONNECT_TIMEOUT
    ollama_read_timeout: float = ChatConstants.READ_TIMEOUT

    # Banner auto-dismiss (seconds)
    error_banner_seconds: float = ChatConstants.ERROR_BANNER_SECONDS
    info_banner_seconds: float = ChatConstants.INFO_BANNER_SECONDS

    # Logging configuration
    log_level: str = "INFO"
    log_file: str | None = None
    log_max_bytes: int = 10 * 1024 * 1024  # 10 MB
    log_backup_count: int = 5

    @classmethod
    def load(cls) -> Config:
        """Load configuration from .env file."""
        _load_dotenv()
        return cls(**_collect_env_vars())

    def preferences(self) -> ChatPreferences:
        """Initial chat preferences taken from this config."""
        return ChatPreferences(
            server_url=self.ollama_api_url,
            api_key=self.ollama_api_key,
            selected_model=self.ollama_model,
            web_search_enabled=self.web_search_enabled,
            streaming_enabled=self.streaming_enabled,
            search_engines=list(self.search_engines),
            selected_search_engine_id=self.selected_search_engine,
        )


def setup_logging(
    log_level: str,
    log_file: str | None = None,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> None:
    """
    Send islandchat logs to the console (and optionally a rotating file).

    ``log_level`` applies to the ``islandchat`` loggers only. Everything else,
    including the HTTP stack and the ollama SDK, stays at WARNING.
    """
    formatter = logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.WARNING)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=max_bytes, backupCount=backup_count
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    app_logger = logging.getLogger(_APP_LOGGER)
    app_logger.setLevel(getattr(logging, log_level.upper()))
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if log_file:
        app_logger.info("Logging to file: %s", log_file)
