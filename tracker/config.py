"""
Runtime configuration.

Settings are read once at startup from environment variables. A ``.env``
file in the working directory is loaded first (python-dotenv) and never
overrides variables that are already set.

Environment variable mapping:
    ADMIN_USERNAME   -> admin.username
    ADMIN_PASSWORD   -> admin.password
    SESSION_SECRET   -> admin.session_secret
    COOKIE_SECURE    -> admin.cookie_secure
    DB_PATH          -> database.path
    BASE_URL         -> server.base_url
    HOST             -> server.host
    PORT             -> server.port
    DEFAULT_LOCALE   -> server.default_locale
    LOG_LEVEL        -> logging.level
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from tracker.errors import ConfigurationError

DEFAULT_DB_PATH = "tracking.db"

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


@dataclass(frozen=True)
class AdminSettings:
    """Single static admin identity and the session signing secret."""

    username: str = "admin"
    password: str = ""
    session_secret: str = ""
    cookie_secure: bool = False

    @property
    def enabled(self) -> bool:
        return bool(self.password and self.session_secret)


@dataclass(frozen=True)
class DatabaseSettings:
    path: str = DEFAULT_DB_PATH

    @property
    def absolute_path(self) -> Path:
        """Relative paths resolve against the working directory."""
        p = Path(self.path)
        if p.is_absolute():
            return p
        return Path.cwd() / p


@dataclass(frozen=True)
class ServerSettings:
    host: str = "0.0.0.0"  # nosec B104 - intentional for server binding
    port: int = 5000
    base_url: str = "http://localhost:5000"
    default_locale: str = "en"


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class TrackerConfig:
    admin: AdminSettings = field(default_factory=AdminSettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    server: ServerSettings = field(default_factory=ServerSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "yes", "1", "on")


def _parse_port(value: str) -> int:
    try:
        port = int(value)
    except ValueError:
        raise ConfigurationError(f"PORT must be an integer, got {value!r}") from None
    if not 0 < port < 65536:
        raise ConfigurationError(f"PORT out of range: {port}")
    return port


def load_config(env=None, dotenv=True) -> TrackerConfig:
    """Build the configuration from ``env`` (defaults to ``os.environ``).

    When ``env`` is omitted and ``dotenv`` is true, a ``.env`` file is loaded
    into the process environment first.
    """
    if env is None:
        if dotenv:
            load_dotenv()
        env = os.environ

    admin = AdminSettings(
        username=env.get("ADMIN_USERNAME", "admin"),
        password=env.get("ADMIN_PASSWORD", ""),
        session_secret=env.get("SESSION_SECRET", ""),
        cookie_secure=_parse_bool(env.get("COOKIE_SECURE", "")),
    )
    if not admin.username:
        raise ConfigurationError("ADMIN_USERNAME must not be empty")

    database = DatabaseSettings(path=env.get("DB_PATH") or DEFAULT_DB_PATH)
    server = ServerSettings(
        host=env.get("HOST", "0.0.0.0"),  # nosec B104
        port=_parse_port(env.get("PORT", "5000")),
        base_url=env.get("BASE_URL", "http://localhost:5000").rstrip("/"),
        default_locale=env.get("DEFAULT_LOCALE", "en"),
    )
    log = LoggingSettings(level=env.get("LOG_LEVEL", "INFO").upper())
    return TrackerConfig(admin=admin, database=database, server=server, logging=log)


def configure_logging(settings: LoggingSettings) -> None:
    level = logging.getLevelName(settings.level)
    if not isinstance(level, int):
        raise ConfigurationError(f"Unknown LOG_LEVEL: {settings.level}")
    logging.basicConfig(level=level, format=LOG_FORMAT)
