"""
Configuration loaders for Productive Cloud.

Loads client and server configuration from .env files, with process
environment variables taking precedence for the same keys.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from . import envparse
from .constants import (
    DEFAULT_CHECK_INTERVAL,
    DEFAULT_SYNC_INTERVAL,
    DEFAULT_SYNC_TIMEOUT,
)

logger = logging.getLogger(__name__)


# Deployment environments and the Remote Store they talk to
ENV_LOCAL = "local"
ENV_HOSTED = "hosted"
ENV_STATIC = "static"  # Static hosting: no backend, local storage only
VALID_ENVIRONMENTS = {ENV_LOCAL, ENV_HOSTED, ENV_STATIC}

LOCAL_API_BASE_URL = "http://localhost:5000/api"

CLIENT_KEYS = [
    "ENVIRONMENT",
    "API_BASE_URL",
    "SYNC_INTERVAL",
    "SYNC_TIMEOUT",
    "CHECK_INTERVAL",
    "DATA_DIR",
    "LOG_LEVEL",
]

SERVER_KEYS = [
    "PORT",
    "HOST",
    "DATABASE_PATH",
    "JWT_SECRET",
    "JWT_TTL_DAYS",
    "RATE_LIMIT",
    "RATE_WINDOW_SECONDS",
    "LOG_LEVEL",
]

DEFAULT_JWT_SECRET = "your-secret-key"


@dataclass
class ClientConfig:
    """Sync client configuration from client.env"""
    environment: str
    api_base_url: str | None  # None means sync is inert (local storage mode)
    sync_interval: int  # Seconds between scheduled sync passes
    sync_timeout: int  # Seconds before a request is aborted
    check_interval: int  # Seconds between connectivity probes
    data_dir: Path  # Where the Local Store keeps its blobs
    log_level: str = "INFO"

    @property
    def has_backend(self) -> bool:
        return bool(self.api_base_url)


@dataclass
class ServerConfig:
    """Remote Store configuration from server.env"""
    host: str
    port: int
    database_path: str
    jwt_secret: str
    jwt_ttl_days: int
    rate_limit: int  # Requests per window per client address, 0 disables
    rate_window_seconds: int
    log_level: str = "INFO"


def _int(env: dict, key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid integer for {key}: '{raw}', using {default}")
        return default


def resolve_api_base_url(environment: str, explicit: str | None) -> str | None:
    """Pick the Remote Store base URL for a deployment environment.

    An explicit API_BASE_URL always wins, except in static mode where there
    is no backend at all.
    """
    if environment == ENV_STATIC:
        return None
    if explicit:
        return explicit.rstrip("/")
    if environment == ENV_LOCAL:
        return LOCAL_API_BASE_URL
    logger.warning("ENVIRONMENT=hosted but API_BASE_URL is not set; sync disabled")
    return None


def load_client_config(config_path: Path | None = None, environ=None) -> ClientConfig:
    """Load client.env (optional) and return ClientConfig."""
    env = envparse.load_layered(config_path, CLIENT_KEYS, environ)

    environment = env.get("ENVIRONMENT", ENV_LOCAL).lower()
    if environment not in VALID_ENVIRONMENTS:
        logger.warning(
            f"Unknown ENVIRONMENT '{environment}', defaulting to '{ENV_LOCAL}'. "
            f"Valid options: {', '.join(sorted(VALID_ENVIRONMENTS))}"
        )
        environment = ENV_LOCAL

    return ClientConfig(
        environment=environment,
        api_base_url=resolve_api_base_url(environment, env.get("API_BASE_URL")),
        sync_interval=_int(env, "SYNC_INTERVAL", DEFAULT_SYNC_INTERVAL),
        sync_timeout=_int(env, "SYNC_TIMEOUT", DEFAULT_SYNC_TIMEOUT),
        check_interval=_int(env, "CHECK_INTERVAL", DEFAULT_CHECK_INTERVAL),
        data_dir=Path(env.get("DATA_DIR", "~/.productive-cloud")).expanduser(),
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
    )


def load_server_config(config_path: Path | None = None, environ=None) -> ServerConfig:
    """Load server.env (optional) and return ServerConfig."""
    env = envparse.load_layered(config_path, SERVER_KEYS, environ)

    jwt_secret = env.get("JWT_SECRET", DEFAULT_JWT_SECRET)
    if jwt_secret == DEFAULT_JWT_SECRET:
        logger.warning("JWT_SECRET not set, using the insecure development default")

    return ServerConfig(
        host=env.get("HOST", "0.0.0.0"),
        port=_int(env, "PORT", 5000),
        database_path=env.get("DATABASE_PATH", "./productive-cloud.db"),
        jwt_secret=jwt_secret,
        jwt_ttl_days=_int(env, "JWT_TTL_DAYS", 7),
        rate_limit=_int(env, "RATE_LIMIT", 100),
        rate_window_seconds=_int(env, "RATE_WINDOW_SECONDS", 15 * 60),
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
    )
