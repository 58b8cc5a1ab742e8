import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_DRIVE_API_URL = "https://openapi.doordash.com/drive/v2"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class StoreConfig:
    """Which Order Store backend to build, and how to reach it."""

    backend: str = "sql"  # sql | memory
    url: str = "sqlite+aiosqlite:///./orders.db"
    echo: bool = False
    pool_size: int = 5

    @classmethod
    def from_env(cls) -> "StoreConfig":
        url = os.getenv("DATABASE_URL")
        if not url and os.getenv("POSTGRES_HOST"):
            user = os.getenv("POSTGRES_USER", "postgres")
            password = os.getenv("POSTGRES_PASSWORD", "postgres")
            host = os.getenv("POSTGRES_HOST", "localhost")
            port = os.getenv("POSTGRES_PORT", "5432")
            name = os.getenv("POSTGRES_DB", "orders")
            url = f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{name}"
        if not url:
            url = f"sqlite+aiosqlite:///{os.getenv('DATABASE_PATH', './orders.db')}"

        return cls(
            backend=os.getenv("DB_BACKEND", "sql").strip().lower() or "sql",
            url=url,
            echo=_env_bool("DB_ECHO", False),
            pool_size=_env_int("DB_POOL_SIZE", 5),
        )


@dataclass(frozen=True)
class DriveConfig:
    """Credentials and endpoint for the delivery partner's Drive API."""

    developer_id: str
    key_id: str
    signing_secret: str
    api_url: str = DEFAULT_DRIVE_API_URL
    timeout_seconds: float = 30.0

    @classmethod
    def from_env(cls) -> Optional["DriveConfig"]:
        """Returns None when any credential is missing (dispatch disabled)."""
        developer_id = os.getenv("DOORDASH_DEVELOPER_ID", "")
        key_id = os.getenv("DOORDASH_KEY_ID", "")
        signing_secret = os.getenv("DOORDASH_SIGNING_SECRET", "")
        if not (developer_id and key_id and signing_secret):
            return None

        try:
            timeout = float(os.getenv("DOORDASH_TIMEOUT_SECONDS", "30"))
        except ValueError:
            timeout = 30.0

        return cls(
            developer_id=developer_id,
            key_id=key_id,
            signing_secret=signing_secret,
            api_url=os.getenv("DOORDASH_API_URL") or DEFAULT_DRIVE_API_URL,
            timeout_seconds=timeout,
        )


@dataclass(frozen=True)
class Settings:
    service_name: str = "delivery_dispatch"
    webhook_path: str = "/webhook"
    webhook_api_key: str = ""
    webhook_master_key: str = ""
    storage_failure_status_code: int = 500
    store: StoreConfig = field(default_factory=StoreConfig)
    drive: Optional[DriveConfig] = None
    log_level: str = "INFO"
    otel_enabled: bool = True
    otlp_endpoint: str = "http://localhost:4317"
    metrics_enabled: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        webhook_path = os.getenv("WEBHOOK_PATH", "/webhook").strip() or "/webhook"
        if not webhook_path.startswith("/"):
            webhook_path = "/" + webhook_path

        return cls(
            service_name=os.getenv("SERVICE_NAME", "delivery_dispatch"),
            webhook_path=webhook_path,
            webhook_api_key=os.getenv("WEBHOOK_API_KEY", ""),
            webhook_master_key=os.getenv("WEBHOOK_MASTER_KEY", ""),
            storage_failure_status_code=_env_int("WEBHOOK_STORAGE_FAILURE_STATUS", 500),
            store=StoreConfig.from_env(),
            drive=DriveConfig.from_env(),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            otel_enabled=_env_bool("OTEL_ENABLED", True),
            otlp_endpoint=os.getenv("OTLP_ENDPOINT", "http://localhost:4317"),
            metrics_enabled=_env_bool("METRICS_ENABLED", True),
        )


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
