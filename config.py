import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        log_level: str,
        api_prefix: str,
        seed_defaults: bool,
        create_schema: bool,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.log_level = log_level
        self.api_prefix = api_prefix
        self.seed_defaults = seed_defaults
        self.create_schema = create_schema


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("EXPENSE_TRACKER_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "expense_tracker.db"
    database_url = os.getenv(
        "EXPENSE_TRACKER_DATABASE_URL", f"sqlite:///{default_db}"
    )
    timezone = os.getenv("EXPENSE_TRACKER_TIMEZONE", "UTC")
    log_level = os.getenv("EXPENSE_TRACKER_LOG_LEVEL", "INFO").upper()
    api_prefix = os.getenv("EXPENSE_TRACKER_API_PREFIX", "").rstrip("/")
    return Settings(
        database_url=database_url,
        timezone=timezone,
        log_level=log_level,
        api_prefix=api_prefix,
        seed_defaults=_env_flag("EXPENSE_TRACKER_SEED_DEFAULTS", "1"),
        create_schema=_env_flag("EXPENSE_TRACKER_CREATE_SCHEMA", "1"),
    )
