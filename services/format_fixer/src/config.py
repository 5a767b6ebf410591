from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

# -----------------------
# Settings and constants
# -----------------------

class Settings(BaseSettings):

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Core
    service_name: str = "format-fixer"
    project_id: Optional[str] = None

    # Batch runs
    default_prefix: str = "XBO_CI_DEVICE"
    list_max_keys: Optional[int] = None  # None = walk every page
    timestamp_unit: Literal["ms", "ns"] = "ms"
    dry_run: bool = False
    fixer_concurrency: int = 8

    # Storage retries
    storage_max_retries: int = 3
    storage_retry_budget_s: float = 30.0
    storage_backoff_base_ms: int = 200
    storage_backoff_cap_ms: int = 5000


settings = Settings()
