"""Runtime configuration for the simulated console API."""
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    api_prefix: str = "/api"

    # Artificial latency applied to every routed call
    latency_min_ms: int = 100
    latency_max_ms: int = 800
    latency_scale: float = 1.0

    # Persistence of the reactive client state
    state_dir: Path = Path(".mockapi-state")
    state_key_path: Path = Path(".mockapi-state/state.key")

    top_level_role: str = "Super Admin"
    hospital_admin_role: str = "Hospital Admin"
    default_timezone: str = "UTC"
    mrn_prefix: str = "MRN"
    mrn_width: int = 3

    seed_demo_data: bool = True

    model_config = SettingsConfigDict(
        env_prefix="MOCKAPI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_ignore_empty=True,
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
