from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="UVP_")

    # Directory service root, e.g. http://localhost:5000/api_v1/user
    api_base_url: str = "http://localhost:5000/api_v1/user"
    http_timeout_seconds: float = 10.0
    binary_accept: str = "application/x-protobuf"
    # Upper bound on concurrent per-record verification tasks
    verify_max_workers: int = 8
    export_dir: Path = Path("./exports")
    log_level: str = "INFO"


def load_settings(**overrides) -> Settings:
    """Build a fresh settings object (env + overrides). Callers thread values into components."""
    return Settings(**overrides)
