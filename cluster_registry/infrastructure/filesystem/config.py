#cluster_registry\infrastructure\filesystem\config.py

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class RegistrySettings(BaseSettings):
    """Registry configuration from environment variables (CLUSTER_*)."""

    model_config = SettingsConfigDict(
        env_prefix="CLUSTER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Filesystem state
    data_dir: Path = Path("/opt/owehost/cluster")

    # Liveness
    dead_node_timeout_seconds: int = 60
    sweep_interval_seconds: int = 15
    sweeper_enabled: bool = True  # run the sweeper inside the API process

    # Logging
    log_level: str = "INFO"


settings = RegistrySettings()
