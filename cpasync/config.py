"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """CPA sync application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    debug: bool = False

    # Database (empty disables the archive repository and CPA activation)
    database_url: str = "sqlite+aiosqlite:///data/db/cpasync.db"
    database_pool_size: int = Field(default=4, ge=1)
    database_create_schema: bool = True

    # CPA repository
    cpa_repo_url: str = ""
    cpa_repo_token: SecretStr | None = None
    cpa_repo_timeout_seconds: float = Field(default=60.0, gt=0)

    # File store
    filestore_backend: Literal["sftp", "local"] = "sftp"
    cpa_directory: str = "/outbound/cpa"
    sftp_host: str = "localhost"
    sftp_port: int = Field(default=22, ge=1, le=65535)
    sftp_username: str = ""
    sftp_private_key_path: Path | None = None
    sftp_passphrase: SecretStr | None = None
    sftp_known_hosts_path: Path | None = None
    sftp_timeout_seconds: float = Field(default=30.0, gt=0)

    # Activation
    activation_timezone: str = "Europe/Oslo"
    activation_due_policy: Literal["exact_day", "month_rollover"] = "exact_day"
    activation_file_policy: Literal["rename", "copy"] = "rename"
    promotion_reference_suffix: str = "cpa-aktivering"

    # Scheduling
    scheduler_enabled: bool = True
    scheduler_startup_delay_seconds: float = Field(default=5.0, ge=0)
    sync_interval_seconds: float = Field(default=300.0, gt=0)
    standalone_activation_enabled: bool = False
    activate_interval_seconds: float = Field(default=3600.0, gt=0)

    # API
    api_token: SecretStr | None = None

    # Server
    host: str = "0.0.0.0"
    port: int = Field(default=8080, ge=1, le=65535)

    @property
    def archive_enabled(self) -> bool:
        """Whether an archive database is configured."""
        return bool(self.database_url.strip())

    def validate_runtime_settings(self) -> None:
        """Validate settings required for a production run."""
        violations: list[str] = []
        try:
            ZoneInfo(self.activation_timezone)
        except (ZoneInfoNotFoundError, ValueError):
            violations.append(f"ACTIVATION_TIMEZONE {self.activation_timezone!r} is unknown")

        if not self.debug:
            if not self.cpa_repo_url:
                violations.append("CPA_REPO_URL must be configured")
            if self.filestore_backend == "sftp":
                if not self.sftp_username:
                    violations.append("SFTP_USERNAME must be configured for the sftp backend")
                if self.sftp_private_key_path is None:
                    violations.append(
                        "SFTP_PRIVATE_KEY_PATH must be configured for the sftp backend"
                    )

        if violations:
            joined = "; ".join(violations)
            raise ValueError(f"Invalid runtime configuration: {joined}")
