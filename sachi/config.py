"""Configuration management for the application."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PACKAGE_DIR = Path(__file__).resolve().parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SACHI_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Server
    host: str = Field(default="0.0.0.0")  # noqa: S104
    port: int = Field(default=8000, ge=1, le=65535)
    log_level: str = Field(default="info")

    # Storage
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".sachi")
    db_file: str = Field(default="sachi.db")

    # Pages and assets
    static_dir: Path = Field(default=PACKAGE_DIR / "web" / "static")

    # Sessions
    session_ttl_hours: int = Field(default=24, ge=1)
    session_sweep_interval_seconds: float = Field(default=3600, gt=0)

    # Password hashing
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    environment: str = Field(default="development")

    @model_validator(mode="after")
    def normalize_log_level(self) -> "Settings":
        """Lowercase the log level and reject unknown names."""
        self.log_level = self.log_level.lower()
        if self.log_level not in ("debug", "info", "warning", "error", "critical"):
            raise ValueError(f"Unknown log level: {self.log_level}")
        return self

    @property
    def database_path(self) -> Path:
        """Absolute path of the SQLite database file."""
        db_path = Path(self.db_file).expanduser()
        if not db_path.is_absolute():
            db_path = self.data_dir.expanduser() / db_path
        return db_path

    @property
    def is_debug(self) -> bool:
        """Check if request logging should be enabled."""
        return self.log_level == "debug"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    def ensure_data_dir(self) -> Path:
        """Create the data directory if it doesn't exist."""
        data_dir = self.data_dir.expanduser()
        data_dir.mkdir(parents=True, exist_ok=True)
        return data_dir


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
