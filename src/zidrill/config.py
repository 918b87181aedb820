"""Configuration settings for the learning engine and its storage."""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Define base directory
BASE_DIR = Path(__file__).parent.parent.parent

# Load environment variables from .env file
env_file = ".env.test" if os.getenv("ENV") == "test" else ".env"
load_dotenv(env_file)

# Scheduler constants (SM-2)
DEFAULT_EASINESS = 2.5
MIN_EASINESS = 1.3
MAX_EASINESS = 3.5
REINFORCE_MAX_INTERVAL_DAYS = 14  # intervals below this stay in "reinforce"
MAX_INTERVAL_DAYS = 36500


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes", "on")


@dataclass
class DatabaseSettings:
    """Database configuration settings."""
    url: str = field(default_factory=lambda: os.getenv("DATABASE_URL", "sqlite:///zidrill.db"))
    echo: bool = field(default_factory=lambda: _env_flag("DATABASE_ECHO", "false"))


@dataclass
class LoggingSettings:
    """Logging configuration settings."""
    level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[str] = field(default_factory=lambda: os.getenv("LOG_FILE"))


@dataclass
class MonitoringSettings:
    """Prometheus exporter settings; no exporter without a port."""
    port: Optional[int] = field(
        default_factory=lambda: int(os.environ["METRICS_PORT"]) if os.getenv("METRICS_PORT") else None
    )


@dataclass
class ComparisonSettings:
    """Defaults for pronunciation checks; callers pass them on explicitly."""
    enforce_tone: bool = field(default_factory=lambda: _env_flag("ENFORCE_TONES", "true"))
    allow_neutral_mismatch: bool = field(
        default_factory=lambda: _env_flag("ALLOW_NEUTRAL_TONE_MISMATCH", "true")
    )


def get_database_settings() -> DatabaseSettings:
    """Get database settings."""
    return DatabaseSettings()


def get_logging_settings() -> LoggingSettings:
    """Get logging settings."""
    return LoggingSettings()


def get_monitoring_settings() -> MonitoringSettings:
    """Get monitoring settings."""
    return MonitoringSettings()


def get_comparison_settings() -> ComparisonSettings:
    """Get pronunciation comparison settings."""
    return ComparisonSettings()


@dataclass
class Settings:
    """Main settings class that combines all configuration settings."""
    database: DatabaseSettings = field(default_factory=get_database_settings)
    logging: LoggingSettings = field(default_factory=get_logging_settings)
    comparison: ComparisonSettings = field(default_factory=get_comparison_settings)
    monitoring: MonitoringSettings = field(default_factory=get_monitoring_settings)

    def validate(self) -> None:
        """Validate settings and raise ValueError if invalid."""
        if not self.database.url:
            raise ValueError("DATABASE_URL is required")

        port = self.monitoring.port
        if port is not None and not 0 < port < 65536:
            raise ValueError("METRICS_PORT must be between 1 and 65535")


# Create global settings instance
settings = Settings()
settings.validate()
