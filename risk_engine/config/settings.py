"""
Risk Engine Settings

Process-level settings read from RISK_ENGINE_* environment variables
(optionally via a .env file). Tunable risk parameters live in
risk_config.yaml; this module only decides where that file is, how the
engine logs, and how Monte Carlo runs are seeded.

Usage:
    from risk_engine.config.settings import get_settings, setup_logging

    settings = get_settings()
    setup_logging(settings)
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from typing import List, Optional
from pathlib import Path
from dotenv import find_dotenv, load_dotenv
import logging
import sys

LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


def load_env_file() -> bool:
    """
    Load the nearest .env into os.environ.

    Searches upward from the working directory first, then from the
    directory that holds the risk_engine package.
    """
    env_path = find_dotenv(usecwd=True)
    if not env_path:
        candidate = Path(__file__).parents[2] / '.env'
        if not candidate.exists():
            return False
        env_path = str(candidate)
    return load_dotenv(env_path)


class Settings(BaseSettings):

    """Environment-driven risk engine settings"""

    model_config = SettingsConfigDict(
        env_prefix='RISK_ENGINE_',
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore'
    )

    # ========================================================================
    # Logging
    # ========================================================================

    log_level: str = Field(
        default="INFO",
        description="Root log level, one of " + ", ".join(LOG_LEVELS)
    )

    log_file: Optional[Path] = Field(
        default=None,
        description="Also write log records here (parent directories are created)"
    )

    log_format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        description="logging.Formatter pattern"
    )

    # ========================================================================
    # Risk engine
    # ========================================================================

    risk_config_path: Optional[Path] = Field(
        default=None,
        description="risk_config.yaml to load; unset searches the default locations"
    )

    monte_carlo_seed: Optional[int] = Field(
        default=None,
        description="Seed for the simulation generator; unset draws from OS entropy"
    )

    # ========================================================================
    # Validators
    # ========================================================================

    @field_validator('log_level')
    @classmethod
    def normalize_log_level(cls, v):
        level = str(v).strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level {v!r} is not one of {list(LOG_LEVELS)}")
        return level

    @field_validator('log_file')
    @classmethod
    def create_log_directory(cls, v):
        if v is not None:
            Path(v).parent.mkdir(parents=True, exist_ok=True)
        return v

    @field_validator('monte_carlo_seed')
    @classmethod
    def seed_not_negative(cls, v):
        if v is not None and v < 0:
            raise ValueError(f"monte_carlo_seed must be >= 0, got {v}")
        return v


# ============================================================================
# Shared instance
# ============================================================================

_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Settings shared by the whole process, built on first use.

    The first call also loads .env so variables defined there are visible
    to anything else reading os.environ.
    """
    global _settings
    if _settings is None:
        load_env_file()
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """Rebuild the shared settings from the current environment."""
    global _settings
    _settings = Settings()
    return _settings


# ============================================================================
# Logging
# ============================================================================

def setup_logging(settings: Optional[Settings] = None) -> None:
    """
    Route root logging to stdout, and to settings.log_file when set.

    Replaces any handlers already on the root logger, so calling it twice
    does not duplicate output.
    """
    settings = settings or get_settings()

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.log_file:
        handlers.append(logging.FileHandler(settings.log_file, encoding='utf-8'))

    logging.basicConfig(
        level=settings.log_level,
        format=settings.log_format,
        handlers=handlers,
        force=True,
    )
    targets = "stdout" if not settings.log_file else f"stdout and {settings.log_file}"
    logging.getLogger(__name__).info(f"Logging to {targets} at {settings.log_level}")


# ============================================================================
# .env template
# ============================================================================

ENV_EXAMPLE = """
RISK_ENGINE_LOG_LEVEL=INFO
RISK_ENGINE_LOG_FILE=logs/risk_engine.log
RISK_ENGINE_RISK_CONFIG_PATH=config/risk_config.yaml
RISK_ENGINE_MONTE_CARLO_SEED=42
"""
