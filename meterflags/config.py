"""
Application configuration using pydantic-settings.
All settings read from environment variables with sensible defaults.

Anomaly thresholds are not settings: they live in the per-scheme
ValidationConfig resolved by meterflags.engine.config_resolver.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Central configuration for the reading validation engine."""

    # ── Application ──────────────────────────────────────────
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # ── Database ─────────────────────────────────────────────
    DATABASE_URL: str = "sqlite:///./meterflags.db"
    DB_ECHO: bool = False

    # ── Validation Config Store ──────────────────────────────
    # Scope key used for the scheme-independent override
    CONFIG_GLOBAL_SCOPE: str = "global"

    # ── Capture Hints ────────────────────────────────────────
    EXPECTED_RANGE_WINDOW: int = 3
    EXPECTED_RANGE_SPREAD: float = 0.30

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "env_prefix": "METERFLAGS_",
        "extra": "ignore",
    }


# Singleton instance
settings = Settings()
