"""
MealTracker Backend - Application Configuration
================================================

What:  Centralized configuration management using Pydantic Settings.
How:   Pydantic Settings reads from environment variables (or .env file),
       validates types/ranges, and provides a singleton `settings` object.
Who:   Read by main.py at startup and by storage.strategy.build_strategy().
When:  Loaded once at module import time; validated before the app starts serving.

Persistence switch:
    PERSISTENCE_MODE=local   → database.db in the working directory, no remote sync
    PERSISTENCE_MODE=remote  → cache in the temp dir + GitHub contents API sync
    PERSISTENCE_MODE=auto    → remote when a serverless platform marker
                               (VERCEL, AWS_LAMBDA_FUNCTION_NAME) is present,
                               local otherwise. Resolved once, at startup.
"""

import os
import tempfile
from typing import List, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings

# Environment variables whose presence marks a constrained/ephemeral runtime
# (read-only project root, writable temp dir, no state between invocations).
EPHEMERAL_ENV_MARKERS = ("VERCEL", "AWS_LAMBDA_FUNCTION_NAME")


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have sensible defaults for local development. Remote sync
    additionally needs GITHUB_OWNER, GITHUB_REPO and GITHUB_TOKEN.

    Attributes are grouped by concern for readability.
    """

    # ── Persistence ───────────────────────────────────────────────────────
    persistence_mode: str = Field(default="auto", description="auto, local or remote")

    # What: Persistent database file used in local mode
    local_db_path: str = Field(default="./database.db")

    # What: Scratch directory holding the cache file in remote mode
    cache_dir: str = Field(default_factory=tempfile.gettempdir)
    db_filename: str = Field(default="database.db")

    # What: Optional read-only image used when neither cache nor remote has one
    # Typical value: a database.db shipped alongside the deployment bundle
    seed_image_path: Optional[str] = Field(default=None)

    # ── GitHub Contents API (remote blob store) ───────────────────────────
    github_owner: str = Field(default="")
    github_repo: str = Field(default="")
    github_path: str = Field(default="database.db")
    github_branch: str = Field(default="main")
    github_token: SecretStr = Field(default=SecretStr(""))
    github_api_url: str = Field(default="https://api.github.com")
    github_commit_message: str = Field(default="Update database.db via App")

    # What: Hard cap on every remote call (connect + read + write)
    # A call that exceeds it is treated as a remote failure
    remote_timeout_seconds: float = Field(default=10.0, gt=0, le=120)
    user_agent: str = Field(default="mealtracker-backend/1.0")

    # ── Retry Configuration ───────────────────────────────────────────────
    # What: Tenacity settings for transient remote read failures
    retry_max_attempts: int = Field(default=3, ge=1, le=10)
    retry_min_wait: float = Field(default=0.5, ge=0, le=30)
    retry_max_wait: float = Field(default=4.0, ge=0, le=120)

    # What: Upload attempts when the remote sha moved underneath us
    # Each retry reloads the remote copy and replays the statement on it
    cas_max_attempts: int = Field(default=3, ge=1, le=10)

    # ── CORS ──────────────────────────────────────────────────────────────
    cors_origins: str = Field(default="http://localhost:5173,http://localhost:3000")

    @property
    def cors_origins_list(self) -> List[str]:
        """Splits comma-separated CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    # ── Server ────────────────────────────────────────────────────────────
    backend_host: str = Field(default="0.0.0.0")
    backend_port: int = Field(default=3000, ge=1024, le=65535)

    # Valid: DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    @field_validator("persistence_mode")
    @classmethod
    def validate_persistence_mode(cls, v: str) -> str:
        """Ensures persistence mode is one of the supported strategies."""
        valid_modes = {"auto", "local", "remote"}
        lower = v.lower()
        if lower not in valid_modes:
            raise ValueError(
                f"Invalid persistence_mode '{v}'. Must be one of: {sorted(valid_modes)}"
            )
        return lower

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }

    def resolved_mode(self) -> str:
        """
        Collapse 'auto' into a concrete mode by looking for ephemeral-runtime markers.

        Returns:
            "local" or "remote"
        """
        if self.persistence_mode != "auto":
            return self.persistence_mode
        if any(os.environ.get(marker) for marker in EPHEMERAL_ENV_MARKERS):
            return "remote"
        return "local"

    def validate_required_for_production(self) -> None:
        """
        What:  Validates that settings needed by the resolved mode are present.
        When:  Called during app startup (lifespan).
        How:   Collects every missing value and raises one ValueError listing them.
        """
        errors = []
        if self.resolved_mode() == "remote":
            if not self.github_owner:
                errors.append("GITHUB_OWNER is not set (owner of the storage repository).")
            if not self.github_repo:
                errors.append("GITHUB_REPO is not set (repository holding the database file).")
            if not self.github_token.get_secret_value():
                errors.append(
                    "GITHUB_TOKEN is not set. Create a fine-grained token with "
                    "'Contents: read and write' on the storage repository."
                )
        if errors:
            raise ValueError(
                "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
            )


# Singleton instance read at startup
settings = Settings()
