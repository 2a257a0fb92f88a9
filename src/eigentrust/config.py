"""Configuration management for EigenTrust."""

from __future__ import annotations

import logging
import warnings
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

from eigentrust.propagation.engine import (
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_NUM_WORKERS,
    DEFAULT_RESET_PROB,
    DEFAULT_TOLERANCE,
    PropagationConfig,
)
from eigentrust.storage.repository import DEFAULT_RATINGS_QUERY, DEFAULT_SCORES_TABLE

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """EigenTrust configuration loaded from environment variables.

    All settings can be overridden via environment variables with
    the EIGENTRUST_ prefix. For example:
        EIGENTRUST_SEED_ID=42
        EIGENTRUST_TOLERANCE=1e-6
    """

    # Environment
    env: Literal["development", "production", "test"] = Field(
        default="development",
        description="Environment: development, production, or test",
    )

    # Propagation
    seed_id: int = Field(
        default=1,
        description="Trusted peer the walk teleports back to",
    )
    reset_prob: float = Field(
        default=DEFAULT_RESET_PROB,
        ge=0.0,
        le=1.0,
        description="Random reset (teleport) probability",
    )
    tolerance: float = Field(
        default=DEFAULT_TOLERANCE,
        ge=0.0,
        description="Per-vertex score change below which a vertex settles",
    )
    max_iterations: int = Field(
        default=DEFAULT_MAX_ITERATIONS,
        ge=1,
        description="Superstep cap; a best-effort result is returned when reached",
    )
    num_workers: int = Field(
        default=DEFAULT_NUM_WORKERS,
        ge=1,
        le=256,
        description="Worker threads per superstep",
    )
    sink_id: int | None = Field(
        default=None,
        description="Explicit dangling sink id. Reserved automatically if not set.",
    )

    # Storage
    credentials_file: str = Field(
        default="postgres.json",
        description='JSON file with {"url", "user", "password"} for the ratings database',
    )
    database_url: str | None = Field(
        default=None,
        description="SQLAlchemy URL. Takes precedence over credentials_file when set.",
    )
    ratings_query: str = Field(
        default=DEFAULT_RATINGS_QUERY,
        description="SQL returning (src_id, dst_id, weight) rows",
    )
    scores_table: str = Field(
        default=DEFAULT_SCORES_TABLE,
        min_length=1,
        description="Table overwritten with (user_id, score) results",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: Literal["json", "text"] = Field(
        default="json",
        description="Log output format",
    )

    model_config = {
        "env_prefix": "EIGENTRUST_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @model_validator(mode="after")
    def _warn_on_loose_tolerance(self) -> Settings:
        """Warn when the tolerance is too coarse to rank peers meaningfully."""
        if self.tolerance >= 0.1:
            warnings.warn(
                f"EigenTrust tolerance {self.tolerance} is very coarse; "
                "scores may stop after a single superstep.",
                UserWarning,
                stacklevel=2,
            )
            logger.warning("EigenTrust tolerance %.3g is very coarse", self.tolerance)
        return self

    def to_propagation_config(self) -> PropagationConfig:
        """Build the engine configuration from these settings."""
        return PropagationConfig(
            reset_prob=self.reset_prob,
            tolerance=self.tolerance,
            max_iterations=self.max_iterations,
            num_workers=self.num_workers,
        )

