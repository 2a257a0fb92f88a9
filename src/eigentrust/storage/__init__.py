"""Relational I/O around the propagation core.

Reads rating triplets from the application database and persists the
resulting trust scores. The core never sees connection details.
"""

from .credentials import DatabaseCredentials, load_credentials
from .repository import (
    DEFAULT_RATINGS_QUERY,
    DEFAULT_SCORES_TABLE,
    RatingsRepository,
    TrustScoreWriter,
)
from .retry import db_retry

__all__ = [
    "DEFAULT_RATINGS_QUERY",
    "DEFAULT_SCORES_TABLE",
    "DatabaseCredentials",
    "RatingsRepository",
    "TrustScoreWriter",
    "db_retry",
    "load_credentials",
]
