"""Relational storage for ratings (input) and trust scores (output).

Uses SQLAlchemy Core so the same code runs against PostgreSQL in
production and SQLite in tests.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from sqlalchemy import BigInteger, Column, Float, MetaData, Table, insert, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from eigentrust.exceptions import StorageError
from eigentrust.models import Rating

from .retry import db_retry

logger = logging.getLogger(__name__)

# Satisfaction ratings joined to post authors: (rater, author, rating)
DEFAULT_RATINGS_QUERY = (
    "SELECT user_id, author_id, rating "
    "FROM core_satisfactionrating "
    "INNER JOIN core_post ON core_satisfactionrating.post_id = core_post.id"
)
DEFAULT_SCORES_TABLE = "core_trustscore"


class RatingsRepository:
    """Reads rating triplets with a configurable query.

    The query must return ``(src_id, dst_id, weight)`` columns, in that order.
    """

    def __init__(self, engine: Engine, query: str = DEFAULT_RATINGS_QUERY) -> None:
        self.engine = engine
        self.query = query

    def fetch_ratings(self) -> list[Rating]:
        """Fetch every rating, skipping rows with NULL columns.

        Raises:
            StorageError: The query failed.
        """
        try:
            rows = self._fetch_rows()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to fetch ratings: {e}") from e

        ratings = [Rating.from_row(row) for row in rows if None not in tuple(row)]
        skipped = len(rows) - len(ratings)
        if skipped:
            logger.warning("Skipped %d rating rows with NULL values", skipped)
        logger.info("Fetched %d ratings", len(ratings))
        return ratings

    @db_retry
    def _fetch_rows(self) -> Sequence[Any]:
        with self.engine.connect() as conn:
            return conn.execute(text(self.query)).all()


class TrustScoreWriter:
    """Writes final scores to a ``(user_id, score)`` table in overwrite mode."""

    def __init__(self, engine: Engine, table_name: str = DEFAULT_SCORES_TABLE) -> None:
        self.engine = engine
        self.table_name = table_name
        self.table = Table(
            table_name,
            MetaData(),
            Column("user_id", BigInteger, primary_key=True, autoincrement=False),
            Column("score", Float, nullable=False),
        )

    def write(self, scores: Mapping[int, float]) -> int:
        """Replace the table contents with ``scores``.

        Returns:
            Number of rows written.

        Raises:
            StorageError: The write failed.
        """
        rows = [{"user_id": vid, "score": score} for vid, score in sorted(scores.items())]
        try:
            self._overwrite(rows)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to write trust scores to {self.table_name}: {e}") from e
        logger.info("Wrote %d trust scores to %s", len(rows), self.table_name)
        return len(rows)

    @db_retry
    def _overwrite(self, rows: list[dict[str, Any]]) -> None:
        with self.engine.begin() as conn:
            self.table.drop(conn, checkfirst=True)
            self.table.create(conn)
            if rows:
                conn.execute(insert(self.table), rows)
