"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from eigentrust.logging import clear_context

# (post id, author id)
POSTS = [(10, 1), (11, 2), (12, 3)]

# (rater id, post id, rating)
SATISFACTION_RATINGS = [
    (2, 10, 5.0),  # 2 -> 1
    (3, 10, 3.0),  # 3 -> 1
    (1, 11, 4.0),  # 1 -> 2
    (1, 12, 1.0),  # 1 -> 3
    (2, 12, 2.0),  # 2 -> 3
]

# What the default ratings query returns for the rows above
EXPECTED_TRIPLETS = {(2, 1, 5.0), (3, 1, 3.0), (1, 2, 4.0), (1, 3, 1.0), (2, 3, 2.0)}


def create_ratings_schema(
    engine: Engine,
    posts: list[tuple[int, int | None]] = POSTS,
    ratings: list[tuple[int, int, float | None]] = SATISFACTION_RATINGS,
) -> None:
    """Create and fill the application tables the ratings query joins."""
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE core_post (id INTEGER PRIMARY KEY, author_id INTEGER)"))
        conn.execute(
            text(
                "CREATE TABLE core_satisfactionrating "
                "(id INTEGER PRIMARY KEY, user_id INTEGER, post_id INTEGER, rating FLOAT)"
            )
        )
        if posts:
            conn.execute(
                text("INSERT INTO core_post (id, author_id) VALUES (:id, :author_id)"),
                [{"id": post_id, "author_id": author_id} for post_id, author_id in posts],
            )
        if ratings:
            conn.execute(
                text(
                    "INSERT INTO core_satisfactionrating (user_id, post_id, rating) "
                    "VALUES (:user_id, :post_id, :rating)"
                ),
                [
                    {"user_id": user_id, "post_id": post_id, "rating": rating}
                    for user_id, post_id, rating in ratings
                ],
            )


@pytest.fixture(autouse=True)
def _clean_log_context() -> Iterator[None]:
    """Keep bound structlog context from leaking between tests."""
    clear_context()
    yield
    clear_context()


@pytest.fixture
def cycle_ratings() -> list[tuple[int, int, float]]:
    """Three peers rating each other in a ring: 0 -> 1 -> 2 -> 0."""
    return [(0, 1, 1.0), (1, 2, 1.0), (2, 0, 1.0)]


@pytest.fixture
def memory_engine() -> Iterator[Engine]:
    """Empty in-memory SQLite engine shared across connections."""
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    yield engine
    engine.dispose()


@pytest.fixture
def ratings_engine(memory_engine: Engine) -> Engine:
    """In-memory SQLite engine with the ratings tables populated."""
    create_ratings_schema(memory_engine)
    return memory_engine


@pytest.fixture
def ratings_db_url(tmp_path: Path) -> str:
    """URL of a file-backed SQLite database with the ratings tables populated."""
    url = f"sqlite:///{tmp_path / 'app.db'}"
    engine = create_engine(url)
    create_ratings_schema(engine)
    engine.dispose()
    return url
