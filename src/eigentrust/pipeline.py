"""End-to-end trust score job.

credentials -> ratings query -> EigenTrust -> overwrite score table.
"""

from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine
from sqlalchemy.exc import ArgumentError

from eigentrust.config import Settings
from eigentrust.exceptions import ConfigurationError
from eigentrust.graph import GraphBuilder
from eigentrust.logging import get_logger
from eigentrust.models import PropagationResult
from eigentrust.propagation import PropagationEngine
from eigentrust.storage import RatingsRepository, TrustScoreWriter, load_credentials

logger = get_logger(__name__)


def resolve_database_url(settings: Settings) -> str | URL:
    """Explicit ``database_url`` wins; otherwise read the credentials file."""
    if settings.database_url:
        return settings.database_url
    return load_credentials(settings.credentials_file).sqlalchemy_url()


def run_pipeline(settings: Settings, engine: Engine | None = None) -> PropagationResult:
    """Compute trust scores from the ratings database and persist them.

    Args:
        settings: Job configuration.
        engine: Existing SQLAlchemy engine. Created from settings if None.

    Returns:
        The propagation result that was written.

    Raises:
        ConfigurationError: Invalid propagation parameters, an unusable
            database URL, or no ratings.
        CredentialsError: The credentials file could not be used.
        StorageError: Reading ratings or writing scores failed.
    """
    config = settings.to_propagation_config()
    config.validate()

    owns_engine = engine is None
    if engine is None:
        try:
            engine = create_engine(resolve_database_url(settings))
        except (ArgumentError, ImportError) as e:
            # Unparseable URL, unknown dialect, or driver package not installed
            raise ConfigurationError(f"Cannot create database engine: {e}") from e
    try:
        ratings = RatingsRepository(engine, settings.ratings_query).fetch_ratings()
        graph = GraphBuilder(sink_id=settings.sink_id).build(ratings, settings.seed_id)
        result = PropagationEngine(config).run(graph)
        written = TrustScoreWriter(engine, settings.scores_table).write(result.scores)
    finally:
        if owns_engine:
            engine.dispose()

    logger.info(
        "trust_scores_published",
        ratings=len(ratings),
        scores=written,
        table=settings.scores_table,
        supersteps=result.supersteps,
        converged=result.converged,
    )
    return result
