"""EigenTrust: trust scores from peer ratings.

Computes a trust score for every peer in a directed, weighted rating
graph with a teleporting random walk anchored at one trusted seed.

Quick Start:
    from eigentrust import PropagationConfig, compute_eigentrust

    ratings = [(1, 2, 5.0), (2, 3, 4.0), (3, 1, 1.0)]
    result = compute_eigentrust(ratings, seed_id=1, config=PropagationConfig(tolerance=1e-6))
    for peer, score in result.ranked():
        print(peer, score)

Pipeline:
    GraphBuilder: merge, normalize, redirect dangling peers to a sink
    PropagationEngine: bulk-synchronous supersteps until nobody changes
    ConvergenceTracker: which peers are still moving
"""

__version__ = "0.1.0"

# Exceptions
from .exceptions import (
    ConfigurationError,
    CredentialsError,
    EigenTrustError,
    InvalidWeightError,
    NonConvergenceWarning,
    StorageError,
)

# Graph
from .graph import GraphBuilder, PropagationGraph, build_graph

# Logging
from .logging import bound_context, clear_context, configure_logging, get_logger

# Models
from .models import PropagationResult, Rating, SuperstepStats

# Propagation
from .propagation import (
    ConvergenceTracker,
    PropagationConfig,
    PropagationEngine,
    compute_eigentrust,
)

__all__ = [
    # Version
    "__version__",
    # Exceptions
    "ConfigurationError",
    "CredentialsError",
    "EigenTrustError",
    "InvalidWeightError",
    "NonConvergenceWarning",
    "StorageError",
    # Graph
    "GraphBuilder",
    "PropagationGraph",
    "build_graph",
    # Logging
    "bound_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    # Models
    "PropagationResult",
    "Rating",
    "SuperstepStats",
    # Propagation
    "ConvergenceTracker",
    "PropagationConfig",
    "PropagationEngine",
    "compute_eigentrust",
]
