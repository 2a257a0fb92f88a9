"""EigenTrust propagation from a single trusted seed.

Implements the teleporting random walk as bulk-synchronous message
passing over a GraphBuilder graph.

Design principles:
- The seed is the only source of teleported trust
- Dangling mass is relayed through a reserved sink back to the seed,
  never dropped silently
- Settled vertices stop sending; the run ends when nobody sends
- Results are bit-identical for any worker count

Example:
    ```python
    from eigentrust.propagation import PropagationConfig, compute_eigentrust

    config = PropagationConfig(reset_prob=0.1, tolerance=1e-6)
    result = compute_eigentrust([(0, 1, 1.0), (1, 2, 1.0), (2, 0, 1.0)], 0, config)
    print(result.ranked())
    ```
"""

from .convergence import ConvergenceTracker
from .engine import (
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_NUM_WORKERS,
    DEFAULT_RESET_PROB,
    DEFAULT_TOLERANCE,
    PropagationConfig,
    PropagationEngine,
    compute_eigentrust,
    partition_ranges,
)

__all__ = [
    # Config
    "PropagationConfig",
    # Engine
    "ConvergenceTracker",
    "PropagationEngine",
    "compute_eigentrust",
    "partition_ranges",
    # Constants
    "DEFAULT_MAX_ITERATIONS",
    "DEFAULT_NUM_WORKERS",
    "DEFAULT_RESET_PROB",
    "DEFAULT_TOLERANCE",
]
