"""Bulk-synchronous EigenTrust propagation.

Runs a teleporting random walk anchored at one trusted seed vertex,
expressed as vertex-centric message passing:

- Superstep 0: every vertex receives the uniform message 1/N
- Each superstep, every active vertex computes
  ``reset_prob * [v is seed] + (1 - reset_prob) * sum(mailbox)``
- If its score moved by more than the tolerance it sends
  ``score * edge_weight`` along every outgoing edge; otherwise it settles
  and goes quiet for good
- The run ends when no vertex is active, or at the iteration cap

Messages land in per-destination mailboxes keyed by sender id. A new
message from a sender replaces that sender's previous one, so a settled
vertex keeps contributing the last score it sent.

Vertices are split into contiguous partitions, one per worker thread.
Workers read the current state buffer and the mailboxes and write only
their own slice of the next state buffer; the coordinator delivers
messages and swaps buffers at the barrier. Mailboxes are summed in
sender-id order with ``math.fsum``, so the result does not depend on the
worker count.

References:
- Kamvar, Schlosser, Garcia-Molina 2003: The EigenTrust algorithm
- Malewicz et al. 2010: Pregel
"""

from __future__ import annotations

import math
import warnings
from collections import defaultdict
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from functools import partial
from typing import Any
from uuid import uuid4

from eigentrust.exceptions import ConfigurationError, NonConvergenceWarning
from eigentrust.graph import GraphBuilder, PropagationGraph, VertexState
from eigentrust.logging import bound_context, get_logger
from eigentrust.models import PropagationResult, Rating, SuperstepStats

from .convergence import ConvergenceTracker

logger = get_logger(__name__)


# Default configuration
DEFAULT_RESET_PROB = 0.1
DEFAULT_TOLERANCE = 0.001
DEFAULT_MAX_ITERATIONS = 1000
DEFAULT_NUM_WORKERS = 1

# dst index -> [(sender index, value), ...]
Outbox = dict[int, list[tuple[int, float]]]
# per dst index: sender index -> latest value
Mailboxes = list[dict[int, float]]


@dataclass
class PropagationConfig:
    """Configuration for EigenTrust propagation.

    Attributes:
        reset_prob: Share of mass teleported back to the seed each superstep.
        tolerance: A vertex settles once its score changes by at most this.
        max_iterations: Superstep cap; hitting it yields a best-effort result.
        num_workers: Worker threads per superstep.
        record_history: Keep per-superstep statistics on the result.
    """

    reset_prob: float = DEFAULT_RESET_PROB
    tolerance: float = DEFAULT_TOLERANCE
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    num_workers: int = DEFAULT_NUM_WORKERS
    record_history: bool = True

    def validate(self) -> None:
        """Raise ConfigurationError if any parameter is out of range."""
        if not 0.0 <= self.reset_prob <= 1.0:
            raise ConfigurationError(
                f"Random reset probability must belong to [0, 1], but got {self.reset_prob}"
            )
        if not self.tolerance >= 0.0:
            raise ConfigurationError(
                f"Tolerance must be no less than 0, but got {self.tolerance}"
            )
        if self.max_iterations < 1:
            raise ConfigurationError(
                f"max_iterations must be at least 1, but got {self.max_iterations}"
            )
        if self.num_workers < 1:
            raise ConfigurationError(f"num_workers must be at least 1, but got {self.num_workers}")


@dataclass
class _PartitionUpdate:
    outbox: Outbox
    updated: int
    sent: int
    max_delta: float


def partition_ranges(num_vertices: int, num_workers: int) -> list[tuple[int, int]]:
    """Split ``range(num_vertices)`` into at most ``num_workers`` contiguous slices."""
    parts = max(1, min(num_workers, num_vertices))
    size, extra = divmod(num_vertices, parts)
    ranges = []
    start = 0
    for p in range(parts):
        stop = start + size + (1 if p < extra else 0)
        ranges.append((start, stop))
        start = stop
    return ranges


class PropagationEngine:
    """Runs EigenTrust supersteps over a PropagationGraph.

    Args:
        config: Default parameters; ``run`` may override them per call.
    """

    def __init__(self, config: PropagationConfig | None = None) -> None:
        self.config = config or PropagationConfig()

    def run(
        self,
        graph: PropagationGraph,
        reset_prob: float | None = None,
        tol: float | None = None,
        max_iterations: int | None = None,
    ) -> PropagationResult:
        """Propagate trust from the seed until convergence or the cap.

        Args:
            graph: Graph produced by GraphBuilder.
            reset_prob: Overrides ``config.reset_prob``.
            tol: Overrides ``config.tolerance``.
            max_iterations: Overrides ``config.max_iterations``.

        Returns:
            PropagationResult mapping every real vertex id to its score.

        Raises:
            ConfigurationError: A parameter is out of range.

        Warns:
            NonConvergenceWarning: The cap was reached with vertices still
                active.
        """
        overrides: dict[str, Any] = {}
        if reset_prob is not None:
            overrides["reset_prob"] = reset_prob
        if tol is not None:
            overrides["tolerance"] = tol
        if max_iterations is not None:
            overrides["max_iterations"] = max_iterations
        config = replace(self.config, **overrides)
        config.validate()

        with bound_context(run_id=uuid4().hex[:12]):
            result = self._run(graph, config)

        if not result.converged:
            warnings.warn(
                NonConvergenceWarning(result.supersteps, result.active_vertices),
                stacklevel=2,
            )
        return result

    def _run(self, graph: PropagationGraph, config: PropagationConfig) -> PropagationResult:
        n = graph.num_vertices
        state = graph.new_state()
        tracker = ConvergenceTracker(n, config.tolerance)
        mailboxes: Mailboxes = [{} for _ in range(n)]
        partitions = partition_ranges(n, config.num_workers)

        logger.info(
            "propagation_started",
            vertices=n,
            edges=graph.num_edges,
            seed_id=graph.seed_id,
            reset_prob=config.reset_prob,
            tolerance=config.tolerance,
            max_iterations=config.max_iterations,
            workers=len(partitions),
        )

        history: list[SuperstepStats] = []
        supersteps = 0
        max_delta = 0.0
        executor = ThreadPoolExecutor(max_workers=len(partitions)) if len(partitions) > 1 else None
        try:
            for superstep in range(config.max_iterations):
                # Superstep 0 replaces every mailbox with the uniform message 1/N
                initial = 1.0 / n if superstep == 0 else None
                step = partial(
                    self._compute_partition,
                    graph,
                    state,
                    tracker,
                    mailboxes,
                    config.reset_prob,
                    initial,
                )

                # Barrier: every partition finishes before messages are delivered
                if executor is None:
                    updates = [step(start, stop) for start, stop in partitions]
                else:
                    starts, stops = zip(*partitions)
                    updates = list(executor.map(step, starts, stops))

                _deliver(mailboxes, (update.outbox for update in updates))
                state.swap()
                supersteps = superstep + 1
                max_delta = max((u.max_delta for u in updates), default=0.0)

                stats = SuperstepStats(
                    superstep=superstep,
                    updated=sum(u.updated for u in updates),
                    active=tracker.active_count,
                    messages=sum(u.sent for u in updates),
                    max_delta=max_delta,
                    total_mass=math.fsum(state.scores),
                )
                if config.record_history:
                    history.append(stats)
                logger.debug("superstep_complete", **stats.model_dump())

                if tracker.converged:
                    break
        finally:
            if executor is not None:
                executor.shutdown(wait=True)

        scores = {
            vid: state.scores[i]
            for i, vid in enumerate(graph.vertex_ids)
            if i != graph.sink_index
        }
        result = PropagationResult(
            scores=scores,
            seed_id=graph.seed_id,
            sink_id=graph.sink_id,
            sink_score=0.0 if graph.sink_index is None else state.scores[graph.sink_index],
            supersteps=supersteps,
            converged=tracker.converged,
            active_vertices=tracker.active_count,
            max_delta_final=max_delta,
            history=history,
        )

        if result.converged:
            logger.info(
                "propagation_converged",
                supersteps=supersteps,
                max_delta_final=max_delta,
            )
        else:
            logger.warning(
                "propagation_not_converged",
                supersteps=supersteps,
                active_vertices=result.active_vertices,
                max_delta_final=max_delta,
            )
        return result

    @staticmethod
    def _compute_partition(
        graph: PropagationGraph,
        state: VertexState,
        tracker: ConvergenceTracker,
        mailboxes: Mailboxes,
        reset_prob: float,
        initial: float | None,
        start: int,
        stop: int,
    ) -> _PartitionUpdate:
        """Run the vertex program over ``[start, stop)``.

        Reads ``state.scores`` and ``mailboxes``; writes only
        ``state.next_*[start:stop]``.
        """
        scores = state.scores
        next_scores, next_deltas = state.next_scores, state.next_deltas
        next_scores[start:stop] = scores[start:stop]
        next_deltas[start:stop] = state.deltas[start:stop]

        outbox: Outbox = defaultdict(list)
        updated = 0
        sent = 0
        max_delta = 0.0
        for v in range(start, stop):
            if not tracker.is_active(v):
                continue

            if initial is not None:
                msg_sum = initial
            else:
                mailbox = mailboxes[v]
                msg_sum = math.fsum(mailbox[sender] for sender in sorted(mailbox))

            seed_term = reset_prob if v == graph.seed_index else 0.0
            new_score = seed_term + (1.0 - reset_prob) * msg_sum
            delta = abs(new_score - scores[v])
            next_scores[v] = new_score
            next_deltas[v] = delta
            updated += 1
            if delta > max_delta:
                max_delta = delta

            if tracker.observe(v, delta):
                for k in range(graph.offsets[v], graph.offsets[v + 1]):
                    outbox[graph.targets[k]].append((v, new_score * graph.weights[k]))
                    sent += 1

        return _PartitionUpdate(outbox=outbox, updated=updated, sent=sent, max_delta=max_delta)


def _deliver(mailboxes: Mailboxes, outboxes: Iterable[Outbox]) -> None:
    """Write each sender's newest message into its destination mailbox."""
    for outbox in outboxes:
        for dst, messages in outbox.items():
            mailbox = mailboxes[dst]
            for sender, value in messages:
                mailbox[sender] = value


def compute_eigentrust(
    ratings: Iterable[Rating | Sequence[Any]],
    seed_id: int,
    config: PropagationConfig | None = None,
    sink_id: int | None = None,
) -> PropagationResult:
    """Build the graph from ratings and run propagation on it.

    Parameters are validated before the graph is built.

    Args:
        ratings: Rating models or ``(src, dst, weight)`` sequences.
        seed_id: The trusted vertex.
        config: Propagation configuration.
        sink_id: Explicit dangling sink id.

    Returns:
        PropagationResult with per-vertex scores.
    """
    engine = PropagationEngine(config)
    engine.config.validate()
    graph = GraphBuilder(sink_id=sink_id).build(ratings, seed_id)
    return engine.run(graph)
