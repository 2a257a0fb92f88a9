"""Propagation graph construction.

Turns raw rating triplets into the normalized, seeded graph the
propagation engine runs on:

1. Duplicate (src, dst) ratings are merged by summing their weights
2. Each source's outgoing weights are normalized to sum to 1.0
3. Vertices with no outgoing ratings (dangling) get one unit edge to a
   reserved sink vertex, and the sink gets one unit edge back to the
   seed, so dangling trust mass re-enters the walk instead of leaking
4. Vertices are laid out by ascending id into flat arrays; adjacency is
   stored in CSR form (offsets / targets / weights)
"""

from __future__ import annotations

import math
from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from eigentrust.exceptions import ConfigurationError, InvalidWeightError
from eigentrust.logging import get_logger
from eigentrust.models import Rating

logger = get_logger(__name__)

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

# Preferred reserved id for the dangling sink; real peer ids are positive
DEFAULT_SINK_ID = -1

SEED_SCORE = 1.0
UNSEEDED_SCORE = 0.0


@dataclass
class VertexState:
    """Double-buffered per-vertex state.

    ``scores``/``deltas`` hold the state every worker reads during a
    superstep; ``next_scores``/``next_deltas`` receive the writes. Nothing
    written during a superstep is visible until ``swap()`` at the barrier.
    """

    scores: list[float]
    deltas: list[float]
    next_scores: list[float] = field(init=False)
    next_deltas: list[float] = field(init=False)
    generation: int = 0

    def __post_init__(self) -> None:
        self.next_scores = list(self.scores)
        self.next_deltas = list(self.deltas)

    def swap(self) -> None:
        self.scores, self.next_scores = self.next_scores, self.scores
        self.deltas, self.next_deltas = self.next_deltas, self.deltas
        self.generation += 1


@dataclass(frozen=True)
class PropagationGraph:
    """Immutable, index-addressed propagation graph.

    Vertex ``i`` is ``vertex_ids[i]``; its outgoing edges are
    ``targets[offsets[i]:offsets[i + 1]]`` with matching ``weights``.
    Vertex state is not stored here: call ``new_state()`` for a freshly
    seeded buffer so the same graph can be run any number of times.
    """

    vertex_ids: tuple[int, ...]
    index: Mapping[int, int]
    offsets: tuple[int, ...]
    targets: tuple[int, ...]
    weights: tuple[float, ...]
    seed_index: int
    sink_index: int | None
    dangling: frozenset[int]

    @property
    def num_vertices(self) -> int:
        return len(self.vertex_ids)

    @property
    def num_edges(self) -> int:
        return len(self.targets)

    @property
    def seed_id(self) -> int:
        return self.vertex_ids[self.seed_index]

    @property
    def sink_id(self) -> int | None:
        if self.sink_index is None:
            return None
        return self.vertex_ids[self.sink_index]

    def __contains__(self, vertex_id: object) -> bool:
        return vertex_id in self.index

    def out_edges(self, vertex_id: int) -> tuple[tuple[int, float], ...]:
        """Outgoing ``(dst_id, normalized_weight)`` pairs, ascending by dst."""
        i = self.index[vertex_id]
        lo, hi = self.offsets[i], self.offsets[i + 1]
        return tuple(
            (self.vertex_ids[self.targets[k]], self.weights[k]) for k in range(lo, hi)
        )

    def out_weight_sum(self, vertex_id: int) -> float:
        i = self.index[vertex_id]
        return math.fsum(self.weights[self.offsets[i] : self.offsets[i + 1]])

    def new_state(self) -> VertexState:
        """Seeded state: seed = 1.0, everyone else 0.0, deltas never converged."""
        scores = [UNSEEDED_SCORE] * self.num_vertices
        scores[self.seed_index] = SEED_SCORE
        return VertexState(scores=scores, deltas=[math.inf] * self.num_vertices)


class GraphBuilder:
    """Builds a PropagationGraph from rating triplets.

    Args:
        sink_id: Id for the dangling sink. When None an id that cannot
            collide with a real vertex is reserved automatically.
    """

    def __init__(self, sink_id: int | None = None) -> None:
        self.sink_id = sink_id

    def build(
        self,
        ratings: Iterable[Rating | Sequence[Any]],
        seed_id: int,
    ) -> PropagationGraph:
        """Build the normalized, seeded propagation graph.

        Args:
            ratings: Rating models or ``(src, dst, weight)`` sequences.
            seed_id: The trusted vertex. Added as a vertex if absent.

        Returns:
            The immutable propagation graph.

        Raises:
            InvalidWeightError: A weight is negative, NaN or infinite.
            ConfigurationError: No ratings were given, or an explicit
                sink id collides with a real vertex.
        """
        merged: dict[tuple[int, int], float] = {}
        out_degree: Counter[int] = Counter()
        vertices: set[int] = set()

        for raw in ratings:
            rating = raw if isinstance(raw, Rating) else Rating.from_row(raw)
            if not math.isfinite(rating.weight) or rating.weight < 0:
                raise InvalidWeightError(rating.src_id, rating.dst_id, rating.weight)
            vertices.add(rating.src_id)
            vertices.add(rating.dst_id)
            out_degree[rating.src_id] += 1
            key = (rating.src_id, rating.dst_id)
            merged[key] = merged.get(key, 0.0) + rating.weight

        if not vertices:
            raise ConfigurationError(
                f"Seed vertex {seed_id} referenced but the rating graph has no vertices"
            )
        vertices.add(seed_id)

        grouped: dict[int, list[tuple[int, float]]] = {}
        for (src, dst), weight in sorted(merged.items()):
            grouped.setdefault(src, []).append((dst, weight))

        dangling = {v for v in vertices if out_degree[v] == 0}
        normalized: dict[int, list[tuple[int, float]]] = {}
        for src, edges in grouped.items():
            total = math.fsum(abs(weight) for _, weight in edges)
            if total == 0.0:
                # All-zero ratings carry no trust; redirect like a dangling vertex
                dangling.add(src)
                continue
            normalized[src] = [(dst, weight / total) for dst, weight in edges]

        sink_id: int | None = None
        if dangling:
            sink_id = self._reserve_sink_id(vertices)
            for vertex in dangling:
                normalized[vertex] = [(sink_id, 1.0)]
            normalized[sink_id] = [(seed_id, 1.0)]

        vertex_ids = sorted(vertices if sink_id is None else vertices | {sink_id})
        index = {vid: i for i, vid in enumerate(vertex_ids)}

        offsets = [0]
        targets: list[int] = []
        weights: list[float] = []
        for vid in vertex_ids:
            for dst, weight in normalized.get(vid, ()):
                targets.append(index[dst])
                weights.append(weight)
            offsets.append(len(targets))

        graph = PropagationGraph(
            vertex_ids=tuple(vertex_ids),
            index=MappingProxyType(index),
            offsets=tuple(offsets),
            targets=tuple(targets),
            weights=tuple(weights),
            seed_index=index[seed_id],
            sink_index=None if sink_id is None else index[sink_id],
            dangling=frozenset(dangling),
        )

        logger.info(
            "graph_built",
            vertices=graph.num_vertices,
            edges=graph.num_edges,
            ratings_merged=sum(out_degree.values()) - len(merged),
            dangling=len(dangling),
            seed_id=seed_id,
            sink_id=sink_id,
        )
        return graph

    def _reserve_sink_id(self, vertices: set[int]) -> int:
        if self.sink_id is not None:
            if self.sink_id in vertices:
                raise ConfigurationError(
                    f"Sink vertex id {self.sink_id} collides with a rated vertex"
                )
            return self.sink_id

        if DEFAULT_SINK_ID not in vertices:
            return DEFAULT_SINK_ID
        below = min(vertices) - 1
        if below >= INT64_MIN:
            return below
        return max(vertices) + 1


def build_graph(
    ratings: Iterable[Rating | Sequence[Any]],
    seed_id: int,
    sink_id: int | None = None,
) -> PropagationGraph:
    """Shortcut for ``GraphBuilder(sink_id).build(ratings, seed_id)``."""
    return GraphBuilder(sink_id=sink_id).build(ratings, seed_id)
