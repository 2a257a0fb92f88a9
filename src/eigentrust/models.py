"""Data models for EigenTrust.

Ratings are the input triplets; PropagationResult is the terminal,
read-only output of a run.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Rating(BaseModel):
    """A single peer rating: ``src_id`` rated ``dst_id`` with ``weight``.

    Weight validity (finite, non-negative) is checked by the GraphBuilder,
    which raises InvalidWeightError rather than a pydantic error.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    src_id: int = Field(description="Rating author (trusting vertex)")
    dst_id: int = Field(description="Rated peer (trusted vertex)")
    weight: float = Field(description="Satisfaction weight")

    @classmethod
    def from_row(cls, row: Sequence[Any]) -> Rating:
        """Build a Rating from any ``(src, dst, weight)`` sequence."""
        src_id, dst_id, weight = row
        return cls(src_id=int(src_id), dst_id=int(dst_id), weight=float(weight))


class SuperstepStats(BaseModel):
    """Snapshot of engine state at the end of one superstep.

    Attributes:
        superstep: Zero-based superstep number.
        updated: Vertices whose vertex program ran.
        active: Vertices whose last delta is still above tolerance.
        messages: Messages sent for the next superstep.
        max_delta: Largest delta among updated vertices.
        total_mass: Sum of all vertex scores, sink included.
    """

    model_config = ConfigDict(extra="forbid")

    superstep: int = Field(ge=0)
    updated: int = Field(ge=0)
    active: int = Field(ge=0)
    messages: int = Field(ge=0)
    max_delta: float = Field(ge=0.0)
    total_mass: float


class PropagationResult(BaseModel):
    """Result of an EigenTrust run.

    Supports mapping-style lookups of vertex id to final score
    (``result[vid]``, ``vid in result``, ``len(result)``). The dangling
    sink is not a real peer, so its score is reported separately.

    Attributes:
        scores: Final score per real vertex.
        seed_id: The trusted vertex.
        sink_id: Reserved vertex relaying dangling mass back to the seed, if
            one was added.
        sink_score: Final score of the sink vertex.
        supersteps: Supersteps executed.
        converged: False when the iteration cap cut the run short.
        active_vertices: Vertices that had not settled when the run ended.
        max_delta_final: Largest delta in the final superstep.
        history: Per-superstep statistics, when recorded.
    """

    model_config = ConfigDict(extra="forbid")

    scores: dict[int, float] = Field(default_factory=dict)
    seed_id: int
    sink_id: int | None = None
    sink_score: float = 0.0
    supersteps: int = Field(default=0, ge=0)
    converged: bool = False
    active_vertices: int = Field(default=0, ge=0)
    max_delta_final: float = Field(default=0.0, ge=0.0)
    history: list[SuperstepStats] = Field(default_factory=list)

    def __getitem__(self, vertex_id: int) -> float:
        return self.scores[vertex_id]

    def __contains__(self, vertex_id: object) -> bool:
        return vertex_id in self.scores

    def __len__(self) -> int:
        return len(self.scores)

    def get(self, vertex_id: int, default: float | None = None) -> float | None:
        return self.scores.get(vertex_id, default)

    def items(self) -> Iterator[tuple[int, float]]:
        return iter(self.scores.items())

    def ranked(self) -> list[tuple[int, float]]:
        """Scores sorted from most to least trusted, ties broken by id."""
        return sorted(self.scores.items(), key=lambda item: (-item[1], item[0]))
