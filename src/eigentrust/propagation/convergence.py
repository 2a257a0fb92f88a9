"""Per-vertex convergence tracking.

A vertex stays active while its last update moved its score by more than
the tolerance. Deactivation is one-way: once a vertex settles it neither
recomputes nor sends messages again, so the active set only shrinks and
the run ends when it is empty.
"""

from __future__ import annotations


class ConvergenceTracker:
    """Active-vertex bitset over the vertex index space.

    Workers call ``observe`` only for indices in their own partition, so
    no locking is needed.

    Args:
        num_vertices: Size of the vertex index space.
        tolerance: Largest delta at which a vertex counts as settled.
    """

    def __init__(self, num_vertices: int, tolerance: float) -> None:
        self.num_vertices = num_vertices
        self.tolerance = tolerance
        self._active = bytearray(b"\x01") * num_vertices

    def observe(self, index: int, delta: float) -> bool:
        """Record an update; return True if the vertex stays active and sends."""
        if delta > self.tolerance:
            return True
        self._active[index] = 0
        return False

    def is_active(self, index: int) -> bool:
        return bool(self._active[index])

    @property
    def active_count(self) -> int:
        """Vertices that have not settled yet."""
        return self._active.count(1)

    @property
    def converged(self) -> bool:
        return self.active_count == 0
