"""Propagation graph construction.

Example:
    ```python
    from eigentrust.graph import GraphBuilder

    graph = GraphBuilder().build([(1, 2, 1.0), (2, 1, 3.0)], seed_id=1)
    graph.out_edges(1)  # ((2, 1.0),)
    ```
"""

from .builder import (
    DEFAULT_SINK_ID,
    GraphBuilder,
    PropagationGraph,
    VertexState,
    build_graph,
)

__all__ = [
    "DEFAULT_SINK_ID",
    "GraphBuilder",
    "PropagationGraph",
    "VertexState",
    "build_graph",
]
