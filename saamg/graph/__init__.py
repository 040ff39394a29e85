"""Graph algorithms on sparse matrices."""

from .vertex_coloring import breadth_first_search, vertex_coloring

__all__ = [
    'breadth_first_search',
    'vertex_coloring',
]
