"""Breadth-first traversal and vertex coloring of graphs stored as CSR matrices.

A graph with n vertices is an n x n sparse matrix G whose off-diagonal
nonzero pattern gives the edges; values and diagonal entries are ignored.
Both routines assume a symmetric pattern (an undirected graph).

breadth_first_search
    Level-synchronous BFS from a source vertex, returning either the level
    set (distance) of every vertex or its immediate ancestor in the BFS tree.

vertex_coloring
    Greedy coloring visiting vertices in breadth-first order. Adjacent
    vertices receive different colors; a bipartite graph, such as a
    structured 2D grid, receives two colors.
"""

from __future__ import annotations

import numpy as np

from scipy.sparse import csr_array, issparse


def _as_graph(G):
    """Return G as a CSR array, checking that it is square."""
    if not issparse(G):
        G = csr_array(G)
    G = csr_array(G)
    if G.shape[0] != G.shape[1]:
        raise ValueError("expected square matrix")
    return G


def _bfs_order(G, src: int, visited: np.ndarray, labels: np.ndarray, mark_predecessors: bool) -> list[np.ndarray]:
    """Traverse the component of `src`, filling `labels`; return the frontiers in order."""
    indptr, indices = G.indptr, G.indices

    visited[src] = True
    labels[src] = src if mark_predecessors else 0
    frontier = np.array([src], dtype=np.int64)
    frontiers = [frontier]
    depth = 0

    while frontier.size:
        depth += 1
        starts = indptr[frontier]
        counts = indptr[frontier + 1] - starts
        if counts.sum() == 0:
            break

        parents = np.repeat(frontier, counts)
        offsets = np.repeat(starts - np.cumsum(counts) + counts, counts) + np.arange(counts.sum())
        nbrs = indices[offsets].astype(np.int64, copy=False)

        fresh = ~visited[nbrs]
        nbrs, parents = nbrs[fresh], parents[fresh]
        # first discovery wins, in frontier order
        nbrs, first = np.unique(nbrs, return_index=True)
        parents = parents[first]

        visited[nbrs] = True
        labels[nbrs] = parents if mark_predecessors else depth
        frontier = nbrs
        if frontier.size:
            frontiers.append(frontier)

    return frontiers


def breadth_first_search(G, src: int, mark_predecessors: bool = False) -> np.ndarray:
    """Breadth-first traversal of a graph starting from a source vertex.

    Parameters
    ----------
    G : sparse matrix
        Symmetric matrix representing the graph.
    src : int
        Source vertex.
    mark_predecessors : bool
        If False, return the level set (distance from `src`) of each vertex.
        If True, return the immediate ancestor of each vertex in the BFS tree;
        `src` is its own ancestor.

    Returns
    -------
    labels : ndarray of int
        Per-vertex labels; vertices not reachable from `src` are -1.

    Examples
    --------
    >>> from pyamg.gallery import poisson
    >>> G = poisson((4, 4), format='csr')
    >>> breadth_first_search(G, 0)[:4]
    array([0, 1, 2, 3])
    """
    G = _as_graph(G)
    n = G.shape[0]
    src = int(src)
    if not 0 <= src < n:
        raise ValueError(f"source vertex {src} out of range for a graph with {n} vertices")

    labels = np.full(n, -1, dtype=np.int64)
    visited = np.zeros(n, dtype=bool)
    _bfs_order(G, src, visited, labels, mark_predecessors)
    return labels


def vertex_coloring(G) -> tuple[int, np.ndarray]:
    """Color the vertices of a graph so that adjacent vertices differ.

    Vertices are visited in breadth-first order, one connected component at
    a time starting from the lowest unvisited vertex, and each receives the
    smallest color not used by an already colored neighbor.

    Parameters
    ----------
    G : sparse matrix
        Symmetric matrix representing the graph. Self-loops are ignored.

    Returns
    -------
    num_colors : int
        Number of distinct colors used.
    colors : ndarray of int32
        Color of each vertex, in ``range(num_colors)``.
    """
    G = _as_graph(G)
    n = G.shape[0]
    indptr, indices = G.indptr, G.indices

    colors = np.full(n, -1, dtype=np.int32)
    visited = np.zeros(n, dtype=bool)
    scratch = np.full(n, -1, dtype=np.int64)

    for root in range(n):
        if visited[root]:
            continue
        for frontier in _bfs_order(G, root, visited, scratch, False):
            for v in frontier:
                nbrs = indices[indptr[v]:indptr[v + 1]]
                taken = colors[nbrs[nbrs != v]]
                taken = np.unique(taken[taken >= 0])
                # smallest color not in `taken`
                gaps = np.flatnonzero(taken != np.arange(taken.size))
                colors[v] = gaps[0] if gaps.size else taken.size

    num_colors = int(colors.max()) + 1 if n else 0
    return num_colors, colors
