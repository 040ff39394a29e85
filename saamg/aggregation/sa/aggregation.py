"""Strength-of-connection and aggregation utilities for the SA hierarchy.

This module produces, for the operator A_ of the current level,
    aggregates : int32 array of length n_fine
assigning every fine vertex to exactly one aggregate (a connected cluster that
becomes one coarse degree of freedom).

Main responsibilities
---------------------
1) Strength-of-connection:
   Builds a sparsity-reduced matrix C from A_ with
   `pyamg.strength.symmetric_strength_of_connection`.

2) Aggregation:
   Builds the aggregation operator AggOp from C with
   `pyamg.aggregation.aggregate.standard_aggregation`.

3) Cleanup of unaggregated nodes:
   Standard aggregation leaves isolated vertices (rows of AggOp with no
   nonzeros). Those are assigned to neighboring aggregates via a voting step
   on an adjacency matrix, and singleton aggregates are created for any that
   remain, so the result is a full cover.

4) Conversion between the aggregate-id array and the AggOp matrix form used
   by `pyamg.aggregation.tentative.fit_candidates`.
"""

from __future__ import annotations

import numpy as np

from scipy.sparse import csr_array, coo_array, hstack, issparse

from pyamg.strength import symmetric_strength_of_connection
from pyamg.aggregation.aggregate import standard_aggregation

from .types import IndexArray, SparseLike


def _fill_unaggregated_by_neighbors(
    Adj,
    AggOp,
    *,
    make_singletons: bool = True,
    use_weights: bool = True,
    iterate: bool = False,
):
    """Place every empty row of AggOp into an aggregate.

    Rows of AggOp without a nonzero are vertices that standard aggregation
    skipped (typically isolated or weakly coupled ones). Each such vertex
    takes the aggregate with the largest vote in V = W @ AggOp, where W is
    the off-diagonal part of Adj. Vertices with no aggregated neighbour
    become singleton aggregates appended as new columns.

    Parameters
    ----------
    Adj
        CSR (n_fine x n_fine) neighbour graph; the hierarchy passes the level
        operator A_.
    AggOp
        CSR (n_fine x n_aggs) aggregation operator, at most one nonzero per row.
    make_singletons
        Append singleton aggregates for vertices that received no vote.
    use_weights
        Vote with |Adj| values instead of a unit weight per edge.
    iterate
        Run a second voting round so vertices placed in the first round can
        pull in their own unplaced neighbours.

    Returns
    -------
    AggOp_filled
        Float CSR aggregation operator with exactly one nonzero per row
        (when `make_singletons` is set).
    """
    if (not issparse(Adj)) or getattr(Adj, "format", None) != "csr":
        raise TypeError("Adj must be CSR sparse")

    if (not issparse(AggOp)) or getattr(AggOp, "format", None) != "csr":
        raise TypeError("AggOp must be CSR sparse")

    n_fine, n_aggs = AggOp.shape
    AggOp = csr_array(AggOp, dtype=float)
    AggOp.eliminate_zeros()

    W = csr_array(Adj, dtype=float, copy=True)
    W.setdiag(0)
    W.eliminate_zeros()
    if use_weights:
        W.data = np.abs(W.data)
    else:
        W.data[:] = 1.0

    def _single_pass(A):
        nnz_row = A.indptr[1:] - A.indptr[:-1]
        unassigned = np.flatnonzero(nnz_row == 0)
        if unassigned.size == 0:
            return A, unassigned, np.array([], dtype=np.int32)

        V = csr_array(W @ A)

        new_rows: list[int] = []
        new_cols: list[int] = []
        for i in unassigned:
            s, e = V.indptr[i], V.indptr[i + 1]
            if e <= s:
                continue
            cols_i = V.indices[s:e]
            vals_i = V.data[s:e]
            j = int(cols_i[int(np.argmax(vals_i))])
            new_rows.append(int(i))
            new_cols.append(j)

        if new_rows:
            add = coo_array(
                (np.ones(len(new_rows)), (np.asarray(new_rows), np.asarray(new_cols))),
                shape=A.shape,
            )
            A = csr_array(A + add)

        return A, unassigned, np.asarray(new_rows, dtype=np.int32)

    AggOp, all_unassigned, newly_assigned = _single_pass(AggOp)

    if iterate and all_unassigned.size > newly_assigned.size:
        AggOp, _, _ = _single_pass(AggOp)

    nnz_row = AggOp.indptr[1:] - AggOp.indptr[:-1]
    still_unassigned = np.flatnonzero(nnz_row == 0)

    if make_singletons and still_unassigned.size > 0:
        k = int(still_unassigned.size)

        # Pad AggOp with k empty columns and then add one 1 per remaining row.
        if n_aggs == 0:
            AggOp = csr_array((n_fine, k), dtype=AggOp.dtype)
        else:
            AggOp = csr_array(hstack([AggOp, csr_array((n_fine, k), dtype=AggOp.dtype)], format="csr"))

        new_cols = np.arange(n_aggs, n_aggs + k, dtype=np.int32)
        add = coo_array(
            (np.ones(k, dtype=AggOp.dtype), (still_unassigned.astype(np.int32), new_cols)),
            shape=AggOp.shape,
        )
        AggOp = csr_array(AggOp + add)

    AggOp.eliminate_zeros()
    AggOp.sort_indices()
    return AggOp


def build_strength(A: SparseLike, theta: float):
    """Compute the symmetric strength-of-connection matrix C of A.

    Parameters
    ----------
    A
        Setup operator on this level (CSR).
    theta
        Drop tolerance: a_ij is kept when |a_ij| >= theta * sqrt(|a_ii a_jj|).

    Returns
    -------
    C
        CSR strength matrix with explicit zeros removed.
    """
    C = symmetric_strength_of_connection(A, theta=theta)
    C = C.tocsr()
    C.eliminate_zeros()
    return C


def aggregates_from_aggop(AggOp) -> IndexArray:
    """Return the aggregate id of each row of a full-cover aggregation operator.

    Raises
    ------
    ValueError
        If some row of AggOp is not assigned to exactly one aggregate.
    """
    AggOp = AggOp.tocsr()
    nnz_row = AggOp.indptr[1:] - AggOp.indptr[:-1]
    if np.any(nnz_row != 1):
        bad = int(np.count_nonzero(nnz_row != 1))
        raise ValueError(f"AggOp must assign every row to exactly one aggregate ({bad} rows do not)")
    return np.asarray(AggOp.indices[AggOp.indptr[:-1]], dtype=np.int32)


def aggop_from_aggregates(aggregates: IndexArray, n_aggs: int | None = None):
    """Build the (n_fine x n_aggs) CSR aggregation operator from an id array."""
    aggregates = np.asarray(aggregates, dtype=np.int32)
    n_fine = aggregates.size
    if n_aggs is None:
        n_aggs = int(aggregates.max()) + 1 if n_fine > 0 else 0
    rows = np.arange(n_fine, dtype=np.int32)
    return csr_array(
        (np.ones(n_fine, dtype=float), (rows, aggregates)),
        shape=(n_fine, n_aggs),
    )


def build_aggregates(A: SparseLike, C) -> tuple[IndexArray, int]:
    """Partition the vertices of C into aggregates covering every vertex.

    Parameters
    ----------
    A
        Setup operator on this level. Used as the adjacency graph when placing
        vertices that standard aggregation left unaggregated.
    C
        Strength-of-connection matrix (CSR).

    Returns
    -------
    aggregates, n_aggs
        `aggregates[i]` is the aggregate id of vertex i; `n_aggs` is the
        number of aggregates, including singletons created for isolated vertices.
    """
    AggOp, _ = standard_aggregation(C)
    AggOp = csr_array(AggOp)
    AggOp = _fill_unaggregated_by_neighbors(csr_array(A), AggOp, make_singletons=True)
    # relabel so that aggregate ids are contiguous (no empty columns)
    ids, aggregates = np.unique(aggregates_from_aggop(AggOp), return_inverse=True)
    return aggregates.astype(np.int32), int(ids.size)
