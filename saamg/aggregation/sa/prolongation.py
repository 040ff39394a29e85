"""Prolongation construction and Galerkin coarsening for the SA hierarchy.

This module provides:
  - the tentative prolongator T and coarse near-null-space vector,
  - Jacobi smoothing of T into the prolongator P,
  - restriction R = P^H and the Galerkin coarse operator R (A P).

Given aggregates and the level's near-null-space vector B, the tentative
prolongator interpolates B exactly: T @ B_coarse == B. Smoothing damps the
high-energy components of T:

    P = (I - omega / rho * D^-1 A) T
"""

from __future__ import annotations

import numpy as np

from scipy.sparse import csr_array

from pyamg.aggregation.tentative import fit_candidates

from .aggregation import aggop_from_aggregates
from .eigs import dinv_a
from .types import IndexArray, SparseLike


def build_tentative_prolongator(
    aggregates: IndexArray, B: np.ndarray, n_aggs: int | None = None
) -> tuple[SparseLike, np.ndarray]:
    """Build the tentative prolongator T and the coarse near-null-space vector.

    Parameters
    ----------
    aggregates
        Aggregate id of each fine vertex (full cover).
    B
        Fine near-null-space vector, shape (n_fine,).
    n_aggs
        Number of aggregates; inferred from `aggregates` when omitted.

    Returns
    -------
    T, B_coarse
        T is CSR with shape (n_fine, n_aggs) and orthonormal columns;
        B_coarse has shape (n_aggs,) and satisfies T @ B_coarse == B.
    """
    AggOp = aggop_from_aggregates(aggregates, n_aggs)
    B = np.asarray(B, dtype=float).reshape(-1, 1)
    T, B_coarse = fit_candidates(AggOp, B)
    T = csr_array(T.tocsr())
    T.eliminate_zeros()
    T.sort_indices()
    return T, np.ravel(B_coarse)


def smooth_prolongator(
    A: SparseLike, T: SparseLike, omega: float, rho: float
) -> SparseLike:
    """Smooth T with one damped Jacobi step: P = T - (omega / rho) D^-1 A T.

    Parameters
    ----------
    A
        Setup operator on this level (CSR).
    T
        Tentative prolongator (CSR).
    omega
        Damping numerator (4/3 in the hierarchy builder).
    rho
        Spectral radius estimate of D^-1 A.

    Returns
    -------
    P
        Smoothed prolongator (CSR, sorted indices).
    """
    D_inv_A = dinv_a(A)
    P = csr_array(T - (omega / rho) * (D_inv_A @ T))
    P.sort_indices()
    return P


def restriction_from_prolongator(P: SparseLike) -> SparseLike:
    """Return R = P^H in CSR form."""
    R = csr_array(P.T.conjugate().tocsr())
    R.sort_indices()
    return R


def galerkin_product(R: SparseLike, A: SparseLike, P: SparseLike) -> SparseLike:
    """Form the coarse operator R (A P), multiplying A P first."""
    AP = A @ P
    RAP = csr_array(R @ AP)
    RAP.sort_indices()
    return RAP
