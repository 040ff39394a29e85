"""Spectral radius estimation for the Jacobi-preconditioned operator D^-1 A.

Overview
--------
Both the prolongation smoother and the Jacobi relaxation are damped with
omega / rho, where rho is the spectral radius of D^-1 A and D = diag(A).
We estimate rho with a short Arnoldi (Ritz value) iteration provided by
`pyamg.util.linalg.approximate_spectral_radius`.

Key conventions
---------------
- Rows with a zero diagonal are left unscaled by D^-1 (`get_diagonal(inv=True)`
  maps 0 to 0), so a structurally singular diagonal does not raise here.
- The Krylov starting vector is drawn from a fixed-seed generator, so two
  hierarchies built from the same matrix are identical.
- The estimate is used as-is: a Ritz value that has not converged within the
  iteration budget still only scales a damping factor.
"""

from __future__ import annotations

import numpy as np

from pyamg.util.linalg import approximate_spectral_radius
from pyamg.util.utils import get_diagonal, scale_rows

from .types import SparseLike

RITZ_SEED = 0


def dinv_a(A: SparseLike):
    """Return D^-1 A as a new CSR matrix, with D the diagonal of A."""
    D_inv = get_diagonal(A, inv=True)
    return scale_rows(A.tocsr(), D_inv, copy=True)


def estimate_rho_dinv_a(A: SparseLike, iterations: int = 8) -> float:
    """Estimate the spectral radius of D^-1 A.

    Parameters
    ----------
    A
        Square operator on this level (CSR).
    iterations
        Number of Arnoldi steps (Ritz iterations). No restarts are performed.

    Returns
    -------
    rho
        Largest Ritz value magnitude of D^-1 A.
    """
    D_inv_A = dinv_a(A)
    n = D_inv_A.shape[0]
    v0 = np.random.default_rng(RITZ_SEED).random((n, 1)).astype(D_inv_A.dtype, copy=False)
    rho = approximate_spectral_radius(
        D_inv_A,
        maxiter=int(iterations),
        restart=0,
        symmetric=False,
        initial_guess=v0,
    )
    return float(rho)
