"""Direct solver for the coarsest level of the SA hierarchy.

The coarsest operator is small (at most `max_coarse` rows), so it is
densified once during setup and LU-factorized with `scipy.linalg.lu_factor`.
Every coarse solve runs on plain contiguous numpy buffers: `to_host` is the
single conversion point between the arrays handed down by the V-cycle and the
dense solver.
"""

from __future__ import annotations

import numpy as np
from scipy.linalg import lu_factor, lu_solve

from .types import SparseLike


def to_host(v) -> np.ndarray:
    """Return a contiguous numpy copy of a vector-like."""
    get = getattr(v, "get", None)
    if callable(get) and not isinstance(v, np.ndarray):
        v = get()
    return np.array(v, copy=True, order="C")


class DenseLUSolver:
    """Dense LU factorization of the coarsest-level operator.

    Parameters
    ----------
    A
        Square sparse or dense matrix. Sparse input is densified.

    Notes
    -----
    Factorization errors (non-finite entries) propagate from SciPy; an exactly
    singular matrix produces a `LinAlgWarning` from `lu_factor`.
    """

    def __init__(self, A: SparseLike | np.ndarray):
        dense = A.toarray() if hasattr(A, "toarray") else np.asarray(A)
        if dense.ndim != 2 or dense.shape[0] != dense.shape[1]:
            raise ValueError("expected square matrix")
        self.shape = dense.shape
        self.lu, self.piv = lu_factor(dense)

    def __call__(self, b) -> np.ndarray:
        """Return the solution x of A x = b."""
        return lu_solve((self.lu, self.piv), to_host(b))
