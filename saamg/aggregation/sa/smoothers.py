"""Per-level smoothers for the SA V-cycle.

This module maps smoother names to classes that hold the per-level smoother
state built during setup from `(A, rho)`.

Supported smoothers
-------------------
- "jacobi"                  : weighted Jacobi, omega = (4/3) / rho(D^-1 A)
- "gauss_seidel"            : forward sweep before, backward sweep after
                              coarse-grid correction
- "multicolor_gauss_seidel" : Gauss-Seidel over the color classes of the
                              graph of A (`saamg.graph.vertex_coloring`),
                              relaxed with `gauss_seidel_indexed` in
                              ascending color order before and descending after

Interface
---------
Every smoother exposes
    presmooth(A, b, x)
    postsmooth(A, b, x)
each relaxing `x` in place for one sweep. The relaxation kernels require
`A`, `b` and `x` to share a dtype.
"""

from __future__ import annotations

import numpy as np

from pyamg.relaxation.relaxation import gauss_seidel, gauss_seidel_indexed, jacobi

from saamg.graph import vertex_coloring

from .types import SparseLike


class JacobiSmoother:
    """Weighted Jacobi relaxation damped by the spectral radius of D^-1 A."""

    def __init__(self, A: SparseLike, rho: float, *, omega: float = 4.0 / 3.0, iterations: int = 1):
        self.omega = omega / rho
        self.iterations = iterations

    def presmooth(self, A, b, x):
        jacobi(A, x, b, iterations=self.iterations, omega=self.omega)

    def postsmooth(self, A, b, x):
        jacobi(A, x, b, iterations=self.iterations, omega=self.omega)


class GaussSeidelSmoother:
    """Gauss-Seidel relaxation, symmetric over one V-cycle."""

    def __init__(self, A: SparseLike, rho: float, *, iterations: int = 1):
        self.iterations = iterations

    def presmooth(self, A, b, x):
        gauss_seidel(A, x, b, iterations=self.iterations, sweep="forward")

    def postsmooth(self, A, b, x):
        gauss_seidel(A, x, b, iterations=self.iterations, sweep="backward")


class MulticolorGaussSeidelSmoother:
    """Gauss-Seidel relaxation ordered by a vertex coloring of the graph of A.

    Rows are relaxed color class by color class with
    `pyamg.relaxation.relaxation.gauss_seidel_indexed`, ascending colors on
    the forward sweep and descending colors on the backward sweep. Vertices
    of one color are never coupled in A, so the order within a class does not
    change the result.
    """

    def __init__(self, A: SparseLike, rho: float, *, iterations: int = 1):
        self.iterations = iterations
        self.num_colors, self.colors = vertex_coloring(A.tocsr())
        self.order = np.argsort(self.colors, kind="stable").astype(np.intc)

    def _check(self, A):
        if A.shape[0] != self.colors.size:
            raise ValueError("operator does not match the smoother setup")

    def presmooth(self, A, b, x):
        self._check(A)
        gauss_seidel_indexed(A, x, b, self.order, iterations=self.iterations, sweep="forward")

    def postsmooth(self, A, b, x):
        self._check(A)
        gauss_seidel_indexed(A, x, b, self.order, iterations=self.iterations, sweep="backward")


_SMOOTHERS = {
    "jacobi": JacobiSmoother,
    "gauss_seidel": GaussSeidelSmoother,
    "multicolor_gauss_seidel": MulticolorGaussSeidelSmoother,
}


def make_smoother(name: str, A: SparseLike, rho: float):
    """Return the smoother state for one level.

    Parameters
    ----------
    name
        One of {"jacobi", "gauss_seidel", "multicolor_gauss_seidel"}.
    A
        Setup operator on this level.
    rho
        Spectral radius estimate of D^-1 A on this level.

    Raises
    ------
    ValueError
        If an unsupported smoother name is provided.
    """
    try:
        cls = _SMOOTHERS[name]
    except KeyError:
        raise ValueError(f"Invalid smoother type: {name!r}") from None
    return cls(A, rho)
