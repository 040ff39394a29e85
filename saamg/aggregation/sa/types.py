"""Typed configuration and per-level containers used throughout the SA hierarchy.

Containers
----------
SAConfig
    Frozen configuration shared by every call to `extend_hierarchy`:
      - theta           : strength-of-connection drop tolerance
      - max_coarse      : coarsening stops once a level has at most this many rows
      - max_levels      : hard cap on the number of levels
      - rho_iterations  : Ritz iterations used to estimate rho(D^-1 A)
      - prolongation_omega : damping numerator for prolongation smoothing
      - smoother        : per-level smoother name (see `sa.smoothers`)
      - solve_format    : sparse format of the solve-time operator `Level.A`
      - print_info      : print per-level setup summaries

Level
    One entry of the multigrid hierarchy. Setup writes `A_`, `B`, `P`, `R`,
    `aggregates`, `smoother`, `rho`; the solve phase only touches the work
    vectors `residual`, `x` and `b`.

Invariants
----------
- `aggregates` is an int32 array with one non-negative id per row of `A_`.
- `R` is the CSR transpose of `P`; `P.shape == (A_.shape[0], n_coarse)`.
- `B.shape == (A_.shape[0],)`.
- Work vectors are owned by their level and never shared with another level.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol

import numpy as np
from numpy.typing import NDArray

from scipy.sparse import sparray, spmatrix

SparseLike = spmatrix | sparray
IndexArray = NDArray[np.int32]

SMOOTHER_NAMES = ("jacobi", "gauss_seidel", "multicolor_gauss_seidel")
SOLVE_FORMATS = ("csr", "bsr")


@dataclass(slots=True, frozen=True)
class SAConfig:
    """Configuration parameters for building a smoothed aggregation hierarchy.

    Attributes
    ----------
    theta : float
        Drop tolerance passed to symmetric strength of connection.
    max_coarse : int
        Levels with more rows than this are coarsened further.
    max_levels : int
        Maximum number of levels in the hierarchy.
    rho_iterations : int
        Number of Ritz iterations used to estimate the spectral radius of D^-1 A.
    prolongation_omega : float
        Damping numerator; the prolongator is smoothed with omega / rho.
    smoother : str
        One of `SMOOTHER_NAMES`.
    solve_format : str
        Sparse format used for the operator applied during the solve phase.
    print_info : bool
        Whether to print per-level diagnostics via `sa.stats`.
    """

    theta: float = 0.0
    max_coarse: int = 100
    max_levels: int = 20
    rho_iterations: int = 8
    prolongation_omega: float = 4.0 / 3.0
    smoother: str = "jacobi"
    solve_format: str = "csr"
    print_info: bool = False

    def __post_init__(self) -> None:
        if self.theta < 0:
            raise ValueError(f"theta must be non-negative, got {self.theta!r}")
        if self.max_coarse < 1:
            raise ValueError(f"max_coarse must be at least 1, got {self.max_coarse!r}")
        if self.max_levels < 1:
            raise ValueError(f"max_levels must be at least 1, got {self.max_levels!r}")
        if self.rho_iterations < 1:
            raise ValueError(f"rho_iterations must be at least 1, got {self.rho_iterations!r}")
        if self.smoother not in SMOOTHER_NAMES:
            raise ValueError(f"Invalid smoother type: {self.smoother!r}")
        if self.solve_format not in SOLVE_FORMATS:
            raise ValueError(f"Invalid solve format: {self.solve_format!r}")


@dataclass(slots=True)
class Level:
    """One level of the smoothed aggregation hierarchy.

    Attributes
    ----------
    A_
        Setup-time operator (CSR). Owned by the level.
    B
        Near-null-space vector for `A_`.
    A
        Solve-time operator, materialized from `A_` once setup is complete.
    P, R
        Prolongation from the next coarser level and its transpose.
    aggregates
        Aggregate id of each row of `A_`.
    smoother
        Object exposing `presmooth(A, b, x)` and `postsmooth(A, b, x)`.
    rho
        Spectral radius estimate of D^-1 A_ used to build `P` and `smoother`.
    residual, x, b
        Work vectors reused across cycles.
    stats
        Setup timings and diagnostics (`sa.stats.SALevelStats`).
    """

    A_: SparseLike
    B: np.ndarray
    A: Optional[SparseLike] = None
    P: Optional[SparseLike] = None
    R: Optional[SparseLike] = None
    aggregates: Optional[IndexArray] = None
    smoother: Any = None
    rho: Optional[float] = None
    residual: Optional[np.ndarray] = None
    x: Optional[np.ndarray] = None
    b: Optional[np.ndarray] = None
    stats: Any = None


class Smoother(Protocol):
    """Structural type of a per-level smoother."""

    def presmooth(self, A: SparseLike, b: np.ndarray, x: np.ndarray) -> None:
        ...

    def postsmooth(self, A: SparseLike, b: np.ndarray, x: np.ndarray) -> None:
        ...
