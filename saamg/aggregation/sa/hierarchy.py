"""Hierarchy extension utilities for the SA solver.

This module provides:
  - materialization of the solve-time operator from the setup operator,
  - appending the next multigrid level,
  - the orchestration routine that builds one additional level.

The public entrypoint used by `smoothed_aggregation.py` is `sa_extend_hierarchy`.
"""

from __future__ import annotations

import numpy as np

from .aggregation import build_aggregates, build_strength
from .eigs import estimate_rho_dinv_a
from .prolongation import (
    build_tentative_prolongator,
    galerkin_product,
    restriction_from_prolongator,
    smooth_prolongator,
)
from .smoothers import make_smoother
from .stats import SALevelStats, _sa_finalize_level_stats, _sa_print_level_summary
from .types import Level, SAConfig, SparseLike


def setup_level_matrix(src: SparseLike, fmt: str, *, copy: bool = False) -> SparseLike:
    """Return the solve-time operator for a level from its setup operator.

    When `src` is already stored in `fmt`, the same object is handed over
    without copying (unless `copy` is set). Otherwise a converted matrix is
    returned.

    Parameters
    ----------
    src
        Setup-time operator.
    fmt
        Target sparse format name, e.g. "csr" or "bsr".
    copy
        Force an independent copy even when the formats agree.
    """
    if src.format == fmt:
        return src.copy() if copy else src
    if fmt == "bsr":
        # point blocks keep the relaxation kernels pointwise
        return src.tobsr(blocksize=(1, 1), copy=True)
    return src.asformat(fmt, copy=True)


def sa_append_next_level(*, levels: list[Level], A: SparseLike, B: np.ndarray) -> Level:
    """Append a new multigrid level holding the coarse operator and null-space vector.

    Parameters
    ----------
    levels
        List of levels. Mutated by appending one new `Level`.

    A, B
        Coarse-level operator and near-null-space vector.

    Returns
    -------
    next_level
        The newly created and appended `Level`, with `x` and `b` work vectors
        sized to `A`.
    """
    n = A.shape[0]
    nxt = Level(A_=A, B=B)
    nxt.x = np.zeros(n, dtype=A.dtype)
    nxt.b = np.zeros(n, dtype=A.dtype)
    levels.append(nxt)
    return nxt


def sa_extend_hierarchy(*, levels: list[Level], config: SAConfig) -> bool:
    """Extend the multigrid hierarchy by one level.

    Parameters
    ----------
    levels
        List of `Level` objects. The routine reads the current coarsest level
        as `levels[-1]` (requires `A_` and `B`) and appends a new coarse level.

    config
        Hierarchy configuration (`theta`, `rho_iterations`,
        `prolongation_omega`, `smoother`, `print_info`).

    Returns
    -------
    stalled
        True when aggregation cannot reduce the level (every vertex is its own
        aggregate, e.g. a diagonal operator or a strength matrix with every
        off-diagonal dropped). `levels` is left untouched and `levels[-1]`
        becomes the coarsest level.

    Side effects
    ------------
    Unless stalled:
    - Sets `aggregates`, `rho`, `P`, `R`, `smoother`, `residual`, `stats` on
      `levels[-1]`.
    - Appends a new coarse level to `levels` via `sa_append_next_level`.
    """
    level = levels[-1]
    A = level.A_
    n_fine = A.shape[0]

    stats = SALevelStats(level=len(levels) - 1, n_fine=n_fine)

    # ---- strength-of-connection ----
    with stats.timeit("strength"):
        C = build_strength(A, config.theta)

    # ---- aggregation ----
    with stats.timeit("aggregate"):
        aggregates, n_aggs = build_aggregates(A, C)

    if n_aggs >= n_fine:
        return True

    # ---- spectral radius of D^-1 A ----
    with stats.timeit("rho"):
        rho = estimate_rho_dinv_a(A, config.rho_iterations)

    # ---- tentative prolongator + coarse null-space ----
    with stats.timeit("tentative"):
        T, B_coarse = build_tentative_prolongator(aggregates, level.B, n_aggs)

    # ---- smoothed prolongator and restriction ----
    with stats.timeit("smooth_P"):
        P = smooth_prolongator(A, T, config.prolongation_omega, rho)
        R = restriction_from_prolongator(P)

    # ---- Galerkin product ----
    with stats.timeit("coarsen"):
        RAP = galerkin_product(R, A, P)

    with stats.timeit("smoother"):
        level.smoother = make_smoother(config.smoother, A, rho)

    level.aggregates = aggregates
    level.rho = rho
    level.P = P
    level.R = R
    level.residual = np.zeros(n_fine, dtype=A.dtype)

    _sa_finalize_level_stats(stats=stats, aggregates=aggregates, rho=rho, n_coarse=RAP.shape[0])
    level.stats = stats
    _sa_print_level_summary(stats, print_info=config.print_info)

    sa_append_next_level(levels=levels, A=RAP, B=B_coarse)
    return False
