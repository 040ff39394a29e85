"""Timing and diagnostic reporting for the SA hierarchy.

This module provides:
  - A small per-level timing collector (`SALevelStats`) that supports labeled
    scoped timers.
  - Helpers to compute min/median/max summaries of per-aggregate quantities.
  - All printing done by the package: per-level setup summaries, the
    hierarchy table, and the residual lines of the verbose monitor.

Typical usage
-------------
Within hierarchy construction, create a `SALevelStats` for the current level:

    stats = SALevelStats(level=ell, n_fine=A.shape[0])
    with stats.timeit("strength"):
        ... compute strength of connection ...
    with stats.timeit("aggregate"):
        ... aggregate ...
    _sa_finalize_level_stats(stats=stats, aggregates=aggregates, rho=rho, n_coarse=nc)
    _sa_print_level_summary(stats, print_info=print_info)

The caller decides which timer keys are used; this module simply stores them.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Sequence
import time

import numpy as np


@dataclass(slots=True)
class SALevelStats:
    """Per-level setup timings and summary statistics.

    Attributes
    ----------
    level
        Multigrid level index (0 = finest).
    n_fine
        Fine dimension on this level.
    n_aggs
        Number of aggregates on this level (filled in finalize).
    n_coarse
        Coarse dimension produced by this level (filled in finalize).
    timings
        Dict mapping timer keys to elapsed seconds.
    extra
        Dict for derived metrics (coarsening ratio, rho, aggregate sizes, etc.).
    """

    level: int
    n_fine: int
    n_aggs: int | None = None
    n_coarse: int | None = None
    timings: dict[str, float] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)

    @contextmanager
    def timeit(self, key: str):
        """Context manager that accumulates elapsed time under `timings[key]`."""
        t0 = time.perf_counter()
        try:
            yield
        finally:
            self.timings[key] = self.timings.get(key, 0.0) + (time.perf_counter() - t0)


def _store_mmx(extra: dict[str, Any], base: str, arr) -> None:
    """Store min/median/max of an array-like into `extra` under `<base>_{min,med,max}`."""
    a = np.asarray(arr, dtype=float)
    if a.size == 0:
        return
    extra[f"{base}_min"] = float(np.min(a))
    extra[f"{base}_med"] = float(np.median(a))
    extra[f"{base}_max"] = float(np.max(a))


def _sa_finalize_level_stats(*, stats: SALevelStats, aggregates, rho: float, n_coarse: int) -> None:
    """Populate derived diagnostics for a completed hierarchy extension.

    Parameters
    ----------
    stats
        The stats object for this level (mutated in-place).
    aggregates
        Aggregate id array produced on this level.
    rho
        Spectral radius estimate of D^-1 A on this level.
    n_coarse
        Dimension of the coarse space produced at this level.
    """
    sizes = np.bincount(np.asarray(aggregates, dtype=np.int64), minlength=n_coarse)
    stats.n_aggs = int(sizes.size)
    stats.n_coarse = int(n_coarse)
    stats.extra["cr"] = float(stats.n_fine / n_coarse) if n_coarse > 0 else float("inf")
    stats.extra["rho"] = float(rho)
    stats.extra["singletons"] = int(np.count_nonzero(sizes == 1))
    _store_mmx(stats.extra, "agg", sizes)


def _fmt(x) -> str:
    """Format a scalar for compact printing."""
    try:
        x = float(x)
    except (TypeError, ValueError):
        return str(x)
    if x != x or abs(x) == float("inf"):
        return str(x)
    ax = abs(x)
    if ax != 0.0 and (ax < 1e-2 or ax >= 1e4):
        return f"{x:.2e}"
    return f"{x:.3g}"


def _mmx(extra: dict[str, Any], base: str) -> str:
    """Return `min/med/max` string for `base` as stored in `extra`."""
    a = extra.get(f"{base}_min")
    b = extra.get(f"{base}_med")
    c = extra.get(f"{base}_max")
    if a is None or b is None or c is None:
        return "n/a"
    return f"{_fmt(a)}/{_fmt(b)}/{_fmt(c)}"


def _fmt_ms(t: float) -> str:
    """Format a duration in seconds as either milliseconds or seconds."""
    return f"{t*1e3:7.1f}ms" if t < 1.0 else f"{t:7.2f}s"


def _sa_print_level_summary(
    stats: SALevelStats,
    *,
    print_info: bool,
    prefix: str = "SA",
    indent: str = "",
) -> None:
    """Print a compact per-level summary of setup diagnostics and timings.

    Parameters
    ----------
    stats
        Per-level stats object that has already been finalized.
    print_info
        If False, does nothing.
    prefix
        Short label prefix printed per level.
    indent
        Optional indentation string (useful if caller nests printing).
    """
    if not print_info:
        return

    n_c = stats.n_coarse if stats.n_coarse is not None else "?"
    cr = _fmt(stats.extra.get("cr", "n/a"))
    print(f"{indent}{prefix:<3}  level={stats.level:<2d}  n={stats.n_fine:<7d} -> {n_c:<7}  cr={cr}")

    print(f"{indent}     aggregates:")
    print(f"{indent}       count : {stats.n_aggs if stats.n_aggs is not None else 'n/a'}")
    print(f"{indent}       size  : {_mmx(stats.extra, 'agg')}")
    print(f"{indent}       single: {stats.extra.get('singletons', 'n/a')}")
    print(f"{indent}     rho(D^-1 A): {_fmt(stats.extra.get('rho', 'n/a'))}")

    order = [
        "strength",
        "aggregate",
        "rho",
        "tentative",
        "smooth_P",
        "coarsen",
        "smoother",
    ]
    total = 0.0
    print(f"{indent}     timing:")
    for k in order:
        if k in stats.timings:
            v = stats.timings[k]
            total += v
            print(f"{indent}       {k:<11} {_fmt_ms(v)}")
    print(f"{indent}       {'total':<11} {_fmt_ms(total)}")


def _sa_print_setup_summary(*, coarse_setup_time: float, n_coarse: int, print_info: bool, indent: str = "") -> None:
    """Print non-level-specific setup timings.

    Parameters
    ----------
    coarse_setup_time
        Wall time spent densifying and factorizing the coarsest operator (seconds).
    n_coarse
        Dimension of the coarsest operator.
    print_info
        If False, does nothing.
    indent
        Optional indentation prefix.
    """
    if not print_info:
        return
    print(f"{indent}SA   coarse_lu  n={n_coarse:<7d} {_fmt_ms(float(coarse_setup_time))}")


def _sa_format_hierarchy(
    *,
    n_rows: Sequence[int],
    n_cols: Sequence[int],
    nnz: Sequence[int],
    operator_complexity: float,
    grid_complexity: float,
) -> str:
    """Return the hierarchy report: level count, complexities and a per-level table."""
    total = sum(nnz)
    lines = [
        f"\tNumber of Levels:\t{len(n_rows)}",
        f"\tOperator Complexity:\t{operator_complexity:.6g}",
        f"\tGrid Complexity:\t{grid_complexity:.6g}",
        "\tlevel\tunknowns\tnonzeros:\t",
    ]
    for index, (cols, entries) in enumerate(zip(n_cols, nnz)):
        percent = entries / total if total else 0.0
        lines.append(f"\t{index}\t{cols}\t\t{entries} \t[{100 * percent:.4g}%]")
    return "\n".join(lines) + "\n"


def _sa_print_hierarchy(report: str) -> None:
    """Write a formatted hierarchy report to stdout."""
    print(report, end="")


def _sa_print_monitor_header(*, tolerance: float, iteration_limit: int) -> None:
    """Print the banner shown by the verbose monitor before the first iteration."""
    print(f"Solver will continue until residual norm {tolerance:.4e} or reaching {iteration_limit} iterations ")
    print("  Iteration Number  | Residual Norm")


def _sa_print_monitor_iteration(*, iteration: int, residual_norm: float) -> None:
    """Print one residual line of the verbose monitor."""
    print(f"{iteration:>20d}  {residual_norm:>14.6e}")


def _sa_print_monitor_result(
    *, converged: bool, iteration: int, residual_norm: float, tolerance: float, iteration_limit: int
) -> None:
    """Print the verbose monitor's final convergence summary."""
    if converged:
        print(f"Successfully converged after {iteration} iterations to tolerance {tolerance:.4e}")
    else:
        print(f"Failed to converge after {iteration} iterations (limit {iteration_limit})")
    print(f"Final residual norm: {residual_norm:.6e}")
