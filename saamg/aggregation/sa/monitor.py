"""Convergence monitors driving the outer SA iteration.

A monitor is constructed from the right-hand side b and decides when the
stationary iteration in `SmoothedAggregationSolver.solve` stops:

    while not monitor.finished(r):
        ...one V-cycle update...
        monitor.advance()

The stopping test is

    ||r||_2 <= absolute_tolerance + relative_tolerance * ||b||_2

or `iteration_count >= iteration_limit`, whichever comes first.
"""

from __future__ import annotations

import numpy as np

from .stats import (
    _sa_print_monitor_header,
    _sa_print_monitor_iteration,
    _sa_print_monitor_result,
)


class DefaultMonitor:
    """Residual-norm monitor with relative and absolute tolerances.

    Parameters
    ----------
    b
        Right-hand side of the system being solved.
    relative_tolerance
        Stop once ||r|| <= relative_tolerance * ||b|| (plus the absolute part).
    iteration_limit
        Stop after this many calls to `advance`.
    absolute_tolerance
        Added to the relative tolerance.

    Attributes
    ----------
    iteration_count
        Number of completed iterations.
    residual_norm
        Norm of the residual last passed to `finished`.
    residuals
        History of every residual norm passed to `finished`.
    """

    def __init__(self, b, relative_tolerance=1e-5, iteration_limit=500, absolute_tolerance=0.0):
        if relative_tolerance < 0 or absolute_tolerance < 0:
            raise ValueError("tolerances must be non-negative")
        if iteration_limit < 0:
            raise ValueError("iteration_limit must be non-negative")
        self.b_norm = float(np.linalg.norm(np.ravel(b)))
        self.relative_tolerance = relative_tolerance
        self.absolute_tolerance = absolute_tolerance
        self.iteration_limit = int(iteration_limit)
        self.iteration_count = 0
        self.residual_norm = float("inf")
        self.residuals: list[float] = []

    @property
    def tolerance(self) -> float:
        return self.absolute_tolerance + self.relative_tolerance * self.b_norm

    def converged(self) -> bool:
        return self.residual_norm <= self.tolerance

    def finished(self, r) -> bool:
        """Record the norm of residual r and report whether iteration should stop."""
        self.residual_norm = float(np.linalg.norm(np.ravel(r)))
        self.residuals.append(self.residual_norm)
        return self.converged() or self.iteration_count >= self.iteration_limit

    def advance(self) -> None:
        self.iteration_count += 1

    def relative_residual(self) -> float:
        if self.b_norm == 0.0:
            return self.residual_norm
        return self.residual_norm / self.b_norm


class VerboseMonitor(DefaultMonitor):
    """`DefaultMonitor` that prints every residual norm and a final summary."""

    def __init__(self, b, relative_tolerance=1e-5, iteration_limit=500, absolute_tolerance=0.0):
        super().__init__(b, relative_tolerance, iteration_limit, absolute_tolerance)
        _sa_print_monitor_header(tolerance=self.tolerance, iteration_limit=self.iteration_limit)

    def finished(self, r) -> bool:
        done = super().finished(r)
        _sa_print_monitor_iteration(iteration=self.iteration_count, residual_norm=self.residual_norm)
        if done:
            _sa_print_monitor_result(
                converged=self.converged(),
                iteration=self.iteration_count,
                residual_norm=self.residual_norm,
                tolerance=self.tolerance,
                iteration_limit=self.iteration_limit,
            )
        return done
