"""Smoothed aggregation (SA) hierarchy internals.

This package contains the modular building blocks for the smoothed
aggregation solver (`saamg.aggregation.smoothed_aggregation`).

Modules
-------
types
    Hierarchy configuration (`SAConfig`) and the per-level container (`Level`).
aggregation
    Strength-of-connection and aggregate-id construction.
eigs
    Spectral radius estimation of D^-1 A.
prolongation
    Tentative prolongator, prolongation smoothing and Galerkin coarsening.
smoothers
    Per-level smoother classes and the name-to-class factory.
coarse
    Dense LU solve of the coarsest level.
monitor
    Convergence monitors for the outer iteration.
hierarchy
    Solve-operator materialization and one-level hierarchy extension.
stats
    Per-level timing and diagnostic reporting.
"""

from __future__ import annotations

from . import aggregation, coarse, eigs, hierarchy, monitor, prolongation, smoothers, stats, types

__all__ = [
    "aggregation",
    "coarse",
    "eigs",
    "hierarchy",
    "monitor",
    "prolongation",
    "smoothers",
    "stats",
    "types",
]
