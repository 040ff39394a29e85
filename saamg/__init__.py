"""Smoothed aggregation algebraic multigrid."""
from . import graph, aggregation
from .aggregation import (
    DefaultMonitor,
    SAConfig,
    SmoothedAggregationSolver,
    VerboseMonitor,
    smoothed_aggregation_solver,
)

__version__ = '0.1.0'

__all__ = [
    'aggregation',
    'graph',
    'DefaultMonitor',
    'SAConfig',
    'SmoothedAggregationSolver',
    'VerboseMonitor',
    'smoothed_aggregation_solver',
]
