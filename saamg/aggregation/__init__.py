"""Smoothed aggregation AMG."""
from . import smoothed_aggregation
from .smoothed_aggregation import SmoothedAggregationSolver, smoothed_aggregation_solver
from .sa.monitor import DefaultMonitor, VerboseMonitor
from .sa.types import SAConfig

__all__ = [
    'smoothed_aggregation',
    'SmoothedAggregationSolver',
    'smoothed_aggregation_solver',
    'DefaultMonitor',
    'VerboseMonitor',
    'SAConfig',
]
