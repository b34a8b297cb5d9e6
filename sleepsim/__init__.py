"""
SleepSim: Simulated Repeated Measures and Hierarchical Linear Models

Simulate reaction times for participants under sleep deprivation from the
per-day statistics of a reference study, then compare complete pooling, no
pooling, mixed-effects and hierarchical Bayesian fits of the same data.
"""

from .version import __version__, __author__, __description__
from .exceptions import DayLookupError, ParameterError, SimulationError
from .reference import load_reference_data
from .simulation import (
    DayStatistic,
    DayStatisticsTable,
    RepeatedMeasuresGenerator,
    compute_day_statistics,
    make_rng,
    simulate_experiment,
    simulate_measurement,
    simulate_participant,
)
from .analysis import SleepStudyAnalysis

__all__ = [
    'SleepStudyAnalysis',
    'RepeatedMeasuresGenerator',
    'DayStatistic',
    'DayStatisticsTable',
    'compute_day_statistics',
    'make_rng',
    'simulate_experiment',
    'simulate_measurement',
    'simulate_participant',
    'load_reference_data',
    'SimulationError',
    'DayLookupError',
    'ParameterError',
    '__version__',
    '__author__',
    '__description__',
]
