"""Synthetic repeated-measures data generation"""

from .day_statistics import (
    DayStatistic,
    DayStatisticsTable,
    compute_day_statistics,
)
from .generator import (
    REACTION_TIME_FLOOR,
    SIMULATED_COLUMNS,
    ParticipantTrial,
    RepeatedMeasuresGenerator,
    SimulatedDataset,
    lognormal_parameters,
    make_rng,
    simulate_experiment,
    simulate_measurement,
    simulate_participant,
)

__all__ = [
    'DayStatistic',
    'DayStatisticsTable',
    'compute_day_statistics',
    'REACTION_TIME_FLOOR',
    'SIMULATED_COLUMNS',
    'ParticipantTrial',
    'RepeatedMeasuresGenerator',
    'SimulatedDataset',
    'lognormal_parameters',
    'make_rng',
    'simulate_experiment',
    'simulate_measurement',
    'simulate_participant',
]
