"""Shared fixtures for the SleepSim test suite."""

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from sleepsim.simulation import DayStatistic, DayStatisticsTable


def make_sleepstudy_like(n_subjects=18, n_days=10, seed=0):
    """Reference data shaped like lme4::sleepstudy (Subject, Days, Reaction)."""
    rng = np.random.default_rng(seed)
    rows = []
    for subject in range(308, 308 + n_subjects):
        intercept = rng.normal(250, 25)
        slope = rng.normal(10, 6)
        for day in range(n_days):
            rows.append({
                'Subject': subject,
                'Days': day,
                'Reaction': intercept + slope * day + rng.normal(0, 25),
            })
    return pd.DataFrame(rows)


def make_linear_panel(n_participants=8, days=range(10), noise=5.0, seed=1):
    """Repeated-measures data with known random intercepts and slopes."""
    rng = np.random.default_rng(seed)
    rows = []
    for participant_id in range(1, n_participants + 1):
        intercept = rng.normal(250, 20)
        slope = rng.normal(10, 3)
        for day in days:
            rows.append({
                'id': participant_id,
                'day': day,
                'reaction_time': intercept + slope * day + rng.normal(0, noise),
            })
    return pd.DataFrame(rows)


@pytest.fixture
def reference_data():
    """18 subjects x 10 days of sleepstudy-like reference data."""
    return make_sleepstudy_like()


@pytest.fixture
def simple_table():
    """Three days with realistic reaction-time statistics."""
    return DayStatisticsTable([
        DayStatistic(day=0, mean=250.0, stdev=30.0),
        DayStatistic(day=1, mean=265.0, stdev=35.0),
        DayStatistic(day=2, mean=280.0, stdev=40.0),
    ])


@pytest.fixture
def linear_panel():
    """8 participants x 10 days with true mean slope 10 ms/day."""
    return make_linear_panel()
