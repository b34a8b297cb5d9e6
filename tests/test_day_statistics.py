"""
Unit Tests for Day Statistics
=============================

- DayStatistic validation
- compute_day_statistics grouping and ordering
- DayStatisticsTable lookups
"""

import math

import numpy as np
import pytest

from sleepsim.exceptions import DayLookupError, ParameterError, SimulationError
from sleepsim.simulation import (
    DayStatistic,
    DayStatisticsTable,
    compute_day_statistics,
)
from sleepsim.simulation.day_statistics import as_day_statistics_table


# ============================================================================
# Test 1: DayStatistic
# ============================================================================

def test_day_statistic_stores_values():
    stat = DayStatistic(day=3, mean=280.5, stdev=41.2)

    assert stat.day == 3
    assert stat.mean == 280.5
    assert stat.stdev == 41.2


def test_day_statistic_is_immutable():
    stat = DayStatistic(day=0, mean=250.0, stdev=30.0)

    with pytest.raises(AttributeError):
        stat.mean = 300.0


def test_day_statistic_normalises_numpy_scalars():
    stat = DayStatistic(day=np.int64(2), mean=np.float32(250.0), stdev=np.float64(3.0))

    assert type(stat.day) is int
    assert type(stat.mean) is float
    assert type(stat.stdev) is float


def test_day_statistic_allows_zero_stdev():
    stat = DayStatistic(day=0, mean=250.0, stdev=0.0)
    assert stat.stdev == 0.0


@pytest.mark.parametrize("kwargs", [
    {'day': -1, 'mean': 250.0, 'stdev': 30.0},
    {'day': 1.5, 'mean': 250.0, 'stdev': 30.0},
    {'day': True, 'mean': 250.0, 'stdev': 30.0},
    {'day': 0, 'mean': 0.0, 'stdev': 30.0},
    {'day': 0, 'mean': -10.0, 'stdev': 30.0},
    {'day': 0, 'mean': float('nan'), 'stdev': 30.0},
    {'day': 0, 'mean': 250.0, 'stdev': -1.0},
    {'day': 0, 'mean': 250.0, 'stdev': float('inf')},
])
def test_day_statistic_rejects_invalid_values(kwargs):
    with pytest.raises(ParameterError):
        DayStatistic(**kwargs)


def test_parameter_error_is_value_error():
    with pytest.raises(ValueError):
        DayStatistic(day=0, mean=-1.0, stdev=1.0)


# ============================================================================
# Test 2: compute_day_statistics
# ============================================================================

def test_compute_day_statistics_mean_and_sample_stdev():
    rows = [(0, 200.0), (0, 300.0), (1, 250.0), (1, 260.0), (1, 270.0)]

    stats = compute_day_statistics(rows)

    assert [s.day for s in stats] == [0, 1]
    assert stats[0].mean == pytest.approx(250.0)
    assert stats[0].stdev == pytest.approx(math.sqrt(5000.0))  # n-1 denominator
    assert stats[1].mean == pytest.approx(260.0)
    assert stats[1].stdev == pytest.approx(10.0)


def test_compute_day_statistics_sorted_by_day():
    rows = [(5, 300.0), (5, 310.0), (0, 250.0), (0, 240.0), (2, 270.0), (2, 275.0)]

    stats = compute_day_statistics(rows)

    assert [s.day for s in stats] == [0, 2, 5]


def test_compute_day_statistics_order_invariant(reference_data):
    rows = list(zip(reference_data['Days'], reference_data['Reaction']))
    rng = np.random.default_rng(123)
    shuffled = [rows[i] for i in rng.permutation(len(rows))]

    original = compute_day_statistics(rows)
    permuted = compute_day_statistics(shuffled)

    assert [s.day for s in original] == [s.day for s in permuted]
    for a, b in zip(original, permuted):
        assert a.mean == pytest.approx(b.mean, rel=1e-9)
        assert a.stdev == pytest.approx(b.stdev, rel=1e-9)


def test_compute_day_statistics_single_observation_fails():
    rows = [(0, 250.0), (0, 260.0), (1, 270.0)]

    with pytest.raises(ParameterError, match="fewer than 2"):
        compute_day_statistics(rows)


def test_compute_day_statistics_empty_fails():
    with pytest.raises(ParameterError):
        compute_day_statistics([])


# ============================================================================
# Test 3: DayStatisticsTable
# ============================================================================

def test_table_lookup(simple_table):
    assert simple_table[1].mean == 265.0
    assert simple_table.days == [0, 1, 2]
    assert len(simple_table) == 3
    assert list(simple_table) == [0, 1, 2]


def test_table_missing_day_raises_lookup_error(simple_table):
    with pytest.raises(DayLookupError) as excinfo:
        simple_table[7]

    assert isinstance(excinfo.value, LookupError)
    assert isinstance(excinfo.value, SimulationError)
    assert excinfo.value.day == 7
    assert "Day 7 not found" in str(excinfo.value)


def test_table_membership_and_get(simple_table):
    assert 0 in simple_table
    assert 9 not in simple_table
    assert simple_table.get(9) is None


def test_table_sorts_days():
    table = DayStatisticsTable([
        DayStatistic(day=2, mean=280.0, stdev=1.0),
        DayStatistic(day=0, mean=250.0, stdev=1.0),
    ])
    assert table.days == [0, 2]


def test_table_rejects_duplicate_days():
    with pytest.raises(ParameterError, match="Duplicate"):
        DayStatisticsTable([
            DayStatistic(day=0, mean=250.0, stdev=1.0),
            DayStatistic(day=0, mean=260.0, stdev=1.0),
        ])


def test_table_rejects_empty_and_wrong_types():
    with pytest.raises(ParameterError):
        DayStatisticsTable([])

    with pytest.raises(TypeError):
        DayStatisticsTable([(0, 250.0, 30.0)])


def test_table_from_reference_data(reference_data):
    table = DayStatisticsTable.from_reference_data(reference_data)

    assert table.days == list(range(10))
    day0 = reference_data.loc[reference_data['Days'] == 0, 'Reaction']
    assert table[0].mean == pytest.approx(day0.mean())
    assert table[0].stdev == pytest.approx(day0.std(ddof=1))


def test_table_to_frame(simple_table):
    frame = simple_table.to_frame()

    assert list(frame.columns) == ['day', 'mean', 'stdev']
    assert frame['day'].tolist() == [0, 1, 2]
    assert frame['mean'].tolist() == [250.0, 265.0, 280.0]


def test_as_table_accepts_sequences_and_mappings(simple_table):
    stats = list(simple_table.values())

    assert as_day_statistics_table(simple_table) is simple_table
    assert as_day_statistics_table(stats).days == [0, 1, 2]
    assert as_day_statistics_table({s.day: s for s in stats}).days == [0, 1, 2]


def test_compute_day_statistics_rejects_fractional_days():
    with pytest.raises(ParameterError, match="whole numbers"):
        compute_day_statistics([(1.5, 250.0), (1.5, 260.0)])


def test_compute_day_statistics_accepts_whole_float_days():
    stats = compute_day_statistics([(1.0, 250.0), (1.0, 260.0)])

    assert stats[0].day == 1
    assert type(stats[0].day) is int


def test_table_from_reference_data_rejects_fractional_days(reference_data):
    shifted = reference_data.copy()
    shifted['Days'] = shifted['Days'] + 0.5

    with pytest.raises(ParameterError, match="whole numbers"):
        DayStatisticsTable.from_reference_data(shifted)


def test_table_from_reference_data_custom_columns(reference_data):
    renamed = reference_data.rename(columns={'Days': 'day', 'Reaction': 'rt'})

    table = DayStatisticsTable.from_reference_data(renamed, day_col='day', value_col='rt')

    assert table == DayStatisticsTable.from_reference_data(reference_data)
