"""
Per-Day Reaction Time Statistics

Summarises a reference dataset into one (mean, standard deviation) pair per
day. These statistics parameterise the log-normal draws made by the
repeated-measures generator.

"""

import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Tuple, Union

import numpy as np
import pandas as pd

from ..exceptions import DayLookupError, ParameterError
from ..reference import reference_rows


@dataclass(frozen=True)
class DayStatistic:
    """
    Sample mean and standard deviation of reaction time on one day.

    Parameters
    ----------
    day : int
        Day index (>= 0)
    mean : float
        Sample mean reaction time (must be > 0)
    stdev : float
        Sample standard deviation (must be >= 0; zero gives a point mass)

    Raises
    ------
    ParameterError
        If any field would make the log-normal transform undefined
    """

    day: int
    mean: float
    stdev: float

    def __post_init__(self):
        if isinstance(self.day, bool) or not isinstance(self.day, (int, np.integer)):
            raise ParameterError(f"day must be an integer. Got: {self.day!r}")
        if self.day < 0:
            raise ParameterError(f"day must be >= 0. Got: {self.day}")
        if not math.isfinite(self.mean) or self.mean <= 0:
            raise ParameterError(
                f"mean for day {self.day} must be finite and positive. "
                f"Got: {self.mean}"
            )
        if not math.isfinite(self.stdev) or self.stdev < 0:
            raise ParameterError(
                f"stdev for day {self.day} must be finite and non-negative. "
                f"Got: {self.stdev}"
            )

        # Normalise numpy scalars so records compare and serialise cleanly
        object.__setattr__(self, 'day', int(self.day))
        object.__setattr__(self, 'mean', float(self.mean))
        object.__setattr__(self, 'stdev', float(self.stdev))


def compute_day_statistics(
    reference_rows: Iterable[Tuple[int, float]]
) -> List[DayStatistic]:
    """
    Compute the sample mean and standard deviation of reaction time per day.

    Parameters
    ----------
    reference_rows : iterable of (day, reaction_time)
        Reference observations, in any order

    Returns
    -------
    day_stats : List[DayStatistic]
        One entry per distinct day, sorted by day ascending. Standard
        deviations use the n-1 denominator.

    Raises
    ------
    ParameterError
        If no rows are given, a day is not a whole number or a day has
        fewer than 2 observations
    """
    rows = pd.DataFrame(list(reference_rows), columns=['day', 'reaction_time'])
    if rows.empty:
        raise ParameterError("Cannot compute day statistics from no observations")

    grouped = rows.groupby('day', sort=True)['reaction_time'].agg(
        ['mean', 'std', 'count']
    )

    fractional = [day for day in grouped.index if not float(day).is_integer()]
    if fractional:
        raise ParameterError(f"Days must be whole numbers. Got: {fractional}")

    sparse = grouped[grouped['count'] < 2]
    if len(sparse) > 0:
        raise ParameterError(
            f"Standard deviation undefined for days with fewer than 2 "
            f"observations: {list(sparse.index)}"
        )

    return [
        DayStatistic(day=int(day), mean=row['mean'], stdev=row['std'])
        for day, row in grouped.iterrows()
    ]


class DayStatisticsTable(Mapping):
    """
    Read-only mapping from day to DayStatistic.

    Iterates in ascending day order. Looking up a day that isn't in the
    table raises DayLookupError (a KeyError, so ``in`` and ``get`` behave
    like they do for a dict).

    Parameters
    ----------
    day_stats : iterable of DayStatistic
        Statistics with distinct days

    Examples
    --------
    >>> table = DayStatisticsTable.from_reference_data(reference)
    >>> table[0].mean
    256.65...
    >>> table.days
    [0, 1, 2, 3, 4, 5, 6, 7, 8, 9]
    """

    def __init__(self, day_stats: Iterable[DayStatistic]):
        entries = {}
        for stat in day_stats:
            if not isinstance(stat, DayStatistic):
                raise TypeError(
                    f"Expected DayStatistic entries. Got: {type(stat).__name__}"
                )
            if stat.day in entries:
                raise ParameterError(f"Duplicate statistic for day {stat.day}")
            entries[stat.day] = stat

        if not entries:
            raise ParameterError("Day statistics table cannot be empty")

        self._entries = dict(sorted(entries.items()))

    @classmethod
    def from_rows(
        cls,
        observations: Iterable[Tuple[int, float]]
    ) -> "DayStatisticsTable":
        """Build a table from (day, reaction_time) observations."""
        return cls(compute_day_statistics(observations))

    @classmethod
    def from_reference_data(
        cls,
        reference: pd.DataFrame,
        day_col: str = 'Days',
        value_col: str = 'Reaction'
    ) -> "DayStatisticsTable":
        """Build a table from a reference DataFrame."""
        return cls.from_rows(reference_rows(reference, day_col, value_col))

    def __getitem__(self, day: int) -> DayStatistic:
        try:
            return self._entries[day]
        except (KeyError, TypeError):
            raise DayLookupError(day, self._entries.keys()) from None

    def __iter__(self) -> Iterator[int]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"DayStatisticsTable(days={self.days})"

    @property
    def days(self) -> List[int]:
        """Days covered by the table, ascending."""
        return list(self._entries)

    def to_frame(self) -> pd.DataFrame:
        """Return the table as a DataFrame with columns day, mean, stdev."""
        return pd.DataFrame(
            [(s.day, s.mean, s.stdev) for s in self._entries.values()],
            columns=['day', 'mean', 'stdev']
        )


DayStatisticsLike = Union[DayStatisticsTable, Mapping, Iterable[DayStatistic]]


def as_day_statistics_table(day_stats: DayStatisticsLike) -> DayStatisticsTable:
    """
    Coerce a table, a day -> DayStatistic mapping or a sequence of
    DayStatistic into a DayStatisticsTable.
    """
    if isinstance(day_stats, DayStatisticsTable):
        return day_stats
    if isinstance(day_stats, Mapping):
        return DayStatisticsTable(day_stats.values())
    return DayStatisticsTable(day_stats)
