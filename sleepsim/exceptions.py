"""
Exceptions raised by the repeated-measures simulation.

Model fitting code follows the usual ``ValueError`` / ``RuntimeError``
conventions; the classes below cover failures inside the generator, where
callers may want to tell a missing day apart from an invalid statistic.
"""


class SimulationError(Exception):
    """Base class for errors raised while generating synthetic data."""


class DayLookupError(SimulationError, KeyError):
    """
    Requested day is absent from the day statistics table.

    Subclasses KeyError (and therefore LookupError) so that mapping
    membership tests on the table keep working.
    """

    def __init__(self, day, available=None):
        self.day = day
        self.available = list(available) if available is not None else None
        message = f"Day {day!r} not found in day statistics table"
        if self.available is not None:
            message += f" (available days: {self.available})"
        self.message = message
        super().__init__(message)

    def __str__(self):
        return self.message


class ParameterError(SimulationError, ValueError):
    """
    A statistic or generation argument cannot produce a valid distribution.

    Raised for non-positive effective means, non-finite parameters,
    invalid DayStatistic values, day groups with fewer than two
    observations and invalid experiment arguments.
    """
