"""
Synthetic Repeated-Measures Generator

This module simulates a sleep-deprivation study: reaction times for a panel
of participants measured once per day. Each measurement is a log-normal
draw whose mean and standard deviation are moment-matched to the reference
statistics of that day, shifted by a linear "effect of day" and widened by
participant-level noise.

All randomness comes from an explicitly passed ``numpy.random.Generator``.
Draws happen in a fixed order (participant draw, then per day: day noise,
then measurement), so a seed fully determines the dataset.

"""

import json
import math
from dataclasses import dataclass, astuple
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from ..exceptions import ParameterError
from ..models.pooling import fit_no_pooling
from ..reference import validate_reference_data
from .day_statistics import (
    DayStatisticsLike,
    DayStatisticsTable,
    as_day_statistics_table,
)

# Reaction times below this are treated as physiologically implausible
REACTION_TIME_FLOOR = 200.0

SIMULATED_COLUMNS = (
    'id',
    'day',
    'reaction_time',
    'day_noise',
    'participant_noise_scale',
)

SeedLike = Union[None, int, np.random.Generator]


def make_rng(seed: SeedLike = None) -> np.random.Generator:
    """Return a Generator for seed, passing existing Generators through."""
    if isinstance(seed, np.random.Generator):
        return seed
    return np.random.default_rng(seed)


@dataclass(frozen=True)
class ParticipantTrial:
    """One simulated measurement of one participant on one day."""

    id: int
    day: int
    reaction_time: float
    day_noise: float
    participant_noise_scale: float


class SimulatedDataset:
    """
    Ordered collection of ParticipantTrial rows.

    Rows are kept participant-major, then in the day order passed to the
    generator. The (id, day) pair is expected to be unique but isn't
    enforced.

    Attributes
    ----------
    trials : List[ParticipantTrial]
        Simulated rows in generation order
    participant_noise_draws : Dict[int, float]
        Per-participant noise draws made by simulate_experiment. Unless
        ``apply_participant_noise`` was requested these are drawn but not
        used to generate reaction times.
    """

    def __init__(
        self,
        trials: Optional[Sequence[ParticipantTrial]] = None,
        participant_noise_draws: Optional[Dict[int, float]] = None
    ):
        self.trials = list(trials) if trials is not None else []
        self.participant_noise_draws = dict(participant_noise_draws or {})

    def __len__(self) -> int:
        return len(self.trials)

    def __iter__(self) -> Iterator[ParticipantTrial]:
        return iter(self.trials)

    def __getitem__(self, index: int) -> ParticipantTrial:
        return self.trials[index]

    def __repr__(self) -> str:
        return (
            f"SimulatedDataset(n_trials={len(self.trials)}, "
            f"n_participants={len(self.participant_ids)})"
        )

    @property
    def participant_ids(self) -> List[int]:
        """Distinct participant ids in order of first appearance."""
        return list(dict.fromkeys(trial.id for trial in self.trials))

    def to_frame(self) -> pd.DataFrame:
        """Return the trials as a DataFrame with SIMULATED_COLUMNS."""
        return pd.DataFrame(
            [astuple(trial) for trial in self.trials],
            columns=list(SIMULATED_COLUMNS)
        )


def lognormal_parameters(mean: float, stdev: float) -> Tuple[float, float]:
    """
    Moment-match a log-normal distribution to a mean and standard deviation.

    Parameters
    ----------
    mean : float
        Desired mean of the log-normal variable (must be > 0)
    stdev : float
        Desired standard deviation of the log-normal variable. Only its
        square enters the formulas, so a negative value acts like its
        magnitude

    Returns
    -------
    location : float
        Mean of the underlying normal, ln(m^2 / sqrt(s^2 + m^2))
    shape : float
        Standard deviation of the underlying normal, sqrt(ln(1 + s^2 / m^2))

    Raises
    ------
    ParameterError
        If mean <= 0 or either value is not finite
    """
    if not math.isfinite(mean) or mean <= 0:
        raise ParameterError(
            f"Log-normal mean must be finite and positive. Got: {mean}"
        )
    if not math.isfinite(stdev):
        raise ParameterError(
            f"Log-normal standard deviation must be finite. Got: {stdev}"
        )

    location = math.log(mean ** 2 / math.sqrt(stdev ** 2 + mean ** 2))
    shape = math.sqrt(math.log(1 + stdev ** 2 / mean ** 2))
    return location, shape


def simulate_measurement(
    day_stats: DayStatisticsLike,
    day: int,
    participant_noise_scale: float,
    location_shift: float,
    rng: np.random.Generator
) -> float:
    """
    Draw one reaction time for a day.

    The day's reference mean is shifted by ``day * location_shift`` and its
    standard deviation widened by ``participant_noise_scale``; the result is
    moment-matched to a log-normal, sampled once and floored at
    REACTION_TIME_FLOOR.

    Parameters
    ----------
    day_stats : DayStatisticsTable, mapping or sequence of DayStatistic
        Reference statistics per day
    day : int
        Day to simulate (must be in day_stats)
    participant_noise_scale : float
        Added to the day's standard deviation; any real number
    location_shift : float
        Per-day decrease of the mean (negative values increase it)
    rng : np.random.Generator
        Random source; exactly one draw is consumed

    Returns
    -------
    reaction_time : float
        Sampled reaction time, >= REACTION_TIME_FLOOR

    Raises
    ------
    DayLookupError
        If day is not in day_stats
    ParameterError
        If the shifted mean is <= 0 or either effective parameter is not
        finite
    """
    stat = as_day_statistics_table(day_stats)[day]

    effective_mean = stat.mean - day * location_shift
    effective_stdev = stat.stdev + participant_noise_scale

    try:
        location, shape = lognormal_parameters(effective_mean, effective_stdev)
    except ParameterError as exc:
        raise ParameterError(
            f"Cannot simulate day {day} with participant_noise_scale="
            f"{participant_noise_scale} and location_shift={location_shift}: "
            f"{exc}"
        ) from exc

    sample = float(rng.lognormal(mean=location, sigma=shape))
    return max(sample, REACTION_TIME_FLOOR)


def simulate_participant(
    days: Sequence[int],
    participant_noise_scale: float,
    participant_id: int,
    location_shift: float,
    day_stats: DayStatisticsLike,
    rng: np.random.Generator
) -> List[ParticipantTrial]:
    """
    Simulate one participant across a sequence of days.

    For each day a ``day_noise`` term ~ N(0, |participant_noise_scale|) is
    drawn and recorded on the trial, followed by the reaction-time draw. The
    day noise does not enter the reaction-time formula; only the fixed
    ``participant_noise_scale`` does.

    Returns
    -------
    trials : List[ParticipantTrial]
        One trial per day, in the order of ``days``
    """
    table = as_day_statistics_table(day_stats)

    trials = []
    for day in days:
        day_noise = float(rng.normal(loc=0.0, scale=abs(participant_noise_scale)))
        reaction_time = simulate_measurement(
            table, day, participant_noise_scale, location_shift, rng
        )
        trials.append(ParticipantTrial(
            id=participant_id,
            day=day,
            reaction_time=reaction_time,
            day_noise=day_noise,
            participant_noise_scale=participant_noise_scale,
        ))

    return trials


def simulate_experiment(
    n_participants: int,
    days: Sequence[int],
    noise_experiment_scale: float,
    location_shift: float,
    day_stats: DayStatisticsLike,
    rng: np.random.Generator,
    apply_participant_noise: bool = False
) -> SimulatedDataset:
    """
    Simulate a full repeated-measures experiment.

    Participants are numbered 1..n_participants. For each one a noise value
    ~ N(0, noise_experiment_scale) is drawn. By default that draw is stored
    in ``participant_noise_draws`` but the experiment-wide
    ``noise_experiment_scale`` is what reaches simulate_participant, so all
    participants share the same spread. Pass ``apply_participant_noise=True``
    to feed each participant its own draw instead; the draw order is
    identical either way.

    Parameters
    ----------
    n_participants : int
        Number of participants (>= 1)
    days : Sequence[int]
        Days measured for every participant, in measurement order
    noise_experiment_scale : float
        Standard deviation of the participant-level noise (>= 0)
    location_shift : float
        Per-day decrease of the mean reaction time
    day_stats : DayStatisticsTable, mapping or sequence of DayStatistic
        Reference statistics per day
    rng : np.random.Generator
        Random source shared by all draws
    apply_participant_noise : bool, optional (default=False)
        Use each participant's own noise draw as its noise scale

    Returns
    -------
    dataset : SimulatedDataset
        n_participants * len(days) trials, participant-major

    Raises
    ------
    ParameterError
        If n_participants < 1, days is empty or noise_experiment_scale < 0
    DayLookupError
        If a day is not in day_stats
    """
    if isinstance(n_participants, bool) or not isinstance(n_participants, (int, np.integer)):
        raise ParameterError(
            f"n_participants must be an integer. Got: {n_participants!r}"
        )
    if n_participants < 1:
        raise ParameterError(f"n_participants must be >= 1. Got: {n_participants}")

    days = list(days)
    if not days:
        raise ParameterError("days must contain at least one day")

    if not math.isfinite(noise_experiment_scale) or noise_experiment_scale < 0:
        raise ParameterError(
            f"noise_experiment_scale must be finite and >= 0. "
            f"Got: {noise_experiment_scale}"
        )

    table = as_day_statistics_table(day_stats)
    # Fail before drawing anything if a day is missing
    for day in days:
        table[day]

    dataset = SimulatedDataset()
    for participant_id in range(1, n_participants + 1):
        participant_noise = float(rng.normal(loc=0.0, scale=noise_experiment_scale))
        dataset.participant_noise_draws[participant_id] = participant_noise

        # Observed behaviour passes the experiment-wide scale, not the draw
        noise_scale = (
            participant_noise if apply_participant_noise
            else noise_experiment_scale
        )

        dataset.trials.extend(simulate_participant(
            days, noise_scale, participant_id, location_shift, table, rng
        ))

    return dataset


class RepeatedMeasuresGenerator:
    """
    Generate synthetic repeated-measures datasets from reference data.

    Derives per-day statistics from a reference dataset once, then simulates
    participants with a seeded random generator.

    Parameters
    ----------
    reference_data : pd.DataFrame
        Reference data with columns Subject, Days and Reaction
    random_seed : int, optional (default=42)
        Seed for the generator's numpy Generator

    Attributes
    ----------
    day_stats_ : DayStatisticsTable
        Per-day statistics derived from the reference data
    rng_ : np.random.Generator
        Random source used by simulate()
    dataset_ : pd.DataFrame
        Most recent simulated dataset (populated after calling simulate)
    simulation_params_ : Dict
        Arguments of the most recent simulate() call

    Examples
    --------
    >>> reference = load_reference_data()
    >>> generator = RepeatedMeasuresGenerator(reference, random_seed=42)
    >>> data = generator.simulate(n_participants=18, noise_scale=10.0)
    >>> generator.save_dataset('data/simulated/')
    """

    def __init__(
        self,
        reference_data: pd.DataFrame,
        random_seed: int = 42
    ):
        """Initialize repeated-measures generator."""
        validate_reference_data(reference_data)

        self.reference_data_ = reference_data.copy()
        self.random_seed = random_seed
        self.rng_ = make_rng(random_seed)
        self.day_stats_ = DayStatisticsTable.from_reference_data(reference_data)

        self.dataset_ = None
        self.simulated_ = None
        self.simulation_params_ = None

    def simulate(
        self,
        n_participants: int = 18,
        days: Optional[Sequence[int]] = None,
        noise_scale: float = 10.0,
        location_shift: float = 0.0,
        apply_participant_noise: bool = False,
        verbose: bool = True
    ) -> pd.DataFrame:
        """
        Simulate a dataset of reaction times.

        Parameters
        ----------
        n_participants : int, optional (default=18)
            Number of participants (the reference study has 18)
        days : Sequence[int], optional
            Days to simulate. If None, uses every day in the reference data
        noise_scale : float, optional (default=10.0)
            Experiment-level noise scale (milliseconds added to each day's
            standard deviation)
        location_shift : float, optional (default=0.0)
            Per-day decrease of the mean reaction time (milliseconds/day)
        apply_participant_noise : bool, optional (default=False)
            Use per-participant noise draws (see simulate_experiment)
        verbose : bool, optional (default=True)
            If True, print progress messages

        Returns
        -------
        dataset : pd.DataFrame
            Columns id, day, reaction_time, day_noise, participant_noise_scale
        """
        if days is None:
            days = self.day_stats_.days

        if verbose:
            print(f"\nSimulating {n_participants} participants...")
            print(f"  Days: {list(days)}")
            print(f"  Noise scale: {noise_scale}")
            print(f"  Location shift: {location_shift}")
            if apply_participant_noise:
                print(f"  Using per-participant noise draws")

        self.simulated_ = simulate_experiment(
            n_participants=n_participants,
            days=days,
            noise_experiment_scale=noise_scale,
            location_shift=location_shift,
            day_stats=self.day_stats_,
            rng=self.rng_,
            apply_participant_noise=apply_participant_noise,
        )
        self.dataset_ = self.simulated_.to_frame()
        self.simulation_params_ = {
            'n_participants': int(n_participants),
            'days': [int(d) for d in days],
            'noise_scale': float(noise_scale),
            'location_shift': float(location_shift),
            'apply_participant_noise': bool(apply_participant_noise),
        }

        if verbose:
            rt = self.dataset_['reaction_time']
            n_floored = int((rt == REACTION_TIME_FLOOR).sum())
            print(f"\n✓ Simulated {len(self.dataset_)} trials")
            print(f"  Mean reaction time: {rt.mean():.1f} ms " +
                  f"(std: {rt.std():.1f})")
            print(f"  Range: [{rt.min():.1f}, {rt.max():.1f}]")
            print(f"  Floored at {REACTION_TIME_FLOOR:.0f} ms: {n_floored}")

        return self.dataset_

    def save_dataset(
        self,
        output_dir: str,
        verbose: bool = True
    ) -> None:
        """
        Save the simulated dataset and its metadata.

        Creates ``simulated_dataset.csv``, ``day_statistics.csv`` and
        ``metadata.json`` in output_dir.
        """
        if self.dataset_ is None:
            raise ValueError(
                "No dataset to save. Call simulate() first."
            )

        output_path = Path(output_dir)
        output_path.mkdir(parents=True, exist_ok=True)

        self.dataset_.to_csv(output_path / "simulated_dataset.csv", index=False)
        self.day_stats_.to_frame().to_csv(
            output_path / "day_statistics.csv", index=False
        )

        metadata = {
            **self.simulation_params_,
            'n_trials': len(self.dataset_),
            'random_seed': self.random_seed,
            'reaction_time_floor': REACTION_TIME_FLOOR,
            'participant_noise_draws': {
                str(k): v
                for k, v in self.simulated_.participant_noise_draws.items()
            },
            'generation_date': pd.Timestamp.now().isoformat()
        }

        with open(output_path / "metadata.json", 'w') as f:
            json.dump(metadata, f, indent=2)

        if verbose:
            print(f"\n✓ Saved simulated dataset")
            print(f"  Directory: {output_dir}")
            print(f"  Files: simulated_dataset.csv, day_statistics.csv, metadata.json")

    @staticmethod
    def load_dataset(
        input_dir: str,
        verbose: bool = True
    ) -> Tuple[pd.DataFrame, Dict]:
        """
        Load a dataset written by save_dataset().

        Returns
        -------
        dataset : pd.DataFrame
            Simulated trials
        metadata : Dict
            Simulation parameters

        Raises
        ------
        FileNotFoundError
            If metadata.json or simulated_dataset.csv is missing
        """
        input_path = Path(input_dir)

        metadata_path = input_path / "metadata.json"
        if not metadata_path.exists():
            raise FileNotFoundError(
                f"Metadata file not found: {metadata_path}\n"
                f"Make sure you're loading from the correct directory."
            )

        dataset_path = input_path / "simulated_dataset.csv"
        if not dataset_path.exists():
            raise FileNotFoundError(f"Dataset file not found: {dataset_path}")

        with open(metadata_path, 'r') as f:
            metadata = json.load(f)

        dataset = pd.read_csv(dataset_path)

        if verbose:
            print(f"✓ Loaded {len(dataset)} trials from {input_dir}")
            print(f"  Participants: {metadata['n_participants']}")
            print(f"  Days: {metadata['days']}")

        return dataset, metadata

    def get_summary_statistics(self) -> pd.DataFrame:
        """
        Per-participant summary of the simulated dataset.

        Returns
        -------
        summary : pd.DataFrame
            Columns id, n_trials, mean_reaction_time, min_reaction_time,
            ols_intercept, ols_slope

        Raises
        ------
        ValueError
            If no dataset has been simulated yet
        """
        if self.dataset_ is None:
            raise ValueError(
                "No dataset to summarize. Call simulate() first."
            )

        data = self.dataset_
        summary = data.groupby('id', sort=False).agg(
            n_trials=('reaction_time', 'size'),
            mean_reaction_time=('reaction_time', 'mean'),
            min_reaction_time=('reaction_time', 'min'),
        ).reset_index()

        # Straight-line fit needs two distinct days
        fittable = data.groupby('id', sort=False)['day'].transform('nunique') >= 2
        lines = fit_no_pooling(data[fittable]).rename(columns={
            'intercept': 'ols_intercept',
            'slope': 'ols_slope',
        })

        return summary.merge(lines, on='id', how='left')
