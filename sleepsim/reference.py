"""
Reference Repeated-Measures Data

Loads the ``sleepstudy`` reaction-time dataset (Belenky et al., 2003, as
distributed with the R package lme4) that the simulation uses to derive its
per-day statistics and as a visual baseline.

"""

import warnings
from pathlib import Path
from typing import List, Optional, Tuple, Union

import pandas as pd
import statsmodels.api as sm

REFERENCE_COLUMNS = ('Subject', 'Days', 'Reaction')


def load_reference_data(
    filepath: Optional[str] = None,
    verbose: bool = True
) -> pd.DataFrame:
    """
    Load the reference dataset.

    Parameters
    ----------
    filepath : str, optional
        CSV file with at least the columns ``Subject``, ``Days`` and
        ``Reaction``. If None, ``sleepstudy`` is fetched from the lme4
        collection of Rdatasets (requires network access).
    verbose : bool, optional (default=True)
        If True, print a short description of the loaded data

    Returns
    -------
    reference : pd.DataFrame
        Validated reference data restricted to the three reference columns

    Raises
    ------
    FileNotFoundError
        If filepath is given but doesn't exist
    ValueError
        If the data fails validation (see validate_reference_data)
    """
    if filepath is not None:
        filepath = Path(filepath)
        if not filepath.exists():
            raise FileNotFoundError(f"Reference data not found: {filepath}")
        reference = pd.read_csv(filepath)
        source = str(filepath)
    else:
        reference = sm.datasets.get_rdataset("sleepstudy", "lme4").data
        source = "Rdatasets lme4::sleepstudy"

    # Rdatasets exports carry a 'rownames' column
    reference = reference.drop(columns=['rownames'], errors='ignore')
    validate_reference_data(reference)

    reference = reference[list(REFERENCE_COLUMNS)].copy()
    reference['Days'] = reference['Days'].astype(int)
    reference['Reaction'] = reference['Reaction'].astype(float)

    if verbose:
        print(f"✓ Loaded reference data from {source}")
        print(f"  Observations: {len(reference)}")
        print(f"  Subjects: {reference['Subject'].nunique()}")
        print(f"  Days: {reference['Days'].min()}-{reference['Days'].max()}")

    return reference


def validate_reference_data(reference: pd.DataFrame) -> None:
    """
    Check that a DataFrame can serve as reference data.

    Raises
    ------
    ValueError
        If a reference column is missing, values are missing, days are
        negative or non-integer, or a day has fewer than two observations
    """
    missing = [c for c in REFERENCE_COLUMNS if c not in reference.columns]
    if missing:
        raise ValueError(
            f"Reference data missing required columns: {missing}. "
            f"Got: {list(reference.columns)}"
        )

    subset = reference[list(REFERENCE_COLUMNS)]
    if subset.isna().any().any():
        raise ValueError("Reference data contains missing values")

    days = subset['Days']
    if (days < 0).any():
        raise ValueError("Reference 'Days' must be non-negative")
    if not (days == days.round()).all():
        raise ValueError("Reference 'Days' must be integers")

    counts = subset.groupby('Days').size()
    sparse = counts[counts < 2]
    if len(sparse) > 0:
        raise ValueError(
            f"Each day needs at least 2 observations to estimate a standard "
            f"deviation. Sparse days: {list(sparse.index)}"
        )

    if subset['Subject'].nunique() < 3:
        warnings.warn(
            f"Reference data has only {subset['Subject'].nunique()} subjects; "
            "day statistics will be noisy."
        )


def reference_rows(
    reference: pd.DataFrame,
    day_col: str = 'Days',
    value_col: str = 'Reaction'
) -> List[Tuple[Union[int, float], float]]:
    """
    Return the reference observations as (day, reaction_time) pairs.

    Whole-number days come back as int. Fractional days are passed through
    unchanged so compute_day_statistics can reject them.
    """
    rows = []
    for day, reaction in zip(reference[day_col], reference[value_col]):
        day = float(day)
        rows.append((int(day) if day.is_integer() else day, float(reaction)))
    return rows
