"""
Complete-Pooling and No-Pooling Linear Regressions

Ordinary least squares baselines for the hierarchical model: one line for
everybody (complete pooling) and one independent line per participant
(no pooling).

"""

from typing import Dict

import numpy as np
import pandas as pd
from sklearn.linear_model import LinearRegression


def _check_columns(data: pd.DataFrame, columns) -> None:
    missing = [c for c in columns if c not in data.columns]
    if missing:
        raise ValueError(
            f"Data missing required columns: {missing}. Got: {list(data.columns)}"
        )


def fit_complete_pooling(
    data: pd.DataFrame,
    x_col: str = 'day',
    y_col: str = 'reaction_time'
) -> Dict[str, float]:
    """
    Fit a single OLS line ignoring participant identity.

    Parameters
    ----------
    data : pd.DataFrame
        Observations with x_col and y_col
    x_col : str, optional (default='day')
        Predictor column
    y_col : str, optional (default='reaction_time')
        Outcome column

    Returns
    -------
    fit : Dict[str, float]
        'intercept', 'slope', 'residual_sd' (n-2 denominator) and 'n_obs'
    """
    _check_columns(data, [x_col, y_col])

    if data[x_col].nunique() < 2:
        raise ValueError(
            f"Need at least 2 distinct values of '{x_col}' to fit a slope"
        )

    X = data[[x_col]].to_numpy(dtype=np.float64)
    y = data[y_col].to_numpy(dtype=np.float64)

    lr = LinearRegression()
    lr.fit(X, y)

    residuals = y - lr.predict(X)
    dof = max(len(y) - 2, 1)

    return {
        'intercept': float(lr.intercept_),
        'slope': float(lr.coef_[0]),
        'residual_sd': float(np.sqrt(np.sum(residuals ** 2) / dof)),
        'n_obs': int(len(y)),
    }


def fit_no_pooling(
    data: pd.DataFrame,
    group_col: str = 'id',
    x_col: str = 'day',
    y_col: str = 'reaction_time',
    verbose: bool = False
) -> pd.DataFrame:
    """
    Fit an independent OLS line for each participant.

    Returns
    -------
    estimates : pd.DataFrame
        Columns id, intercept, slope; one row per participant in order of
        first appearance

    Raises
    ------
    ValueError
        If a participant has fewer than 2 distinct days
    """
    _check_columns(data, [group_col, x_col, y_col])

    rows = []
    groups = data.groupby(group_col, sort=False)
    n_groups = groups.ngroups

    for i, (participant_id, group) in enumerate(groups):
        if group[x_col].nunique() < 2:
            raise ValueError(
                f"Participant {participant_id} has fewer than 2 distinct "
                f"'{x_col}' values; cannot fit an independent slope"
            )

        lr = LinearRegression()
        lr.fit(
            group[[x_col]].to_numpy(dtype=np.float64),
            group[y_col].to_numpy(dtype=np.float64)
        )
        rows.append({
            'id': participant_id,
            'intercept': float(lr.intercept_),
            'slope': float(lr.coef_[0]),
        })

        if verbose and (i + 1) % 5 == 0:
            print(f"  Fitted participant {i + 1}/{n_groups}...")

    if verbose:
        print(f"✓ No-pooling estimates computed for {n_groups} participants")

    return pd.DataFrame(rows, columns=['id', 'intercept', 'slope'])
