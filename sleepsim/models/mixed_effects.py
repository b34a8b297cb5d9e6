"""
Frequentist Mixed-Effects Model

Linear mixed-effects model with a random intercept and a random slope per
participant, fitted by REML with statsmodels.

    reaction_time_ij = (b0 + u0_i) + (b1 + u1_i) * day_ij + e_ij

"""

from typing import Optional

import pandas as pd
import statsmodels.formula.api as smf


class MixedEffectsModel:
    """
    Random-intercept, random-slope linear model via statsmodels MixedLM.

    Parameters
    ----------
    x_col : str, optional (default='day')
        Predictor column
    y_col : str, optional (default='reaction_time')
        Outcome column
    group_col : str, optional (default='id')
        Participant column
    reml : bool, optional (default=True)
        Fit by restricted maximum likelihood

    Attributes
    ----------
    result_ : statsmodels MixedLMResults
        Fitted results
    fixed_effects_ : dict
        Population 'intercept' and 'slope'
    random_effects_ : pd.DataFrame
        Columns id, intercept_offset, slope_offset (BLUPs)

    Examples
    --------
    >>> model = MixedEffectsModel().fit(simulated)
    >>> model.fixed_effects_['slope']
    >>> model.participant_estimates().head()
    """

    def __init__(
        self,
        x_col: str = 'day',
        y_col: str = 'reaction_time',
        group_col: str = 'id',
        reml: bool = True
    ):
        self.x_col = x_col
        self.y_col = y_col
        self.group_col = group_col
        self.reml = reml

        self.result_ = None
        self.fixed_effects_ = None
        self.random_effects_ = None

    @property
    def formula(self) -> str:
        return f"{self.y_col} ~ {self.x_col}"

    def fit(
        self,
        data: pd.DataFrame,
        method: Optional[str] = None,
        verbose: bool = True
    ) -> "MixedEffectsModel":
        """
        Fit the mixed-effects model.

        Parameters
        ----------
        data : pd.DataFrame
            Observations with x_col, y_col and group_col
        method : str, optional
            Optimizer passed to MixedLM.fit. If None, statsmodels' default
        verbose : bool, optional (default=True)
            If True, print the estimated fixed effects

        Returns
        -------
        self : MixedEffectsModel
        """
        missing = [
            c for c in (self.x_col, self.y_col, self.group_col)
            if c not in data.columns
        ]
        if missing:
            raise ValueError(f"Data missing required columns: {missing}")

        if data[self.group_col].nunique() < 2:
            raise ValueError(
                "Mixed-effects model needs at least 2 groups. "
                f"Got: {data[self.group_col].nunique()}"
            )

        model = smf.mixedlm(
            self.formula,
            data,
            groups=data[self.group_col],
            re_formula=f"~{self.x_col}"
        )

        fit_kwargs = {'reml': self.reml}
        if method is not None:
            fit_kwargs['method'] = method
        self.result_ = model.fit(**fit_kwargs)

        fe = self.result_.fe_params
        self.fixed_effects_ = {
            'intercept': float(fe['Intercept']),
            'slope': float(fe[self.x_col]),
        }

        # Random effects are ordered as the re design: intercept, then slope
        rows = []
        for group, effects in self.result_.random_effects.items():
            rows.append({
                'id': group,
                'intercept_offset': float(effects.iloc[0]),
                'slope_offset': float(effects.iloc[1]),
            })
        self.random_effects_ = pd.DataFrame(
            rows, columns=['id', 'intercept_offset', 'slope_offset']
        )

        if verbose:
            print(f"✓ Mixed-effects model fitted ({'REML' if self.reml else 'ML'})")
            print(f"  Fixed intercept: {self.fixed_effects_['intercept']:.2f}")
            print(f"  Fixed slope: {self.fixed_effects_['slope']:.2f}")
            print(f"  Groups: {len(self.random_effects_)}")
            if not self.result_.converged:
                print(f"  Warning: optimizer did not report convergence")

        return self

    def participant_estimates(self) -> pd.DataFrame:
        """
        Participant-specific lines: fixed effects plus random offsets.

        Returns
        -------
        estimates : pd.DataFrame
            Columns id, intercept, slope
        """
        if self.result_ is None:
            raise ValueError(
                "Model not fitted. Call fit() before extracting estimates."
            )

        estimates = pd.DataFrame({
            'id': self.random_effects_['id'],
            'intercept': self.fixed_effects_['intercept']
            + self.random_effects_['intercept_offset'],
            'slope': self.fixed_effects_['slope']
            + self.random_effects_['slope_offset'],
        })
        return estimates.reset_index(drop=True)

    def summary(self):
        """Return the statsmodels summary of the fitted model."""
        if self.result_ is None:
            raise ValueError("Model not fitted. Call fit() first.")
        return self.result_.summary()
