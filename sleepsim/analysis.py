"""SleepSim Analysis - fits every pooling strategy to one dataset"""

import pickle
import warnings
from pathlib import Path
from typing import Dict

import arviz as az
import pandas as pd

from .models.hierarchical_model import HierarchicalLinearModel
from .models.mixed_effects import MixedEffectsModel
from .models.pooling import fit_complete_pooling, fit_no_pooling

QUICK_MCMC_SETTINGS = {'chains': 2, 'draws': 500, 'tune': 500, 'target_accept': 0.90}
FULL_MCMC_SETTINGS = {'chains': 4, 'draws': 2000, 'tune': 1000, 'target_accept': 0.90}

REQUIRED_COLUMNS = ('id', 'day', 'reaction_time')


class SleepStudyAnalysis:
    """
    Compare complete pooling, no pooling, mixed effects and hierarchical
    Bayesian estimates of the reaction time vs. day relationship.

    Parameters
    ----------
    quick_mode : bool, default=False
        If True, uses faster MCMC settings for prototyping.

    random_seed : int, default=42
        Random seed for reproducibility.

    Examples
    --------
    >>> from sleepsim import SleepStudyAnalysis
    >>>
    >>> analysis = SleepStudyAnalysis(quick_mode=True)
    >>> analysis.fit(simulated)
    >>> analysis.compare_estimates().head()
    >>> analysis.population_estimates()
    """

    def __init__(
        self,
        quick_mode: bool = False,
        random_seed: int = 42
    ):
        self.quick_mode = quick_mode
        self.random_seed = random_seed

        # Will be initialized during fit()
        self.complete_pooling = None
        self.no_pooling = None
        self.mixed_model = None
        self.hierarchical_model = None
        self.data = None

    @property
    def mcmc_settings(self) -> Dict:
        return dict(QUICK_MCMC_SETTINGS if self.quick_mode else FULL_MCMC_SETTINGS)

    def fit(
        self,
        data: pd.DataFrame,
        validate_convergence: bool = True,
        cores=None,
        **mcmc_overrides
    ) -> 'SleepStudyAnalysis':
        """
        Fit all models on one repeated-measures dataset.

        Parameters
        ----------
        data : pd.DataFrame
            Columns id, day, reaction_time (e.g. a simulated dataset).

        validate_convergence : bool, default=True
            If True, raises error if MCMC doesn't converge (R̂ ≥ 1.01).

        cores : int, optional
            CPU cores for MCMC. If None, PyMC decides.

        **mcmc_overrides
            Override chains, draws, tune or target_accept.

        Returns
        -------
        self : SleepStudyAnalysis
            Fitted analysis.
        """
        self._validate_data(data)

        settings = self.mcmc_settings
        unknown = set(mcmc_overrides) - set(settings)
        if unknown:
            raise TypeError(f"Unknown MCMC settings: {sorted(unknown)}")
        settings.update(mcmc_overrides)

        self.data = data.copy()

        print(f"\n{'='*70}")
        print(f"SleepSim Analysis: {data['id'].nunique()} participants, "
              f"{len(data)} observations")
        print(f"{'='*70}\n")

        print("[1/4] Complete pooling (OLS)...")
        self.complete_pooling = fit_complete_pooling(data)
        print(f"  ✓ intercept = {self.complete_pooling['intercept']:.2f}, "
              f"slope = {self.complete_pooling['slope']:.2f}")

        print("\n[2/4] No pooling (OLS per participant)...")
        self.no_pooling = fit_no_pooling(data)
        print(f"  ✓ {len(self.no_pooling)} independent fits")

        print("\n[3/4] Mixed-effects model (REML)...")
        self.mixed_model = MixedEffectsModel().fit(data, verbose=False)
        print(f"  ✓ intercept = {self.mixed_model.fixed_effects_['intercept']:.2f}, "
              f"slope = {self.mixed_model.fixed_effects_['slope']:.2f}")

        print("\n[4/4] Hierarchical Bayesian model (NUTS)...")
        self.hierarchical_model = HierarchicalLinearModel(random_seed=self.random_seed)
        self.hierarchical_model.fit(data, cores=cores, **settings)
        print("  ✓ Hierarchical model fitted")

        if validate_convergence:
            self._validate_convergence()

        print(f"\n{'='*70}")
        print("✓ SleepSim analysis fitted successfully!")
        print(f"{'='*70}\n")

        return self

    def compare_estimates(self) -> pd.DataFrame:
        """
        Per-participant intercepts and slopes under each pooling strategy.

        Returns
        -------
        comparison : pd.DataFrame
            Columns id, no_pooling_intercept, no_pooling_slope,
            mixed_intercept, mixed_slope, bayesian_intercept,
            bayesian_slope, complete_pooling_intercept,
            complete_pooling_slope
        """
        self._check_fitted()

        _, bayesian = self.hierarchical_model.extract_posterior_means()
        mixed = self.mixed_model.participant_estimates()

        comparison = self.no_pooling.rename(columns={
            'intercept': 'no_pooling_intercept',
            'slope': 'no_pooling_slope',
        })
        comparison = comparison.merge(
            mixed.rename(columns={'intercept': 'mixed_intercept',
                                  'slope': 'mixed_slope'}),
            on='id', how='left'
        )
        comparison = comparison.merge(
            bayesian.rename(columns={'intercept': 'bayesian_intercept',
                                     'slope': 'bayesian_slope'}),
            on='id', how='left'
        )
        comparison['complete_pooling_intercept'] = self.complete_pooling['intercept']
        comparison['complete_pooling_slope'] = self.complete_pooling['slope']

        return comparison

    def population_estimates(self) -> pd.DataFrame:
        """
        Population-level line under each method.

        Returns
        -------
        estimates : pd.DataFrame
            Columns method, intercept, slope
        """
        self._check_fitted()

        population, _ = self.hierarchical_model.extract_posterior_means()
        rows = [
            {'method': 'complete_pooling',
             'intercept': self.complete_pooling['intercept'],
             'slope': self.complete_pooling['slope']},
            {'method': 'no_pooling_average',
             'intercept': self.no_pooling['intercept'].mean(),
             'slope': self.no_pooling['slope'].mean()},
            {'method': 'mixed_effects',
             'intercept': self.mixed_model.fixed_effects_['intercept'],
             'slope': self.mixed_model.fixed_effects_['slope']},
            {'method': 'bayesian_hierarchical',
             'intercept': population['mu_intercept'],
             'slope': population['mu_slope']},
        ]
        return pd.DataFrame(rows, columns=['method', 'intercept', 'slope'])

    def get_convergence_diagnostics(self) -> pd.DataFrame:
        """
        Return MCMC convergence diagnostics (R̂, ESS).

        Returns
        -------
        diagnostics : pd.DataFrame
            DataFrame with columns: parameter, r_hat, ess_bulk, ess_tail
        """
        if self.hierarchical_model is None:
            raise RuntimeError("Model not fitted yet.")

        summary = az.summary(
            self.hierarchical_model.trace_,
            var_names=['mu_intercept', 'mu_slope', 'sigma_intercept',
                       'sigma_slope', 'sigma_obs', 'intercept_j', 'slope_j']
        )
        summary = summary.reset_index()
        summary = summary.rename(columns={'index': 'parameter'})

        cols = ['parameter', 'r_hat', 'ess_bulk', 'ess_tail']
        return summary[cols]

    def save(self, filepath: str):
        """
        Save fitted analysis to disk.

        Note: The PyMC model object cannot be pickled directly.
        Use hierarchical_model.save_trace() to save the MCMC trace separately.
        """
        model_backup = None
        if self.hierarchical_model is not None:
            model_backup = self.hierarchical_model.model_
            self.hierarchical_model.model_ = None

        try:
            with open(filepath, 'wb') as f:
                pickle.dump(self, f)
            print(f"✓ Analysis saved to {filepath}")
        finally:
            if model_backup is not None:
                self.hierarchical_model.model_ = model_backup

    @classmethod
    def load(cls, filepath: str) -> 'SleepStudyAnalysis':
        """Load fitted analysis from disk."""
        if not Path(filepath).exists():
            raise FileNotFoundError(f"Analysis file not found: {filepath}")
        with open(filepath, 'rb') as f:
            analysis = pickle.load(f)
        print(f"✓ Analysis loaded from {filepath}")
        return analysis

    # ---- Private methods ----

    def _check_fitted(self):
        if self.hierarchical_model is None or self.mixed_model is None:
            raise RuntimeError("Analysis not fitted. Call .fit() first.")

    def _validate_data(self, data: pd.DataFrame):
        """Validate repeated-measures data structure and content."""
        if not isinstance(data, pd.DataFrame):
            raise TypeError("data must be a pandas DataFrame")

        missing = [c for c in REQUIRED_COLUMNS if c not in data.columns]
        if missing:
            raise ValueError(f"Data missing required columns: {missing}")

        if data.empty:
            raise ValueError("Data is empty")

        n_participants = data['id'].nunique()
        if n_participants < 3:
            warnings.warn(
                f"Only {n_participants} participants provided. "
                "Recommend at least 3 for stable pooling, 10+ ideal."
            )

        trials = data.groupby('id').size()
        sparse = trials[trials < 3]
        if len(sparse) > 0:
            warnings.warn(
                f"Participants {list(sparse.index)} have fewer than 3 trials; "
                "their no-pooling slopes will be unstable."
            )

    def _validate_convergence(self):
        """Check MCMC convergence and raise error if failed."""
        diagnostics = self.hierarchical_model.check_convergence(verbose=False)

        if not diagnostics['rhat_ok']:
            raise RuntimeError(
                f"MCMC convergence failed! R̂ ≥ 1.01 detected.\n"
                f"Max R̂ = {diagnostics['rhat_max']:.4f}\n\n"
                "Try increasing MCMC draws: SleepStudyAnalysis(quick_mode=False)"
            )

        if not diagnostics['ess_ok']:
            warnings.warn(
                f"Low effective sample size detected (ESS = {diagnostics['ess_min']:.0f}). "
                "Consider increasing MCMC draws for more reliable inference."
            )

        print(f"  ✓ Convergence validated (max R̂ = {diagnostics['rhat_max']:.4f}, "
              f"min ESS = {diagnostics['ess_min']:.0f})")
