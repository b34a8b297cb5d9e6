"""
Hierarchical Bayesian Linear Model for Repeated Measures

This module uses PyMC to specify and fit a varying-intercept,
varying-slope linear regression of reaction time on day via MCMC (NUTS).
Participants share population-level hyperpriors, so each participant's
line is partially pooled towards the population line.

"""

from pathlib import Path
from typing import Dict, Optional, Sequence, Tuple

import arviz as az
import numpy as np
import pandas as pd
import pymc as pm


class HierarchicalLinearModel:
    """
    Hierarchical Bayesian model pooling reaction-time trends across
    participants.

    Three-level hierarchy:
    Level 1 (Population): mu_intercept, mu_slope, sigma_intercept, sigma_slope
    Level 2 (Participant): intercept_j, slope_j for j = 1,...,J
    Level 3 (Observations): y_ij ~ Normal(intercept_j + slope_j * day_ij, sigma_obs)

    Parameters
    ----------
    intercept_prior : Tuple[float, float], optional (default=(250.0, 50.0))
        (mean, sd) of the Normal prior on the population intercept (ms)
    slope_prior : Tuple[float, float], optional (default=(0.0, 20.0))
        (mean, sd) of the Normal prior on the population slope (ms/day)
    tau_intercept : float, optional (default=50.0)
        Scale of the HalfNormal prior on between-participant intercept sd
    tau_slope : float, optional (default=20.0)
        Scale of the HalfNormal prior on between-participant slope sd
    sigma_obs_prior : float, optional (default=50.0)
        Scale of the HalfNormal prior on the residual sd
    x_col, y_col, group_col : str
        Column names for day, reaction time and participant id
    random_seed : int, optional (default=42)
        Random seed for MCMC and posterior subsampling

    Attributes
    ----------
    model_ : pm.Model
        PyMC model object
    trace_ : az.InferenceData
        Posterior (and prior) samples
    convergence_ : Dict
        Convergence diagnostics (R̂, ESS)
    J_ : int
        Number of participants
    participant_ids_ : np.ndarray
        Participant id for each model index j

    Examples
    --------
    >>> model = HierarchicalLinearModel(random_seed=42)
    >>> model.fit(simulated, chains=4, draws=2000, tune=1000)
    >>> model.check_convergence()
    >>> population, participants = model.extract_posterior_means()
    """

    def __init__(
        self,
        intercept_prior: Tuple[float, float] = (250.0, 50.0),
        slope_prior: Tuple[float, float] = (0.0, 20.0),
        tau_intercept: float = 50.0,
        tau_slope: float = 20.0,
        sigma_obs_prior: float = 50.0,
        x_col: str = 'day',
        y_col: str = 'reaction_time',
        group_col: str = 'id',
        random_seed: int = 42
    ):
        """Initialize hierarchical linear model."""
        for name, prior in (('intercept_prior', intercept_prior),
                            ('slope_prior', slope_prior)):
            if len(prior) != 2:
                raise ValueError(f"{name} must be a (mean, sd) pair. Got: {prior}")
            if prior[1] <= 0:
                raise ValueError(f"{name} sd must be positive. Got: {prior[1]}")

        for name, value in (('tau_intercept', tau_intercept),
                            ('tau_slope', tau_slope),
                            ('sigma_obs_prior', sigma_obs_prior)):
            if value <= 0:
                raise ValueError(f"{name} must be positive. Got: {value}")

        self.intercept_prior = tuple(float(v) for v in intercept_prior)
        self.slope_prior = tuple(float(v) for v in slope_prior)
        self.tau_intercept = tau_intercept
        self.tau_slope = tau_slope
        self.sigma_obs_prior = sigma_obs_prior
        self.x_col = x_col
        self.y_col = y_col
        self.group_col = group_col
        self.random_seed = random_seed
        self.rng_ = np.random.default_rng(random_seed)

        # Placeholders
        self.model_ = None
        self.trace_ = None
        self.convergence_ = None
        self.J_ = None
        self.participant_ids_ = None

    def fit(
        self,
        data: pd.DataFrame,
        chains: int = 4,
        draws: int = 2000,
        tune: int = 1000,
        target_accept: float = 0.90,
        cores: Optional[int] = None,
        prior_samples: int = 500,
        verbose: bool = True
    ) -> "HierarchicalLinearModel":
        """
        Fit the hierarchical model via MCMC (NUTS).

        Parameters
        ----------
        data : pd.DataFrame
            Observations with x_col, y_col and group_col
        chains : int, optional (default=4)
            Number of MCMC chains
        draws : int, optional (default=2000)
            Number of samples per chain
        tune : int, optional (default=1000)
            Number of warmup iterations
        target_accept : float, optional (default=0.90)
            Target acceptance rate for NUTS
        cores : int, optional (default=None)
            Number of CPU cores. If None, PyMC decides
        prior_samples : int, optional (default=500)
            Prior predictive draws stored alongside the posterior. Set to 0
            to skip
        verbose : bool, optional (default=True)
            If True, print progress

        Returns
        -------
        self : HierarchicalLinearModel
            Fitted model with populated trace_
        """
        day, y, participant_idx = self._prepare_data(data)

        if verbose:
            print(f"\n{'=' * 80}")
            print("HIERARCHICAL LINEAR MODEL: MCMC SAMPLING")
            print(f"{'=' * 80}")
            print(f"Participants (J): {self.J_}")
            print(f"Total observations: {len(y)}")
            print(f"\nMCMC Configuration:")
            print(f"  Chains: {chains}")
            print(f"  Draws per chain: {draws}")
            print(f"  Warmup iterations: {tune}")
            print(f"  Target acceptance: {target_accept}")
            print(f"  Total samples: {chains * draws}")

        self.model_ = self._specify_model(day, y, participant_idx)

        if verbose:
            print(f"\nRunning MCMC sampling...")
            print(f"Start time: {pd.Timestamp.now().strftime('%H:%M:%S')}")

        with self.model_:
            self.trace_ = pm.sample(
                draws=draws,
                tune=tune,
                chains=chains,
                cores=cores,
                target_accept=target_accept,
                return_inferencedata=True,
                random_seed=self.random_seed,
                progressbar=verbose
            )
            if prior_samples > 0:
                prior = pm.sample_prior_predictive(
                    prior_samples, random_seed=self.random_seed
                )
                self.trace_.extend(prior)

        if verbose:
            print(f"End time: {pd.Timestamp.now().strftime('%H:%M:%S')}")
            print(f"\n✓ MCMC sampling completed")
            print(f"  Total samples: {chains * draws}")
            print(f"  Warmup samples (discarded): {chains * tune}")

        return self

    def sample_prior(
        self,
        data: pd.DataFrame,
        samples: int = 500
    ) -> az.InferenceData:
        """
        Draw from the prior (and prior predictive) without running MCMC.

        Useful for checking that the priors produce plausible reaction
        times before fitting.
        """
        day, y, participant_idx = self._prepare_data(data)
        self.model_ = self._specify_model(day, y, participant_idx)

        with self.model_:
            prior = pm.sample_prior_predictive(
                samples, random_seed=self.random_seed
            )
        return prior

    def _prepare_data(
        self,
        data: pd.DataFrame
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Extract model arrays and map participant ids to indices 0..J-1.

        Returns
        -------
        day : np.ndarray, shape (n,)
        y : np.ndarray, shape (n,)
        participant_idx : np.ndarray, shape (n,)
        """
        missing = [
            c for c in (self.x_col, self.y_col, self.group_col)
            if c not in data.columns
        ]
        if missing:
            raise ValueError(f"Data missing required columns: {missing}")

        if data[[self.x_col, self.y_col]].isna().any().any():
            raise ValueError(
                f"NaN values found in '{self.x_col}' or '{self.y_col}'"
            )

        codes, uniques = pd.factorize(data[self.group_col], sort=False)
        self.participant_ids_ = np.asarray(uniques)
        self.J_ = len(uniques)

        day = data[self.x_col].to_numpy(dtype=np.float64)
        y = data[self.y_col].to_numpy(dtype=np.float64)
        participant_idx = codes.astype(np.int64)

        return day, y, participant_idx

    def _specify_model(
        self,
        day: np.ndarray,
        y: np.ndarray,
        participant_idx: np.ndarray
    ) -> pm.Model:
        """Specify the hierarchical model in PyMC."""
        with pm.Model() as model:
            # Level 1: population hyperpriors
            mu_intercept = pm.Normal(
                'mu_intercept',
                mu=self.intercept_prior[0],
                sigma=self.intercept_prior[1]
            )
            mu_slope = pm.Normal(
                'mu_slope',
                mu=self.slope_prior[0],
                sigma=self.slope_prior[1]
            )
            sigma_intercept = pm.HalfNormal('sigma_intercept', sigma=self.tau_intercept)
            sigma_slope = pm.HalfNormal('sigma_slope', sigma=self.tau_slope)

            # Level 2: participant effects (non-centered to avoid Neal's funnel)
            intercept_raw = pm.Normal('intercept_raw', mu=0, sigma=1, shape=self.J_)
            slope_raw = pm.Normal('slope_raw', mu=0, sigma=1, shape=self.J_)

            intercept_j = pm.Deterministic(
                'intercept_j', mu_intercept + sigma_intercept * intercept_raw
            )
            slope_j = pm.Deterministic(
                'slope_j', mu_slope + sigma_slope * slope_raw
            )

            # Level 3: observations
            sigma_obs = pm.HalfNormal('sigma_obs', sigma=self.sigma_obs_prior)
            mu = intercept_j[participant_idx] + slope_j[participant_idx] * day

            pm.Normal('y_obs', mu=mu, sigma=sigma_obs, observed=y)

        return model

    def check_convergence(
        self,
        verbose: bool = True
    ) -> Dict[str, bool]:
        """
        Check MCMC convergence using R̂ and ESS diagnostics.

        Returns
        -------
        convergence : Dict[str, bool]
            - 'rhat_ok': All R̂ < 1.01
            - 'rhat_max': Largest R̂
            - 'ess_ok': All ESS > 400
            - 'ess_min': Smallest ESS
            - 'all_ok': Both criteria met

        Raises
        ------
        ValueError
            If model hasn't been fitted yet
        """
        if self.trace_ is None:
            raise ValueError(
                "Model not fitted. Call fit() before checking convergence."
            )

        rhat = az.rhat(self.trace_)
        rhat_max = float(np.nanmax(np.concatenate([
            rhat[var].values.flatten() for var in rhat.data_vars
        ])))
        rhat_ok = rhat_max < 1.01

        ess = az.ess(self.trace_)
        ess_min = float(np.nanmin(np.concatenate([
            ess[var].values.flatten() for var in ess.data_vars
        ])))
        ess_ok = ess_min > 400

        all_ok = rhat_ok and ess_ok

        if verbose:
            print(f"\n{'=' * 80}")
            print("CONVERGENCE DIAGNOSTICS")
            print(f"{'=' * 80}")
            print(f"  Max R̂: {rhat_max:.4f} " +
                  f"({'✓ PASS' if rhat_ok else '✗ FAIL'}, criterion < 1.01)")
            print(f"  Min ESS: {ess_min:.0f} " +
                  f"({'✓ PASS' if ess_ok else '✗ FAIL'}, criterion > 400)")
            if not all_ok:
                print("  → Increase draws or tune iterations")

        self.convergence_ = {
            'rhat_ok': bool(rhat_ok),
            'rhat_max': rhat_max,
            'ess_ok': bool(ess_ok),
            'ess_min': ess_min,
            'all_ok': bool(all_ok)
        }

        return self.convergence_

    def extract_posterior_means(self) -> Tuple[Dict[str, float], pd.DataFrame]:
        """
        Posterior mean estimates for population and participant parameters.

        Returns
        -------
        population : Dict[str, float]
            mu_intercept, mu_slope, sigma_intercept, sigma_slope, sigma_obs
        participants : pd.DataFrame
            Columns id, intercept, slope

        Raises
        ------
        ValueError
            If model hasn't been fitted yet
        """
        if self.trace_ is None:
            raise ValueError(
                "Model not fitted. Call fit() before extracting means."
            )

        posterior = self.trace_.posterior
        population = {
            name: float(posterior[name].values.mean())
            for name in ('mu_intercept', 'mu_slope', 'sigma_intercept',
                         'sigma_slope', 'sigma_obs')
        }

        participants = pd.DataFrame({
            'id': self.participant_ids_,
            'intercept': posterior['intercept_j'].values.mean(axis=(0, 1)),
            'slope': posterior['slope_j'].values.mean(axis=(0, 1)),
        })

        return population, participants

    def posterior_predictive(
        self,
        days: Sequence[float],
        participant_id,
        n_samples: int = 1000
    ) -> Dict[str, np.ndarray]:
        """
        Posterior distribution of a participant's expected reaction time.

        Parameters
        ----------
        days : Sequence[float]
            Days at which to evaluate the participant's line
        participant_id
            Participant id as it appears in the fitted data
        n_samples : int, optional (default=1000)
            Number of posterior samples to use

        Returns
        -------
        predictions : Dict[str, np.ndarray]
            - 'mean', 'std', 'lower_90', 'upper_90': shape (n_days,)
            - 'samples': shape (n_samples, n_days)

        Raises
        ------
        ValueError
            If model hasn't been fitted or participant_id is unknown
        """
        if self.trace_ is None:
            raise ValueError(
                "Model not fitted. Call fit() before making predictions."
            )

        matches = np.flatnonzero(self.participant_ids_ == participant_id)
        if len(matches) == 0:
            raise ValueError(
                f"Unknown participant_id: {participant_id!r}. "
                f"Known ids: {list(self.participant_ids_)}"
            )
        j = int(matches[0])

        posterior = self.trace_.posterior
        intercepts = posterior['intercept_j'].values.reshape(-1, self.J_)[:, j]
        slopes = posterior['slope_j'].values.reshape(-1, self.J_)[:, j]

        if n_samples < len(intercepts):
            idx = self.rng_.choice(len(intercepts), size=n_samples, replace=False)
            intercepts = intercepts[idx]
            slopes = slopes[idx]

        days = np.asarray(days, dtype=np.float64)
        mu_samples = intercepts[:, None] + slopes[:, None] * days[None, :]

        return {
            'mean': mu_samples.mean(axis=0),
            'std': mu_samples.std(axis=0),
            'lower_90': np.percentile(mu_samples, 5, axis=0),
            'upper_90': np.percentile(mu_samples, 95, axis=0),
            'samples': mu_samples
        }

    def save_trace(
        self,
        filepath: str,
        verbose: bool = True
    ) -> None:
        """Save MCMC trace to NetCDF (load with load_trace or az.from_netcdf)."""
        if self.trace_ is None:
            raise ValueError(
                "No trace to save. Call fit() first."
            )

        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        self.trace_.to_netcdf(filepath)

        if verbose:
            print(f"\n✓ Trace saved to {filepath}")
            print(f"  File size: {filepath.stat().st_size / 1e6:.1f} MB")

    @staticmethod
    def load_trace(
        filepath: str,
        verbose: bool = True
    ) -> az.InferenceData:
        """
        Load MCMC trace from NetCDF format.

        Raises
        ------
        FileNotFoundError
            If filepath doesn't exist
        """
        filepath = Path(filepath)

        if not filepath.exists():
            raise FileNotFoundError(f"Trace file not found: {filepath}")

        trace = az.from_netcdf(filepath)

        if verbose:
            chains = trace.posterior.sizes['chain']
            draws = trace.posterior.sizes['draw']
            print(f"✓ Trace loaded from {filepath}")
            print(f"  Chains: {chains}")
            print(f"  Draws per chain: {draws}")

        return trace
