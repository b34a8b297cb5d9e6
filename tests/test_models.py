"""
Unit Tests for Pooled, Mixed-Effects and Hierarchical Models
============================================================

The Bayesian tests use very short chains; they check structure and rough
recovery, not convergence.
"""

import warnings

import arviz as az
import numpy as np
import pandas as pd
import pytest

from sleepsim.models import (
    HierarchicalLinearModel,
    MixedEffectsModel,
    fit_complete_pooling,
    fit_no_pooling,
)

from conftest import make_linear_panel

TINY_MCMC = {'chains': 2, 'draws': 100, 'tune': 100, 'cores': 1, 'prior_samples': 50}


@pytest.fixture(scope="module")
def panel():
    return make_linear_panel(n_participants=6, seed=3)


@pytest.fixture(scope="module")
def fitted_hierarchical(panel):
    model = HierarchicalLinearModel(random_seed=42)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        model.fit(panel, verbose=False, **TINY_MCMC)
    return model


# ============================================================================
# Test 1: Complete and no pooling
# ============================================================================

def test_complete_pooling_recovers_exact_line():
    data = pd.DataFrame({
        'id': [1, 1, 1, 2, 2, 2],
        'day': [0, 1, 2, 0, 1, 2],
        'reaction_time': [250.0, 260.0, 270.0, 250.0, 260.0, 270.0],
    })

    fit = fit_complete_pooling(data)

    assert fit['intercept'] == pytest.approx(250.0)
    assert fit['slope'] == pytest.approx(10.0)
    assert fit['residual_sd'] == pytest.approx(0.0, abs=1e-8)
    assert fit['n_obs'] == 6


def test_complete_pooling_needs_two_days():
    data = pd.DataFrame({'id': [1, 2], 'day': [0, 0], 'reaction_time': [250.0, 260.0]})

    with pytest.raises(ValueError, match="distinct"):
        fit_complete_pooling(data)


def test_complete_pooling_missing_column():
    with pytest.raises(ValueError, match="missing"):
        fit_complete_pooling(pd.DataFrame({'day': [0, 1]}))


def test_no_pooling_recovers_each_line():
    rows = []
    truth = {1: (240.0, 5.0), 2: (260.0, 12.0), 3: (300.0, -2.0)}
    for participant_id, (intercept, slope) in truth.items():
        for day in range(5):
            rows.append({'id': participant_id, 'day': day,
                         'reaction_time': intercept + slope * day})

    estimates = fit_no_pooling(pd.DataFrame(rows))

    assert list(estimates.columns) == ['id', 'intercept', 'slope']
    assert estimates['id'].tolist() == [1, 2, 3]
    for _, row in estimates.iterrows():
        intercept, slope = truth[row['id']]
        assert row['intercept'] == pytest.approx(intercept)
        assert row['slope'] == pytest.approx(slope)


def test_no_pooling_single_day_participant_fails():
    data = pd.DataFrame({
        'id': [1, 1, 2],
        'day': [0, 1, 0],
        'reaction_time': [250.0, 260.0, 270.0],
    })

    with pytest.raises(ValueError, match="Participant 2"):
        fit_no_pooling(data)


# ============================================================================
# Test 2: Mixed effects
# ============================================================================

def test_mixed_effects_recovers_fixed_effects(linear_panel):
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        model = MixedEffectsModel().fit(linear_panel, verbose=False)

    assert model.fixed_effects_['intercept'] == pytest.approx(250.0, abs=25.0)
    assert model.fixed_effects_['slope'] == pytest.approx(10.0, abs=4.0)
    assert len(model.random_effects_) == linear_panel['id'].nunique()


def test_mixed_effects_participant_estimates(linear_panel):
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        model = MixedEffectsModel().fit(linear_panel, verbose=False)

    estimates = model.participant_estimates()

    assert list(estimates.columns) == ['id', 'intercept', 'slope']
    assert sorted(estimates['id']) == sorted(linear_panel['id'].unique())
    # BLUP offsets are centred around the fixed effects
    assert estimates['slope'].mean() == pytest.approx(
        model.fixed_effects_['slope'], abs=1.0
    )


def test_mixed_effects_unfitted():
    model = MixedEffectsModel()

    with pytest.raises(ValueError, match="not fitted"):
        model.participant_estimates()
    with pytest.raises(ValueError, match="not fitted"):
        model.summary()


def test_mixed_effects_needs_groups():
    data = make_linear_panel(n_participants=1)

    with pytest.raises(ValueError, match="at least 2 groups"):
        MixedEffectsModel().fit(data, verbose=False)


# ============================================================================
# Test 3: Hierarchical Bayesian model
# ============================================================================

@pytest.mark.parametrize("kwargs", [
    {'intercept_prior': (250.0, 0.0)},
    {'slope_prior': (0.0,)},
    {'tau_intercept': 0.0},
    {'tau_slope': -1.0},
    {'sigma_obs_prior': 0.0},
])
def test_hierarchical_invalid_priors(kwargs):
    with pytest.raises(ValueError):
        HierarchicalLinearModel(**kwargs)


def test_hierarchical_unfitted_methods():
    model = HierarchicalLinearModel()

    with pytest.raises(ValueError, match="not fitted"):
        model.check_convergence()
    with pytest.raises(ValueError, match="not fitted"):
        model.extract_posterior_means()
    with pytest.raises(ValueError, match="not fitted"):
        model.posterior_predictive([0, 1], participant_id=1)
    with pytest.raises(ValueError, match="fit"):
        model.save_trace("unused.nc")


def test_hierarchical_rejects_missing_columns(panel):
    with pytest.raises(ValueError, match="missing"):
        HierarchicalLinearModel().fit(panel.drop(columns=['day']), verbose=False)


def test_hierarchical_trace_structure(fitted_hierarchical, panel):
    trace = fitted_hierarchical.trace_
    posterior = trace.posterior

    assert 'prior' in trace.groups()
    assert posterior.sizes['chain'] == 2
    assert posterior.sizes['draw'] == 100
    assert posterior['intercept_j'].shape[-1] == panel['id'].nunique()
    assert fitted_hierarchical.J_ == panel['id'].nunique()
    assert list(fitted_hierarchical.participant_ids_) == list(panel['id'].unique())


def test_hierarchical_posterior_means(fitted_hierarchical, panel):
    population, participants = fitted_hierarchical.extract_posterior_means()

    assert set(population) == {
        'mu_intercept', 'mu_slope', 'sigma_intercept', 'sigma_slope', 'sigma_obs'
    }
    assert population['mu_slope'] == pytest.approx(10.0, abs=6.0)
    assert population['sigma_obs'] > 0

    assert list(participants.columns) == ['id', 'intercept', 'slope']
    assert len(participants) == panel['id'].nunique()


def test_hierarchical_convergence_report(fitted_hierarchical):
    convergence = fitted_hierarchical.check_convergence(verbose=False)

    assert set(convergence) == {'rhat_ok', 'rhat_max', 'ess_ok', 'ess_min', 'all_ok'}
    assert isinstance(convergence['all_ok'], bool)
    assert convergence['all_ok'] == (convergence['rhat_ok'] and convergence['ess_ok'])
    assert fitted_hierarchical.convergence_ is convergence


def test_hierarchical_posterior_predictive(fitted_hierarchical):
    days = [0, 4.5, 9]
    predictions = fitted_hierarchical.posterior_predictive(days, participant_id=2, n_samples=50)

    assert predictions['samples'].shape == (50, 3)
    for key in ('mean', 'std', 'lower_90', 'upper_90'):
        assert predictions[key].shape == (3,)
    assert (predictions['lower_90'] <= predictions['upper_90']).all()


def test_hierarchical_posterior_predictive_unknown_participant(fitted_hierarchical):
    with pytest.raises(ValueError, match="Unknown participant_id"):
        fitted_hierarchical.posterior_predictive([0], participant_id=999)


def test_hierarchical_save_and_load_trace(fitted_hierarchical, tmp_path):
    path = tmp_path / "trace" / "trace.nc"

    fitted_hierarchical.save_trace(str(path), verbose=False)
    loaded = HierarchicalLinearModel.load_trace(str(path), verbose=False)

    assert isinstance(loaded, az.InferenceData)
    np.testing.assert_allclose(
        loaded.posterior['mu_slope'].values,
        fitted_hierarchical.trace_.posterior['mu_slope'].values
    )


def test_hierarchical_load_missing_trace(tmp_path):
    with pytest.raises(FileNotFoundError):
        HierarchicalLinearModel.load_trace(str(tmp_path / "none.nc"))


def test_hierarchical_sample_prior(panel):
    model = HierarchicalLinearModel(random_seed=1)

    prior = model.sample_prior(panel, samples=30)

    assert 'prior' in prior.groups()
    assert prior.prior['mu_intercept'].size == 30
    assert prior.prior['intercept_j'].shape[-1] == panel['id'].nunique()
