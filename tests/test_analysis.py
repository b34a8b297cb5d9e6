"""
Unit Tests for SleepStudyAnalysis
=================================

- Initialization and MCMC settings
- Data validation
- Fit / compare / population estimates
- Save/load
"""

import tempfile
import warnings
from pathlib import Path

import pandas as pd
import pytest

from sleepsim import SleepStudyAnalysis, __version__
from sleepsim.analysis import FULL_MCMC_SETTINGS, QUICK_MCMC_SETTINGS

from conftest import make_linear_panel

TINY_MCMC = {'draws': 100, 'tune': 100}


# ============================================================================
# Test Fixtures
# ============================================================================

@pytest.fixture(scope="module")
def panel_data():
    """6 participants x 10 days with known linear trends."""
    return make_linear_panel(n_participants=6, seed=7)


@pytest.fixture(scope="module")
def fitted_analysis(panel_data):
    analysis = SleepStudyAnalysis(quick_mode=True, random_seed=42)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        analysis.fit(panel_data, validate_convergence=False, cores=1, **TINY_MCMC)
    return analysis


# ============================================================================
# Test 1: Initialization
# ============================================================================

def test_analysis_defaults():
    analysis = SleepStudyAnalysis()

    assert analysis.quick_mode is False
    assert analysis.random_seed == 42
    assert analysis.mcmc_settings == FULL_MCMC_SETTINGS


def test_analysis_quick_mode_settings():
    analysis = SleepStudyAnalysis(quick_mode=True)

    settings = analysis.mcmc_settings
    assert settings == QUICK_MCMC_SETTINGS
    # Returned settings are a copy
    settings['draws'] = 1
    assert analysis.mcmc_settings['draws'] == QUICK_MCMC_SETTINGS['draws']


def test_version_available():
    assert isinstance(__version__, str)
    assert len(__version__) > 0


# ============================================================================
# Test 2: Data validation
# ============================================================================

def test_fit_rejects_non_dataframe():
    with pytest.raises(TypeError):
        SleepStudyAnalysis().fit({'id': [1]})


def test_fit_rejects_missing_columns():
    data = pd.DataFrame({'id': [1, 2], 'day': [0, 1]})

    with pytest.raises(ValueError, match="reaction_time"):
        SleepStudyAnalysis().fit(data)


def test_fit_rejects_empty_data():
    data = pd.DataFrame(columns=['id', 'day', 'reaction_time'])

    with pytest.raises(ValueError, match="empty"):
        SleepStudyAnalysis().fit(data)


def test_fit_warns_for_few_participants():
    data = make_linear_panel(n_participants=2, days=[0, 1])

    with pytest.warns(UserWarning) as record:
        with pytest.raises(TypeError, match="Unknown MCMC settings"):
            SleepStudyAnalysis().fit(data, bogus_setting=1)

    messages = [str(w.message) for w in record]
    assert any("Only 2 participants" in m for m in messages)
    assert any("fewer than 3 trials" in m for m in messages)


# ============================================================================
# Test 3: Fit and estimates
# ============================================================================

def test_fit_populates_models(fitted_analysis, panel_data):
    assert fitted_analysis.complete_pooling is not None
    assert len(fitted_analysis.no_pooling) == panel_data['id'].nunique()
    assert fitted_analysis.mixed_model.result_ is not None
    assert fitted_analysis.hierarchical_model.trace_ is not None
    assert fitted_analysis.hierarchical_model.trace_.posterior.sizes['draw'] == 100


def test_compare_estimates(fitted_analysis, panel_data):
    comparison = fitted_analysis.compare_estimates()

    expected = {
        'id', 'no_pooling_intercept', 'no_pooling_slope',
        'mixed_intercept', 'mixed_slope', 'bayesian_intercept',
        'bayesian_slope', 'complete_pooling_intercept', 'complete_pooling_slope'
    }
    assert set(comparison.columns) == expected
    assert len(comparison) == panel_data['id'].nunique()
    assert not comparison.isna().any().any()


def test_population_estimates(fitted_analysis):
    population = fitted_analysis.population_estimates()

    assert population['method'].tolist() == [
        'complete_pooling', 'no_pooling_average',
        'mixed_effects', 'bayesian_hierarchical'
    ]
    # Balanced data: pooled OLS slope equals the mean of the per-participant slopes
    pooled = population.set_index('method')['slope']
    assert pooled['complete_pooling'] == pytest.approx(pooled['no_pooling_average'])


def test_convergence_diagnostics(fitted_analysis):
    diagnostics = fitted_analysis.get_convergence_diagnostics()

    assert list(diagnostics.columns) == ['parameter', 'r_hat', 'ess_bulk', 'ess_tail']
    assert (diagnostics['ess_bulk'] > 0).all()
    assert diagnostics['parameter'].str.startswith('slope_j').any()


def test_methods_before_fit_raise():
    analysis = SleepStudyAnalysis()

    with pytest.raises(RuntimeError):
        analysis.compare_estimates()
    with pytest.raises(RuntimeError):
        analysis.population_estimates()
    with pytest.raises(RuntimeError):
        analysis.get_convergence_diagnostics()


# ============================================================================
# Test 4: Save/Load
# ============================================================================

def test_save_and_load(fitted_analysis):
    with tempfile.NamedTemporaryFile(suffix='.pkl', delete=False) as tmp:
        tmp_path = tmp.name

    try:
        fitted_analysis.save(tmp_path)
        loaded = SleepStudyAnalysis.load(tmp_path)

        assert loaded.quick_mode == fitted_analysis.quick_mode
        assert loaded.random_seed == fitted_analysis.random_seed
        assert loaded.hierarchical_model.model_ is None
        # The in-memory model is restored after pickling
        assert fitted_analysis.hierarchical_model.model_ is not None

        pd.testing.assert_frame_equal(
            loaded.compare_estimates(), fitted_analysis.compare_estimates()
        )
    finally:
        if Path(tmp_path).exists():
            Path(tmp_path).unlink()


def test_load_nonexistent_file_raises_error():
    with pytest.raises(FileNotFoundError):
        SleepStudyAnalysis.load('/nonexistent/path/to/analysis.pkl')
