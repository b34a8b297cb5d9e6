"""
SleepSim Quickstart Example
===========================

This example walks through the full workflow:
1. Load the reference sleep study and derive per-day statistics
2. Simulate a new panel of participants
3. Fit complete pooling, no pooling, mixed-effects and hierarchical
   Bayesian models
4. Compare estimates and plot priors/posteriors

NOTE: Loading the reference data without a path fetches lme4::sleepstudy
from Rdatasets and needs network access. Pass a CSV path to work offline.
"""

import sys

import matplotlib.pyplot as plt

from sleepsim import (
    RepeatedMeasuresGenerator,
    SleepStudyAnalysis,
    load_reference_data,
)
from sleepsim.plotting import (
    plot_participant_fits,
    plot_prior_posterior,
    plot_reference_vs_simulated,
    plot_shrinkage,
)

print("=" * 70)
print("SleepSim Quickstart Example")
print("=" * 70)

# ===== 1. Reference data =====
print("\n[Step 1] Loading reference data...")
reference = load_reference_data(sys.argv[1] if len(sys.argv) > 1 else None)

generator = RepeatedMeasuresGenerator(reference, random_seed=42)
print("\nPer-day statistics:")
print(generator.day_stats_.to_frame().round(2).to_string(index=False))

# ===== 2. Simulate =====
print("\n" + "=" * 70)
print("[Step 2] Simulating participants")
print("=" * 70)

# A negative location shift steepens the sleep-deprivation effect by 5 ms/day
simulated = generator.simulate(
    n_participants=18,
    noise_scale=10.0,
    location_shift=-5.0,
)
print(generator.get_summary_statistics().round(2).head())

plot_reference_vs_simulated(reference, simulated)

# ===== 3. Fit models =====
print("\n" + "=" * 70)
print("[Step 3] Fitting models")
print("=" * 70)
print("\nQuick mode takes a minute or two; full mode takes longer.\n")

analysis = SleepStudyAnalysis(quick_mode=True, random_seed=42)
analysis.fit(simulated, validate_convergence=False)
analysis.hierarchical_model.check_convergence()

# ===== 4. Compare =====
print("\n" + "=" * 70)
print("[Step 4] Comparing estimates")
print("=" * 70)

print("\nPopulation line by method:")
print(analysis.population_estimates().round(2).to_string(index=False))

comparison = analysis.compare_estimates()
print("\nParticipant slopes (first 5):")
print(comparison[['id', 'no_pooling_slope', 'mixed_slope',
                  'bayesian_slope']].head().round(2).to_string(index=False))

_, bayesian = analysis.hierarchical_model.extract_posterior_means()
plot_participant_fits(
    simulated,
    {
        'no_pooling': analysis.no_pooling,
        'mixed': analysis.mixed_model.participant_estimates(),
        'bayesian': bayesian,
    },
    pooled=analysis.complete_pooling,
)
plot_prior_posterior(analysis.hierarchical_model.trace_)
plot_shrinkage(comparison)

print("\n" + "=" * 70)
print("✓ Quickstart complete")
print("=" * 70)

plt.show()
