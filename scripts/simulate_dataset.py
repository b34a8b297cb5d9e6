"""
Simulate a Repeated-Measures Reaction Time Dataset

Derives per-day statistics from the reference sleep study and simulates a
panel of participants with log-normal reaction times.

Usage:
    python scripts/simulate_dataset.py [--reference PATH] [--test-mode]

Options:
    --reference PATH     CSV with Subject, Days, Reaction (default: fetch
                         lme4::sleepstudy from Rdatasets)
    --participants N     Number of simulated participants (default: 18)
    --noise-scale S      Experiment-level noise scale in ms (default: 10.0)
    --location-shift L   Per-day decrease of the mean in ms (default: 0.0)
    --seed K             Random seed (default: 42)
    --output-dir DIR     Output directory (default: data/simulated)
    --test-mode          Quick test mode (5 participants)
"""

import sys
import argparse
from pathlib import Path
import pandas as pd

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sleepsim.reference import load_reference_data
from sleepsim.simulation import RepeatedMeasuresGenerator


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Simulate a repeated-measures reaction time dataset"
    )
    parser.add_argument('--reference', type=str, default=None,
                        help='Reference CSV (default: Rdatasets sleepstudy)')
    parser.add_argument('--participants', type=int, default=18,
                        help='Number of participants (default: 18)')
    parser.add_argument('--noise-scale', type=float, default=10.0,
                        help='Experiment-level noise scale in ms (default: 10.0)')
    parser.add_argument('--location-shift', type=float, default=0.0,
                        help='Per-day decrease of the mean in ms (default: 0.0)')
    parser.add_argument('--apply-participant-noise', action='store_true',
                        help='Use per-participant noise draws as noise scales')
    parser.add_argument('--seed', type=int, default=42,
                        help='Random seed (default: 42)')
    parser.add_argument('--output-dir', type=str, default=None,
                        help='Output directory (default: data/simulated)')
    parser.add_argument('--test-mode', action='store_true',
                        help='Quick test mode (5 participants)')
    return parser.parse_args(argv)


def main(argv=None):
    """Main execution function."""
    args = parse_args(argv)

    n_participants = 5 if args.test_mode else args.participants

    project_root = Path(__file__).parent.parent
    output_dir = (
        Path(args.output_dir) if args.output_dir
        else project_root / "data" / "simulated"
    )

    print(f"{'=' * 80}")
    print("SIMULATE REPEATED-MEASURES DATASET")
    print(f"{'=' * 80}")
    print(f"Mode: {'TEST' if args.test_mode else 'FULL'}")
    print(f"Start time: {pd.Timestamp.now().strftime('%Y-%m-%d %H:%M:%S')}\n")

    print(f"{'=' * 80}")
    print("[Step 1/3] Loading reference data...")
    print(f"{'=' * 80}")

    try:
        reference = load_reference_data(args.reference, verbose=True)
        generator = RepeatedMeasuresGenerator(reference, random_seed=args.seed)
    except Exception as e:
        print(f"\n✗ ERROR loading reference data: {e}")
        sys.exit(1)

    print(f"\nDay statistics:")
    print(generator.day_stats_.to_frame().to_string(index=False))

    print(f"\n{'=' * 80}")
    print("[Step 2/3] Simulating participants...")
    print(f"{'=' * 80}")

    try:
        generator.simulate(
            n_participants=n_participants,
            noise_scale=args.noise_scale,
            location_shift=args.location_shift,
            apply_participant_noise=args.apply_participant_noise,
            verbose=True
        )
        summary = generator.get_summary_statistics()
    except Exception as e:
        print(f"\n✗ ERROR simulating dataset: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)

    print(f"\n{'=' * 80}")
    print("[Step 3/3] Saving dataset...")
    print(f"{'=' * 80}")

    try:
        generator.save_dataset(str(output_dir), verbose=True)
        summary.to_csv(output_dir / "summary_statistics.csv", index=False)
        print(f"✓ Summary statistics saved: summary_statistics.csv")
    except Exception as e:
        print(f"\n✗ ERROR saving dataset: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)

    print(f"\n{'=' * 80}")
    print("SUMMARY")
    print(f"{'=' * 80}")
    print(f"✓ Simulated {n_participants} participants, " +
          f"{len(generator.dataset_)} trials")
    print(f"  Mean OLS slope: {summary['ols_slope'].mean():.2f} ms/day")
    print(f"\nNext step:")
    if args.test_mode:
        print(f"   python scripts/fit_models.py --quick-test")
    else:
        print(f"   python scripts/fit_models.py")

    print(f"\n{'=' * 80}")
    print(f"End time: {pd.Timestamp.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"{'=' * 80}\n")


if __name__ == "__main__":
    main()
