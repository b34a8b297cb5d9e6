"""Version information for SleepSim."""

__version__ = "0.1.0"
__author__ = "SleepSim Contributors"
__email__ = "sleepsim@users.noreply.github.com"
__description__ = (
    "Simulated repeated-measures reaction times and pooled, mixed-effects "
    "and hierarchical Bayesian linear models"
)
__url__ = "https://github.com/sleepsim/sleepsim"
