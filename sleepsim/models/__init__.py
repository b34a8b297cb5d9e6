"""Complete-pooling, mixed-effects and hierarchical Bayesian models"""

from .pooling import fit_complete_pooling, fit_no_pooling
from .mixed_effects import MixedEffectsModel
from .hierarchical_model import HierarchicalLinearModel

__all__ = [
    'fit_complete_pooling',
    'fit_no_pooling',
    'MixedEffectsModel',
    'HierarchicalLinearModel',
]
