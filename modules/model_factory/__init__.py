"""
Model Factory
=============

Responsibility:
- Uniform backend capability set: train, predict, save, load, dispose.
- Per-model locking between prediction and disposal.
- XGBoost and scikit-learn backends, selected by algorithm and task.
"""

from .backends import ModelBackend, ModelHandle, SklearnBackend, filter_params
from .xgboost_backend import XGBoostBackend
from .model_factory import ModelFactory

__all__ = [
    'ModelBackend',
    'ModelHandle',
    'SklearnBackend',
    'XGBoostBackend',
    'ModelFactory',
    'filter_params',
]
