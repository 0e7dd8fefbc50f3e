"""
Training Engine Module
======================

Responsibility:
- Fits the final model with the optimal hyperparameters through a model backend.
- Scores the optional holdout set.
- Persists the trained model and training metadata (.json).
- Manages memory cleanup post-training.
"""

from .training_engine import TrainingEngine

__all__ = ['TrainingEngine']