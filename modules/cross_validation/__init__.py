"""
Cross Validation
================

Responsibility:
- k-fold (train, validation) pairs and train/test splits built on the
  group-aware splitter.
- Dispatch of the evaluate-options configuration.
"""

from .cross_validator import k_fold_split, train_test_split, build_folds

__all__ = ['k_fold_split', 'train_test_split', 'build_folds']
