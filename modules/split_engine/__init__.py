"""
Split Engine
============

Responsibility:
- Fractional splitting of training sets, group-aware for ranking data.
- Concatenation of schema-compatible training sets.
- Optional hold-out split persisted for the run.
"""

from .split_engine import (
    SplitEngine,
    split,
    concat_training_sets,
    indices_of_splits,
    fractions_sum_to_one,
)

__all__ = [
    'SplitEngine',
    'split',
    'concat_training_sets',
    'indices_of_splits',
    'fractions_sum_to_one',
]
