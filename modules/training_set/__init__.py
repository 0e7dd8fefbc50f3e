"""
Training Set Module
===================

Responsibility:
- Immutable, validated representation of examples, labels, weights and
  ranking groups.
- Example and group selection.
- CSV loading/saving, including temporary copies for backends.
"""

from .training_set import TrainingSet, group_to_example_indices
from .csv_io import (
    load_csv_files,
    save_csv_files,
    save_temp_csv_files,
    remove_temp_csv_files,
)

__all__ = [
    'TrainingSet',
    'group_to_example_indices',
    'load_csv_files',
    'save_csv_files',
    'save_temp_csv_files',
    'remove_temp_csv_files',
]
