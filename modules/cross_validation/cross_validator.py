"""
Fold generation for model evaluation.

Folds are (train, validation) pairs of training sets. Both strategies select
whole units, so ranking groups are never separated.
"""
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from modules.split_engine import split, concat_training_sets
from modules.training_set import TrainingSet
from utils.exceptions import ConfigurationError, ValidationError
from utils import constants

Fold = Tuple[TrainingSet, TrainingSet]


def k_fold_split(training_set: TrainingSet, shuffle: bool, k: int,
                 seed: Optional[int] = None) -> List[Fold]:
    """
    Return ``k`` (train, validation) pairs.

    Part ``i`` is the validation set of fold ``i``; the training set is the
    concatenation of the other parts in cyclic order starting after ``i``.
    Every example is validated exactly once and trained on ``k - 1`` times.
    Part sizes differ by at most one unit, the first parts taking the
    remainder, so no part is empty while ``k`` does not exceed the units.
    """
    if k < 2:
        raise ValidationError(f"k-fold split needs at least 2 folds, got {k}")

    n = training_set.num_units
    if k > n:
        unit = "groups" if training_set.groups is not None else "examples"
        raise ValidationError(f"Cannot build {k} folds from {n} {unit}.")

    indices = np.arange(n)
    if shuffle:
        indices = np.random.default_rng(seed).permutation(n)
    parts = [
        training_set.select_units([int(i) for i in chunk])
        for chunk in np.array_split(indices, k)
    ]

    folds = []
    for i in range(k):
        train_parts = [parts[(i + offset) % k] for offset in range(1, k)]
        folds.append((concat_training_sets(*train_parts), parts[i]))
    return folds


def train_test_split(training_set: TrainingSet, shuffle: bool, train_percent: float,
                     seed: Optional[int] = None) -> Fold:
    """Split into a train part holding ``train_percent`` of the data and a test part."""
    if not 0 < train_percent < 100:
        raise ValidationError(f"train_percent must be in (0, 100), got {train_percent}")
    train, test = split(
        training_set, shuffle, [train_percent / 100, (100 - train_percent) / 100], seed=seed
    )
    return train, test


def build_folds(training_set: TrainingSet, evaluate_options: Dict[str, Any],
                shuffle: bool = True, seed: Optional[int] = None) -> List[Fold]:
    """
    Build evaluation folds from an evaluate-options mapping:
    ``{'type': 'k-fold', 'folds': k}`` or
    ``{'type': 'train-test-split', 'train-split-percentage': p}``.
    """
    eval_type = evaluate_options.get('type')
    if eval_type == constants.EVAL_K_FOLD:
        return k_fold_split(training_set, shuffle, int(evaluate_options['folds']), seed=seed)
    if eval_type == constants.EVAL_TRAIN_TEST_SPLIT:
        return [train_test_split(
            training_set, shuffle, evaluate_options['train-split-percentage'], seed=seed
        )]
    raise ConfigurationError(
        f"Unknown evaluate type: {eval_type!r}. "
        f"Expected '{constants.EVAL_K_FOLD}' or '{constants.EVAL_TRAIN_TEST_SPLIT}'."
    )
