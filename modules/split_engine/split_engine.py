"""
SplitEngine for the Model Search Pipeline.

This module partitions a training set into fractional subsets. Ranking data
is split on whole groups so a query never straddles two subsets, and the
weights travel in lockstep with whichever unit (example or group) is split.
"""
import math
import logging
import numpy as np
import pandas as pd
from typing import List, Optional, Sequence, Tuple

from modules.base.base_engine import BaseEngine
from modules.training_set import TrainingSet, save_csv_files
from utils.error_handling import handle_engine_errors
from utils.exceptions import InvalidFractionsError, ValidationError
from utils.file_io import save_dataframe
from utils import constants


def fractions_sum_to_one(fractions: Sequence[float]) -> bool:
    return abs(1.0 - sum(fractions)) < constants.FRACTION_SUM_TOLERANCE


def indices_of_splits(n: int, shuffle: bool, fractions: Sequence[float],
                      seed: Optional[int] = None) -> List[List[int]]:
    """
    Distribute ``n`` indices across splits defined by ``fractions``.

    Each split but the last receives ``ceil(n * fraction)`` indices taken
    greedily from the (optionally shuffled) range; the last split takes
    whatever remains. With ``n=10``, no shuffle and ``[0.5, 0.5]`` this
    returns ``[[0, 1, 2, 3, 4], [5, 6, 7, 8, 9]]``.
    """
    indices = np.arange(n)
    if shuffle:
        indices = np.random.default_rng(seed).permutation(n)
    indices = [int(i) for i in indices]

    splits = []
    start = 0
    for fraction in fractions[:-1]:
        size = math.ceil(n * fraction - constants.SPLIT_SIZE_TOLERANCE)
        splits.append(indices[start:start + size])
        start = min(start + size, n)
    splits.append(indices[start:])
    return splits


def split(training_set: TrainingSet, shuffle: bool, fractions: Sequence[float],
          seed: Optional[int] = None) -> List[TrainingSet]:
    """
    Split a training set into ``len(fractions)`` training sets.

    Training sets with groups are split across groups, the others across
    examples. ``shuffle`` controls whether the units are shuffled first.

    Raises:
        InvalidFractionsError: If ``fractions`` does not sum to one.
    """
    fractions = list(fractions)
    if not fractions or not fractions_sum_to_one(fractions):
        raise InvalidFractionsError(f"Split fractions must sum to 1.0, got {sum(fractions)} ({fractions})")
    if any(f < 0 for f in fractions):
        raise InvalidFractionsError(f"Split fractions must be non-negative, got {fractions}")

    return [
        training_set.select_units(indices)
        for indices in indices_of_splits(training_set.num_units, shuffle, fractions, seed)
    ]


def concat_training_sets(*training_sets: TrainingSet) -> TrainingSet:
    """
    Concatenate training sets in argument order. ``features`` comes from the
    first one; every input must share it.
    """
    if not training_sets:
        raise ValidationError("At least one training set is required.")

    first = training_sets[0]
    for ts in training_sets[1:]:
        if ts.features != first.features:
            raise ValidationError("Cannot concatenate training sets with different features.")
        if (ts.groups is None) != (first.groups is None):
            raise ValidationError("Cannot concatenate grouped and ungrouped training sets.")
        if (ts.weights is None) != (first.weights is None):
            raise ValidationError("Cannot concatenate weighted and unweighted training sets.")

    feature_maps = [m for ts in training_sets for m in ts.feature_maps]
    labels = [label for ts in training_sets for label in ts.labels]
    weights = None
    if first.weights is not None:
        weights = [w for ts in training_sets for w in ts.weights]
    groups = None
    if first.groups is not None:
        groups = [g for ts in training_sets for g in ts.groups]

    return TrainingSet(first.features, feature_maps, labels, weights=weights, groups=groups)


class SplitEngine(BaseEngine):
    """
    Holds out part of the training set before hyperparameter search.

    The held-out portion never takes part in cross-validation and is only
    used to score the final model. ``splitting.holdout_percentage`` controls
    its size; 0 or a missing value disables the hold-out.
    """

    def __init__(self, config: dict, logger: logging.Logger):
        super().__init__(config, logger)
        split_cfg = self.config.get('splitting', {})
        self.holdout_percentage = split_cfg.get('holdout_percentage') or 0
        self.shuffle = split_cfg.get('shuffle', True)
        self.seed = self.config.get('_internal_seeds', {}).get('split', split_cfg.get('seed', constants.DEFAULT_SEED))

    def _get_engine_directory_name(self) -> str:
        return constants.MASTER_SPLITS_DIR

    @handle_engine_errors("Data Splitting")
    def execute(self, training_set: TrainingSet, run_id: str) -> Tuple[TrainingSet, Optional[TrainingSet]]:
        """
        Execute the splitting workflow.

        Returns:
            (train, holdout) where holdout is None when disabled.
        """
        self.logger.info("Starting Split Engine execution...")

        if not self.holdout_percentage:
            self.logger.info("Hold-out disabled. The full training set is used for the search.")
            return training_set, None

        train_fraction = (100 - self.holdout_percentage) / 100
        train, holdout = split(
            training_set, self.shuffle, [train_fraction, 1 - train_fraction], seed=self.seed
        )

        self._save_splits(train, holdout)
        self._generate_split_report(train, holdout)

        self.logger.info(f"Splits saved: Train={train.num_examples}, Holdout={holdout.num_examples}")
        return train, holdout

    def _save_splits(self, train: TrainingSet, holdout: TrainingSet) -> None:
        for name, ts in (('train', train), ('holdout', holdout)):
            save_csv_files(
                ts,
                self.output_dir / f"{name}.csv",
                weights_path=self.output_dir / f"{name}_weights.csv" if ts.weights is not None else None,
                groups_path=self.output_dir / f"{name}_groups.csv" if ts.groups is not None else None,
            )

    def _generate_split_report(self, train: TrainingSet, holdout: TrainingSet) -> None:
        """Save example/group counts per split."""
        total = train.num_examples + holdout.num_examples
        report = pd.DataFrame([
            {
                'split': name,
                'examples': ts.num_examples,
                'groups': ts.num_groups if ts.num_groups is not None else 0,
                'example_pct': round(ts.num_examples / total * 100, 2) if total else 0.0,
            }
            for name, ts in (('train', train), ('holdout', holdout))
        ])
        excel_copy = self.config.get("outputs", {}).get("save_excel_copy", False)
        save_dataframe(report, self.output_dir / constants.SPLIT_REPORT_FILE, excel_copy=excel_copy, index=False)
