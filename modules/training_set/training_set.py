"""
General training set abstraction shared by every model backend.

A training set holds:

- ``features``: ordered feature identifiers. The order is significant, it is
  the column layout fed to the models.
- ``feature_maps``: one ``{feature_id: value}`` mapping per example.
- ``labels``: one numeric target per example, aligned with ``feature_maps``.
- ``weights``: optional importances, one per group when ``groups`` is set,
  otherwise one per example.
- ``groups``: optional ranking groups. Each entry counts how many successive
  examples form one group, e.g. ``(2, 2, 2)`` partitions six examples into
  three groups of two.
"""
import numpy as np
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from utils.exceptions import ValidationError


def group_to_example_indices(groups: Sequence[int], group_indices: Iterable[int]) -> List[int]:
    """
    Map group indices to the indices of their member examples.

    With ``groups=[2, 1, 2]`` and ``group_indices=[2, 1]`` this returns
    ``[3, 4, 2]``: the examples of group 2 followed by those of group 1.
    """
    offsets = np.concatenate(([0], np.cumsum(groups, dtype=np.int64)))
    example_indices: List[int] = []
    for g in group_indices:
        start = int(offsets[g])
        example_indices.extend(range(start, start + int(groups[g])))
    return example_indices


@dataclass(frozen=True)
class TrainingSet:
    """Immutable training set. Every transformation returns a new instance."""

    features: Tuple[str, ...]
    feature_maps: Tuple[Dict[str, float], ...]
    labels: Tuple[float, ...]
    weights: Optional[Tuple[float, ...]] = None
    groups: Optional[Tuple[int, ...]] = None

    def __post_init__(self):
        object.__setattr__(self, 'features', tuple(self.features))
        object.__setattr__(self, 'feature_maps', tuple(dict(m) for m in self.feature_maps))
        object.__setattr__(self, 'labels', tuple(self.labels))
        if self.weights is not None:
            object.__setattr__(self, 'weights', tuple(self.weights))
        if self.groups is not None:
            object.__setattr__(self, 'groups', tuple(self.groups))
        self._validate()

    def _validate(self) -> None:
        n = len(self.feature_maps)
        if len(self.labels) != n:
            raise ValidationError(
                f"Label count ({len(self.labels)}) does not match example count ({n})."
            )

        if self.groups is not None:
            bad = [g for g in self.groups if isinstance(g, bool) or int(g) != g or g <= 0]
            if bad:
                raise ValidationError(f"Groups must be positive integers, got {bad[:5]}")
            if sum(self.groups) != n:
                raise ValidationError(
                    f"Groups sum to {sum(self.groups)} but the training set has {n} examples."
                )
            if self.weights is not None and len(self.weights) != len(self.groups):
                raise ValidationError(
                    f"Weight count ({len(self.weights)}) must match group count ({len(self.groups)})."
                )
        elif self.weights is not None and len(self.weights) != n:
            raise ValidationError(
                f"Weight count ({len(self.weights)}) must match example count ({n})."
            )

    # --- Shape ---

    @property
    def num_examples(self) -> int:
        return len(self.feature_maps)

    @property
    def num_groups(self) -> Optional[int]:
        return None if self.groups is None else len(self.groups)

    @property
    def num_units(self) -> int:
        """Number of splittable units: groups for ranking data, examples otherwise."""
        return len(self.groups) if self.groups is not None else len(self.feature_maps)

    def __len__(self) -> int:
        return self.num_examples

    # --- Vectorization ---

    def to_matrix(self, missing: float = np.nan) -> np.ndarray:
        """Feature matrix of shape (num_examples, num_features) in ``features`` order."""
        matrix = np.full((self.num_examples, len(self.features)), missing, dtype=np.float64)
        for i, feature_map in enumerate(self.feature_maps):
            for j, feature in enumerate(self.features):
                value = feature_map.get(feature)
                if value is not None:
                    matrix[i, j] = value
        return matrix

    def label_array(self) -> np.ndarray:
        return np.asarray(self.labels, dtype=np.float64)

    def group_offsets(self) -> Optional[np.ndarray]:
        """Start index of every group plus the end sentinel."""
        if self.groups is None:
            return None
        return np.concatenate(([0], np.cumsum(self.groups, dtype=np.int64)))

    def example_weights(self) -> Optional[np.ndarray]:
        """Per-example weights, expanding group weights onto their members."""
        if self.weights is None:
            return None
        weights = np.asarray(self.weights, dtype=np.float64)
        if self.groups is None:
            return weights
        return np.repeat(weights, self.groups)

    # --- Subsets ---

    def _take_examples(self, indices: Sequence[int]) -> Tuple[tuple, tuple]:
        feature_maps = tuple(self.feature_maps[i] for i in indices)
        labels = tuple(self.labels[i] for i in indices)
        return feature_maps, labels

    def select_examples(self, indices: Sequence[int]) -> 'TrainingSet':
        """Subset containing only the examples at ``indices``, in that order."""
        if self.groups is not None:
            raise ValidationError(
                "Cannot select individual examples from a grouped training set; use select_groups."
            )
        feature_maps, labels = self._take_examples(indices)
        weights = None
        if self.weights is not None:
            weights = tuple(self.weights[i] for i in indices)
        return TrainingSet(self.features, feature_maps, labels, weights=weights)

    def select_groups(self, group_indices: Sequence[int]) -> 'TrainingSet':
        """
        Subset containing only the groups at ``group_indices``.

        With ``groups=(2, 2, 2)`` and ``group_indices=[1, 2]`` the subset holds
        examples 2 to 5 (both inclusive).
        """
        if self.groups is None:
            raise ValidationError("Training set has no groups to select.")
        example_indices = group_to_example_indices(self.groups, group_indices)
        feature_maps, labels = self._take_examples(example_indices)
        weights = None
        if self.weights is not None:
            weights = tuple(self.weights[g] for g in group_indices)
        groups = tuple(self.groups[g] for g in group_indices)
        return TrainingSet(self.features, feature_maps, labels, weights=weights, groups=groups)

    def select_units(self, indices: Sequence[int]) -> 'TrainingSet':
        """Select groups when grouped, examples otherwise."""
        if self.groups is not None:
            return self.select_groups(indices)
        return self.select_examples(indices)
