"""
CSV persistence for training sets.

The training set CSV has a header row. Its first column is the label and the
remaining columns are the features, in order. Weights and groups live in
separate single-column CSV files (``weight`` and ``group``).
"""
import os
import tempfile
import logging
import pandas as pd
import numpy as np
from pathlib import Path
from typing import Dict, List, Optional, Union

from modules.training_set.training_set import TrainingSet
from utils.exceptions import MalformedInputError, ValidationError
from utils import constants

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _read_csv(path: PathLike) -> pd.DataFrame:
    try:
        return pd.read_csv(path, float_precision="round_trip")
    except pd.errors.EmptyDataError as e:
        raise MalformedInputError(f"{path} is empty or has no header row.") from e


def _read_single_column(path: PathLike, column: str) -> pd.Series:
    """Read a single-column CSV, enforcing the expected header."""
    df = _read_csv(path)
    if list(df.columns) != [column]:
        raise MalformedInputError(
            f"{path} must contain exactly one '{column}' column, found {list(df.columns)}"
        )
    if df[column].isna().any():
        raise MalformedInputError(f"{path} contains empty '{column}' values.")
    if len(df) and not pd.api.types.is_numeric_dtype(df[column]):
        raise MalformedInputError(f"{path} contains non-numeric '{column}' values.")
    return df[column]


def load_groups(path: PathLike) -> List[int]:
    """Load group sizes from a ``group`` CSV file."""
    values = _read_single_column(path, constants.GROUP_COLUMN)
    if not np.all(np.mod(values.to_numpy(), 1) == 0):
        raise MalformedInputError(f"{path} contains non-integer group sizes.")
    return [int(v) for v in values]


def load_weights(path: PathLike) -> List[float]:
    """Load weights from a ``weight`` CSV file."""
    return [float(v) for v in _read_single_column(path, constants.WEIGHT_COLUMN)]


def load_csv_files(training_set_path: PathLike,
                   weights_path: Optional[PathLike] = None,
                   groups_path: Optional[PathLike] = None) -> TrainingSet:
    """
    Load a training set from CSV files.

    Only ``training_set_path`` is mandatory. When ``groups_path`` is given but
    ``weights_path`` is not, every group gets a default weight of 1.0.

    Raises:
        MalformedInputError: If the files are inconsistent with each other.
        OSError: If a file cannot be read.
    """
    df = _read_csv(training_set_path)
    if df.shape[1] < 1:
        raise MalformedInputError(f"{training_set_path} has no label column.")

    label_col, *features = [str(c) for c in df.columns]
    df.columns = [label_col, *features]

    non_numeric = [c for c in df.columns if len(df) and not pd.api.types.is_numeric_dtype(df[c])]
    if non_numeric:
        raise MalformedInputError(f"Non-numeric columns in {training_set_path}: {non_numeric}")
    if df[label_col].isna().any():
        raise MalformedInputError(f"{training_set_path} has examples without a label.")

    records = df[features].to_dict(orient='records')
    # Empty cells mean the feature is absent from that example
    feature_maps = [
        {k: float(v) for k, v in record.items() if not pd.isna(v)}
        for record in records
    ]
    labels = [float(v) for v in df[label_col]]

    groups = load_groups(groups_path) if groups_path is not None else None
    if weights_path is not None:
        weights = load_weights(weights_path)
    elif groups is not None:
        weights = [1.0] * len(groups)
    else:
        weights = None

    logger.info(
        f"Loaded training set from {training_set_path}: {len(labels)} examples, "
        f"{len(features)} features" + (f", {len(groups)} groups" if groups is not None else "")
    )

    try:
        return TrainingSet(features, feature_maps, labels, weights=weights, groups=groups)
    except ValidationError as e:
        raise MalformedInputError(f"Inconsistent training set files: {e}") from e


def _write_vector(path: PathLike, column: str, values) -> None:
    pd.DataFrame({column: list(values)}).to_csv(path, index=False)


def save_csv_files(training_set: TrainingSet,
                   training_set_path: PathLike,
                   weights_path: Optional[PathLike] = None,
                   groups_path: Optional[PathLike] = None) -> None:
    """
    Save a training set to CSV files. Labels and feature maps go to
    ``training_set_path``; groups and weights, when present, go to their own
    files.
    """
    if training_set.groups is not None and groups_path is None:
        raise ValueError("Training set has groups but no groups_path was given.")
    if training_set.weights is not None and weights_path is None:
        raise ValueError("Training set has weights but no weights_path was given.")

    columns = [constants.LABEL_COLUMN, *training_set.features]
    rows = [
        {constants.LABEL_COLUMN: label, **feature_map}
        for feature_map, label in zip(training_set.feature_maps, training_set.labels)
    ]
    pd.DataFrame(rows, columns=columns).to_csv(training_set_path, index=False)

    if training_set.groups is not None:
        _write_vector(groups_path, constants.GROUP_COLUMN, training_set.groups)
    if training_set.weights is not None:
        _write_vector(weights_path, constants.WEIGHT_COLUMN, training_set.weights)


def _create_temp_csv_path() -> str:
    fd, path = tempfile.mkstemp(suffix=".csv")
    os.close(fd)
    return path


def save_temp_csv_files(training_set: TrainingSet) -> Dict[str, str]:
    """
    Save a training set to temporary CSV files.

    Returns the paths actually written: ``training_set_path`` plus
    ``weights_path`` and ``groups_path`` when present. The caller owns the
    files (see ``remove_temp_csv_files``).
    """
    paths = {'training_set_path': _create_temp_csv_path()}
    if training_set.groups is not None:
        paths['groups_path'] = _create_temp_csv_path()
    if training_set.weights is not None:
        paths['weights_path'] = _create_temp_csv_path()

    save_csv_files(
        training_set,
        paths['training_set_path'],
        weights_path=paths.get('weights_path'),
        groups_path=paths.get('groups_path'),
    )
    return paths


def remove_temp_csv_files(paths: Dict[str, str]) -> None:
    """Delete files returned by ``save_temp_csv_files``."""
    for path in paths.values():
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
