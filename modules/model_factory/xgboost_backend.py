"""
Gradient-boosted trees backend on top of XGBoost's native API.

Training sets are converted to a ``DMatrix`` carrying the ranking groups and
weights (XGBoost expects one weight per group for ranking). Besides the
regular booster parameters the backend understands:

- ``num_rounds``: boosting rounds (default 10);
- ``validation_set_size`` and ``early_stopping_rounds``: hold out the tail of
  the training set (whole groups for ranking data) and stop when the
  validation metric stops improving.
"""
import logging
import numpy as np
import xgboost as xgb
from pathlib import Path
from typing import Any, Dict, Sequence, Union

from modules.model_factory.backends import ModelBackend, ModelHandle
from modules.split_engine import split
from modules.training_set import TrainingSet
from utils.exceptions import BackendTrainingError, ConfigurationError
from utils import constants

logger = logging.getLogger(__name__)

DEFAULT_NUM_ROUNDS = 10
DEFAULT_BOOSTER = "gbtree"

DEFAULT_OBJECTIVES = {
    constants.TASK_REGRESSION: "reg:squarederror",
    constants.TASK_RANKING: "rank:ndcg",
    constants.TASK_CLASSIFICATION: "binary:logistic",
}

# Hyperparameters consumed by the backend rather than by the booster
TRAINING_OPTIONS = ("num_rounds", "validation_set_size", "early_stopping_rounds")


def to_dmatrix(training_set: TrainingSet) -> xgb.DMatrix:
    dm = xgb.DMatrix(training_set.to_matrix(), label=training_set.label_array())
    if training_set.groups is not None:
        dm.set_group(list(training_set.groups))
    if training_set.weights is not None:
        dm.set_weight(np.asarray(training_set.weights, dtype=np.float32))
    return dm


class XGBoostBackend(ModelBackend):
    """Gradient-boosted trees through ``xgboost.train``."""

    name = constants.ALGO_GRADIENT_BOOSTED_TREES
    model_suffix = ".json"

    def __init__(self, task: str = constants.TASK_REGRESSION):
        if task not in DEFAULT_OBJECTIVES:
            raise ConfigurationError(f"Unknown task type: {task}. Available: {list(DEFAULT_OBJECTIVES)}")
        self.task = task

    def _booster_params(self, hyperparameters: Dict[str, Any]) -> Dict[str, Any]:
        params = {k: v for k, v in hyperparameters.items() if k not in TRAINING_OPTIONS}
        params.setdefault('objective', DEFAULT_OBJECTIVES[self.task])
        return params

    def train(self, training_set: TrainingSet, hyperparameters: Dict[str, Any]) -> ModelHandle:
        params = self._booster_params(hyperparameters)
        num_rounds = int(hyperparameters.get('num_rounds', DEFAULT_NUM_ROUNDS))
        validation_size = hyperparameters.get('validation_set_size')
        early_stopping_rounds = hyperparameters.get('early_stopping_rounds')
        if (validation_size is None) != (early_stopping_rounds is None):
            raise BackendTrainingError(
                "validation_set_size and early_stopping_rounds must be given together."
            )

        train_set = training_set
        evals = []
        if validation_size is not None:
            train_set, validation_set = split(
                training_set, False, [1 - validation_size, validation_size]
            )
            if validation_set.num_examples and train_set.num_examples:
                evals = [(to_dmatrix(validation_set), "validation")]
            else:
                logger.warning("Validation set for early stopping is empty. Training without it.")
                train_set, early_stopping_rounds = training_set, None

        booster_type = params.get('booster', DEFAULT_BOOSTER)
        try:
            booster = xgb.train(
                params,
                to_dmatrix(train_set),
                num_boost_round=num_rounds,
                evals=evals,
                early_stopping_rounds=int(early_stopping_rounds) if evals else None,
                verbose_eval=False,
            )
        except xgb.core.XGBoostError as e:
            raise BackendTrainingError(f"XGBoost training failed: {e}") from e

        booster.set_attr(booster=booster_type)
        return ModelHandle(booster, metadata={'algorithm': self.name, 'booster': booster_type})

    def predict(self, handle: ModelHandle, hyperparameters: Dict[str, Any],
                feature_vector: Sequence[float]) -> float:
        matrix = np.asarray([feature_vector], dtype=np.float64)
        return float(self.predict_many(handle, hyperparameters, matrix)[0])

    def predict_many(self, handle: ModelHandle, hyperparameters: Dict[str, Any],
                     matrix: np.ndarray) -> np.ndarray:
        dm = xgb.DMatrix(np.asarray(matrix, dtype=np.float64))
        with handle.lock:
            handle.ensure_active()
            return np.asarray(handle.model.predict(dm), dtype=np.float64)

    def save(self, handle: ModelHandle, path: Union[str, Path]) -> Path:
        """Save in XGBoost's native format; use a ``.json`` or ``.ubj`` suffix."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with handle.lock:
            handle.ensure_active()
            handle.model.save_model(str(path))
        return path

    def load(self, path: Union[str, Path]) -> ModelHandle:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Model file not found: {path}")
        booster = xgb.Booster()
        booster.load_model(str(path))
        booster_type = booster.attr('booster') or DEFAULT_BOOSTER
        return ModelHandle(booster, metadata={'algorithm': self.name, 'booster': booster_type})
