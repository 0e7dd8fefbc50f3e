"""
Uniform capability set shared by every model backend.

The search engine only talks to ``ModelBackend``: train, predict, save, load
and dispose. Fitted models are wrapped in a ``ModelHandle`` whose lock makes
prediction and disposal mutually exclusive.
"""
import abc
import inspect
import threading
import joblib
import numpy as np
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Union

from modules.training_set import TrainingSet
from utils.exceptions import BackendTrainingError, ModelDisposedError
from utils.model_loader import safe_load_model


class ModelHandle:
    """A fitted model plus the lock and disposed flag guarding it."""

    def __init__(self, model: Any, metadata: Optional[Dict[str, Any]] = None):
        self.model = model
        self.metadata = metadata or {}
        self.lock = threading.Lock()
        self.disposed = False

    def ensure_active(self) -> None:
        """Must be called with ``lock`` held."""
        if self.disposed:
            raise ModelDisposedError("Model already disposed.")

    def dispose(self) -> None:
        """Release the underlying model. Disposing twice is a no-op."""
        with self.lock:
            if self.disposed:
                return
            self.disposed = True
            self.model = None


class ModelBackend(abc.ABC):
    """Abstract model backend."""

    name: str = "backend"
    model_suffix: str = ".pkl"

    @abc.abstractmethod
    def train(self, training_set: TrainingSet, hyperparameters: Dict[str, Any]) -> ModelHandle:
        raise NotImplementedError

    @abc.abstractmethod
    def predict(self, handle: ModelHandle, hyperparameters: Dict[str, Any],
                feature_vector: Sequence[float]) -> float:
        raise NotImplementedError

    def predict_many(self, handle: ModelHandle, hyperparameters: Dict[str, Any],
                     matrix: np.ndarray) -> np.ndarray:
        """Predict every row of ``matrix``. Backends may override for speed."""
        return np.asarray([self.predict(handle, hyperparameters, row) for row in matrix], dtype=np.float64)

    @abc.abstractmethod
    def save(self, handle: ModelHandle, path: Union[str, Path]) -> Path:
        raise NotImplementedError

    @abc.abstractmethod
    def load(self, path: Union[str, Path]) -> ModelHandle:
        raise NotImplementedError

    def dispose(self, handle: ModelHandle) -> None:
        handle.dispose()


def filter_params(model_class, params: Dict[str, Any]) -> Dict[str, Any]:
    """
    Remove parameters from `params` that are not accepted by `model_class` constructor.
    """
    sig = inspect.signature(model_class.__init__)

    valid_keys = [
        p.name for p in sig.parameters.values()
        if p.kind in (p.POSITIONAL_OR_KEYWORD, p.KEYWORD_ONLY)
    ]

    # Always allow **kwargs if the model supports it
    has_kwargs = any(p.kind == p.VAR_KEYWORD for p in sig.parameters.values())

    if has_kwargs:
        return dict(params)

    return {k: v for k, v in params.items() if k in valid_keys}


class SklearnBackend(ModelBackend):
    """
    Backend around a scikit-learn estimator class.

    Hyperparameters the estimator does not accept are dropped. Missing
    feature values are fed to the estimator as 0.0, and example weights
    (group weights expanded onto their examples) become ``sample_weight``.
    """

    def __init__(self, estimator_class, name: Optional[str] = None):
        self.estimator_class = estimator_class
        self.name = name or estimator_class.__name__

    def train(self, training_set: TrainingSet, hyperparameters: Dict[str, Any]) -> ModelHandle:
        params = filter_params(self.estimator_class, hyperparameters)
        X = training_set.to_matrix(missing=0.0)
        y = training_set.label_array()
        fit_kwargs = {}
        weights = training_set.example_weights()
        if weights is not None:
            fit_kwargs['sample_weight'] = weights

        try:
            estimator = self.estimator_class(**params)
            estimator.fit(X, y, **fit_kwargs)
        except Exception as e:
            raise BackendTrainingError(f"{self.name} training failed: {e}") from e

        return ModelHandle(estimator, metadata={'algorithm': self.name, 'params': params})

    def predict(self, handle: ModelHandle, hyperparameters: Dict[str, Any],
                feature_vector: Sequence[float]) -> float:
        matrix = np.asarray([feature_vector], dtype=np.float64)
        return float(self.predict_many(handle, hyperparameters, matrix)[0])

    def predict_many(self, handle: ModelHandle, hyperparameters: Dict[str, Any],
                     matrix: np.ndarray) -> np.ndarray:
        X = np.nan_to_num(np.asarray(matrix, dtype=np.float64), nan=0.0)
        with handle.lock:
            handle.ensure_active()
            return np.asarray(handle.model.predict(X), dtype=np.float64)

    def save(self, handle: ModelHandle, path: Union[str, Path]) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with handle.lock:
            handle.ensure_active()
            joblib.dump(handle.model, path)
        return path

    def load(self, path: Union[str, Path]) -> ModelHandle:
        return ModelHandle(safe_load_model(Path(path)), metadata={'algorithm': self.name})
