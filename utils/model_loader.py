import joblib
from pathlib import Path
from sklearn.base import BaseEstimator
from utils.exceptions import ModelTrainingError

def safe_load_model(path: Path) -> BaseEstimator:
    """Safely load a joblib-persisted estimator with validation."""
    try:
        model = joblib.load(path)
    except FileNotFoundError:
        raise
    except Exception as e:
        raise ModelTrainingError(f"Failed to load model: {e}") from e
    if not isinstance(model, BaseEstimator):
        raise ModelTrainingError(f"Invalid model type in {path}: {type(model).__name__}")
    return model
