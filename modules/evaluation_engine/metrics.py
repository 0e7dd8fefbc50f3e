"""
Scoring functions used to compare hyperparameter candidates.

Each task type has a fixed metric set and a primary metric with a fixed
direction:

- regression: mean-absolute-error (lower is better), root-mean-square-error;
- ranking: ndcg-K (higher is better), precision-K, personalization-K;
- classification: accuracy (higher is better), precision, recall, f1.
"""
import numpy as np
from typing import Dict, List, Tuple
from sklearn.metrics import (
    mean_absolute_error,
    mean_squared_error,
    ndcg_score,
    accuracy_score,
    precision_score,
    recall_score,
    f1_score,
)
from sklearn.metrics.pairwise import cosine_similarity

from modules.training_set import TrainingSet
from utils.exceptions import ValidationError, ConfigurationError
from utils import constants

RANKING_CUTOFFS = (2, 5)

MINIMIZE = "minimize"
MAXIMIZE = "maximize"

PRIMARY_METRICS: Dict[str, Tuple[str, str]] = {
    constants.TASK_REGRESSION: ("mean-absolute-error", MINIMIZE),
    constants.TASK_RANKING: (f"ndcg-{max(RANKING_CUTOFFS)}", MAXIMIZE),
    constants.TASK_CLASSIFICATION: ("accuracy", MAXIMIZE),
}


def primary_metric(task: str) -> Tuple[str, str]:
    try:
        return PRIMARY_METRICS[task]
    except KeyError:
        raise ConfigurationError(f"Unknown task type: {task}. Available: {list(PRIMARY_METRICS)}")


def is_better(task: str, score: float, best_score: float) -> bool:
    """Strict comparison, so the earlier candidate keeps an exact tie."""
    _, direction = primary_metric(task)
    if direction == MINIMIZE:
        return score < best_score
    return score > best_score


def worst_score(task: str) -> float:
    _, direction = primary_metric(task)
    return float('inf') if direction == MINIMIZE else float('-inf')


# --- Regression ---

def regression_metrics(y_true: np.ndarray, y_pred: np.ndarray) -> Dict[str, float]:
    return {
        'mean-absolute-error': float(mean_absolute_error(y_true, y_pred)),
        'root-mean-square-error': float(np.sqrt(mean_squared_error(y_true, y_pred))),
    }


# --- Ranking ---

def _top_k(y_score: np.ndarray, k: int) -> np.ndarray:
    return np.argsort(-y_score, kind='stable')[:k]


def ndcg_at_k(y_true: np.ndarray, y_score: np.ndarray, k: int) -> float:
    if len(y_true) == 1:
        # A single document is trivially in ideal order
        return 1.0 if y_true[0] > 0 else 0.0
    return float(ndcg_score([y_true], [y_score], k=k))


def precision_at_k(y_true: np.ndarray, y_score: np.ndarray, k: int) -> float:
    top = _top_k(y_score, k)
    return float(np.mean(y_true[top] > 0))


def personalization_at_k(top_items: List[List[tuple]]) -> float:
    """
    1 minus the mean pairwise cosine similarity between the top-K item sets
    of every group. 0.0 when fewer than two groups are available.
    """
    if len(top_items) < 2:
        return 0.0
    vocabulary = {item: i for i, item in enumerate(sorted({it for items in top_items for it in items}))}
    occurrences = np.zeros((len(top_items), len(vocabulary)))
    for row, items in enumerate(top_items):
        for item in items:
            occurrences[row, vocabulary[item]] = 1.0
    similarity = cosine_similarity(occurrences)
    upper = similarity[np.triu_indices(len(top_items), k=1)]
    return float(1.0 - np.mean(upper))


def ranking_metrics(training_set: TrainingSet, y_pred: np.ndarray) -> Dict[str, float]:
    """Per-group ranking metrics averaged over groups. Ungrouped data is one group."""
    y_true = training_set.label_array()
    X = training_set.to_matrix()
    offsets = training_set.group_offsets()
    if offsets is None:
        offsets = np.array([0, training_set.num_examples])

    metrics: Dict[str, float] = {}
    for k in RANKING_CUTOFFS:
        ndcgs, precisions, top_items = [], [], []
        for start, end in zip(offsets[:-1], offsets[1:]):
            g_true, g_score = y_true[start:end], y_pred[start:end]
            ndcgs.append(ndcg_at_k(g_true, g_score, k))
            precisions.append(precision_at_k(g_true, g_score, k))
            # Items are identified by their feature vector
            top_items.append([tuple(np.nan_to_num(X[start + i], nan=0.0)) for i in _top_k(g_score, k)])
        metrics[f'ndcg-{k}'] = float(np.mean(ndcgs))
        metrics[f'precision-{k}'] = float(np.mean(precisions))
        metrics[f'personalization-{k}'] = personalization_at_k(top_items)
    return metrics


# --- Classification ---

def classification_metrics(y_true: np.ndarray, y_pred: np.ndarray) -> Dict[str, float]:
    # Probabilities (e.g. binary:logistic) are thresholded at 0.5
    y_label = np.rint(y_pred)
    return {
        'accuracy': float(accuracy_score(y_true, y_label)),
        'precision': float(precision_score(y_true, y_label, average='weighted', zero_division=0)),
        'recall': float(recall_score(y_true, y_label, average='weighted', zero_division=0)),
        'f1': float(f1_score(y_true, y_label, average='weighted', zero_division=0)),
    }


def evaluate_predictions(task: str, training_set: TrainingSet, predictions: np.ndarray) -> Dict[str, float]:
    """Score ``predictions`` made on ``training_set`` according to ``task``."""
    predictions = np.asarray(predictions, dtype=np.float64)
    if training_set.num_examples == 0:
        raise ValidationError("Cannot evaluate predictions on an empty training set.")
    if len(predictions) != training_set.num_examples:
        raise ValidationError(
            f"Got {len(predictions)} predictions for {training_set.num_examples} examples."
        )

    if task == constants.TASK_REGRESSION:
        return regression_metrics(training_set.label_array(), predictions)
    if task == constants.TASK_RANKING:
        return ranking_metrics(training_set, predictions)
    if task == constants.TASK_CLASSIFICATION:
        return classification_metrics(training_set.label_array(), predictions)
    raise ConfigurationError(f"Unknown task type: {task}. Available: {constants.TASK_TYPES}")
