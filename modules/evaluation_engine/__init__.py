"""
Evaluation Engine
=================

Responsibility:
- Task-specific scorers (regression, ranking, classification).
- Primary metric and optimisation direction per task.
"""

from .metrics import (
    PRIMARY_METRICS,
    RANKING_CUTOFFS,
    evaluate_predictions,
    primary_metric,
    is_better,
    worst_score,
)

__all__ = [
    'PRIMARY_METRICS',
    'RANKING_CUTOFFS',
    'evaluate_predictions',
    'primary_metric',
    'is_better',
    'worst_score',
]
