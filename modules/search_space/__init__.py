"""
Search Space
============

Responsibility:
- Tagged search space dimensions (discrete, ranges, categoricals).
- Grid (exhaustive) and random (sampled) candidate generation.
"""

from .search_space import (
    Discrete,
    ContinuousRange,
    IntegerRange,
    Categorical,
    parse_search_space,
    grid_search_combos,
    random_search_combos,
    generate_candidates,
    merge_hyperparameters,
)

__all__ = [
    'Discrete',
    'ContinuousRange',
    'IntegerRange',
    'Categorical',
    'parse_search_space',
    'grid_search_combos',
    'random_search_combos',
    'generate_candidates',
    'merge_hyperparameters',
]
