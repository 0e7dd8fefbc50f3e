"""
Hyperparameter search spaces and candidate generation.

A raw search space maps each hyperparameter to one of:

- a list of values (``Discrete``), used by grid and random search;
- ``{"type": "decimal", "min": a, "max": b}`` (``ContinuousRange``);
- ``{"type": "integer", "min": a, "max": b}`` (``IntegerRange``);
- ``{"type": "string", "values": [...]}`` (``Categorical``).

Ranges and categoricals are random-search only.
"""
import numpy as np
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union
from sklearn.model_selection import ParameterGrid

from utils.exceptions import ConfigurationError
from utils import constants


@dataclass(frozen=True)
class Discrete:
    values: Tuple[Any, ...]


@dataclass(frozen=True)
class ContinuousRange:
    min: float
    max: float


@dataclass(frozen=True)
class IntegerRange:
    min: int
    max: int


@dataclass(frozen=True)
class Categorical:
    values: Tuple[Any, ...]


Dimension = Union[Discrete, ContinuousRange, IntegerRange, Categorical]
_DIMENSION_TYPES = (Discrete, ContinuousRange, IntegerRange, Categorical)
SearchSpace = Dict[str, Dimension]


def _parse_dimension(name: str, raw: Any) -> Dimension:
    if isinstance(raw, _DIMENSION_TYPES):
        return raw

    if isinstance(raw, (list, tuple)):
        if not raw:
            raise ConfigurationError(f"Search space for '{name}' has no values.")
        return Discrete(tuple(raw))

    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"Invalid search space descriptor for '{name}': {raw!r}")

    kind = raw.get('type')
    if kind in ('decimal', 'integer'):
        try:
            low, high = raw['min'], raw['max']
        except KeyError as e:
            raise ConfigurationError(f"Range for '{name}' is missing {e}") from e
        if low > high:
            raise ConfigurationError(f"Range for '{name}' has min ({low}) > max ({high}).")
        if kind == 'decimal':
            return ContinuousRange(float(low), float(high))
        if int(low) != low or int(high) != high:
            raise ConfigurationError(f"Integer range for '{name}' needs integer bounds.")
        return IntegerRange(int(low), int(high))

    if kind == 'string':
        values = raw.get('values') or []
        if not values:
            raise ConfigurationError(f"Categorical '{name}' has no values.")
        return Categorical(tuple(values))

    raise ConfigurationError(
        f"Unknown search space type for '{name}': {kind!r}. Expected 'decimal', 'integer' or 'string'."
    )


def parse_search_space(raw: Mapping[str, Any]) -> SearchSpace:
    """Turn a raw search space mapping into tagged dimensions."""
    return {name: _parse_dimension(name, value) for name, value in raw.items()}


def grid_search_combos(search_space: Mapping[str, Any]) -> List[Dict[str, Any]]:
    """
    Full Cartesian product of a grid search space.

    Combinations are enumerated in the order of the input keys, the first
    key varying slowest: ``{'subsample': [0.5, 0.6], 'max_depth': [5, 6]}``
    gives (0.5, 5), (0.5, 6), (0.6, 5), (0.6, 6). An empty space yields one
    empty combination, i.e. the base hyperparameters alone.
    """
    space = parse_search_space(search_space)
    names = list(space)
    grid = {}
    for position, name in enumerate(names):
        dim = space[name]
        if not isinstance(dim, Discrete):
            raise ConfigurationError(
                f"Grid search needs an explicit list of values for '{name}', got {type(dim).__name__}."
            )
        grid[_position_key(position)] = list(dim.values)
    # ParameterGrid sorts its keys, so positional keys keep the input order
    return [
        {name: combo[_position_key(position)] for position, name in enumerate(names)}
        for combo in ParameterGrid(grid)
    ]


def _position_key(position: int) -> str:
    return f"{position:06d}"


def _draw(dim: Dimension, rng: np.random.Generator) -> Any:
    if isinstance(dim, ContinuousRange):
        return float(rng.uniform(dim.min, dim.max))
    if isinstance(dim, IntegerRange):
        return int(rng.integers(dim.min, dim.max, endpoint=True))
    # Discrete and Categorical: uniform choice, keeping the original Python value
    return dim.values[int(rng.integers(len(dim.values)))]


def random_search_combos(iteration_count: int, search_space: Mapping[str, Any],
                         seed: Optional[int] = None) -> List[Dict[str, Any]]:
    """
    Draw ``iteration_count`` independent combinations.

    Each hyperparameter is sampled on its own: decimals uniformly in
    [min, max], integers uniformly in [min, max] inclusive, lists and
    categoricals uniformly among their values.
    """
    if iteration_count < 0:
        raise ConfigurationError(f"iteration-count must be non-negative, got {iteration_count}")
    space = parse_search_space(search_space)
    rng = np.random.default_rng(seed)
    return [
        {name: _draw(dim, rng) for name, dim in space.items()}
        for _ in range(iteration_count)
    ]


def generate_candidates(search_fn: Mapping[str, Any], search_space: Mapping[str, Any],
                        seed: Optional[int] = None) -> List[Dict[str, Any]]:
    """
    Dispatch on the hyperparameter-search-fn configuration:
    ``{'type': 'grid'}`` or ``{'type': 'random', 'iteration-count': n}``.
    """
    search_type = search_fn.get('type')
    if search_type == constants.SEARCH_GRID:
        return grid_search_combos(search_space)
    if search_type == constants.SEARCH_RANDOM:
        return random_search_combos(int(search_fn['iteration-count']), search_space, seed=seed)
    raise ConfigurationError(
        f"Unknown search type: {search_type!r}. "
        f"Expected '{constants.SEARCH_GRID}' or '{constants.SEARCH_RANDOM}'."
    )


def merge_hyperparameters(base: Mapping[str, Any], candidate: Mapping[str, Any]) -> Dict[str, Any]:
    """Overlay a candidate on the base hyperparameters; candidate values win."""
    return {**base, **candidate}
