import pytest
from unittest.mock import patch

from modules.search_space import (
    Categorical,
    ContinuousRange,
    Discrete,
    IntegerRange,
    generate_candidates,
    grid_search_combos,
    merge_hyperparameters,
    parse_search_space,
    random_search_combos,
)
from utils.exceptions import ConfigurationError

# --- Fixtures ---

@pytest.fixture
def grid_space():
    return {'max_depth': [3, 6], 'eta': [0.1, 0.2, 0.3]}

@pytest.fixture
def random_space():
    return {
        'eta': {'type': 'decimal', 'min': 0.01, 'max': 0.3},
        'max_depth': {'type': 'integer', 'min': 2, 'max': 4},
        'booster': {'type': 'string', 'values': ['gbtree', 'dart']},
        'subsample': [0.5, 1.0],
    }

# --- Tests ---

class TestParse:

    def test_descriptor_types(self, random_space):
        space = parse_search_space(random_space)
        assert space['eta'] == ContinuousRange(0.01, 0.3)
        assert space['max_depth'] == IntegerRange(2, 4)
        assert space['booster'] == Categorical(('gbtree', 'dart'))
        assert space['subsample'] == Discrete((0.5, 1.0))

    @pytest.mark.parametrize("raw", [
        [],
        {'type': 'decimal', 'min': 1.0},
        {'type': 'decimal', 'min': 2.0, 'max': 1.0},
        {'type': 'integer', 'min': 0.5, 'max': 3},
        {'type': 'string', 'values': []},
        {'type': 'boolean'},
        42,
    ])
    def test_malformed_descriptors(self, raw):
        with pytest.raises(ConfigurationError):
            parse_search_space({'param': raw})


class TestGrid:

    def test_full_cartesian_product(self, grid_space):
        combos = grid_search_combos(grid_space)
        assert len(combos) == 6
        assert {(c['max_depth'], c['eta']) for c in combos} == {
            (d, e) for d in [3, 6] for e in [0.1, 0.2, 0.3]
        }

    def test_enumeration_follows_input_key_order(self, grid_space):
        combos = grid_search_combos(grid_space)
        # First key varies slowest
        assert combos[0] == {'max_depth': 3, 'eta': 0.1}
        assert combos[1] == {'max_depth': 3, 'eta': 0.2}
        assert combos[3] == {'max_depth': 6, 'eta': 0.1}
        assert list(combos[0]) == ['max_depth', 'eta']

    def test_non_alphabetical_keys_keep_their_order(self):
        combos = grid_search_combos({'subsample': [0.5, 0.6], 'max_depth': [5, 6, 7]})
        assert [(c['subsample'], c['max_depth']) for c in combos] == [
            (0.5, 5), (0.5, 6), (0.5, 7), (0.6, 5), (0.6, 6), (0.6, 7),
        ]

    def test_empty_space_yields_base_only(self):
        assert grid_search_combos({}) == [{}]

    def test_ranges_not_allowed(self, random_space):
        with pytest.raises(ConfigurationError):
            grid_search_combos(random_space)


class TestRandom:

    def test_values_within_descriptors(self, random_space):
        combos = random_search_combos(50, random_space, seed=5)
        assert len(combos) == 50
        for combo in combos:
            assert 0.01 <= combo['eta'] <= 0.3
            assert isinstance(combo['max_depth'], int)
            assert 2 <= combo['max_depth'] <= 4
            assert combo['booster'] in ('gbtree', 'dart')
            assert combo['subsample'] in (0.5, 1.0)

    def test_integer_bounds_inclusive(self):
        drawn = {c['n'] for c in random_search_combos(200, {'n': {'type': 'integer', 'min': 1, 'max': 3}}, seed=0)}
        assert drawn == {1, 2, 3}

    def test_seed_reproducible(self, random_space):
        assert random_search_combos(5, random_space, seed=9) == random_search_combos(5, random_space, seed=9)

    def test_zero_iterations(self, random_space):
        assert random_search_combos(0, random_space) == []


class TestDispatch:

    def test_grid_dispatch(self, grid_space):
        with patch('modules.search_space.search_space.grid_search_combos', return_value=[{'a': 1}]) as mock_grid:
            assert generate_candidates({'type': 'grid'}, grid_space) == [{'a': 1}]
            mock_grid.assert_called_once_with(grid_space)

    def test_random_dispatch(self, random_space):
        combos = generate_candidates({'type': 'random', 'iteration-count': 4}, random_space, seed=1)
        assert len(combos) == 4

    def test_unknown_type(self, grid_space):
        with pytest.raises(ConfigurationError):
            generate_candidates({'type': 'bayesian'}, grid_space)

    def test_merge_candidate_wins(self):
        merged = merge_hyperparameters({'eta': 0.3, 'num_rounds': 10}, {'eta': 0.1})
        assert merged == {'eta': 0.1, 'num_rounds': 10}
