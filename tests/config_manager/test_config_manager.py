import pytest
from unittest.mock import Mock, patch
import copy
import json
from pathlib import Path

from modules.config_manager.config_manager import ConfigurationManager
from utils.exceptions import ConfigurationError
from utils import constants

SCHEMA_PATH = Path(__file__).resolve().parents[2] / "config" / "schema.json"

VALID_CONFIG = {
    "data": {"training_set_path": "data/train.csv", "weights_path": None, "groups_path": None},
    "model": {"algorithm": "gradient-boosted-trees", "task": "regression", "hyperparameters": {"num_rounds": 10}},
    "splitting": {"holdout_percentage": 20, "shuffle": True, "seed": 42},
    "hyperparameters": {
        "enabled": True,
        "search_fn": {"type": "grid"},
        "search_space": {"max_depth": [3, 6], "eta": [0.1, 0.3]},
        "evaluate_options": {"type": "k-fold", "folds": 5}
    },
    "execution": {"n_jobs": -1, "max_hours": None},
    "resources": {"max_hpo_configs": 100},
    "outputs": {"base_results_dir": "results"}
}

# --- Fixtures ---

@pytest.fixture(autouse=True)
def mock_memory():
    """8 GB of system memory."""
    with patch('psutil.virtual_memory') as mock_virtual_memory:
        mock_virtual_memory.return_value = Mock(total=8 * (1024 ** 3))
        yield mock_virtual_memory

@pytest.fixture
def write_config(tmp_path):
    def _write(overrides=None):
        config = copy.deepcopy(VALID_CONFIG)
        for section, values in (overrides or {}).items():
            if isinstance(values, dict):
                config.setdefault(section, {}).update(values)
            else:
                config[section] = values
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps(config))
        return ConfigurationManager(str(config_path), str(SCHEMA_PATH))
    return _write

# --- Test Cases ---

def test_load_and_validate_success(write_config):
    config = write_config().load_and_validate()

    assert config['data']['training_set_path'] == "data/train.csv"
    assert config['_internal_seeds'] == {'split': 42, 'cv': 1042, 'search': 2042, 'model': 3042}
    assert config['resources']['max_memory_mb'] == int(8 * 1024 * 0.8)

def test_shipped_default_config_is_valid():
    root = SCHEMA_PATH.parents[1]
    manager = ConfigurationManager(str(root / "config" / "config.json"), str(SCHEMA_PATH))
    config = manager.load_and_validate()
    assert config['model']['algorithm'] == 'gradient-boosted-trees'

def test_config_not_found(tmp_path):
    manager = ConfigurationManager(str(tmp_path / "missing.json"), str(SCHEMA_PATH))
    with pytest.raises(ConfigurationError, match="File not found: .*missing.json"):
        manager.load_and_validate()

def test_invalid_json(tmp_path):
    config_path = tmp_path / "config.json"
    config_path.write_text("this is not valid json")
    with pytest.raises(ConfigurationError, match="Invalid JSON in .*config.json"):
        ConfigurationManager(str(config_path), str(SCHEMA_PATH)).load_and_validate()

def test_schema_failure(write_config):
    manager = write_config({'model': {'task': 'clustering'}})
    with pytest.raises(ConfigurationError, match="Schema validation failed"):
        manager.load_and_validate()

def test_unknown_algorithm(write_config):
    with pytest.raises(ConfigurationError, match="Unknown model name"):
        write_config({'model': {'algorithm': 'model-tree'}}).load_and_validate()

@pytest.mark.parametrize("options", [
    {"type": "k-fold", "folds": 1},
    {"type": "train-test-split", "train-split-percentage": 100},
    {"type": "train-test-split"},
])
def test_invalid_evaluate_options(write_config, options):
    manager = write_config({'hyperparameters': {'evaluate_options': options}})
    with pytest.raises(ConfigurationError):
        manager.load_and_validate()

def test_random_search_needs_iteration_count(write_config):
    manager = write_config({'hyperparameters': {'search_fn': {'type': 'random'}}})
    with pytest.raises(ConfigurationError, match="iteration-count"):
        manager.load_and_validate()

def test_malformed_search_space(write_config):
    manager = write_config({'hyperparameters': {'search_space': {'eta': {'type': 'decimal', 'min': 1}}}})
    with pytest.raises(ConfigurationError):
        manager.load_and_validate()

def test_grid_with_ranges_rejected(write_config):
    manager = write_config({'hyperparameters': {'search_space': {'eta': {'type': 'decimal', 'min': 0.1, 'max': 0.3}}}})
    with pytest.raises(ConfigurationError, match="Grid search"):
        manager.load_and_validate()

def test_hpo_explosion(write_config):
    manager = write_config({'resources': {'max_hpo_configs': 3}})
    with pytest.raises(ConfigurationError, match="HPO Grid Explosion Detected"):
        manager.load_and_validate()

def test_random_search_counts_iterations(write_config):
    manager = write_config({
        'hyperparameters': {'search_fn': {'type': 'random', 'iteration-count': 500}},
        'resources': {'max_hpo_configs': 100},
    })
    with pytest.raises(ConfigurationError, match="HPO Grid Explosion Detected"):
        manager.load_and_validate()

def test_invalid_n_jobs(write_config):
    with pytest.raises(ConfigurationError, match="n_jobs"):
        write_config({'execution': {'n_jobs': 0}}).load_and_validate()

def test_invalid_max_hours(write_config):
    with pytest.raises(ConfigurationError, match="max_hours"):
        write_config({'execution': {'max_hours': -1}}).load_and_validate()

def test_invalid_holdout(write_config):
    with pytest.raises(ConfigurationError):
        write_config({'splitting': {'holdout_percentage': 100}}).load_and_validate()

def test_hpo_disabled_skips_search_checks(write_config):
    manager = write_config({'hyperparameters': {'enabled': False, 'search_fn': {'type': 'random'}}})
    config = manager.load_and_validate()
    assert config['hyperparameters']['enabled'] is False

def test_generate_run_id_is_stable(write_config):
    manager = write_config()
    run_id = manager.generate_run_id()
    assert len(run_id) == len("YYYYMMDD_HHMMSS")
    assert manager.generate_run_id() == run_id

def test_save_artifacts(write_config, tmp_path):
    manager = write_config()
    manager.load_and_validate()
    manager.generate_run_id()
    manager.save_artifacts(str(tmp_path / "run"))

    config_dir = tmp_path / "run" / constants.CONFIG_DIR
    saved = json.loads((config_dir / constants.CONFIG_USED_FILE).read_text())
    assert saved['model']['task'] == 'regression'
    assert len((config_dir / constants.CONFIG_HASH_FILE).read_text()) == 64
    metadata = json.loads((config_dir / constants.RUN_METADATA_FILE).read_text())
    assert metadata['run_id'] == manager.run_id
