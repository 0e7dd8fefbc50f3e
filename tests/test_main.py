import json
import logging
import pytest
import numpy as np
from pathlib import Path

import main
from modules.training_set import TrainingSet, save_csv_files
from utils import constants

SCHEMA_PATH = Path(__file__).resolve().parents[1] / "config" / "schema.json"

# --- Fixtures ---

@pytest.fixture(autouse=True)
def isolate(tmp_path, monkeypatch):
    """Run inside tmp_path and restore the root logger afterwards."""
    monkeypatch.chdir(tmp_path)
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)

@pytest.fixture
def config_path(tmp_path):
    xs = np.linspace(0, 10, 40)
    ts = TrainingSet(['x'], [{'x': float(x)} for x in xs], [float(2 * x) for x in xs])
    save_csv_files(ts, tmp_path / "train.csv")

    config = {
        "data": {"training_set_path": str(tmp_path / "train.csv")},
        "model": {"algorithm": "decision-tree", "task": "regression", "hyperparameters": {"random_state": 0}},
        "splitting": {"holdout_percentage": 25, "shuffle": True, "seed": 7},
        "hyperparameters": {
            "enabled": True,
            "search_fn": {"type": "grid"},
            "search_space": {"max_depth": [1, 6]},
            "evaluate_options": {"type": "k-fold", "folds": 3}
        },
        "execution": {"n_jobs": 1},
        "outputs": {"base_results_dir": str(tmp_path / "results")},
        "logging": {"level": "INFO", "log_to_file": False}
    }
    path = tmp_path / "config.json"
    path.write_text(json.dumps(config))
    return path

# --- Tests ---

def test_dry_run(config_path, tmp_path):
    exit_code = main.main(["--config", str(config_path), "--schema", str(SCHEMA_PATH), "--dry-run"])
    assert exit_code == 0
    assert (tmp_path / "results" / constants.CONFIG_DIR / constants.CONFIG_USED_FILE).exists()
    assert not (tmp_path / "results" / constants.HPO_SEARCH_DIR).exists()

def test_full_pipeline(config_path, tmp_path):
    exit_code = main.main(["--config", str(config_path), "--schema", str(SCHEMA_PATH), "--run-id", "t1"])
    assert exit_code == 0

    run_dir = tmp_path / "results_t1"
    with open(run_dir / constants.HPO_SEARCH_DIR / "results" / constants.BEST_CONFIGURATION_FILE) as f:
        best = json.load(f)
    assert best['optimal_params'] == {'random_state': 0, 'max_depth': 6}
    assert (run_dir / constants.MASTER_SPLITS_DIR / "holdout.csv").exists()
    assert (run_dir / constants.FINAL_MODEL_DIR / "final_model.pkl").exists()

def test_skip_final_training(config_path, tmp_path):
    exit_code = main.main([
        "--config", str(config_path), "--schema", str(SCHEMA_PATH), "--skip-final-training"
    ])
    assert exit_code == 0
    assert not (tmp_path / "results" / constants.FINAL_MODEL_DIR).exists()

def test_invalid_config_returns_error(tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"data": {}}))
    assert main.main(["--config", str(bad), "--schema", str(SCHEMA_PATH)]) == 1

def test_resume_requires_existing_run(config_path):
    assert main.main([
        "--config", str(config_path), "--schema", str(SCHEMA_PATH), "--run-id", "nope", "--resume"
    ]) == 1
