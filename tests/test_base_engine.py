import pytest
from unittest.mock import Mock
from pathlib import Path
from modules.base.base_engine import BaseEngine

# Concrete implementation for testing purposes
class ConcreteTestEngine(BaseEngine):
    def __init__(self, config, logger, engine_dir_name):
        self._engine_dir_name_value = engine_dir_name
        super().__init__(config, logger)

    def _get_engine_directory_name(self) -> str:
        return self._engine_dir_name_value

    def execute(self, *args, **kwargs):
        pass # Not relevant for BaseEngine tests

@pytest.fixture
def mock_logger():
    """Provides a mock logger instance."""
    return Mock()

@pytest.fixture
def base_config(tmp_path):
    """Provides a base configuration dictionary with a temporary results directory."""
    return {
        'outputs': {
            'base_results_dir': str(tmp_path)
        }
    }

def test_base_engine_directory_creation(base_config, mock_logger, tmp_path):
    engine = ConcreteTestEngine(base_config, mock_logger, "03_HyperparameterSearch")

    expected_dir = tmp_path / "03_HyperparameterSearch"
    assert engine.output_dir == expected_dir
    assert expected_dir.is_dir()
    mock_logger.info.assert_called_with(f"Output directory for ConcreteTestEngine: {expected_dir}")

def test_base_engine_skip_dir_creation(base_config, mock_logger, tmp_path):
    base_config['outputs']['skip_dir_creation'] = True
    engine = ConcreteTestEngine(base_config, mock_logger, "ENGINE")

    assert engine.output_dir == tmp_path / "ENGINE"
    assert not engine.output_dir.exists()
    mock_logger.info.assert_not_called()

def test_base_engine_default_results_dir(mock_logger, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    engine = ConcreteTestEngine({}, mock_logger, "ENGINE")
    assert engine.output_dir == Path("results") / "ENGINE"
