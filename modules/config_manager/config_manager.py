import json
import os
import hashlib
import sys
import logging
import jsonschema
import psutil  # Required for memory awareness
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional

from modules.model_factory import ModelFactory
from modules.search_space import parse_search_space, grid_search_combos
from utils.exceptions import ConfigurationError
from utils import constants

class ConfigurationManager:
    """
    Manages system configuration loading, validation, and access.
    Acts as the single source of truth and safety guard for the pipeline.

    Validation layers:
    - Structure (JSON schema).
    - Logic (evaluation/search options, search space descriptors, bounds).
    - Resources (candidate count, memory).
    """

    # Default Resource Limits (Safety Guardrails)
    DEFAULT_MAX_HPO_CONFIGS = constants.DEFAULT_MAX_HPO_CONFIGS  # Prevent accidental combinatoric explosions

    def __init__(self, config_path: str = "config/config.json",
                 schema_path: str = "config/schema.json"):
        """
        Initialize the ConfigurationManager.

        Args:
            config_path (str): Path to the user configuration JSON.
            schema_path (str): Path to the JSON schema definition.
        """
        self.config_path = config_path
        self.schema_path = schema_path
        self.config: Dict[str, Any] = {}
        self.schema: Dict[str, Any] = {}
        self.run_id: Optional[str] = None
        self.logger = logging.getLogger("config_manager")

    def load_and_validate(self) -> Dict[str, Any]:
        """
        Main entry point. Loads config, validates schema/logic/resources,
        and propagates seeds.

        Returns:
            Dict[str, Any]: The fully validated and hydrated configuration.

        Raises:
            ConfigurationError: If any validation step fails.
        """
        # 1. Load Files
        self.config = self._load_json(self.config_path)
        self.schema = self._load_json(self.schema_path)

        # 2. Structural Validation (Schema)
        self._validate_schema()

        # 3. Logical Validation (Business Rules & Bounds)
        self._validate_logic()

        # 4. Resource Validation (Prevent Exhaustion)
        self._validate_resources()

        # 5. Internal Seed Propagation (Reproducibility)
        self._propagate_seeds()

        return self.config

    def generate_run_id(self) -> str:
        """
        Generate or retrieve a unique run identifier based on timestamp.
        Used for directory naming and metadata.
        """
        if not self.run_id:
            timestamp = datetime.now()
            # Format: YYYYMMDD_HHMMSS
            self.run_id = timestamp.strftime("%Y%m%d_%H%M%S")
        return self.run_id

    def save_artifacts(self, output_dir: str) -> None:
        """
        Save configuration artifacts to the run directory for full reproducibility.

        Saves:
        1. config_used.json: The exact config object in memory.
        2. config_hash.txt: SHA256 hash for versioning.
        3. run_metadata.json: Environment details (Python version, Platform, etc.).
        """
        config_dir = Path(output_dir) / constants.CONFIG_DIR
        config_dir.mkdir(parents=True, exist_ok=True)

        # 1. Save Config
        with open(config_dir / constants.CONFIG_USED_FILE, 'w') as f:
            json.dump(self.config, f, indent=2)

        # 2. Calculate and Save Hash
        config_str = json.dumps(self.config, sort_keys=True)
        config_hash = hashlib.sha256(config_str.encode()).hexdigest()

        with open(config_dir / constants.CONFIG_HASH_FILE, 'w') as f:
            f.write(config_hash)

        # 3. Save Metadata (Environment Capture)
        metadata = {
            'run_id': self.run_id,
            'start_time': datetime.now().isoformat(),
            'python_version': sys.version,
            'platform': sys.platform,
            'config_hash': config_hash,
            'working_directory': os.getcwd()
        }

        with open(config_dir / constants.RUN_METADATA_FILE, 'w') as f:
            json.dump(metadata, f, indent=2)

    def _load_json(self, path: str) -> Dict[str, Any]:
        """Safely load a JSON file."""
        if not os.path.exists(path):
            raise ConfigurationError(f"File not found: {path}")
        try:
            with open(path, 'r') as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in {path}: {str(e)}")

    def _validate_schema(self) -> None:
        """Validate config structure against JSON schema."""
        try:
            jsonschema.validate(instance=self.config, schema=self.schema)
        except jsonschema.ValidationError as e:
            raise ConfigurationError(f"Schema validation failed: {e.message}")

    def _validate_logic(self) -> None:
        """Comprehensive logical validation."""
        # --- Data Section ---
        data = self.config.get('data', {})
        if not data.get('training_set_path'):
            raise ConfigurationError("Data 'training_set_path' must be specified and non-empty.")

        # --- Model Section ---
        model = self.config.get('model', {})
        task = model.get('task', constants.TASK_REGRESSION)
        if task not in constants.TASK_TYPES:
            raise ConfigurationError(f"Unknown task type: {task}. Available: {constants.TASK_TYPES}")
        algorithm = model.get('algorithm', constants.ALGO_GRADIENT_BOOSTED_TREES)
        try:
            ModelFactory.create(algorithm, task)
        except ValueError as e:
            raise ConfigurationError(str(e))

        # --- Splitting Section ---
        split = self.config.get('splitting', {})
        holdout = split.get('holdout_percentage') or 0
        if not (0 <= holdout < 100):
            raise ConfigurationError(f"holdout_percentage must be in [0, 100), got {holdout}")
        if split.get('seed', constants.DEFAULT_SEED) < 0:
            raise ConfigurationError("Splitting seed must be non-negative.")

        # --- HPO Section ---
        hpo = self.config.get('hyperparameters', {})
        if hpo.get('enabled', True):
            self._validate_evaluate_options(hpo.get('evaluate_options', {'type': constants.EVAL_K_FOLD, 'folds': 5}))
            self._validate_search(hpo.get('search_fn', {'type': constants.SEARCH_GRID}), hpo.get('search_space', {}))

        # Execution validation
        execution = self.config.get('execution', {})
        if 'max_hours' in execution and execution['max_hours'] is not None and execution['max_hours'] <= 0:
            raise ConfigurationError(f"execution.max_hours must be > 0, got {execution['max_hours']}")
        if 'n_jobs' in execution:
            n_jobs = execution['n_jobs']
            if n_jobs == 0 or n_jobs < -1:
                raise ConfigurationError(f"execution.n_jobs must be -1 (all cores) or a positive integer, got {n_jobs}")

    def _validate_evaluate_options(self, options: Dict[str, Any]) -> None:
        eval_type = options.get('type')
        if eval_type == constants.EVAL_K_FOLD:
            folds = options.get('folds', 5)
            if folds < 2:
                raise ConfigurationError(f"k-fold 'folds' must be >= 2, got {folds}.")
        elif eval_type == constants.EVAL_TRAIN_TEST_SPLIT:
            percent = options.get('train-split-percentage')
            if percent is None or not (0 < percent < 100):
                raise ConfigurationError(
                    f"train-split-percentage must be in (0, 100), got {percent}."
                )
        else:
            raise ConfigurationError(
                f"Unknown evaluation type: {eval_type!r}. "
                f"Expected '{constants.EVAL_K_FOLD}' or '{constants.EVAL_TRAIN_TEST_SPLIT}'."
            )

    def _validate_search(self, search_fn: Dict[str, Any], search_space: Dict[str, Any]) -> None:
        search_type = search_fn.get('type')
        if search_type == constants.SEARCH_RANDOM:
            count = search_fn.get('iteration-count')
            if count is None or count <= 0:
                raise ConfigurationError(f"Random search needs a positive 'iteration-count', got {count}.")
        elif search_type != constants.SEARCH_GRID:
            raise ConfigurationError(
                f"Unknown search type: {search_type!r}. "
                f"Expected '{constants.SEARCH_GRID}' or '{constants.SEARCH_RANDOM}'."
            )
        # Raises ConfigurationError on malformed descriptors
        parse_search_space(search_space)

    def _validate_resources(self) -> None:
        """
        Validate against system resources.
        Calculates the number of candidates and ensures it fits within safe limits.
        """
        resources = self.config.get('resources', {})

        # 1. HPO Grid Explosion Check
        hpo = self.config.get('hyperparameters', {})
        if hpo.get('enabled', True):
            search_fn = hpo.get('search_fn', {'type': constants.SEARCH_GRID})
            if search_fn.get('type') == constants.SEARCH_GRID:
                total_configs = len(grid_search_combos(hpo.get('search_space', {})))
            else:
                total_configs = search_fn['iteration-count']

            max_configs = resources.get('max_hpo_configs', self.DEFAULT_MAX_HPO_CONFIGS)

            if total_configs > max_configs:
                raise ConfigurationError(
                    f"HPO Grid Explosion Detected! Total configurations ({total_configs}) exceeds "
                    f"safety limit ({max_configs}). Reduce the search space or increase 'resources.max_hpo_configs'."
                )

            # Log the grid size for visibility
            self.logger.info(f"HPO search size validated: {total_configs} candidates (Limit: {max_configs})")

        # 2. Memory Limits Check
        # Get system total memory in MB
        system_ram_mb = int(psutil.virtual_memory().total / (1024 * 1024))
        # Default safety buffer: 80% of system RAM
        safe_ram_limit = int(system_ram_mb * 0.8)

        config_max_ram = resources.get('max_memory_mb', safe_ram_limit)

        if config_max_ram > system_ram_mb:
            self.logger.warning(
                f"Configured max_memory_mb ({config_max_ram}MB) exceeds physical system RAM ({system_ram_mb}MB). "
                "This may lead to instability."
            )

        # Inject the safe limit back into config if not present, for other modules to use
        if 'resources' not in self.config:
            self.config['resources'] = {}
        self.config['resources']['max_memory_mb'] = config_max_ram

    def _propagate_seeds(self) -> None:
        """
        Propagate master seed to internal components to ensure full pipeline reproducibility.
        Uses large, non-overlapping offsets to avoid correlation between components.
        """
        master_seed = self.config.setdefault('splitting', {}).get('seed', constants.DEFAULT_SEED)

        self.config['_internal_seeds'] = {
            'split': master_seed,
            'cv': master_seed + 1000,
            'search': master_seed + 2000,
            'model': master_seed + 3000,
        }
        self.logger.debug(f"Seeds propagated from master ({master_seed}): {self.config['_internal_seeds']}")
