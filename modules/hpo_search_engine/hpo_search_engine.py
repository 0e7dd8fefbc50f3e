import pandas as pd
import numpy as np
import json
import time
import logging
import datetime
import shutil
import contextlib
import gc  # Explicit garbage collection
from pathlib import Path
from typing import Dict, Any, List, Optional
from joblib import Parallel, delayed

from modules.base.base_engine import BaseEngine
from modules.cross_validation import build_folds
from modules.evaluation_engine import evaluate_predictions, primary_metric, is_better, worst_score
from modules.model_factory import ModelBackend, ModelFactory
from modules.search_space import generate_candidates, merge_hyperparameters
from modules.training_set import TrainingSet, load_csv_files
from utils.cache import fingerprint
from utils.error_handling import handle_engine_errors
from utils.exceptions import EmptySearchSpaceError, OptimizationTimeoutError
from utils.file_io import NumpyEncoder, save_dataframe, save_json
from utils import constants

DEFAULT_EVALUATE_OPTIONS = {'type': constants.EVAL_K_FOLD, 'folds': 5}
DEFAULT_SEARCH_FN = {'type': constants.SEARCH_GRID}

# --- Helper: Safe File Locking ---
@contextlib.contextmanager
def file_lock(lock_file: Path, timeout: int = 60, poll_interval: float = 0.1):
    """
    A cross-platform file locking mechanism using a directory (atomic on most OS).
    Prevents race conditions when writing to the progress file.
    """
    lock_dir = lock_file.parent / (lock_file.name + ".lock")
    start_time = time.time()

    while True:
        try:
            lock_dir.mkdir(exist_ok=False)
            break
        except FileExistsError:
            if time.time() - start_time > timeout:
                logging.warning(f"Lock timeout expired for {lock_file}. Forcing release.")
                shutil.rmtree(lock_dir, ignore_errors=True)
            time.sleep(poll_interval)

    try:
        yield
    finally:
        shutil.rmtree(lock_dir, ignore_errors=True)


def run_single_fold(backend: ModelBackend, task: str, params: Dict[str, Any],
                    train: TrainingSet, validation: TrainingSet,
                    deadline: Optional[float] = None) -> Dict[str, float]:
    """Train on one fold, score the validation part, always release the model."""
    if deadline is not None and time.time() > deadline:
        raise OptimizationTimeoutError("Optimization time budget exhausted.")

    handle = backend.train(train, params)
    try:
        predictions = backend.predict_many(handle, params, validation.to_matrix())
        return evaluate_predictions(task, validation, predictions)
    finally:
        backend.dispose(handle)


class HPOSearchEngine(BaseEngine):
    """
    Hyperparameter Optimization Engine.

    Every candidate combination, merged over the base hyperparameters, is
    trained and scored on each evaluation fold. Fold metrics are averaged and
    the candidate with the best primary metric wins; on an exact tie the
    first enumerated candidate is kept.

    - A candidate failing on any fold is logged and excluded, never raised.
    - Loading errors, an empty result set and time-outs are fatal.
    - Results are streamed to a JSONL progress file so runs can resume.
    """

    def __init__(self, config: dict, logger: logging.Logger, backend: Optional[ModelBackend] = None):
        super().__init__(config, logger)
        self.hpo_config = config.get('hyperparameters', {})

        model_cfg = config.get('model', {})
        self.algorithm = model_cfg.get('algorithm', constants.ALGO_GRADIENT_BOOSTED_TREES)
        self.task = model_cfg.get('task', constants.TASK_REGRESSION)
        self.base_hyperparameters = model_cfg.get('hyperparameters', {})
        self.backend = backend or ModelFactory.create(self.algorithm, self.task)

        execution = config.get('execution', {})
        self.n_jobs = execution.get('n_jobs', 1)
        self.max_hours = execution.get('max_hours')
        self.resume = execution.get('resume', False)

        seeds = config.get('_internal_seeds', {})
        master_seed = config.get('splitting', {}).get('seed', constants.DEFAULT_SEED)
        self.cv_seed = seeds.get('cv', master_seed)
        self.search_seed = seeds.get('search', master_seed)

        # Resource Limits
        self.max_configs = config.get('resources', {}).get('max_hpo_configs', constants.DEFAULT_MAX_HPO_CONFIGS)

        self.progress_file: Optional[Path] = None
        self.completed: Dict[str, Dict[str, Any]] = {}
        self._deadline: Optional[float] = None

    def _get_engine_directory_name(self) -> str:
        return constants.HPO_SEARCH_DIR

    @handle_engine_errors("Hyperparameter Optimization")
    def execute(self, run_id: str, training_set: Optional[TrainingSet] = None) -> Dict[str, Any]:
        """
        Run the search on ``training_set``, loading it from ``data.*`` paths
        when not given.

        Returns:
            {'optimal_params': ..., 'model_evaluations': ...}
        """
        if not self.hpo_config.get('enabled', True):
            self.logger.info("HPO disabled. Using the base hyperparameters.")
            return {
                'optimal_params': dict(self.base_hyperparameters),
                'model_evaluations': {}
            }

        if training_set is None:
            training_set = self.load_training_set()
        return self.optimize(training_set, run_id)

    def load_training_set(self) -> TrainingSet:
        data = self.config['data']
        return load_csv_files(
            data['training_set_path'],
            weights_path=data.get('weights_path'),
            groups_path=data.get('groups_path'),
        )

    def generate_candidates(self) -> List[Dict[str, Any]]:
        search_fn = self.hpo_config.get('search_fn', DEFAULT_SEARCH_FN)
        search_space = self.hpo_config.get('search_space', {})
        candidates = generate_candidates(search_fn, search_space, seed=self.search_seed)

        if len(candidates) > self.max_configs:
            self.logger.warning(
                f"Max HPO configs ({self.max_configs}) reached. "
                f"Evaluating the first {self.max_configs} of {len(candidates)} candidates."
            )
            candidates = candidates[:self.max_configs]
        return candidates

    def optimize(self, training_set: TrainingSet, run_id: str) -> Dict[str, Any]:
        self.logger.info("Starting Hyperparameter Optimization (HPO)...")

        progress_dir = self.output_dir / constants.HPO_PROGRESS_DIR
        results_dir = self.output_dir / constants.HPO_RESULTS_DIR
        progress_dir.mkdir(parents=True, exist_ok=True)
        results_dir.mkdir(parents=True, exist_ok=True)

        # Resume Capability
        self.progress_file = progress_dir / constants.HPO_PROGRESS_FILE
        self.completed = {}
        if self.resume:
            self._load_progress()
        elif self.progress_file.exists():
            self.progress_file.unlink()

        self._deadline = time.time() + self.max_hours * 3600 if self.max_hours else None

        candidates = self.generate_candidates()
        if not candidates:
            raise EmptySearchSpaceError("The search space produced no candidates.")

        evaluate_options = self.hpo_config.get('evaluate_options', DEFAULT_EVALUATE_OPTIONS)
        folds = build_folds(
            training_set, evaluate_options, shuffle=self.hpo_config.get('shuffle', True), seed=self.cv_seed
        )
        self.logger.info(
            f"Evaluating {len(candidates)} candidates x {len(folds)} folds "
            f"({self.algorithm}, {self.task}, {evaluate_options.get('type')})"
        )

        results = []
        for config_id, candidate in enumerate(candidates, start=1):
            self._check_deadline()
            params = merge_hyperparameters(self.base_hyperparameters, candidate)
            config_hash = fingerprint(json.dumps(params, sort_keys=True, cls=NumpyEncoder))

            if config_hash in self.completed:
                results.append(self.completed[config_hash])
                continue

            entry = self._evaluate_candidate(config_id, config_hash, params, folds)
            self._save_progress(entry)
            results.append(entry)

            # Memory Management
            gc.collect()

            if config_id % 10 == 0:
                self.logger.info(f"Processed {config_id} configs...")

        return self._finalize_results(results, results_dir)

    def _check_deadline(self) -> None:
        if self._deadline is not None and time.time() > self._deadline:
            raise OptimizationTimeoutError(
                f"HPO exceeded execution.max_hours ({self.max_hours}). Aborting the search."
            )

    def _evaluate_candidate(self, config_id: int, config_hash: str,
                            params: Dict[str, Any], folds) -> Dict[str, Any]:
        """Evaluate one candidate on every fold and aggregate by mean."""
        start_time = time.time()
        metrics: Dict[str, float] = {}
        metrics_std: Dict[str, float] = {}
        error = None

        try:
            fold_results = Parallel(n_jobs=self.n_jobs)(
                delayed(run_single_fold)(self.backend, self.task, params, train, validation, self._deadline)
                for train, validation in folds
            )

            for name in fold_results[0]:
                values = [res[name] for res in fold_results]
                metrics[name] = float(np.mean(values))
                metrics_std[name] = float(np.std(values))

            metric_name, _ = primary_metric(self.task)
            if not np.isfinite(metrics.get(metric_name, np.nan)):
                raise ValueError(f"Primary metric '{metric_name}' is not finite: {metrics.get(metric_name)}")
            status = "success"

        except OptimizationTimeoutError:
            raise
        except Exception as e:
            self.logger.error(f"HPO Failed for {self.algorithm} {params}: {str(e)}")
            metrics, metrics_std = {}, {}
            error = str(e)
            status = "failed"

        return {
            'config_id': config_id,
            'config_hash': config_hash,
            'model_name': self.algorithm,
            'status': status,
            'timestamp': datetime.datetime.now().isoformat(),
            'duration_sec': time.time() - start_time,
            'params': params,
            'metrics': metrics,
            'metrics_std': metrics_std,
            'error': error,
        }

    def _load_progress(self):
        """Load successful entries of a previous run from the progress file."""
        if not self.progress_file.exists():
            return
        with open(self.progress_file, 'r') as f:
            for line in f:
                if not line.strip():
                    continue
                try:
                    entry = json.loads(line)
                except json.JSONDecodeError:
                    self.logger.warning("Skipping corrupt line in HPO progress file.")
                    continue
                if entry.get('status') == 'success' and 'config_hash' in entry:
                    self.completed[entry['config_hash']] = entry
        self.logger.info(f"Resumed HPO: {len(self.completed)} configs completed.")

    def _save_progress(self, result_entry: dict):
        """Append result with locking."""
        with file_lock(self.progress_file):
            with open(self.progress_file, 'a') as f:
                f.write(json.dumps(result_entry, cls=NumpyEncoder) + "\n")

    def _finalize_results(self, results: List[Dict[str, Any]], output_dir: Path) -> Dict[str, Any]:
        """Select the best candidate and write the summary artifacts."""
        metric_name, direction = primary_metric(self.task)

        best_entry = None
        best_score = worst_score(self.task)
        for entry in results:
            if entry['status'] != 'success':
                continue
            score = entry['metrics'][metric_name]
            if is_better(self.task, score, best_score):
                best_entry, best_score = entry, score

        self._save_all_configurations(results, output_dir)

        if best_entry is None:
            raise EmptySearchSpaceError(
                f"None of the {len(results)} candidates could be evaluated successfully."
            )

        formatted_best = {
            'model': self.algorithm,
            'task': self.task,
            'config_id': best_entry['config_id'],
            'primary_metric': metric_name,
            'direction': direction,
            'optimal_params': best_entry['params'],
            'model_evaluations': best_entry['metrics'],
        }
        save_json(formatted_best, output_dir / constants.BEST_CONFIGURATION_FILE)

        failed = sum(1 for entry in results if entry['status'] != 'success')
        if failed:
            self.logger.warning(f"{failed} of {len(results)} candidates failed and were excluded.")
        self.logger.info(
            f"Best Config Found: #{best_entry['config_id']} {best_entry['params']} "
            f"({metric_name}: {best_entry['metrics'][metric_name]:.4f})"
        )

        return {
            'optimal_params': best_entry['params'],
            'model_evaluations': best_entry['metrics'],
        }

    def _save_all_configurations(self, results: List[Dict[str, Any]], output_dir: Path) -> None:
        rows = []
        for entry in results:
            row = {
                'config_id': entry['config_id'],
                'config_hash': entry['config_hash'],
                'model_name': entry['model_name'],
                'status': entry['status'],
                'duration_sec': entry['duration_sec'],
                'error': entry['error'],
            }
            row.update({f"param_{k}": v for k, v in entry['params'].items()})
            row.update({f"cv_{k}_mean": v for k, v in entry['metrics'].items()})
            row.update({f"cv_{k}_std": v for k, v in entry['metrics_std'].items()})
            rows.append(row)

        try:
            full_df = pd.DataFrame(rows)
            excel_copy = self.config.get("outputs", {}).get("save_excel_copy", False)
            save_dataframe(full_df, output_dir / constants.ALL_CONFIGURATIONS_FILE, excel_copy=excel_copy, index=False)
        except Exception as e:
            # Mixed-type parameter columns cannot always be stored as Parquet
            self.logger.error(f"Failed to compile final results file: {e}")
