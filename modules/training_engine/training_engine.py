import logging
import time
import gc
from typing import Any, Dict, Optional

from modules.base.base_engine import BaseEngine
from modules.evaluation_engine import evaluate_predictions
from modules.model_factory import ModelBackend, ModelFactory, ModelHandle
from modules.training_set import TrainingSet
from utils.error_handling import handle_engine_errors
from utils.exceptions import ModelTrainingError
from utils.file_io import save_json
from utils import constants


class TrainingEngine(BaseEngine):
    """
    Trains the final model using the optimal configuration and saves it for production.

    Improvements:
    - Explicit garbage collection (Memory Optimization).
    - Robust JSON serialization for metadata.
    - Timing metrics.
    - Optional holdout scoring with the same metric set as the search.
    """

    def __init__(self, config: dict, logger: logging.Logger, backend: Optional[ModelBackend] = None):
        super().__init__(config, logger)
        model_cfg = config.get('model', {})
        self.algorithm = model_cfg.get('algorithm', constants.ALGO_GRADIENT_BOOSTED_TREES)
        self.task = model_cfg.get('task', constants.TASK_REGRESSION)
        self.backend = backend or ModelFactory.create(self.algorithm, self.task)

    def _get_engine_directory_name(self) -> str:
        return constants.FINAL_MODEL_DIR

    @handle_engine_errors("Training")
    def execute(self, training_set: TrainingSet, params: Dict[str, Any], run_id: str,
                holdout: Optional[TrainingSet] = None) -> ModelHandle:
        """
        Train the model on the full training set.

        Args:
            training_set: Examples to fit on.
            params: Optimal hyperparameters from the search.
            run_id: Run identifier.
            holdout: Optional untouched examples to score the final model on.

        Returns:
            Handle of the trained model. The caller owns it and disposes it.
        """
        self.logger.info("Starting Final Model Training...")

        if training_set.num_examples == 0:
            raise ModelTrainingError("Cannot train the final model on an empty training set.")

        self.logger.info(
            f"Training {self.algorithm} ({self.task}) on {training_set.num_examples} examples "
            f"with {len(training_set.features)} features."
        )

        try:
            start_time = time.time()
            handle = self.backend.train(training_set, params)
            duration = time.time() - start_time
        except Exception as e:
            gc.collect()
            raise ModelTrainingError(f"Failed to train model: {str(e)}") from e

        self.logger.info(f"Training completed in {duration:.2f} seconds.")

        try:
            holdout_metrics = self._score_holdout(handle, params, holdout)
            if self.config.get('outputs', {}).get('save_models', True):
                self._save_artifacts(handle, training_set, params, run_id, duration, holdout_metrics)
        except Exception:
            # The caller never sees this handle
            self.backend.dispose(handle)
            raise

        gc.collect()
        return handle

    def _score_holdout(self, handle: ModelHandle, params: Dict[str, Any],
                       holdout: Optional[TrainingSet]) -> Dict[str, float]:
        if holdout is None or holdout.num_examples == 0:
            return {}
        predictions = self.backend.predict_many(handle, params, holdout.to_matrix())
        holdout_metrics = evaluate_predictions(self.task, holdout, predictions)
        self.logger.info(f"Holdout metrics: {holdout_metrics}")
        return holdout_metrics

    def _save_artifacts(self, handle: ModelHandle, training_set: TrainingSet, params: Dict[str, Any],
                        run_id: str, duration: float, holdout_metrics: Dict[str, float]) -> None:
        model_path = self.output_dir / f"final_model{self.backend.model_suffix}"
        self.backend.save(handle, model_path)
        self.logger.info(f"Model saved to {model_path}")

        # Include exact features for reproducibility checks later
        metadata = {
            'run_id': run_id,
            'model': self.algorithm,
            'task': self.task,
            'params': params,
            'features': list(training_set.features),
            'num_examples': training_set.num_examples,
            'num_groups': training_set.num_groups,
            'training_time_sec': duration,
            'holdout_metrics': holdout_metrics,
            'timestamp': time.strftime("%Y-%m-%d %H:%M:%S")
        }
        save_json(metadata, self.output_dir / constants.TRAINING_METADATA_FILE)
