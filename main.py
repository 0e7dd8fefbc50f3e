#!/usr/bin/env python
"""
Model Search Pipeline - Main Entry Point
Loads a training set, searches hyperparameters with cross-validation and
trains the final model with the optimal configuration.
"""
import os
import sys
import logging
import argparse
import traceback
import random
from pathlib import Path
from typing import Optional, Sequence

import numpy as np

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

# Core Infrastructure
from modules.config_manager import ConfigurationManager
from modules.logging_config import LoggingConfigurator
from modules.training_set import load_csv_files
from modules.split_engine import SplitEngine
from modules.hpo_search_engine import HPOSearchEngine
from modules.training_engine import TrainingEngine
from utils.exceptions import ModelSearchException
from utils import constants


def parse_arguments(argv: Optional[Sequence[str]] = None):
    """
    Parse command-line arguments for configurable pipeline execution.

    Returns:
        argparse.Namespace: Parsed command-line arguments.
    """
    parser = argparse.ArgumentParser(
        description="Model Search Pipeline - Hyperparameter Optimization & Final Training",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    parser.add_argument(
        "--config",
        type=str,
        default="config/config.json",
        help="Path to the configuration JSON file"
    )

    parser.add_argument(
        "--schema",
        type=str,
        default="config/schema.json",
        help="Path to the configuration JSON schema"
    )

    parser.add_argument(
        "--run-id",
        type=str,
        default=None,
        help="Optional run identifier (defaults to timestamp if not provided)"
    )

    parser.add_argument(
        "--resume",
        action="store_true",
        help="Resume the hyperparameter search of an existing run directory"
    )

    parser.add_argument(
        "--skip-final-training",
        action="store_true",
        help="Stop after the hyperparameter search"
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging"
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate configuration and setup without running the pipeline"
    )

    return parser.parse_args(argv)


def setup_global_determinism(config: dict, logger: logging.Logger):
    """Seed the global random generators from the model seed."""
    seed = config.get('_internal_seeds', {}).get('model', constants.DEFAULT_SEED)
    logger.info(f"Setting Global Deterministic Seed: {seed}")

    random.seed(seed)
    np.random.seed(seed)
    os.environ['PYTHONHASHSEED'] = str(seed)


def setup_run_directory(config: dict, run_id: str = None, resume: bool = False, logger: logging.Logger = None):
    """
    Setup or resume the run directory structure.

    Returns:
        tuple: (run_dir Path, run_id string)
    """
    base_results_dir = config.get('outputs', {}).get('base_results_dir', 'results')
    run_dir = Path(f"{base_results_dir}_{run_id}" if run_id else base_results_dir).absolute()

    if resume:
        if not run_dir.exists():
            raise ModelSearchException(f"Cannot resume: directory '{run_dir}' does not exist")
        if logger:
            logger.info(f"Resuming from existing run: {run_dir.name}")
    else:
        run_dir.mkdir(parents=True, exist_ok=True)
        if logger:
            logger.info(f"Created new run directory: {run_dir.name}")

    return run_dir, run_id or run_dir.name


def main(argv: Optional[Sequence[str]] = None):
    """
    Main pipeline orchestration function.

    Returns:
        int: Exit code (0 for success, 1 for errors)
    """
    logger = None

    try:
        args = parse_arguments(argv)

        print("\n" + "=" * 80)
        print("    MODEL SEARCH PIPELINE")
        print("=" * 80 + "\n")

        # ---------------------------------------------------------------
        # PHASE 0: INITIALIZATION & VALIDATION
        # ---------------------------------------------------------------
        config_manager = ConfigurationManager(config_path=args.config, schema_path=args.schema)
        config = config_manager.load_and_validate()

        # Override config settings from CLI if provided
        if args.verbose:
            config.setdefault('logging', {})['level'] = 'DEBUG'
        if args.resume:
            config.setdefault('execution', {})['resume'] = True

        logging_configurator = LoggingConfigurator(config)
        logging_configurator.setup()
        logger = logging_configurator.get_logger('pipeline')

        logger.info("Pipeline initialization started")
        logger.info(f"Configuration loaded from: {args.config}")

        run_dir, run_id = setup_run_directory(
            config,
            run_id=args.run_id,
            resume=args.resume,
            logger=logger
        )
        config_manager.run_id = run_id
        config.setdefault('outputs', {})['base_results_dir'] = str(run_dir)

        config_manager.save_artifacts(str(run_dir))
        setup_global_determinism(config, logger)

        logger.info(f"Run ID: {run_id}")
        logger.info(f"Output Directory: {run_dir}")

        if args.dry_run:
            logger.info("Dry run mode: validation complete. Exiting without running pipeline.")
            print("\n[SUCCESS] Configuration validated successfully.")
            return 0

        # ---------------------------------------------------------------
        # PHASE 1: DATA INGESTION & SPLITTING
        # ---------------------------------------------------------------
        logger.info("=" * 60)
        logger.info("PHASE 1: DATA INGESTION & SPLITTING")
        logger.info("=" * 60)

        data = config['data']
        training_set = load_csv_files(
            data['training_set_path'],
            weights_path=data.get('weights_path'),
            groups_path=data.get('groups_path'),
        )
        logger.info(
            f"Training set loaded: {training_set.num_examples} examples, "
            f"{len(training_set.features)} features, {training_set.num_groups or 0} groups"
        )

        train, holdout = SplitEngine(config, logger).execute(training_set, run_id)

        # ---------------------------------------------------------------
        # PHASE 2: HYPERPARAMETER SEARCH
        # ---------------------------------------------------------------
        logger.info("=" * 60)
        logger.info("PHASE 2: HYPERPARAMETER SEARCH")
        logger.info("=" * 60)

        search_result = HPOSearchEngine(config, logger).execute(run_id, training_set=train)
        logger.info(f"Optimal hyperparameters: {search_result['optimal_params']}")
        logger.info(f"Model evaluations: {search_result['model_evaluations']}")

        # ---------------------------------------------------------------
        # PHASE 3: FINAL TRAINING
        # ---------------------------------------------------------------
        if args.skip_final_training:
            logger.info("PHASE 3: FINAL TRAINING SKIPPED (--skip-final-training flag set)")
        else:
            logger.info("=" * 60)
            logger.info("PHASE 3: FINAL TRAINING")
            logger.info("=" * 60)

            training_engine = TrainingEngine(config, logger)
            handle = training_engine.execute(train, search_result['optimal_params'], run_id, holdout=holdout)
            training_engine.backend.dispose(handle)

        logger.info("-" * 60)
        logger.info("PIPELINE COMPLETED SUCCESSFULLY")
        logger.info(f"Run ID: {run_id}")
        logger.info(f"Output Directory: {run_dir}")
        logger.info("-" * 60)

        print(f"\n[SUCCESS] Pipeline completed. Results saved to: {run_dir}")
        return 0

    except ModelSearchException as e:
        # Known pipeline errors
        msg = f"Pipeline Error: {str(e)}"
        print(f"\n[ERROR] {msg}")
        if logger:
            logger.critical(msg, exc_info=True)
        else:
            traceback.print_exc()
        return 1

    except KeyboardInterrupt:
        print("\n[INTERRUPTED] Pipeline interrupted by user.")
        if logger:
            logger.warning("Pipeline interrupted by user (Ctrl+C)")
        return 130

    except Exception as e:
        # Unexpected errors
        msg = f"Unexpected Error: {str(e)}"
        print(f"\n[CRITICAL] {msg}")
        if logger:
            logger.critical(msg, exc_info=True)
        else:
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
