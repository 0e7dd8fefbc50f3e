# utils/constants.py

# --- Top-Level Result Directories ---
# Sequentially numbered for proper sorting

CONFIG_DIR = "01_RunConfiguration"               # Run config, metadata, seeds
MASTER_SPLITS_DIR = "02_MasterDataSplits"        # Train/holdout split
HPO_SEARCH_DIR = "03_HyperparameterSearch"       # Candidate results, best config
FINAL_MODEL_DIR = "04_TrainedModel"              # Model fitted with the optimal params

TOP_LEVEL_RESULT_DIRS = [
    CONFIG_DIR,
    MASTER_SPLITS_DIR,
    HPO_SEARCH_DIR,
    FINAL_MODEL_DIR,
]

# --- HPO Sub-Directories ---
HPO_PROGRESS_DIR = "progress"
HPO_RESULTS_DIR = "results"

# --- File Names ---
CONFIG_USED_FILE = "config_used.json"
CONFIG_HASH_FILE = "config_hash.txt"
RUN_METADATA_FILE = "run_metadata.json"
HPO_PROGRESS_FILE = "hpo_progress.jsonl"
ALL_CONFIGURATIONS_FILE = "all_configurations.parquet"
BEST_CONFIGURATION_FILE = "best_configuration.json"
TRAINING_METADATA_FILE = "training_metadata.json"
SPLIT_REPORT_FILE = "split_report.parquet"

# --- Training Set CSV Columns ---
LABEL_COLUMN = "label"
WEIGHT_COLUMN = "weight"
GROUP_COLUMN = "group"

# --- Task Types ---
TASK_REGRESSION = "regression"
TASK_RANKING = "ranking"
TASK_CLASSIFICATION = "classification"
TASK_TYPES = [TASK_REGRESSION, TASK_RANKING, TASK_CLASSIFICATION]

# --- Algorithms ---
ALGO_GRADIENT_BOOSTED_TREES = "gradient-boosted-trees"
ALGO_DECISION_TREE = "decision-tree"
ALGO_RANDOM_FOREST = "random-forest"
ALGO_SVM = "svm"
ALGO_LINEAR_SVM = "linear-svm"

# --- Search / Evaluation Modes ---
SEARCH_GRID = "grid"
SEARCH_RANDOM = "random"
EVAL_K_FOLD = "k-fold"
EVAL_TRAIN_TEST_SPLIT = "train-test-split"

# --- Numerical Tolerances ---
FRACTION_SUM_TOLERANCE = 1e-8
SPLIT_SIZE_TOLERANCE = 1e-9

# --- Resource Defaults ---
DEFAULT_MAX_HPO_CONFIGS = 1000
DEFAULT_SEED = 42
