from typing import Dict, List
from sklearn.ensemble import RandomForestRegressor, RandomForestClassifier
from sklearn.svm import SVR, LinearSVR, SVC, LinearSVC
from sklearn.tree import DecisionTreeRegressor, DecisionTreeClassifier

from modules.model_factory.backends import ModelBackend, SklearnBackend
from modules.model_factory.xgboost_backend import XGBoostBackend
from utils.exceptions import ConfigurationError
from utils import constants

class ModelFactory:
    """
    Factory for model backends with a unified capability set.
    Gradient-boosted trees go through XGBoost; the other algorithms wrap
    scikit-learn estimators chosen by task type.
    """

    # Ranking models are fitted as regressors on relevance labels
    SKLEARN_REGRESSORS = {
        constants.ALGO_DECISION_TREE: DecisionTreeRegressor,
        constants.ALGO_RANDOM_FOREST: RandomForestRegressor,
        constants.ALGO_SVM: SVR,
        constants.ALGO_LINEAR_SVM: LinearSVR,
    }

    SKLEARN_CLASSIFIERS = {
        constants.ALGO_DECISION_TREE: DecisionTreeClassifier,
        constants.ALGO_RANDOM_FOREST: RandomForestClassifier,
        constants.ALGO_SVM: SVC,
        constants.ALGO_LINEAR_SVM: LinearSVC,
    }

    @classmethod
    def create(cls, algorithm: str, task: str = constants.TASK_REGRESSION) -> ModelBackend:
        """
        Create and return a backend for ``algorithm`` solving ``task``.
        """
        if task not in constants.TASK_TYPES:
            raise ConfigurationError(f"Unknown task type: {task}. Available: {constants.TASK_TYPES}")

        if algorithm == constants.ALGO_GRADIENT_BOOSTED_TREES:
            return XGBoostBackend(task)

        estimators = cls._estimators_for(task)
        if algorithm in estimators:
            return SklearnBackend(estimators[algorithm], name=algorithm)

        raise ValueError(f"Unknown model name: {algorithm}. Available: {cls.get_available_models()}")

    @classmethod
    def get_available_models(cls) -> List[str]:
        """Return list of all supported algorithm names."""
        return [constants.ALGO_GRADIENT_BOOSTED_TREES] + list(cls.SKLEARN_REGRESSORS.keys())

    @classmethod
    def _estimators_for(cls, task: str) -> Dict[str, type]:
        if task == constants.TASK_CLASSIFICATION:
            return cls.SKLEARN_CLASSIFIERS
        return cls.SKLEARN_REGRESSORS
