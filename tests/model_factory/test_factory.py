import pytest
from sklearn.tree import DecisionTreeClassifier, DecisionTreeRegressor
from sklearn.svm import LinearSVR

from modules.model_factory import ModelFactory, SklearnBackend, XGBoostBackend, filter_params
from utils.exceptions import ConfigurationError


def test_gradient_boosted_trees_use_xgboost():
    backend = ModelFactory.create('gradient-boosted-trees', 'ranking')
    assert isinstance(backend, XGBoostBackend)
    assert backend.task == 'ranking'

def test_sklearn_estimator_follows_task():
    regressor = ModelFactory.create('decision-tree', 'regression')
    classifier = ModelFactory.create('decision-tree', 'classification')
    assert isinstance(regressor, SklearnBackend)
    assert regressor.estimator_class is DecisionTreeRegressor
    assert classifier.estimator_class is DecisionTreeClassifier

def test_ranking_uses_regressors():
    assert ModelFactory.create('linear-svm', 'ranking').estimator_class is LinearSVR

def test_unknown_model_error():
    with pytest.raises(ValueError, match="Unknown model name"):
        ModelFactory.create('SuperAdvancedAIModel')

def test_unknown_task_error():
    with pytest.raises(ConfigurationError):
        ModelFactory.create('decision-tree', 'clustering')

def test_available_models():
    models = ModelFactory.get_available_models()
    assert 'gradient-boosted-trees' in models
    assert 'random-forest' in models

def test_parameter_filtering():
    """Options the estimator does not take (e.g. num_rounds) are dropped."""
    params = filter_params(DecisionTreeRegressor, {'max_depth': 3, 'num_rounds': 10})
    assert params == {'max_depth': 3}
