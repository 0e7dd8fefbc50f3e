import math
import pytest
import numpy as np

from modules.evaluation_engine import evaluate_predictions, is_better, primary_metric, worst_score
from modules.evaluation_engine.metrics import ndcg_at_k, personalization_at_k
from modules.training_set import TrainingSet
from utils.exceptions import ConfigurationError, ValidationError


def make_set(labels, xs=None, groups=None):
    xs = xs if xs is not None else range(len(labels))
    return TrainingSet(['x'], [{'x': float(x)} for x in xs], [float(v) for v in labels], groups=groups)


class TestRegression:

    def test_mae_and_rmse(self):
        metrics = evaluate_predictions('regression', make_set([1, 2, 3]), [1, 2, 5])
        assert metrics['mean-absolute-error'] == pytest.approx(2 / 3)
        assert metrics['root-mean-square-error'] == pytest.approx(math.sqrt(4 / 3))

    def test_length_mismatch(self):
        with pytest.raises(ValidationError):
            evaluate_predictions('regression', make_set([1, 2, 3]), [1, 2])

    def test_empty_set(self):
        with pytest.raises(ValidationError):
            evaluate_predictions('regression', TrainingSet(['x'], [], []), [])


class TestRanking:

    def test_perfect_ranking(self):
        ts = make_set([2, 1, 0, 2, 1, 0], xs=[0, 1, 2, 10, 11, 12], groups=[3, 3])
        metrics = evaluate_predictions('ranking', ts, [3, 2, 1, 3, 2, 1])
        assert metrics['ndcg-2'] == pytest.approx(1.0)
        assert metrics['ndcg-5'] == pytest.approx(1.0)
        assert metrics['precision-2'] == pytest.approx(1.0)
        # Only two of the three documents are relevant
        assert metrics['precision-5'] == pytest.approx(2 / 3)
        # Disjoint top items across groups
        assert metrics['personalization-2'] == pytest.approx(1.0)

    def test_reversed_ranking_scores_lower(self):
        ts = make_set([2, 1, 0], groups=[3])
        good = evaluate_predictions('ranking', ts, [3, 2, 1])
        bad = evaluate_predictions('ranking', ts, [1, 2, 3])
        assert bad['ndcg-5'] < good['ndcg-5']
        assert bad['precision-2'] == pytest.approx(0.5)

    def test_ungrouped_data_is_one_group(self):
        metrics = evaluate_predictions('ranking', make_set([1, 0]), [1, 0])
        assert metrics['ndcg-2'] == pytest.approx(1.0)
        assert metrics['personalization-2'] == 0.0

    def test_single_document_group(self):
        assert ndcg_at_k(np.array([1.0]), np.array([0.3]), 5) == 1.0
        assert ndcg_at_k(np.array([0.0]), np.array([0.3]), 5) == 0.0

    def test_identical_recommendations_not_personalized(self):
        items = [[(1.0,), (2.0,)], [(1.0,), (2.0,)]]
        assert personalization_at_k(items) == pytest.approx(0.0)


class TestClassification:

    def test_accuracy_thresholds_probabilities(self):
        metrics = evaluate_predictions('classification', make_set([0, 1, 1, 0]), [0.2, 0.9, 0.4, 0.1])
        assert metrics['accuracy'] == pytest.approx(0.75)
        assert set(metrics) == {'accuracy', 'precision', 'recall', 'f1'}


class TestPrimaryMetric:

    def test_directions(self):
        assert primary_metric('regression') == ('mean-absolute-error', 'minimize')
        assert primary_metric('ranking') == ('ndcg-5', 'maximize')
        assert primary_metric('classification') == ('accuracy', 'maximize')

    def test_ties_are_not_improvements(self):
        assert not is_better('regression', 1.0, 1.0)
        assert is_better('regression', 0.9, 1.0)
        assert is_better('ranking', 0.8, 0.7)
        assert not is_better('ranking', 0.7, 0.7)

    def test_worst_score(self):
        assert worst_score('regression') == float('inf')
        assert worst_score('ranking') == float('-inf')

    def test_unknown_task(self):
        with pytest.raises(ConfigurationError):
            primary_metric('clustering')
        with pytest.raises(ConfigurationError):
            evaluate_predictions('clustering', make_set([1]), [1])
