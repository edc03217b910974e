from __future__ import annotations

import math

import numpy as np
import pandas as pd
import pytest

import mldemo.evaluation.metrics as m


def test_binary_metrics_perfect_predictions():
    y = [True, False, True, False]
    out = m.binary_classification_metrics(y, y, [0.9, 0.1, 0.8, 0.2])

    assert out["accuracy"] == 1.0
    assert out["area_under_roc_curve"] == 1.0
    assert out["f1_score"] == 1.0
    assert out["confusion_matrix"] == [[2, 0], [0, 2]]
    assert out["log_loss"] < 0.3


def test_binary_metrics_single_class_has_nan_auc():
    out = m.binary_classification_metrics([True, True], [True, False], [0.9, 0.4])

    assert math.isnan(out["area_under_roc_curve"])
    assert out["accuracy"] == 0.5


def test_multiclass_metrics():
    classes = ["a", "b", "c"]
    y = ["a", "b", "c", "a"]
    yhat = ["a", "b", "b", "a"]
    proba = np.array([[0.8, 0.1, 0.1], [0.1, 0.8, 0.1], [0.2, 0.5, 0.3], [0.7, 0.2, 0.1]])

    out = m.multiclass_classification_metrics(y, yhat, proba, classes)
    assert out["micro_accuracy"] == pytest.approx(0.75)
    assert out["macro_accuracy"] == pytest.approx((1.0 + 1.0 + 0.0) / 3)
    assert out["log_loss_reduction"] > 0
    assert out["classes"] == classes


def test_regression_metrics_skip_unscored_rows():
    out = m.regression_metrics([1.0, 2.0, 3.0, 4.0], [1.0, 2.0, np.nan, 5.0])

    assert out["n_rows"] == 3
    assert out["n_unscored"] == 1
    assert out["mean_absolute_error"] == pytest.approx(1.0 / 3)
    assert out["mean_squared_error"] == pytest.approx(1.0 / 3)
    assert out["root_mean_squared_error"] == pytest.approx(math.sqrt(1.0 / 3))


def test_regression_metrics_all_unscored():
    out = m.regression_metrics([1.0], [np.nan])
    assert out["n_rows"] == 0
    assert math.isnan(out["r_squared"])


def test_topk_empty_inputs_give_zero_report():
    out = m.evaluate_topk(pd.DataFrame(), pd.DataFrame(), m.RankingMetricsConfig(k_list=(5,)))
    assert out == {"n_users_eval": 0.0, "precision@5": 0.0, "recall@5": 0.0, "hit_rate@5": 0.0, "ndcg@5": 0.0, "map@5": 0.0}


def test_topk_perfect_case():
    topk = pd.DataFrame({"user_id": [1, 1, 2], "item_id": [10, 11, 20], "rank": [1, 2, 1]})
    gt = pd.DataFrame({"user_id": [1, 1, 2], "item_id": [10, 11, 20]})

    out = m.evaluate_topk(topk, gt, m.RankingMetricsConfig(k_list=(2,)))
    assert out["n_users_eval"] == 2.0
    assert out["recall@2"] == 1.0
    assert out["ndcg@2"] == pytest.approx(1.0)
    assert out["map@2"] == pytest.approx(1.0)


def test_topk_requires_rank_column():
    topk = pd.DataFrame({"user_id": [1], "item_id": [10]})
    gt = pd.DataFrame({"user_id": [1], "item_id": [10]})
    with pytest.raises(ValueError):
        m.evaluate_topk(topk, gt)
