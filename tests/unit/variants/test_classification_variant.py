from __future__ import annotations

from pathlib import Path

import pytest

from mldemo.lifecycle import LifecycleConfig, Stage
from mldemo.variants.classification import (
    ClassificationConfig,
    ClassificationManager,
    confidence,
    friendly_label,
    friendly_probability,
)


QUIET = LifecycleConfig(verbose=False)


def test_train_evaluate_predict(sentiment_csv: Path):
    mgr = ClassificationManager(QUIET)
    mgr.load_data(sentiment_csv)
    mgr.train()

    metrics = mgr.evaluate()
    assert mgr.stage is Stage.EVALUATED
    assert metrics["n_rows"] == 8
    assert 0.0 <= metrics["accuracy"] <= 1.0
    assert {"area_under_roc_curve", "f1_score", "log_loss", "confusion_matrix"} <= set(metrics)

    pos = mgr.predict_text("I love this great day")
    neg = mgr.predict_text("I hate this awful day")
    assert pos["predicted_label"] is True
    assert neg["predicted_label"] is False
    assert pos["probability"] > 0.5 > neg["probability"]
    assert pos["score"] > 0 > neg["score"]


def test_meta_fields_are_not_required_for_prediction(sentiment_csv: Path):
    mgr = ClassificationManager(QUIET)
    mgr.load_data(sentiment_csv)
    mgr.train(ClassificationConfig(use_char_ngrams=False))

    out = mgr.predict({"text": "happy happy joy", "user": "someone"})
    assert set(out) == {"predicted_label", "probability", "score"}


@pytest.mark.parametrize("cfg", [ClassificationConfig(threshold=1.0), ClassificationConfig(C=0.0)])
def test_invalid_config_raises(sentiment_csv: Path, cfg):
    from mldemo.errors import InvalidParameter

    mgr = ClassificationManager(QUIET)
    mgr.load_data(sentiment_csv)
    with pytest.raises(InvalidParameter):
        mgr.train(cfg)


def test_presentation_helpers():
    assert friendly_label(True) == "Positive"
    assert friendly_label(False) == "Negative"
    assert friendly_probability(0.873) == "87.3%"
    assert confidence(0.95) == "Very High"
    assert confidence(0.1) == "Very High"
    assert confidence(0.7) == "High"
    assert confidence(0.5) == "Low"
