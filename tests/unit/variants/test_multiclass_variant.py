from __future__ import annotations

from pathlib import Path

import pytest

from mldemo.lifecycle import LifecycleConfig
from mldemo.variants.multiclass import MultiClassManager


QUIET = LifecycleConfig(verbose=False)
AREAS = {"area-System.Net", "area-System.IO", "area-System.Linq"}


def test_train_evaluate_predict(issues_tsv: Path):
    mgr = MultiClassManager(QUIET)
    mgr.load_data(issues_tsv, test_fraction=0.25)
    model = mgr.train()

    assert set(model.classes) == AREAS

    metrics = mgr.evaluate()
    assert metrics["n_rows"] == 6
    assert 0.0 <= metrics["micro_accuracy"] <= 1.0
    assert 0.0 <= metrics["macro_accuracy"] <= 1.0
    assert set(metrics["classes"]) == AREAS

    out = mgr.predict_issue("HttpClient socket timeout", "the http request over the socket times out")
    assert out["predicted_label"] == "area-System.Net"
    assert len(out["score"]) == 3
    assert sum(out["score"]) == pytest.approx(1.0)


def test_batch_transform_keeps_row_order(issues_tsv: Path):
    mgr = MultiClassManager(QUIET)
    mgr.load_data(issues_tsv)
    mgr.train()

    out = mgr.transform()
    assert len(out) == len(mgr.dataset)
    assert list(out.columns) == ["predicted_label", "score"]
    assert (out["predicted_label"] == mgr.dataset["area"]).mean() > 0.9
