from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from mldemo.errors import InvalidInput, InvalidState
from mldemo.lifecycle import LifecycleConfig, Stage
from mldemo.variants.clustering import ClusteringManager, format_distances


QUIET = LifecycleConfig(verbose=False)


def _trained(iris_csv: Path) -> ClusteringManager:
    mgr = ClusteringManager(QUIET)
    mgr.load_data(iris_csv)
    mgr.train()
    return mgr


def test_clustering_does_not_split(iris_csv: Path):
    mgr = _trained(iris_csv)

    assert mgr.test_partition is None
    assert len(mgr.train_partition) == 30
    with pytest.raises(InvalidState):
        mgr.evaluate()
    assert mgr.stage is Stage.TRAINED


def test_blobs_get_one_cluster_each(iris_csv: Path):
    mgr = _trained(iris_csv)
    clusters = mgr.transform()["predicted_cluster"].to_numpy()

    blocks = [set(clusters[i:i + 10]) for i in range(0, 30, 10)]
    assert all(len(b) == 1 for b in blocks)
    assert set().union(*blocks) == {1, 2, 3}


def test_predict_flower_reports_distances(iris_csv: Path):
    mgr = _trained(iris_csv)
    out = mgr.predict_flower(1.4, 0.2, 5.0, 3.4)

    assert out["predicted_cluster"] in (1, 2, 3)
    assert len(out["distances"]) == 3
    assert int(np.argmin(out["distances"])) + 1 == out["predicted_cluster"]
    assert min(out["distances"]) == pytest.approx(0.0, abs=1e-3)


def test_write_assignments(iris_csv: Path, sandbox: Path):
    mgr = _trained(iris_csv)
    p = mgr.write_assignments(sandbox / "out" / "clusters.csv")

    lines = p.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 30
    assert all(len(line.split(",")) == 5 for line in lines)
    assert lines[0].split(",")[-1] in {"1", "2", "3"}


def test_format_distances():
    s = format_distances([0.5, 2.0])
    assert "(Cluster: 1 Distance: 0.5)" in s
    assert "(Cluster: 2 Distance: 2)" in s


def test_predict_flower_rejects_nan(iris_csv: Path):
    mgr = _trained(iris_csv)
    with pytest.raises(InvalidInput):
        mgr.predict_flower(float("nan"), 0.2, 5.0, 3.4)
