# src/mldemo/variants/clustering.py
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from sklearn.cluster import KMeans

from mldemo.data.schemas import Schema, numeric
from mldemo.errors import InvalidParameter, InvalidState
from mldemo.lifecycle import LifecycleConfig, ModelLifecycleManager, VariantSpec
from mldemo.models.base import PipelineModel


# ============================================================
# Schema: iris measurements, comma separated, no header
# ============================================================
SCHEMA = Schema(
    name="iris",
    fields=(
        numeric("petal_length", 0),
        numeric("petal_width", 1),
        numeric("sepal_length", 2),
        numeric("sepal_width", 3),
    ),
    separator=",",
    has_header=False,
)

OUTPUT_COLUMNS: Tuple[str, ...] = ("predicted_cluster", "distances")


@dataclass(frozen=True)
class ClusteringConfig:
    n_clusters: int = 3
    n_init: int = 10
    max_iter: int = 300


class IrisClusterModel(PipelineModel):
    """
    predicted_cluster is 1-based; distances holds the squared euclidean
    distance to every centroid, cluster 1 first.
    """

    variant = "clustering"
    output_columns = OUTPUT_COLUMNS

    def _transform_features(self, features: pd.DataFrame) -> pd.DataFrame:
        X = features.to_numpy(dtype=np.float64)
        if np.isnan(X).any():
            raise ValueError("clustering features must not contain NaN")
        dist = self.estimator.transform(X) ** 2
        return pd.DataFrame(
            {
                "predicted_cluster": (dist.argmin(axis=1) + 1).astype(np.int64),
                "distances": list(dist),
            }
        )


def train_clustering(frame: pd.DataFrame, cfg: ClusteringConfig, seed: int) -> IrisClusterModel:
    if cfg.n_clusters < 1:
        raise InvalidParameter(f"n_clusters must be >= 1, got {cfg.n_clusters}")

    X = frame[list(SCHEMA.feature_names)].to_numpy(dtype=np.float64)
    km = KMeans(n_clusters=cfg.n_clusters, n_init=cfg.n_init, max_iter=cfg.max_iter, random_state=seed)
    km.fit(X)
    return IrisClusterModel(km, SCHEMA)


SPEC = VariantSpec(
    name="clustering",
    input_schema=SCHEMA,
    output_columns=OUTPUT_COLUMNS,
    train=train_clustering,
    default_config=ClusteringConfig(),
    evaluate=None,
    splits=False,
)


def format_distances(distances: Sequence[float]) -> str:
    return "".join(f" (Cluster: {i} Distance: {d:g}) " for i, d in enumerate(distances, start=1))


class ClusteringManager(ModelLifecycleManager):
    def __init__(self, config: Optional[LifecycleConfig] = None) -> None:
        super().__init__(SPEC, config)

    def predict_flower(
        self,
        petal_length: float,
        petal_width: float,
        sepal_length: float,
        sepal_width: float,
    ) -> Dict[str, Any]:
        return self.predict(
            {
                "petal_length": petal_length,
                "petal_width": petal_width,
                "sepal_length": sepal_length,
                "sepal_width": sepal_width,
            }
        )

    def write_assignments(self, path: str | Path) -> Path:
        """Write every loaded row followed by its predicted cluster."""
        if self.dataset is None:
            raise InvalidState("clustering: write_assignments() requires loaded data")
        out = self.dataset[list(SCHEMA.feature_names)].copy()
        out["predicted_cluster"] = self.transform()["predicted_cluster"].to_numpy()

        p = Path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        out.to_csv(p, header=False, index=False)
        return p
