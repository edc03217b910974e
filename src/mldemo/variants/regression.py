# src/mldemo/variants/regression.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import numpy as np
import pandas as pd
from sklearn.compose import ColumnTransformer
from sklearn.ensemble import HistGradientBoostingRegressor
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import OneHotEncoder

from mldemo.data.schemas import FieldRole, Schema, numeric, string
from mldemo.errors import InvalidParameter
from mldemo.evaluation.metrics import regression_metrics
from mldemo.lifecycle import LifecycleConfig, ModelLifecycleManager, VariantSpec
from mldemo.models.base import PipelineModel


# ============================================================
# Schema: NYC taxi trips, comma separated, header row
# ============================================================
SCHEMA = Schema(
    name="taxi_fare",
    fields=(
        string("vendor_id", 0),
        numeric("rate_code", 1),
        numeric("passenger_count", 2),
        numeric("trip_time", 3),
        numeric("trip_distance", 4),
        string("payment_type", 5),
        numeric("fare", 6, FieldRole.LABEL),
    ),
    separator=",",
    has_header=True,
)

CATEGORICAL: Tuple[str, ...] = ("vendor_id", "payment_type")
NUMERIC: Tuple[str, ...] = ("rate_code", "passenger_count", "trip_time", "trip_distance")

OUTPUT_COLUMNS: Tuple[str, ...] = ("score",)


@dataclass(frozen=True)
class RegressionConfig:
    # boosted regression trees (histogram based)
    n_trees: int = 100
    max_leaf_nodes: int = 20
    min_samples_leaf: int = 10
    learning_rate: float = 0.2


class FareModel(PipelineModel):
    variant = "regression"
    output_columns = OUTPUT_COLUMNS

    def _transform_features(self, features: pd.DataFrame) -> pd.DataFrame:
        return pd.DataFrame({"score": self.estimator.predict(features).astype(np.float64)})


def train_regression(frame: pd.DataFrame, cfg: RegressionConfig, seed: int) -> FareModel:
    if cfg.n_trees < 1:
        raise InvalidParameter(f"n_trees must be >= 1, got {cfg.n_trees}")
    if cfg.learning_rate <= 0:
        raise InvalidParameter(f"learning_rate must be > 0, got {cfg.learning_rate}")

    pre = ColumnTransformer(
        transformers=[
            ("onehot", OneHotEncoder(handle_unknown="ignore", sparse_output=False), list(CATEGORICAL)),
            ("num", "passthrough", list(NUMERIC)),
        ]
    )
    reg = HistGradientBoostingRegressor(
        max_iter=cfg.n_trees,
        max_leaf_nodes=cfg.max_leaf_nodes,
        min_samples_leaf=cfg.min_samples_leaf,
        learning_rate=cfg.learning_rate,
        early_stopping=False,
        random_state=seed,
    )
    pipeline = Pipeline([("pre", pre), ("reg", reg)])
    pipeline.fit(frame[list(SCHEMA.feature_names)], frame["fare"].to_numpy(dtype=np.float64))
    return FareModel(pipeline, SCHEMA)


def evaluate_regression(model: FareModel, test: pd.DataFrame, cfg: RegressionConfig) -> Dict[str, Any]:
    out = model.transform(test)
    return regression_metrics(test["fare"].to_numpy(), out["score"].to_numpy())


SPEC = VariantSpec(
    name="regression",
    input_schema=SCHEMA,
    output_columns=OUTPUT_COLUMNS,
    train=train_regression,
    default_config=RegressionConfig(),
    evaluate=evaluate_regression,
)


def clean_fare(amount: float) -> str:
    return f"${amount:,.2f}"


class RegressionManager(ModelLifecycleManager):
    def __init__(self, config: Optional[LifecycleConfig] = None) -> None:
        super().__init__(SPEC, config)
