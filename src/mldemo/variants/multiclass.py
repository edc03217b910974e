# src/mldemo/variants/multiclass.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import numpy as np
import pandas as pd
from sklearn.compose import ColumnTransformer
from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.linear_model import LogisticRegression
from sklearn.pipeline import Pipeline

from mldemo.data.schemas import FieldRole, Schema, string
from mldemo.errors import InvalidParameter
from mldemo.evaluation.metrics import multiclass_classification_metrics
from mldemo.lifecycle import LifecycleConfig, ModelLifecycleManager, VariantSpec
from mldemo.models.base import PipelineModel


# ============================================================
# Schema: GitHub issues, tab separated, no header
# ============================================================
SCHEMA = Schema(
    name="github_issues",
    fields=(
        string("id", 0, FieldRole.META),
        string("area", 1, FieldRole.LABEL),
        string("title", 2),
        string("description", 3),
    ),
    separator="\t",
    has_header=False,
)

OUTPUT_COLUMNS: Tuple[str, ...] = ("predicted_label", "score")


@dataclass(frozen=True)
class MultiClassConfig:
    ngram_range: Tuple[int, int] = (1, 2)
    min_df: int = 1
    C: float = 1.0
    max_iter: int = 1000


class IssueAreaModel(PipelineModel):
    """Score is the per-class probability vector, ordered like `classes`."""

    variant = "multiclass"
    output_columns = OUTPUT_COLUMNS

    @property
    def classes(self) -> Tuple[str, ...]:
        return tuple(str(c) for c in self.estimator.classes_)

    def _transform_features(self, features: pd.DataFrame) -> pd.DataFrame:
        proba = self.estimator.predict_proba(features).astype(np.float64)
        classes = np.asarray(self.estimator.classes_, dtype=object)
        return pd.DataFrame(
            {
                "predicted_label": [str(c) for c in classes[proba.argmax(axis=1)]],
                "score": list(proba),
            }
        )


def train_multiclass(frame: pd.DataFrame, cfg: MultiClassConfig, seed: int) -> IssueAreaModel:
    if cfg.C <= 0:
        raise InvalidParameter(f"C must be > 0, got {cfg.C}")

    featurize = ColumnTransformer(
        transformers=[
            ("title", TfidfVectorizer(ngram_range=cfg.ngram_range, min_df=cfg.min_df), "title"),
            ("description", TfidfVectorizer(ngram_range=cfg.ngram_range, min_df=cfg.min_df), "description"),
        ]
    )
    # multinomial (maximum entropy) logistic regression
    pipeline = Pipeline(
        [
            ("featurize", featurize),
            ("clf", LogisticRegression(C=cfg.C, max_iter=cfg.max_iter, random_state=seed)),
        ]
    )
    pipeline.fit(frame[list(SCHEMA.feature_names)], frame["area"].astype(str))
    return IssueAreaModel(pipeline, SCHEMA)


def evaluate_multiclass(model: IssueAreaModel, test: pd.DataFrame, cfg: MultiClassConfig) -> Dict[str, Any]:
    out = model.transform(test)
    proba = np.vstack(out["score"].to_list()) if len(out) else np.empty((0, len(model.classes)))
    return multiclass_classification_metrics(
        test["area"].astype(str).to_numpy(),
        out["predicted_label"].to_numpy(),
        proba,
        model.classes,
    )


SPEC = VariantSpec(
    name="multiclass",
    input_schema=SCHEMA,
    output_columns=OUTPUT_COLUMNS,
    train=train_multiclass,
    default_config=MultiClassConfig(),
    evaluate=evaluate_multiclass,
)


class MultiClassManager(ModelLifecycleManager):
    def __init__(self, config: Optional[LifecycleConfig] = None) -> None:
        super().__init__(SPEC, config)

    def predict_issue(self, title: str, description: str) -> Dict[str, Any]:
        return self.predict({"title": title, "description": description})
