# src/mldemo/variants/classification.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import numpy as np
import pandas as pd
from sklearn.compose import ColumnTransformer
from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.linear_model import LogisticRegression
from sklearn.pipeline import Pipeline

from mldemo.data.schemas import FieldRole, Schema, boolean, numeric, string
from mldemo.errors import InvalidParameter
from mldemo.evaluation.metrics import binary_classification_metrics
from mldemo.lifecycle import LifecycleConfig, ModelLifecycleManager, VariantSpec
from mldemo.models.base import PipelineModel


# ============================================================
# Schema: sentiment-labelled tweets, comma separated, no header
# ============================================================
SCHEMA = Schema(
    name="sentiment",
    fields=(
        boolean("sentiment", 0, FieldRole.LABEL),
        numeric("id", 1, FieldRole.META),
        string("date", 2, FieldRole.META),
        string("flag", 3, FieldRole.META),
        string("user", 4, FieldRole.META),
        string("text", 5),
    ),
    separator=",",
    has_header=False,
)

OUTPUT_COLUMNS: Tuple[str, ...] = ("predicted_label", "probability", "score")


@dataclass(frozen=True)
class ClassificationConfig:
    word_ngram_range: Tuple[int, int] = (1, 2)
    char_ngram_range: Tuple[int, int] = (2, 4)
    use_char_ngrams: bool = True
    min_df: int = 1

    # LBFGS logistic regression
    C: float = 1.0
    max_iter: int = 1000
    threshold: float = 0.5


def _validate_cfg(cfg: ClassificationConfig) -> None:
    if not (0.0 < cfg.threshold < 1.0):
        raise InvalidParameter(f"threshold must be in (0, 1), got {cfg.threshold}")
    if cfg.C <= 0:
        raise InvalidParameter(f"C must be > 0, got {cfg.C}")


class SentimentModel(PipelineModel):
    variant = "classification"
    output_columns = OUTPUT_COLUMNS

    def __init__(self, estimator: Pipeline, input_schema: Schema, threshold: float = 0.5) -> None:
        super().__init__(estimator, input_schema)
        self.threshold = threshold

    def _transform_features(self, features: pd.DataFrame) -> pd.DataFrame:
        classes = list(self.estimator.classes_)
        proba = self.estimator.predict_proba(features)[:, classes.index(True)]
        return pd.DataFrame(
            {
                "predicted_label": proba >= self.threshold,
                "probability": proba.astype(np.float64),
                "score": self.estimator.decision_function(features).astype(np.float64),
            }
        )


def train_classifier(frame: pd.DataFrame, cfg: ClassificationConfig, seed: int) -> SentimentModel:
    _validate_cfg(cfg)

    text = [("word", TfidfVectorizer(ngram_range=cfg.word_ngram_range, min_df=cfg.min_df), "text")]
    if cfg.use_char_ngrams:
        text.append(
            ("char", TfidfVectorizer(analyzer="char_wb", ngram_range=cfg.char_ngram_range, min_df=cfg.min_df), "text")
        )

    pipeline = Pipeline(
        [
            ("featurize", ColumnTransformer(transformers=text)),
            (
                "clf",
                LogisticRegression(solver="lbfgs", C=cfg.C, max_iter=cfg.max_iter, random_state=seed),
            ),
        ]
    )
    pipeline.fit(frame[list(SCHEMA.feature_names)], frame["sentiment"].astype(bool))
    return SentimentModel(pipeline, SCHEMA, threshold=cfg.threshold)


def evaluate_classifier(model: SentimentModel, test: pd.DataFrame, cfg: ClassificationConfig) -> Dict[str, Any]:
    out = model.transform(test)
    return binary_classification_metrics(test["sentiment"], out["predicted_label"], out["probability"])


SPEC = VariantSpec(
    name="classification",
    input_schema=SCHEMA,
    output_columns=OUTPUT_COLUMNS,
    train=train_classifier,
    default_config=ClassificationConfig(),
    evaluate=evaluate_classifier,
)


# ============================================================
# Presentation helpers
# ============================================================
def friendly_label(predicted_label: bool) -> str:
    return "Positive" if predicted_label else "Negative"


def friendly_probability(probability: float) -> str:
    return f"{probability:.1%}"


def confidence(probability: float) -> str:
    """Distance of the probability from the undecided middle, as a word."""
    if probability < 0.2 or probability > 0.8:
        return "Very High"
    if probability < 0.4 or probability > 0.6:
        return "High"
    return "Low"


class ClassificationManager(ModelLifecycleManager):
    def __init__(self, config: Optional[LifecycleConfig] = None) -> None:
        super().__init__(SPEC, config)

    def predict_text(self, text: str) -> Dict[str, Any]:
        return self.predict({"text": text})
