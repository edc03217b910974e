# src/mldemo/variants/recommendation.py
from __future__ import annotations

import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from mldemo.data.schemas import FieldRole, Schema, numeric
from mldemo.errors import InvalidInput, InvalidParameter, InvalidState
from mldemo.evaluation.metrics import regression_metrics
from mldemo.lifecycle import LifecycleConfig, ModelLifecycleManager, VariantSpec
from mldemo.models.base import PipelineModel
from mldemo.models.matrix_factorization import MatrixFactorizationRegressor
from mldemo.recommendation.catalog import ReferenceCatalog, SeenItemIndex
from mldemo.recommendation.ranking import RankingConfig, RecommendationEngine, RecommendationResult


# ============================================================
# Schema: explicit movie ratings, comma separated, header row
# ============================================================
SCHEMA = Schema(
    name="ratings",
    fields=(
        numeric("user_id", 0),
        numeric("item_id", 1),
        numeric("rating", 2, FieldRole.LABEL),
    ),
    separator=",",
    has_header=True,
)

OUTPUT_COLUMNS: Tuple[str, ...] = ("score",)


@dataclass(frozen=True)
class RecommendationConfig:
    iterations: int = 10
    approximation_rank: int = 64
    learning_rate: float = 0.01
    regularization: float = 0.05


class RatingModel(PipelineModel):
    """Predicted rating per (user_id, item_id); NaN when either key was never trained on."""

    variant = "recommendation"
    output_columns = OUTPUT_COLUMNS

    def _transform_features(self, features: pd.DataFrame) -> pd.DataFrame:
        return pd.DataFrame({"score": self.estimator.predict(features)})


def train_recommender(frame: pd.DataFrame, cfg: RecommendationConfig, seed: int) -> RatingModel:
    if cfg.iterations < 1:
        raise InvalidParameter(f"iterations must be >= 1, got {cfg.iterations}")
    if cfg.approximation_rank < 1:
        raise InvalidParameter(f"approximation_rank must be >= 1, got {cfg.approximation_rank}")
    if cfg.learning_rate <= 0:
        raise InvalidParameter(f"learning_rate must be > 0, got {cfg.learning_rate}")

    mf = MatrixFactorizationRegressor(
        user_column="user_id",
        item_column="item_id",
        n_factors=cfg.approximation_rank,
        n_iterations=cfg.iterations,
        learning_rate=cfg.learning_rate,
        regularization=cfg.regularization,
        random_state=seed,
    )
    mf.fit(frame[["user_id", "item_id"]], frame["rating"].to_numpy(dtype=np.float64))
    return RatingModel(mf, SCHEMA)


def evaluate_recommender(model: RatingModel, test: pd.DataFrame, cfg: RecommendationConfig) -> Dict[str, Any]:
    out = model.transform(test)
    return regression_metrics(test["rating"].to_numpy(), out["score"].to_numpy())


SPEC = VariantSpec(
    name="recommendation",
    input_schema=SCHEMA,
    output_columns=OUTPUT_COLUMNS,
    train=train_recommender,
    default_config=RecommendationConfig(),
    evaluate=evaluate_recommender,
)


def _user_key(user_id: Any) -> float:
    try:
        u = float(user_id)
    except (TypeError, ValueError) as exc:
        raise InvalidInput(f"user_id must be numeric, got {user_id!r}") from exc
    if isinstance(user_id, bool) or math.isnan(u) or math.isinf(u):
        raise InvalidInput(f"user_id must be a finite number, got {user_id!r}")
    return u


class RecommendationManager(ModelLifecycleManager):
    """
    Lifecycle manager for the ratings model plus the two lookups ranking
    needs: the Seen-Item Index (derived from the full loaded dataset) and
    the Reference Catalog (item titles, loaded separately).
    """

    def __init__(
        self,
        config: Optional[LifecycleConfig] = None,
        ranking: Optional[RankingConfig] = None,
    ) -> None:
        super().__init__(SPEC, config)
        self.ranking = ranking or RankingConfig()
        self._seen = SeenItemIndex()
        self._catalog: Optional[ReferenceCatalog] = None

    @property
    def seen(self) -> SeenItemIndex:
        return self._seen

    @property
    def catalog(self) -> Optional[ReferenceCatalog]:
        return self._catalog

    def _on_data_loaded(self, frame: pd.DataFrame) -> None:
        self._seen = SeenItemIndex.from_frame(frame)

    def load_data(
        self,
        path: str | Path,
        test_fraction: Optional[float] = None,
        *,
        reference_path: str | Path | None = None,
    ) -> "RecommendationManager":
        catalog = ReferenceCatalog.from_file(reference_path) if reference_path is not None else None
        super().load_data(path, test_fraction)
        if catalog is not None:
            self._catalog = catalog
        return self

    def load_reference(self, path: str | Path) -> ReferenceCatalog:
        self._catalog = ReferenceCatalog.from_file(path)
        self._log(f"Loaded {len(self._catalog)} catalog items from {path}")
        return self._catalog

    def set_catalog(self, catalog: ReferenceCatalog) -> None:
        self._catalog = catalog

    def load(
        self,
        model_path: str | Path,
        data_path: str | Path | None = None,
        test_fraction: Optional[float] = None,
        *,
        reference_path: str | Path | None = None,
    ):
        catalog = ReferenceCatalog.from_file(reference_path) if reference_path is not None else None
        model = super().load(model_path, data_path, test_fraction)
        if catalog is not None:
            self._catalog = catalog
        return model

    # ------------------------------------------------------------
    # Ranking
    # ------------------------------------------------------------
    def score_items(self, user_id: Any, item_ids: Sequence[Any]) -> np.ndarray:
        model = self._require_model("score_items")
        u = _user_key(user_id)
        frame = pd.DataFrame(
            {
                "user_id": np.full(len(item_ids), u, dtype=np.float64),
                "item_id": np.asarray(item_ids, dtype=np.float64),
            }
        )
        return model.transform(frame)["score"].to_numpy(dtype=np.float64)

    def _engine(self) -> RecommendationEngine:
        if self._catalog is None:
            raise InvalidState("recommendation: ranking requires a reference catalog (load_reference first)")
        return RecommendationEngine(self, self._catalog, self._seen, self.ranking)

    def get_recommendations(self, user_id: Any, count: int) -> List[RecommendationResult]:
        u = _user_key(user_id)
        return self._engine().get_recommendations(u, count)

    def recommend_all(self, user_ids: Iterable[Any], count: int) -> pd.DataFrame:
        """Top-`count` per user as one frame: user_id, item_id, score, rank, title."""
        engine = self._engine()
        rows: List[Dict[str, Any]] = []
        for uid in user_ids:
            u = _user_key(uid)
            for rank, rec in enumerate(engine.get_recommendations(u, count), start=1):
                rows.append(
                    {"user_id": uid, "item_id": rec.item_id, "score": rec.score, "rank": rank, "title": rec.title}
                )
        return pd.DataFrame(rows, columns=["user_id", "item_id", "score", "rank", "title"])
