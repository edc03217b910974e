# src/mldemo/lifecycle.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Mapping, Optional, Tuple

import pandas as pd

from mldemo.common.log import log
from mldemo.common.utils import set_seed
from mldemo.data.loader import load_dataset
from mldemo.data.schemas import Schema
from mldemo.data.splits import (
    DEFAULT_TEST_FRACTION,
    TrainTestSplitConfig,
    train_test_split,
    validate_test_fraction,
)
from mldemo.data.validation import coerce_frame, coerce_sample
from mldemo.errors import (
    IncompatibleSchema,
    InvalidParameter,
    InvalidState,
    TrainingFailure,
)
from mldemo.models.base import Model
from mldemo.models import store


class Stage(str, Enum):
    UNLOADED = "unloaded"
    DATA_READY = "data_ready"
    TRAINED = "trained"
    LOADED = "loaded"
    EVALUATED = "evaluated"


MODEL_STAGES = frozenset({Stage.TRAINED, Stage.LOADED, Stage.EVALUATED})

TrainFn = Callable[[pd.DataFrame, Any, int], Model]
EvaluateFn = Callable[[Model, pd.DataFrame, Any], Dict[str, Any]]


@dataclass(frozen=True)
class VariantSpec:
    """
    Everything that differs between workflows.

    train(frame, config, seed) -> Model
    evaluate(model, test_frame, config) -> metrics dict (None: not evaluable)
    """
    name: str
    input_schema: Schema
    output_columns: Tuple[str, ...]
    train: TrainFn
    default_config: Any
    evaluate: Optional[EvaluateFn] = None
    splits: bool = True


@dataclass(frozen=True)
class LifecycleConfig:
    seed: int = 42
    default_test_fraction: float = DEFAULT_TEST_FRACTION
    verbose: bool = True


@dataclass
class _Dataset:
    frame: pd.DataFrame
    train: pd.DataFrame
    test: Optional[pd.DataFrame]
    meta: Dict[str, Any] = field(default_factory=dict)


class ModelLifecycleManager:
    """
    Drives one workflow variant through
    Unloaded -> DataReady -> Trained | Loaded -> Evaluated.

    One instance owns exactly one dataset and one model. It is not
    thread-safe: callers must not run predict() while train() is in flight.

    Loading data while a model is held keeps the model usable: the stage
    returns to Trained or Loaded rather than DataReady. train() runs from
    any stage that has data, and a failed train() leaves both the previous
    model and the stage in place.
    """

    def __init__(self, spec: VariantSpec, config: Optional[LifecycleConfig] = None) -> None:
        self.spec = spec
        self.config = config or LifecycleConfig()
        self._stage = Stage.UNLOADED
        self._data: Optional[_Dataset] = None
        self._model: Optional[Model] = None
        self._model_stage = Stage.DATA_READY
        self._last_metrics: Optional[Dict[str, Any]] = None

    # ------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------
    @property
    def stage(self) -> Stage:
        return self._stage

    @property
    def model(self) -> Optional[Model]:
        return self._model

    @property
    def has_model(self) -> bool:
        return self._model is not None

    @property
    def has_data(self) -> bool:
        return self._data is not None

    @property
    def dataset(self) -> Optional[pd.DataFrame]:
        return None if self._data is None else self._data.frame

    @property
    def train_partition(self) -> Optional[pd.DataFrame]:
        return None if self._data is None else self._data.train

    @property
    def test_partition(self) -> Optional[pd.DataFrame]:
        return None if self._data is None else self._data.test

    @property
    def split_metadata(self) -> Dict[str, Any]:
        return {} if self._data is None else dict(self._data.meta)

    @property
    def last_metrics(self) -> Optional[Dict[str, Any]]:
        return self._last_metrics

    def _log(self, msg: str) -> None:
        if self.config.verbose:
            log(f"[{self.spec.name}] {msg}")

    def __repr__(self) -> str:
        return f"{type(self).__name__}(variant={self.spec.name!r}, stage={self._stage.value})"

    # ------------------------------------------------------------
    # LoadData
    # ------------------------------------------------------------
    def _read_dataset(self, path: str | Path, test_fraction: Optional[float]) -> _Dataset:
        f = self.config.default_test_fraction if test_fraction is None else test_fraction
        f = validate_test_fraction(f)
        frame = load_dataset(path, self.spec.input_schema)
        return self._partition(frame, f, source=str(path))

    def _partition(self, frame: pd.DataFrame, test_fraction: float, source: str) -> _Dataset:
        if not self.spec.splits:
            meta = {"strategy": "none", "n_total": int(len(frame)), "source": source}
            return _Dataset(frame=frame, train=frame, test=None, meta=meta)

        cfg = TrainTestSplitConfig(test_fraction=test_fraction, seed=self.config.seed)
        train, test, meta = train_test_split(frame, cfg)
        meta["source"] = source
        return _Dataset(frame=frame, train=train, test=test, meta=meta)

    def load_data(self, path: str | Path, test_fraction: Optional[float] = None) -> "ModelLifecycleManager":
        """
        Read `path` per the variant schema and (for splitting variants) carve
        off a test partition of `test_fraction` (default 0.2).

        Replaces any previously loaded dataset; an existing model is kept.
        """
        data = self._read_dataset(path, test_fraction)
        self._commit_data(data)
        self._log(f"Loaded {len(data.frame)} rows from {path} ({self._describe_split(data)})")
        return self

    def load_frame(self, frame: pd.DataFrame, test_fraction: Optional[float] = None) -> "ModelLifecycleManager":
        """load_data for an in-memory frame already laid out per the schema."""
        f = self.config.default_test_fraction if test_fraction is None else test_fraction
        f = validate_test_fraction(f)
        data = self._partition(coerce_frame(frame, self.spec.input_schema), f, source="<frame>")
        self._commit_data(data)
        return self

    def _commit_data(self, data: _Dataset) -> None:
        self._data = data
        self._stage = self._model_stage if self._model is not None else Stage.DATA_READY
        self._on_data_loaded(data.frame)

    def _on_data_loaded(self, frame: pd.DataFrame) -> None:
        """Hook for variants that derive indexes from the full dataset."""

    @staticmethod
    def _describe_split(data: _Dataset) -> str:
        if data.test is None:
            return "no split"
        return f"train={len(data.train)} test={len(data.test)}"

    def rows(self, partition: str = "train") -> Iterator[Dict[str, Any]]:
        """Iterate typed rows of one partition as dicts ("train", "test" or "all")."""
        if self._data is None:
            raise InvalidState(f"{self.spec.name}: no dataset loaded")
        frames = {"train": self._data.train, "test": self._data.test, "all": self._data.frame}
        if partition not in frames:
            raise InvalidParameter(f"partition must be one of {sorted(frames)}, got {partition!r}")
        frame = frames[partition]
        if frame is None:
            raise InvalidState(f"{self.spec.name}: variant does not split, no {partition!r} partition")
        return iter(frame.to_dict(orient="records"))

    # ------------------------------------------------------------
    # Train
    # ------------------------------------------------------------
    def train(self, config: Any = None) -> Model:
        if self._data is None:
            raise InvalidState(f"{self.spec.name}: train() requires loaded data (call load_data first)")

        cfg = self.spec.default_config if config is None else config
        set_seed(self.config.seed)
        self._log(f"Training on {len(self._data.train)} rows")
        try:
            model = self.spec.train(self._data.train, cfg, self.config.seed)
        except InvalidParameter:
            raise
        except Exception as exc:
            raise TrainingFailure(f"{self.spec.name}: training failed: {exc}") from exc

        self._model = model
        self._model_stage = Stage.TRAINED
        self._last_metrics = None
        self._stage = Stage.TRAINED
        return model

    # ------------------------------------------------------------
    # Save / Load
    # ------------------------------------------------------------
    def save(self, path: str | Path) -> Path:
        if self._model is None:
            raise InvalidState(f"{self.spec.name}: save() requires a trained or loaded model")
        out = store.save_model(self._model, self.spec.input_schema, path)
        self._log(f"✅ Wrote: {out}")
        return out

    def load(
        self,
        model_path: str | Path,
        data_path: str | Path | None = None,
        test_fraction: Optional[float] = None,
    ) -> Model:
        """
        Restore a persisted model (and optionally its dataset).

        Nothing is committed until the bundle, its schema and the optional
        dataset have all been read successfully.
        """
        model, schema = store.load_model(model_path)
        if not schema.matches(self.spec.input_schema):
            raise IncompatibleSchema(
                f"{self.spec.name}: model at {model_path} was trained against schema "
                f"{schema.name!r} {list(schema.names)}, expected {self.spec.input_schema.name!r} "
                f"{list(self.spec.input_schema.names)}"
            )
        if not isinstance(model, Model):
            raise IncompatibleSchema(f"{self.spec.name}: bundle at {model_path} does not hold a model")

        data = self._read_dataset(data_path, test_fraction) if data_path is not None else None

        self._model = model
        self._model_stage = Stage.LOADED
        self._last_metrics = None
        if data is not None:
            self._data = data
            self._on_data_loaded(data.frame)
        self._stage = Stage.LOADED
        self._log(f"Loaded model from {model_path}")
        return model

    # ------------------------------------------------------------
    # Evaluate
    # ------------------------------------------------------------
    def evaluate(self, config: Any = None) -> Dict[str, Any]:
        if self._model is None:
            raise InvalidState(f"{self.spec.name}: evaluate() requires a trained or loaded model")
        if self._data is None or self._data.test is None:
            raise InvalidState(f"{self.spec.name}: evaluate() requires a test partition")
        if self.spec.evaluate is None:
            raise InvalidState(f"{self.spec.name}: variant has no evaluation")

        cfg = self.spec.default_config if config is None else config
        metrics = self.spec.evaluate(self._model, self._data.test, cfg)
        self._last_metrics = metrics
        self._stage = Stage.EVALUATED
        return metrics

    # ------------------------------------------------------------
    # Predict
    # ------------------------------------------------------------
    def _require_model(self, op: str) -> Model:
        if self._model is None:
            raise InvalidState(f"{self.spec.name}: {op}() requires a trained or loaded model")
        return self._model

    def predict(self, sample: Mapping[str, Any]) -> Dict[str, Any]:
        model = self._require_model("predict")
        record = coerce_sample(self.spec.input_schema, sample)
        return model.predict_one(record)

    def transform(self, frame: Optional[pd.DataFrame] = None) -> pd.DataFrame:
        """Batch predictions over `frame` (default: the full loaded dataset), row order preserved."""
        model = self._require_model("transform")
        if frame is None:
            if self._data is None:
                raise InvalidState(f"{self.spec.name}: transform() without a frame requires loaded data")
            frame = self._data.frame
        return model.transform(frame)
