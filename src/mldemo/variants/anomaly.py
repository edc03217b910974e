# src/mldemo/variants/anomaly.py
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from mldemo.anomaly.interpreter import SpikeEvent, interpret, write_spike_results
from mldemo.data.schemas import FieldRole, Schema, numeric, string
from mldemo.errors import InvalidParameter, InvalidState
from mldemo.lifecycle import LifecycleConfig, ModelLifecycleManager, VariantSpec
from mldemo.models.base import PipelineModel
from mldemo.models.spike import IidSpikeDetector


# ============================================================
# Schema: daily product sales, comma separated, header row
# ============================================================
SCHEMA = Schema(
    name="product_sales",
    fields=(
        string("day", 0, FieldRole.META),
        numeric("num_sales", 1),
    ),
    separator=",",
    has_header=True,
)

OUTPUT_COLUMNS: Tuple[str, ...] = ("prediction",)


@dataclass(frozen=True)
class AnomalyConfig:
    confidence: float = 95.0
    sensitivity: int = 4
    doc_size: int = 40

    @property
    def pvalue_history_length(self) -> int:
        return max(1, self.doc_size // self.sensitivity)


def _validate_cfg(cfg: AnomalyConfig) -> None:
    if not (0.0 < cfg.confidence < 100.0):
        raise InvalidParameter(f"confidence must be in (0, 100), got {cfg.confidence}")
    if cfg.sensitivity < 1:
        raise InvalidParameter(f"sensitivity must be >= 1, got {cfg.sensitivity}")
    if cfg.doc_size < 1:
        raise InvalidParameter(f"doc_size must be >= 1, got {cfg.doc_size}")


class SpikeModel(PipelineModel):
    """prediction is the [alert, score, p_value] vector per row."""

    variant = "anomaly"
    output_columns = OUTPUT_COLUMNS

    def _transform_features(self, features: pd.DataFrame) -> pd.DataFrame:
        rows = self.estimator.transform(features["num_sales"].to_numpy(dtype=np.float64))
        return pd.DataFrame({"prediction": list(rows)})

    def predict_one(self, record: Mapping[str, Any]) -> Dict[str, Any]:
        # a single point continues the series the detector was fitted on
        return {"prediction": self.estimator.score_next(float(record["num_sales"])).tolist()}


def train_spike_detector(frame: pd.DataFrame, cfg: AnomalyConfig, seed: int) -> SpikeModel:
    _validate_cfg(cfg)
    det = IidSpikeDetector(confidence=cfg.confidence, pvalue_history_length=cfg.pvalue_history_length)
    det.fit(frame["num_sales"].to_numpy(dtype=np.float64))
    return SpikeModel(det, SCHEMA)


SPEC = VariantSpec(
    name="anomaly",
    input_schema=SCHEMA,
    output_columns=OUTPUT_COLUMNS,
    train=train_spike_detector,
    default_config=AnomalyConfig(),
    evaluate=None,
    splits=False,
)


class AnomalyManager(ModelLifecycleManager):
    def __init__(self, config: Optional[LifecycleConfig] = None) -> None:
        super().__init__(SPEC, config)

    def detect_spikes(self, frame: Optional[pd.DataFrame] = None) -> Iterator[SpikeEvent]:
        """Spike events over `frame` (default: the loaded series), in row order."""
        if frame is None and self.dataset is None:
            raise InvalidState("anomaly: detect_spikes() requires loaded data")
        out = self.transform(frame)
        return interpret(out["prediction"])

    def write_results(self, path: str | Path) -> Path:
        out = write_spike_results(self.detect_spikes(), path)
        self._log(f"✅ Wrote: {out}")
        return out
