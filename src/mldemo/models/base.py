# src/mldemo/models/base.py
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Tuple

import numpy as np
import pandas as pd

from mldemo.data.schemas import Schema
from mldemo.errors import IncompatibleSchema


def _to_builtin(value: Any) -> Any:
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    return value


class Model(ABC):
    """
    Trained predictor bound to one input schema.

    transform: frame of input rows -> frame of output columns (same row order)
    predict_one: single record -> output record
    """

    variant: str = ""
    output_columns: Tuple[str, ...] = ()

    def __init__(self, input_schema: Schema) -> None:
        self.input_schema = input_schema

    @abstractmethod
    def _transform_features(self, features: pd.DataFrame) -> pd.DataFrame:
        ...

    def transform(self, frame: pd.DataFrame) -> pd.DataFrame:
        missing = [c for c in self.input_schema.feature_names if c not in frame.columns]
        if missing:
            raise IncompatibleSchema(
                f"{self.variant} model expects columns {list(self.input_schema.feature_names)}; missing {missing}"
            )
        features = frame[list(self.input_schema.feature_names)].reset_index(drop=True)
        if features.empty:
            return pd.DataFrame(columns=list(self.output_columns))
        out = self._transform_features(features)
        return out[list(self.output_columns)]

    def predict_one(self, record: Mapping[str, Any]) -> Dict[str, Any]:
        frame = pd.DataFrame([dict(record)])
        row = self.transform(frame).iloc[0]
        return {c: _to_builtin(row[c]) for c in self.output_columns}


class PipelineModel(Model):
    """Model backed by a fitted scikit-learn estimator / Pipeline."""

    def __init__(self, estimator: Any, input_schema: Schema) -> None:
        super().__init__(input_schema)
        self.estimator = estimator

    def __repr__(self) -> str:
        return f"{type(self).__name__}(variant={self.variant!r}, estimator={type(self.estimator).__name__})"
