# src/mldemo/models/spike.py
from __future__ import annotations

import math
from collections import deque
from typing import Iterable, List, Sequence

import numpy as np
from sklearn.base import BaseEstimator, TransformerMixin
from sklearn.utils.validation import check_is_fitted


def _normal_sf(z: float) -> float:
    return 0.5 * math.erfc(z / math.sqrt(2.0))


def _kde_upper_pvalue(x: float, history: Sequence[float]) -> float:
    """
    P(X >= x) under a Gaussian kernel density fitted to `history`.

    Bandwidth follows Silverman's rule; a degenerate history (all values
    equal) falls back to a unit-free small bandwidth so identical values sit
    at p=0.5 and anything larger drops towards 0.
    """
    h = np.asarray(history, dtype=np.float64)
    if h.size == 0:
        return 0.5
    std = float(h.std(ddof=1)) if h.size > 1 else 0.0
    bw = 1.06 * std * h.size ** (-0.2)
    if bw <= 0.0:
        bw = max(abs(float(h.mean())) * 1e-3, 1e-6)
    return float(np.mean([_normal_sf((x - v) / bw) for v in h]))


class IidSpikeDetector(BaseEstimator, TransformerMixin):
    """
    Spike detector for independent, identically distributed series.

    Every point is scored against a sliding window of the previous
    `pvalue_history_length` points; the raw score is the value itself and the
    p-value is its upper-tail probability under that window. A point raises
    an alert when p-value < 1 - confidence / 100.

    transform() emits one [alert, score, p_value] vector per input row, in
    order.
    """

    def __init__(self, confidence: float = 95.0, pvalue_history_length: int = 10):
        self.confidence = confidence
        self.pvalue_history_length = pvalue_history_length

    def _check_params(self) -> None:
        if not (0.0 < float(self.confidence) < 100.0):
            raise ValueError(f"confidence must be in (0, 100), got {self.confidence}")
        if int(self.pvalue_history_length) < 1:
            raise ValueError(f"pvalue_history_length must be >= 1, got {self.pvalue_history_length}")

    def fit(self, X, y=None):
        self._check_params()
        series = self._series(X)
        if not np.isfinite(series).all():
            raise ValueError("series contains NaN or infinite values")
        self.alert_threshold_ = 1.0 - float(self.confidence) / 100.0
        self.history_ = series[-int(self.pvalue_history_length):].tolist()
        self.n_seen_ = int(series.size)
        return self

    @staticmethod
    def _series(X) -> np.ndarray:
        arr = np.asarray(X, dtype=np.float64)
        if arr.ndim == 2:
            if arr.shape[1] != 1:
                raise ValueError(f"spike detection expects a single column, got {arr.shape[1]}")
            arr = arr[:, 0]
        return arr

    def _score(self, values: Iterable[float], history: deque) -> List[np.ndarray]:
        rows: List[np.ndarray] = []
        for x in values:
            p = _kde_upper_pvalue(float(x), list(history)) if history else 0.5
            alert = 1.0 if p < self.alert_threshold_ else 0.0
            rows.append(np.array([alert, float(x), p], dtype=np.float64))
            history.append(float(x))
        return rows

    def transform(self, X) -> np.ndarray:
        """Score a whole series from an empty history."""
        check_is_fitted(self, "alert_threshold_")
        series = self._series(X)
        history: deque = deque(maxlen=int(self.pvalue_history_length))
        rows = self._score(series, history)
        return np.vstack(rows) if rows else np.empty((0, 3))

    def score_next(self, value: float) -> np.ndarray:
        """Score one point as the continuation of the fitted series (state is not advanced)."""
        check_is_fitted(self, "alert_threshold_")
        history: deque = deque(self.history_, maxlen=int(self.pvalue_history_length))
        return self._score([value], history)[0]
