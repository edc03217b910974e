# src/mldemo/data/splits.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Tuple

import numpy as np
import pandas as pd

from mldemo.errors import InvalidParameter


DEFAULT_TEST_FRACTION = 0.2


@dataclass(frozen=True)
class TrainTestSplitConfig:
    test_fraction: float = DEFAULT_TEST_FRACTION
    seed: int = 42


def validate_test_fraction(test_fraction: float) -> float:
    try:
        f = float(test_fraction)
    except (TypeError, ValueError) as exc:
        raise InvalidParameter(f"test_fraction must be a number, got {test_fraction!r}") from exc
    if not (0.0 < f < 1.0):
        raise InvalidParameter(f"test_fraction must be in (0, 1), got {f}")
    return f


def train_test_split(
    df: pd.DataFrame,
    cfg: TrainTestSplitConfig,
) -> Tuple[pd.DataFrame, pd.DataFrame, Dict[str, Any]]:
    """
    Seeded random split into disjoint, exhaustive train/test partitions.

    Test size is round(n * test_fraction); the rest is train. The same seed on
    the same frame always yields the same partitions.
    """
    f = validate_test_fraction(cfg.test_fraction)

    n = len(df)
    n_test = int(round(n * f))
    rng = np.random.default_rng(cfg.seed)
    order = rng.permutation(n)

    test_idx = np.sort(order[:n_test])
    train_idx = np.sort(order[n_test:])

    train = df.iloc[train_idx].reset_index(drop=True)
    test = df.iloc[test_idx].reset_index(drop=True)

    if len(train) + len(test) != n:
        raise RuntimeError("Split produced row loss/gain (train+test != total)")

    meta = {
        "strategy": "random_permutation",
        "n_total": int(n),
        "n_train": int(len(train)),
        "n_test": int(len(test)),
        "frac_test": float(len(test) / max(n, 1)),
        "test_fraction": f,
        "seed": int(cfg.seed),
    }
    return train, test, meta
