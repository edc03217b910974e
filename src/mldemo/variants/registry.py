# src/mldemo/variants/registry.py
from __future__ import annotations

from typing import Dict, Optional, Type

from mldemo.errors import InvalidParameter
from mldemo.lifecycle import LifecycleConfig, ModelLifecycleManager
from mldemo.variants.anomaly import AnomalyManager
from mldemo.variants.classification import ClassificationManager
from mldemo.variants.clustering import ClusteringManager
from mldemo.variants.multiclass import MultiClassManager
from mldemo.variants.recommendation import RecommendationManager
from mldemo.variants.regression import RegressionManager


MANAGERS: Dict[str, Type[ModelLifecycleManager]] = {
    "classification": ClassificationManager,
    "multiclass": MultiClassManager,
    "clustering": ClusteringManager,
    "regression": RegressionManager,
    "recommendation": RecommendationManager,
    "anomaly": AnomalyManager,
}

VARIANTS = tuple(MANAGERS)


def create_manager(variant: str, config: Optional[LifecycleConfig] = None) -> ModelLifecycleManager:
    try:
        cls = MANAGERS[variant]
    except KeyError:
        raise InvalidParameter(f"Unknown variant {variant!r}; expected one of {list(VARIANTS)}") from None
    return cls(config)
