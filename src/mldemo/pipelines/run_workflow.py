# src/mldemo/pipelines/run_workflow.py
from __future__ import annotations

import argparse
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

import pandas as pd

from mldemo.common.io import write_json
from mldemo.common.log import log
from mldemo.errors import InvalidParameter
from mldemo.evaluation.metrics import RankingMetricsConfig, evaluate_topk
from mldemo.lifecycle import LifecycleConfig, ModelLifecycleManager
from mldemo.recommendation.catalog import SeenItemIndex
from mldemo.recommendation.ranking import RecommendationEngine
from mldemo.variants.anomaly import AnomalyConfig, AnomalyManager
from mldemo.variants.clustering import ClusteringManager, format_distances
from mldemo.variants.recommendation import RecommendationConfig, RecommendationManager
from mldemo.variants.registry import VARIANTS, create_manager


@dataclass(frozen=True)
class WorkflowConfig:
    variant: str
    data_path: Path

    model_path: Optional[Path] = None  # default: outputs/models/<variant>.zip
    test_fraction: Optional[float] = None
    retrain: bool = False
    seed: int = 42

    # Outputs
    report_path: Optional[Path] = None
    results_path: Optional[Path] = None

    # recommendation
    reference_path: Optional[Path] = None
    user_id: Optional[int] = None
    count: int = 10
    iterations: int = 10
    topk_out: Optional[Path] = None
    relevance_min_rating: float = 4.0

    # anomaly
    confidence: float = 95.0
    sensitivity: int = 4
    doc_size: int = 40

    @property
    def resolved_model_path(self) -> Path:
        return self.model_path or Path("outputs/models") / f"{self.variant}.zip"


def _train_config(cfg: WorkflowConfig) -> Any:
    if cfg.variant == "anomaly":
        return AnomalyConfig(confidence=cfg.confidence, sensitivity=cfg.sensitivity, doc_size=cfg.doc_size)
    if cfg.variant == "recommendation":
        return RecommendationConfig(iterations=cfg.iterations)
    return None


def _load_or_train(mgr: ModelLifecycleManager, cfg: WorkflowConfig) -> str:
    model_path = cfg.resolved_model_path
    extra: Dict[str, Any] = {}
    if isinstance(mgr, RecommendationManager) and cfg.reference_path is not None:
        extra["reference_path"] = cfg.reference_path

    if model_path.exists() and not cfg.retrain:
        log(f"Found persisted model: {model_path}")
        mgr.load(model_path, cfg.data_path, cfg.test_fraction, **extra)
        return "loaded"

    mgr.load_data(cfg.data_path, cfg.test_fraction, **extra)
    mgr.train(_train_config(cfg))
    mgr.save(model_path)
    return "trained"


def _recommendation_step(mgr: RecommendationManager, cfg: WorkflowConfig, report: Dict[str, Any]) -> None:
    if mgr.catalog is None:
        log("No reference catalog given -> skipping recommendations")
        return

    if cfg.user_id is not None:
        recs = mgr.get_recommendations(cfg.user_id, cfg.count)
        for r in recs:
            log(f"  {r.title} ({r.item_id}) score={r.score:.3f}")
        report["recommendations"] = {"user_id": cfg.user_id, "items": [r.to_dict() for r in recs]}

    if cfg.topk_out is not None and mgr.test_partition is not None:
        # held-out items must stay rankable, so only train rows count as seen here
        engine = RecommendationEngine(
            mgr, mgr.catalog, SeenItemIndex.from_frame(mgr.train_partition), mgr.ranking
        )
        test = mgr.test_partition
        users = sorted(test["user_id"].unique().tolist())
        rows = []
        for uid in users:
            for rank, rec in enumerate(engine.get_recommendations(uid, cfg.count), start=1):
                rows.append({"user_id": uid, "item_id": float(rec.item_id), "score": rec.score, "rank": rank})

        topk = pd.DataFrame(rows, columns=["user_id", "item_id", "score", "rank"])
        cfg.topk_out.parent.mkdir(parents=True, exist_ok=True)
        topk.to_parquet(cfg.topk_out, index=False)
        log(f"✅ Wrote: {cfg.topk_out} ({len(topk)} rows, {len(users)} users)")

        gt = test.loc[test["rating"] >= cfg.relevance_min_rating, ["user_id", "item_id"]]
        k_list = tuple(sorted({k for k in (1, 5, cfg.count) if 0 < k <= cfg.count}))
        report["topk_metrics"] = evaluate_topk(topk, gt, RankingMetricsConfig(k_list=k_list))


def run(cfg: WorkflowConfig) -> Dict[str, Any]:
    if cfg.variant not in VARIANTS:
        raise InvalidParameter(f"Unknown variant {cfg.variant!r}; expected one of {list(VARIANTS)}")

    mgr = create_manager(cfg.variant, LifecycleConfig(seed=cfg.seed))
    report: Dict[str, Any] = {"variant": cfg.variant, "data_path": cfg.data_path}

    log(f"[1/4] Load or train ({cfg.variant})")
    report["model_source"] = _load_or_train(mgr, cfg)
    report["model_path"] = cfg.resolved_model_path
    report["split"] = mgr.split_metadata

    log("[2/4] Evaluate")
    if mgr.test_partition is not None:
        metrics = mgr.evaluate(_train_config(cfg))
        report["metrics"] = metrics
        for k in sorted(metrics):
            if isinstance(metrics[k], float):
                log(f"  {k}: {metrics[k]:.4f}")
    else:
        log("Variant does not hold out a test partition -> no metrics")

    log("[3/4] Variant outputs")
    if isinstance(mgr, ClusteringManager):
        first = next(mgr.rows("all"))
        pred = mgr.predict(first)
        log(f"  first row -> cluster {pred['predicted_cluster']}:{format_distances(pred['distances'])}")
        if cfg.results_path is not None:
            report["results_path"] = mgr.write_assignments(cfg.results_path)
    elif isinstance(mgr, AnomalyManager):
        events = list(mgr.detect_spikes())
        for ev in events:
            if ev.is_spike:
                log(f"  {ev.describe()}")
        report["n_points"] = len(events)
        report["n_spikes"] = sum(1 for ev in events if ev.is_spike)
        if cfg.results_path is not None:
            report["results_path"] = mgr.write_results(cfg.results_path)
    elif isinstance(mgr, RecommendationManager):
        _recommendation_step(mgr, cfg, report)

    report["stage"] = mgr.stage.value
    log("[4/4] Report")
    if cfg.report_path is not None:
        write_json(cfg.report_path, report)
        log(f"✅ Wrote: {cfg.report_path}")
    return report


def _parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Load/train, persist, evaluate and predict one workflow variant.")
    ap.add_argument("--variant", required=True, choices=VARIANTS)
    ap.add_argument("--data", type=Path, required=True)
    ap.add_argument("--model", type=Path, default=None)
    ap.add_argument("--test-fraction", type=float, default=None)
    ap.add_argument("--retrain", action="store_true")
    ap.add_argument("--seed", type=int, default=42)
    ap.add_argument("--report", type=Path, default=None)
    ap.add_argument("--results", type=Path, default=None)
    ap.add_argument("--reference", type=Path, default=None)
    ap.add_argument("--user", type=int, default=None)
    ap.add_argument("--count", type=int, default=10)
    ap.add_argument("--iterations", type=int, default=10)
    ap.add_argument("--topk-out", type=Path, default=None)
    ap.add_argument("--confidence", type=float, default=95.0)
    ap.add_argument("--sensitivity", type=int, default=4)
    ap.add_argument("--doc-size", type=int, default=40)
    return ap


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = _parser().parse_args(argv)
    cfg = WorkflowConfig(
        variant=args.variant,
        data_path=args.data,
        model_path=args.model,
        test_fraction=args.test_fraction,
        retrain=args.retrain,
        seed=args.seed,
        report_path=args.report,
        results_path=args.results,
        reference_path=args.reference,
        user_id=args.user,
        count=args.count,
        iterations=args.iterations,
        topk_out=args.topk_out,
        confidence=args.confidence,
        sensitivity=args.sensitivity,
        doc_size=args.doc_size,
    )
    run(cfg)
    print(f"✅ Workflow complete ({cfg.variant}).", flush=True)


if __name__ == "__main__":
    main()
