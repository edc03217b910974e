# src/mldemo/evaluation/metrics.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Sequence, Tuple

import numpy as np
import pandas as pd
from sklearn.metrics import (
    accuracy_score,
    auc,
    balanced_accuracy_score,
    confusion_matrix,
    f1_score,
    log_loss,
    mean_absolute_error,
    mean_squared_error,
    precision_recall_curve,
    precision_score,
    r2_score,
    recall_score,
    roc_auc_score,
)


def _require_cols(df: pd.DataFrame, cols: Iterable[str], name: str) -> None:
    missing = [c for c in cols if c not in df.columns]
    if missing:
        raise ValueError(f"{name} missing required columns: {missing}. Found: {list(df.columns)}")


# ============================================================
# Per-variant metric bundles
# ============================================================
def binary_classification_metrics(
    y_true: Sequence[bool],
    y_pred: Sequence[bool],
    probability: Sequence[float],
) -> Dict[str, Any]:
    y = np.asarray(y_true, dtype=bool)
    yhat = np.asarray(y_pred, dtype=bool)
    p = np.clip(np.asarray(probability, dtype=np.float64), 1e-15, 1 - 1e-15)

    two_classes = np.unique(y).size > 1
    if two_classes:
        roc = float(roc_auc_score(y, p))
        prec, rec, _ = precision_recall_curve(y, p)
        pr_auc = float(auc(rec, prec))
    else:
        roc = float("nan")
        pr_auc = float("nan")

    cm = confusion_matrix(y, yhat, labels=[True, False])
    return {
        "n_rows": int(y.size),
        "accuracy": float(accuracy_score(y, yhat)),
        "area_under_roc_curve": roc,
        "area_under_pr_curve": pr_auc,
        "f1_score": float(f1_score(y, yhat, zero_division=0)),
        "positive_precision": float(precision_score(y, yhat, zero_division=0)),
        "positive_recall": float(recall_score(y, yhat, zero_division=0)),
        "log_loss": float(log_loss(y, p, labels=[False, True])),
        # rows: actual positive / negative, cols: predicted positive / negative
        "confusion_matrix": cm.tolist(),
    }


def multiclass_classification_metrics(
    y_true: Sequence[str],
    y_pred: Sequence[str],
    proba: np.ndarray,
    classes: Sequence[str],
) -> Dict[str, Any]:
    y = np.asarray(y_true, dtype=object)
    yhat = np.asarray(y_pred, dtype=object)
    labels = list(classes)
    P = np.asarray(proba, dtype=np.float64)

    # rows whose label never appeared in training cannot be scored by log-loss
    known = np.isin(y, labels)
    if known.any():
        ll = float(log_loss(y[known], P[known], labels=labels))
        prior = np.array([np.mean(y[known] == c) for c in labels], dtype=np.float64)
        prior_ll = float(log_loss(y[known], np.tile(np.clip(prior, 1e-15, 1.0), (int(known.sum()), 1)), labels=labels))
        ll_reduction = float(1.0 - ll / prior_ll) if prior_ll > 0 else 0.0
    else:
        ll = float("nan")
        ll_reduction = float("nan")

    cm = confusion_matrix(y, yhat, labels=labels)
    return {
        "n_rows": int(y.size),
        "micro_accuracy": float(accuracy_score(y, yhat)),
        "macro_accuracy": float(balanced_accuracy_score(y, yhat)) if y.size else 0.0,
        "log_loss": ll,
        "log_loss_reduction": ll_reduction,
        "classes": labels,
        "confusion_matrix": cm.tolist(),
    }


def regression_metrics(y_true: Sequence[float], y_score: Sequence[float]) -> Dict[str, Any]:
    y = np.asarray(y_true, dtype=np.float64)
    s = np.asarray(y_score, dtype=np.float64)

    # unscorable rows (NaN score) are reported, not averaged in
    ok = np.isfinite(s)
    n_unscored = int((~ok).sum())
    y, s = y[ok], s[ok]
    if y.size == 0:
        return {
            "n_rows": 0,
            "n_unscored": n_unscored,
            "r_squared": float("nan"),
            "root_mean_squared_error": float("nan"),
            "mean_absolute_error": float("nan"),
            "mean_squared_error": float("nan"),
        }

    mse = float(mean_squared_error(y, s))
    return {
        "n_rows": int(y.size),
        "n_unscored": n_unscored,
        "r_squared": float(r2_score(y, s)) if y.size > 1 else float("nan"),
        "root_mean_squared_error": float(np.sqrt(mse)),
        "mean_absolute_error": float(mean_absolute_error(y, s)),
        "mean_squared_error": mse,
    }


# ============================================================
# Offline top-k evaluation
# ============================================================
@dataclass(frozen=True)
class RankingMetricsConfig:
    """Config for offline top-k evaluation."""
    k_list: Tuple[int, ...] = (5, 10, 20)
    dedup_ground_truth: bool = True


def _dcg(rels: np.ndarray) -> float:
    # rels is binary relevance vector in ranked order
    if rels.size == 0:
        return 0.0
    denom = np.log2(np.arange(2, rels.size + 2))
    return float((rels / denom).sum())


def _empty_topk_report(cfg: RankingMetricsConfig) -> Dict[str, float]:
    out: Dict[str, float] = {"n_users_eval": 0.0}
    for k in cfg.k_list:
        out[f"precision@{k}"] = 0.0
        out[f"recall@{k}"] = 0.0
        out[f"hit_rate@{k}"] = 0.0
        out[f"ndcg@{k}"] = 0.0
        out[f"map@{k}"] = 0.0
    return out


def evaluate_topk(
    topk: pd.DataFrame,
    ground_truth: pd.DataFrame,
    cfg: RankingMetricsConfig | None = None,
) -> Dict[str, float]:
    """
    Evaluate top-k recommendations against held-out interactions.
    Required columns:
      - topk: user_id, item_id, rank  (rank 1 is best)
      - ground_truth: user_id, item_id

    Returns a flat dict with metrics for each k in cfg.k_list.
    """
    if cfg is None:
        cfg = RankingMetricsConfig()

    if len(topk) == 0 or len(ground_truth) == 0:
        return _empty_topk_report(cfg)

    _require_cols(topk, ["user_id", "item_id", "rank"], "topk")
    _require_cols(ground_truth, ["user_id", "item_id"], "ground_truth")

    recs = topk.sort_values(["user_id", "rank", "item_id"], ascending=[True, True, True])

    gt = ground_truth[["user_id", "item_id"]].copy()
    if cfg.dedup_ground_truth:
        gt = gt.drop_duplicates(["user_id", "item_id"])

    gt_sets = gt.groupby("user_id")["item_id"].apply(lambda s: set(s.tolist()))
    users = np.intersect1d(recs["user_id"].unique(), gt_sets.index.values)
    if users.size == 0:
        return _empty_topk_report(cfg)

    recs_by_user = {
        uid: grp["item_id"].tolist()
        for uid, grp in recs[recs["user_id"].isin(users)].groupby("user_id", sort=True)
    }

    out: Dict[str, float] = {"n_users_eval": float(users.size)}
    for k in cfg.k_list:
        precisions, recalls, hits, ndcgs, maps = [], [], [], [], []

        for uid in users:
            gt_u = gt_sets.loc[uid]
            rec_k = recs_by_user.get(uid, [])[:k]

            if not rec_k:
                precisions.append(0.0)
                recalls.append(0.0)
                hits.append(0.0)
                ndcgs.append(0.0)
                maps.append(0.0)
                continue

            hit_flags = np.array([1.0 if it in gt_u else 0.0 for it in rec_k], dtype=float)
            n_hits = float(hit_flags.sum())

            precisions.append(n_hits / float(len(rec_k)))
            recalls.append(n_hits / float(len(gt_u)))
            hits.append(1.0 if n_hits > 0.0 else 0.0)

            idcg = _dcg(np.ones(int(min(len(gt_u), k)), dtype=float))
            ndcgs.append(_dcg(hit_flags) / idcg if idcg > 0 else 0.0)

            if n_hits == 0.0:
                maps.append(0.0)
            else:
                prec_at_i = np.cumsum(hit_flags) / (np.arange(len(hit_flags)) + 1.0)
                maps.append(float((prec_at_i * hit_flags).sum() / min(len(gt_u), k)))

        out[f"precision@{k}"] = float(np.mean(precisions))
        out[f"recall@{k}"] = float(np.mean(recalls))
        out[f"hit_rate@{k}"] = float(np.mean(hits))
        out[f"ndcg@{k}"] = float(np.mean(ndcgs))
        out[f"map@{k}"] = float(np.mean(maps))

    return out
