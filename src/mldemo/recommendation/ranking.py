# src/mldemo/recommendation/ranking.py
from __future__ import annotations

import math
import numbers
import time
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple

from mldemo.errors import InvalidParameter, InvalidState, RankingTimeout
from mldemo.lifecycle import MODEL_STAGES
from mldemo.recommendation.catalog import ReferenceCatalog, SeenItemIndex


@dataclass(frozen=True)
class RankingConfig:
    # bounded fan-out over candidate scoring
    max_workers: int = 4
    timeout_s: float = 60.0
    chunk_size: int = 256


@dataclass(frozen=True)
class RecommendationResult:
    item_id: Any
    score: float
    title: str

    def to_dict(self) -> dict:
        return {"item_id": self.item_id, "score": self.score, "title": self.title}


class RecommendationEngine:
    """
    Top-K unseen items for one user.

    candidates = catalog - seen(user); every candidate is scored by the
    manager's model, unscorable (NaN) candidates are dropped, the rest are
    ordered by score desc then item id asc and cut to K.

    Every call rescores the full catalog; nothing is cached between calls.

    `manager` only needs a `stage` and `score_items(user_id, item_ids)`
    returning one float per item.
    """

    def __init__(
        self,
        manager: Any,
        catalog: ReferenceCatalog,
        seen: SeenItemIndex,
        cfg: Optional[RankingConfig] = None,
    ) -> None:
        self.manager = manager
        self.catalog = catalog
        self.seen = seen
        self.cfg = cfg or RankingConfig()
        if self.cfg.timeout_s <= 0:
            raise InvalidParameter(f"timeout_s must be > 0, got {self.cfg.timeout_s}")
        if self.cfg.chunk_size < 1:
            raise InvalidParameter(f"chunk_size must be >= 1, got {self.cfg.chunk_size}")

    def candidates(self, user_id: Any) -> List[Any]:
        return [item for item in self.catalog if not self.seen.contains(user_id, item)]

    def _chunks(self, items: Sequence[Any]) -> List[Sequence[Any]]:
        n = self.cfg.chunk_size
        return [items[i:i + n] for i in range(0, len(items), n)]

    def score(self, user_id: Any, items: Sequence[Any]) -> List[Tuple[Any, float]]:
        """(item, score) for every scorable item; input order kept."""
        chunks = self._chunks(list(items))
        if not chunks:
            return []

        if self.cfg.max_workers <= 1:
            deadline = time.monotonic() + self.cfg.timeout_s
            scored: List[Sequence[float]] = []
            for chunk in chunks:
                scored.append(self.manager.score_items(user_id, chunk))
                if time.monotonic() > deadline:
                    raise RankingTimeout(f"Scoring {len(items)} candidates exceeded {self.cfg.timeout_s}s")
        else:
            pool = ThreadPoolExecutor(max_workers=self.cfg.max_workers)
            try:
                futures = [pool.submit(self.manager.score_items, user_id, chunk) for chunk in chunks]
                done, pending = wait(futures, timeout=self.cfg.timeout_s, return_when=FIRST_EXCEPTION)
                for fut in done:
                    exc = fut.exception()
                    if exc is not None:
                        raise exc
                if pending:
                    raise RankingTimeout(f"Scoring {len(items)} candidates exceeded {self.cfg.timeout_s}s")
                scored = [fut.result() for fut in futures]
            finally:
                pool.shutdown(wait=False, cancel_futures=True)

        out: List[Tuple[Any, float]] = []
        for chunk, scores in zip(chunks, scored):
            for item, s in zip(chunk, scores):
                s = float(s)
                if math.isnan(s):
                    continue
                out.append((item, s))
        return out

    def get_recommendations(self, user_id: Any, count: int) -> List[RecommendationResult]:
        if isinstance(count, bool) or not isinstance(count, numbers.Integral):
            raise InvalidParameter(f"count must be an integer, got {count!r}")
        count = int(count)
        if count < 0:
            raise InvalidParameter(f"count must be >= 0, got {count}")
        if getattr(self.manager, "stage", None) not in MODEL_STAGES:
            raise InvalidState("get_recommendations() requires a trained or loaded model")
        if count == 0:
            return []

        scored = self.score(user_id, self.candidates(user_id))
        scored.sort(key=lambda t: (-t[1], t[0]))
        return [
            RecommendationResult(item_id=item, score=s, title=self.catalog.title(item))
            for item, s in scored[:count]
        ]
