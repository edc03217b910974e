# src/mldemo/anomaly/interpreter.py
from __future__ import annotations

import math
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Sequence

from mldemo.errors import InvalidInput


SPIKE_MARKER = " <----------------- Spike detected"


@dataclass(frozen=True)
class SpikeEvent:
    alert: int
    score: float
    p_value: float

    @property
    def is_spike(self) -> bool:
        return self.alert == 1

    @property
    def label(self) -> str:
        return "Spike" if self.is_spike else "Normal"

    def describe(self) -> str:
        line = f"{self.alert}\t{self.score:.2f}\t{self.p_value:.2f}"
        return line + SPIKE_MARKER if self.is_spike else line

    def to_line(self) -> str:
        return f"{self.alert},{self.score},{self.p_value}"


def interpret_row(row: Sequence[float]) -> SpikeEvent:
    """[alert, score, p_value] -> SpikeEvent."""
    values = list(row)
    if len(values) != 3:
        raise InvalidInput(f"spike row must have 3 values [alert, score, p_value], got {len(values)}")
    try:
        alert, score, p = (float(v) for v in values)
    except (TypeError, ValueError) as exc:
        raise InvalidInput(f"spike row must be numeric, got {values!r}") from exc

    if alert not in (0.0, 1.0):
        raise InvalidInput(f"alert must be 0 or 1, got {alert}")
    if math.isnan(p) or not (0.0 <= p <= 1.0):
        raise InvalidInput(f"p_value must be in [0, 1], got {p}")
    return SpikeEvent(alert=int(alert), score=score, p_value=p)


def interpret(rows: Iterable[Sequence[float]]) -> Iterator[SpikeEvent]:
    for row in rows:
        yield interpret_row(row)


def write_spike_results(events: Iterable[SpikeEvent], path: str | Path) -> Path:
    """One `alert,score,p_value` line per event, in input order."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("w", encoding="utf-8") as fh:
        for ev in events:
            fh.write(ev.to_line() + "\n")
    return p
