# tests/conftest.py
from __future__ import annotations

from pathlib import Path

import pandas as pd
import pytest


@pytest.fixture()
def sandbox(tmp_path: Path) -> Path:
    """Per-test filesystem sandbox."""
    return tmp_path


@pytest.fixture()
def project_root() -> Path:
    """Repo root (where pyproject.toml lives)."""
    # tests/ -> repo root
    return Path(__file__).resolve().parents[1]


@pytest.fixture()
def chdir_sandbox(monkeypatch, sandbox: Path):
    """
    Run code as-if repo root is sandbox so relative defaults
    like outputs/models/... resolve inside sandbox.
    """
    monkeypatch.chdir(sandbox)
    return sandbox


def _write(path: Path, lines) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


# ============================================================
# Tiny deterministic datasets, one per variant, laid out like
# the real files (separator / header / column order)
# ============================================================
_POSITIVE = [
    "I love this great day",
    "what a wonderful happy morning",
    "love love love it",
    "great news and happy times",
    "so happy with this wonderful gift",
    "best day ever love it",
    "this is great and wonderful",
    "happy happy joy",
    "feeling great today",
    "really love the new song",
]
_NEGATIVE = [
    "I hate this awful day",
    "what a terrible sad morning",
    "hate hate hate it",
    "awful news and sad times",
    "so sad with this terrible gift",
    "worst day ever hate it",
    "this is awful and terrible",
    "sad sad misery",
    "feeling awful today",
    "really hate the new song",
]


@pytest.fixture()
def sentiment_csv(sandbox: Path) -> Path:
    lines = []
    n = 0
    for rep in range(2):
        for pos, neg in zip(_POSITIVE, _NEGATIVE):
            n += 1
            lines.append(f"1,{1000 + n},Mon Apr 06 22:19:{n % 60:02d} PDT 2009,NO_QUERY,user{n},{pos}")
            n += 1
            lines.append(f"0,{1000 + n},Mon Apr 06 22:19:{n % 60:02d} PDT 2009,NO_QUERY,user{n},{neg}")
    return _write(sandbox / "data" / "twitterdata.csv", lines)


@pytest.fixture()
def issues_tsv(sandbox: Path) -> Path:
    topics = {
        "area-System.Net": ("HttpClient socket timeout", "the http request over the socket times out"),
        "area-System.IO": ("File stream read error", "reading the file stream from disk fails"),
        "area-System.Linq": ("Linq query ordering", "the linq query returns items in the wrong order"),
    }
    lines = []
    n = 0
    for rep in range(8):
        for area, (title, desc) in topics.items():
            n += 1
            lines.append(f"{n}\t{area}\t{title} {rep}\t{desc} case {rep}")
    return _write(sandbox / "data" / "githubissues.tsv", lines)


@pytest.fixture()
def iris_csv(sandbox: Path) -> Path:
    centres = [(1.4, 0.2, 5.0, 3.4), (4.3, 1.3, 5.9, 2.8), (5.6, 2.0, 6.6, 3.0)]
    offsets = [-0.1, -0.05, 0.0, 0.05, 0.1]
    lines = []
    for c in centres:
        for o in offsets:
            for j in (1, -1):
                lines.append(",".join(f"{v + o * j:.2f}" for v in c))
    return _write(sandbox / "data" / "iris.csv", lines)


@pytest.fixture()
def taxi_csv(sandbox: Path) -> Path:
    lines = ["vendor_id,rate_code,passenger_count,trip_time_in_secs,trip_distance,payment_type,fare_amount"]
    for i in range(80):
        vendor = "CMT" if i % 2 else "VTS"
        payment = "CRD" if i % 3 else "CSH"
        distance = 0.5 + (i % 20) * 0.5
        trip_time = int(distance * 240)
        fare = 2.5 + 2.0 * distance
        lines.append(f"{vendor},1,{1 + i % 4},{trip_time},{distance:.2f},{payment},{fare:.2f}")
    return _write(sandbox / "data" / "taxi.csv", lines)


@pytest.fixture()
def ratings_df() -> pd.DataFrame:
    """6 users x 6 items, users 1-3 like items 10-12, users 4-6 like 13-15."""
    rows = []
    for u in range(1, 7):
        likes = {10, 11, 12} if u <= 3 else {13, 14, 15}
        for item in range(10, 16):
            if (u + item) % 4 == 0:
                continue  # leave some pairs unrated
            rows.append({"user_id": u, "item_id": item, "rating": 5.0 if item in likes else 1.0})
    return pd.DataFrame(rows)


@pytest.fixture()
def ratings_csv(sandbox: Path, ratings_df: pd.DataFrame) -> Path:
    p = sandbox / "data" / "movieratings.csv"
    p.parent.mkdir(parents=True, exist_ok=True)
    out = ratings_df.rename(columns={"user_id": "userId", "item_id": "movieId"})
    out.to_csv(p, index=False)
    return p


@pytest.fixture()
def movies_csv(sandbox: Path) -> Path:
    lines = ["movieId,title"]
    for item in range(10, 17):
        lines.append(f"{item},Movie {item} ({1990 + item})")
    return _write(sandbox / "data" / "movieref.csv", lines)


SPIKE_INDEX = 20


@pytest.fixture()
def spike_index() -> int:
    return SPIKE_INDEX


@pytest.fixture()
def sales_series():
    pattern = [210.0, 200.0, 190.0, 205.0, 195.0]
    values = [pattern[i % len(pattern)] for i in range(36)]
    values[SPIKE_INDEX] = 1000.0
    return values


@pytest.fixture()
def sales_csv(sandbox: Path, sales_series) -> Path:
    lines = ["Day,NumSales"]
    for i, v in enumerate(sales_series, start=1):
        lines.append(f"{i}-Jan,{v:g}")
    return _write(sandbox / "data" / "anomalydetection.csv", lines)
