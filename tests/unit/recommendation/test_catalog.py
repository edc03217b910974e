from __future__ import annotations

from pathlib import Path

import pandas as pd
import pytest

from mldemo.data.validation import DataValidationError
from mldemo.recommendation.catalog import ReferenceCatalog, SeenItemIndex, seen_key


def test_catalog_from_file(movies_csv: Path):
    cat = ReferenceCatalog.from_file(movies_csv)

    assert len(cat) == 7
    assert cat.item_ids == tuple(range(10, 17))
    assert cat.title(10) == "Movie 10 (2000)"
    assert cat.title(10.0) == "Movie 10 (2000)"
    assert 16 in cat
    assert cat.title(99) == ""


def test_catalog_iterates_in_id_order():
    cat = ReferenceCatalog.from_frame(pd.DataFrame({"item_id": [12.0, 10.0, 11.0], "title": ["c", "a", "b"]}))
    assert list(cat) == [10, 11, 12]


def test_catalog_rejects_duplicate_ids():
    df = pd.DataFrame({"item_id": [1, 1], "title": ["a", "b"]})
    with pytest.raises(DataValidationError):
        ReferenceCatalog.from_frame(df)


def test_catalog_keeps_commas_in_quoted_titles(sandbox: Path):
    p = sandbox / "movies.csv"
    p.write_text('movieId,title\n1,"American President, The (1995)"\n', encoding="utf-8")

    assert ReferenceCatalog.from_file(p).title(1) == "American President, The (1995)"


def test_seen_key_format():
    assert seen_key(6, 10) == "6:10"
    assert seen_key(6.0, 10.0) == "6:10"


def test_seen_index_from_frame(ratings_df: pd.DataFrame):
    seen = SeenItemIndex.from_frame(ratings_df)

    assert len(seen) == len(ratings_df)
    assert seen.contains(1, 10)
    assert seen.contains(1.0, 10.0)
    assert not seen.contains(1, 11)  # left unrated in the fixture
    assert "1:10" in seen
    assert not seen.contains(99, 10)
