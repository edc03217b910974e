# src/mldemo/recommendation/catalog.py
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterator, Tuple

import pandas as pd

from mldemo.common.utils import format_key
from mldemo.data.loader import load_dataset
from mldemo.data.schemas import FieldRole, Schema, numeric, string
from mldemo.data.validation import DataValidationError, validate_required_columns


REFERENCE_SCHEMA = Schema(
    name="item_reference",
    fields=(
        numeric("item_id", 0),
        string("title", 1, FieldRole.META),
    ),
    separator=",",
    has_header=True,
)


def _normalize_id(value: Any) -> Any:
    # 10.0 -> 10 so ids read from float columns compare like the file shows them
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if hasattr(value, "item"):
        return _normalize_id(value.item())
    return value


class ReferenceCatalog:
    """
    Item id -> display title. Iteration yields ids in ascending order, so the
    candidate set handed to the ranking engine has a stable order.
    """

    def __init__(self, titles: Dict[Any, str]) -> None:
        self._titles = dict(sorted(titles.items()))

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> "ReferenceCatalog":
        validate_required_columns(df, ["item_id", "title"])
        titles: Dict[Any, str] = {}
        for item_id, title in zip(df["item_id"], df["title"]):
            key = _normalize_id(item_id)
            if key in titles:
                raise DataValidationError(f"Duplicate item_id in reference catalog: {key}")
            titles[key] = "" if title is None else str(title)
        return cls(titles)

    @classmethod
    def from_file(cls, path: str | Path) -> "ReferenceCatalog":
        return cls.from_frame(load_dataset(path, REFERENCE_SCHEMA))

    @property
    def item_ids(self) -> Tuple[Any, ...]:
        return tuple(self._titles)

    def title(self, item_id: Any) -> str:
        return self._titles.get(_normalize_id(item_id), "")

    def __contains__(self, item_id: Any) -> bool:
        return _normalize_id(item_id) in self._titles

    def __iter__(self) -> Iterator[Any]:
        return iter(self._titles)

    def __len__(self) -> int:
        return len(self._titles)


def seen_key(user_id: Any, item_id: Any) -> str:
    return f"{format_key(user_id)}:{format_key(item_id)}"


class SeenItemIndex:
    """Set of "user:item" keys for every rated pair in the full dataset."""

    def __init__(self, keys: FrozenSet[str] = frozenset()) -> None:
        self._keys = frozenset(keys)

    @classmethod
    def from_frame(
        cls,
        df: pd.DataFrame,
        user_column: str = "user_id",
        item_column: str = "item_id",
    ) -> "SeenItemIndex":
        validate_required_columns(df, [user_column, item_column])
        return cls(frozenset(seen_key(u, i) for u, i in zip(df[user_column], df[item_column])))

    def contains(self, user_id: Any, item_id: Any) -> bool:
        return seen_key(user_id, item_id) in self._keys

    def __contains__(self, key: str) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)
