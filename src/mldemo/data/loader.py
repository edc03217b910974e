# src/mldemo/data/loader.py
from __future__ import annotations

from pathlib import Path
from typing import Optional

import pandas as pd

from mldemo.data.schemas import Schema
from mldemo.data.validation import DataValidationError, coerce_frame


def _ensure_exists(path: Path) -> None:
    if not path.exists():
        raise FileNotFoundError(f"Required path not found: {path}")


def load_dataset(
    path: str | Path,
    schema: Schema,
    *,
    separator: Optional[str] = None,
    has_header: Optional[bool] = None,
) -> pd.DataFrame:
    """
    Read a delimited file into a typed frame laid out per `schema`.

    Columns are picked by position (Field.column), so extra trailing columns
    in the file (e.g. a timestamp after the rating) are ignored. Header names
    in the file are never trusted; the schema names win.
    """
    p = Path(path)
    _ensure_exists(p)

    sep = schema.separator if separator is None else separator
    header = schema.has_header if has_header is None else has_header

    by_position = sorted(schema.fields, key=lambda f: f.column)
    try:
        raw = pd.read_csv(
            p,
            sep=sep,
            header=0 if header else None,
            usecols=[f.column for f in by_position],
            dtype=str,
            keep_default_na=False,
            skipinitialspace=True,
        )
    except pd.errors.EmptyDataError as exc:
        raise DataValidationError(f"No rows found in {p}") from exc
    except (pd.errors.ParserError, ValueError) as exc:
        raise DataValidationError(f"Cannot parse {p} with schema {schema.name!r}: {exc}") from exc

    # read_csv returns usecols in file order
    raw.columns = [f.name for f in by_position]
    if raw.empty:
        raise DataValidationError(f"No rows found in {p}")

    return coerce_frame(raw[list(schema.names)], schema)


def frame_from_records(records, schema: Schema) -> pd.DataFrame:
    """Build a typed frame from in-memory rows (dicts keyed by field name)."""
    df = pd.DataFrame.from_records(list(records), columns=list(schema.names))
    return coerce_frame(df, schema)
