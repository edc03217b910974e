# src/mldemo/data/validation.py
from __future__ import annotations

import math
from typing import Any, Dict, Iterable, Mapping

import pandas as pd

from mldemo.data.schemas import Field, FieldRole, FieldType, Schema
from mldemo.errors import InvalidInput


class DataValidationError(ValueError):
    pass


_TRUE = {"1", "true", "t", "yes", "y"}
_FALSE = {"0", "false", "f", "no", "n"}


def validate_required_columns(df: pd.DataFrame, required: Iterable[str]) -> None:
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise DataValidationError(f"Missing required columns: {missing}")


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if value in (0, 1):
            return bool(value)
        raise ValueError(f"not a boolean: {value!r}")
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"not a boolean: {value!r}")


def _coerce_column(s: pd.Series, field: Field) -> pd.Series:
    if field.type is FieldType.NUMERIC:
        if s.dtype == object:
            s = s.map(lambda v: None if isinstance(v, str) and not v.strip() else v)
        return pd.to_numeric(s, errors="raise").astype("float64")
    if field.type is FieldType.BOOLEAN:
        return s.map(_parse_bool).astype(bool)
    return s.fillna("").astype(str)


def coerce_frame(df: pd.DataFrame, schema: Schema) -> pd.DataFrame:
    """
    Normalize dtypes to the schema so downstream trainers see exactly one
    representation per field type (float64 / bool / str).
    """
    validate_required_columns(df, schema.names)
    out = pd.DataFrame(index=df.index)
    for f in schema.fields:
        try:
            out[f.name] = _coerce_column(df[f.name], f)
        except (TypeError, ValueError) as exc:
            raise DataValidationError(
                f"Column {f.name!r} cannot be read as {f.type.value}: {exc}"
            ) from exc
    return out.reset_index(drop=True)


def validate_frame(df: pd.DataFrame, schema: Schema) -> None:
    validate_required_columns(df, schema.names)
    for f in schema.fields:
        col = df[f.name]
        if f.type is FieldType.NUMERIC and not pd.api.types.is_numeric_dtype(col):
            raise DataValidationError(f"{f.name} must be numeric")
        if f.type is FieldType.BOOLEAN and not pd.api.types.is_bool_dtype(col):
            raise DataValidationError(f"{f.name} must be boolean")


def coerce_sample(schema: Schema, sample: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Validate one prediction input against the schema.

    Feature fields are mandatory and must be coercible to their declared
    type. Label / meta fields are optional; absent ones are filled with a
    neutral value so the record still has the full schema layout.
    """
    if not isinstance(sample, Mapping):
        raise InvalidInput(f"sample must be a mapping of field -> value, got {type(sample).__name__}")

    unknown = sorted(set(sample) - set(schema.names))
    if unknown:
        raise InvalidInput(f"Unknown fields for schema {schema.name!r}: {unknown}")

    record: Dict[str, Any] = {}
    for f in schema.fields:
        present = f.name in sample and sample[f.name] is not None
        if not present:
            if f.role is FieldRole.FEATURE:
                raise InvalidInput(f"Missing required field {f.name!r} for schema {schema.name!r}")
            record[f.name] = _neutral(f)
            continue
        record[f.name] = _coerce_value(f, sample[f.name])
    return record


def _coerce_value(field: Field, value: Any) -> Any:
    try:
        if field.type is FieldType.NUMERIC:
            if isinstance(value, bool):
                raise ValueError("boolean given for numeric field")
            x = float(value)
            if not math.isfinite(x):
                raise ValueError("value must be finite")
            return x
        if field.type is FieldType.BOOLEAN:
            return _parse_bool(value)
        return str(value)
    except (TypeError, ValueError) as exc:
        raise InvalidInput(f"Field {field.name!r} expects {field.type.value}, got {value!r}") from exc


def _neutral(field: Field) -> Any:
    if field.type is FieldType.NUMERIC:
        return float("nan")
    if field.type is FieldType.BOOLEAN:
        return False
    return ""
