from __future__ import annotations

import math

import pandas as pd
import pytest


def _schema():
    from mldemo.data.schemas import FieldRole, Schema, boolean, numeric, string

    return Schema(
        name="toy",
        fields=(
            boolean("label", 0, FieldRole.LABEL),
            numeric("x", 1),
            string("text", 2),
            string("note", 3, FieldRole.META),
        ),
    )


def test_coerce_frame_normalizes_dtypes():
    from mldemo.data.validation import coerce_frame

    raw = pd.DataFrame(
        {"label": ["1", "0"], "x": ["1.5", " "], "text": ["a", None], "note": ["n", "m"]},
        index=[7, 9],
    )
    out = coerce_frame(raw, _schema())

    assert list(out.index) == [0, 1]
    assert out["label"].tolist() == [True, False]
    assert out["x"].dtype == "float64"
    assert out.loc[0, "x"] == 1.5
    assert math.isnan(out.loc[1, "x"])
    assert out["text"].tolist() == ["a", ""]


def test_coerce_frame_rejects_missing_columns_and_bad_values():
    from mldemo.data.validation import DataValidationError, coerce_frame

    with pytest.raises(DataValidationError):
        coerce_frame(pd.DataFrame({"label": ["1"], "x": ["1"]}), _schema())

    bad = pd.DataFrame({"label": ["maybe"], "x": ["1"], "text": ["a"], "note": [""]})
    with pytest.raises(DataValidationError):
        coerce_frame(bad, _schema())


def test_coerce_sample_fills_optional_fields():
    from mldemo.data.validation import coerce_sample

    rec = coerce_sample(_schema(), {"x": "2", "text": 5})

    assert rec["x"] == 2.0
    assert rec["text"] == "5"
    assert rec["label"] is False
    assert rec["note"] == ""


@pytest.mark.parametrize(
    "sample",
    [
        {"text": "a"},  # missing feature
        {"x": "abc", "text": "a"},  # not numeric
        {"x": True, "text": "a"},  # bool is not a number here
        {"x": float("inf"), "text": "a"},
        {"x": float("nan"), "text": "a"},
        {"x": "nan", "text": "a"},
        {"x": 1, "text": "a", "extra": 1},  # unknown field
    ],
)
def test_coerce_sample_rejects_bad_input(sample):
    from mldemo.data.validation import coerce_sample
    from mldemo.errors import InvalidInput

    with pytest.raises(InvalidInput):
        coerce_sample(_schema(), sample)


def test_coerce_sample_requires_mapping():
    from mldemo.data.validation import coerce_sample
    from mldemo.errors import InvalidInput

    with pytest.raises(InvalidInput):
        coerce_sample(_schema(), ["x", 1])


def test_validate_frame_checks_types():
    from mldemo.data.validation import DataValidationError, validate_frame

    ok = pd.DataFrame({"label": [True], "x": [1.0], "text": ["a"], "note": [""]})
    validate_frame(ok, _schema())

    with pytest.raises(DataValidationError):
        validate_frame(ok.assign(x=["1"]), _schema())
