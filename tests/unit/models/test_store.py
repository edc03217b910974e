from __future__ import annotations

import zipfile
from pathlib import Path

import pytest

from mldemo.data.schemas import Schema, numeric
from mldemo.errors import PersistenceError
from mldemo.models import store


SCHEMA = Schema(name="toy", fields=(numeric("x", 0),))


def test_save_then_load_returns_model_and_schema(sandbox: Path):
    p = store.save_model({"weights": [1.0, 2.0]}, SCHEMA, sandbox / "models" / "toy.zip")

    model, schema = store.load_model(p)
    assert model == {"weights": [1.0, 2.0]}
    assert schema == SCHEMA

    with zipfile.ZipFile(p) as zf:
        assert {store.MODEL_MEMBER, store.SCHEMA_MEMBER, store.META_MEMBER} <= set(zf.namelist())


def test_save_leaves_no_temp_files(sandbox: Path):
    store.save_model({"a": 1}, SCHEMA, sandbox / "toy.zip")
    store.save_model({"a": 2}, SCHEMA, sandbox / "toy.zip")

    assert sorted(p.name for p in sandbox.iterdir()) == ["toy.zip"]
    assert store.load_model(sandbox / "toy.zip")[0] == {"a": 2}


def test_load_missing_file_raises(sandbox: Path):
    with pytest.raises(PersistenceError):
        store.load_model(sandbox / "nope.zip")


def test_load_garbage_raises(sandbox: Path):
    p = sandbox / "garbage.zip"
    p.write_bytes(b"this is not a zip file")
    with pytest.raises(PersistenceError):
        store.load_model(p)


def test_load_bundle_without_model_member_raises(sandbox: Path):
    p = sandbox / "partial.zip"
    with zipfile.ZipFile(p, "w") as zf:
        zf.writestr(store.SCHEMA_MEMBER, "{}")
    with pytest.raises(PersistenceError):
        store.load_model(p)


def test_load_corrupt_model_member_raises(sandbox: Path):
    p = sandbox / "corrupt.zip"
    with zipfile.ZipFile(p, "w") as zf:
        zf.writestr(store.MODEL_MEMBER, b"\x80\x04not a pickle")
        zf.writestr(store.SCHEMA_MEMBER, '{"name": "toy", "fields": []}')
    with pytest.raises(PersistenceError):
        store.load_model(p)


def test_save_into_unwritable_location_raises(sandbox: Path):
    blocker = sandbox / "file"
    blocker.write_text("x", encoding="utf-8")
    with pytest.raises(PersistenceError):
        store.save_model({"a": 1}, SCHEMA, blocker / "sub" / "toy.zip")
