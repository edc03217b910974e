# src/mldemo/models/store.py
from __future__ import annotations

import io
import json
import os
import pickle
import tempfile
import zipfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Tuple

import joblib

from mldemo.data.schemas import Schema
from mldemo.errors import PersistenceError


MODEL_MEMBER = "model.joblib"
SCHEMA_MEMBER = "schema.json"
META_MEMBER = "artifact.json"
FORMAT_VERSION = 1


def save_model(model: Any, schema: Schema, path: str | Path) -> Path:
    """
    Write `model` and the input `schema` it requires into one zip bundle.

    The bundle is written next to the destination and renamed into place, so
    a failed save never leaves a truncated file at `path`.
    """
    p = Path(path)
    try:
        p.parent.mkdir(parents=True, exist_ok=True)

        buf = io.BytesIO()
        joblib.dump(model, buf)

        meta = {
            "format_version": FORMAT_VERSION,
            "variant": getattr(model, "variant", ""),
            "model_class": type(model).__name__,
            "created_at": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        }

        fd, tmp_name = tempfile.mkstemp(prefix=f".{p.name}.", suffix=".tmp", dir=p.parent)
        try:
            with os.fdopen(fd, "wb") as fh, zipfile.ZipFile(fh, "w", compression=zipfile.ZIP_DEFLATED) as zf:
                zf.writestr(MODEL_MEMBER, buf.getvalue())
                zf.writestr(SCHEMA_MEMBER, json.dumps(schema.to_dict(), indent=2))
                zf.writestr(META_MEMBER, json.dumps(meta, indent=2))
            os.replace(tmp_name, p)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
    except OSError as exc:
        raise PersistenceError(f"Cannot save model bundle to {p}: {exc}") from exc
    return p


def load_model(path: str | Path) -> Tuple[Any, Schema]:
    """Restore (model, schema) from a bundle written by save_model."""
    p = Path(path)
    try:
        with zipfile.ZipFile(p, "r") as zf:
            names = set(zf.namelist())
            missing = [m for m in (MODEL_MEMBER, SCHEMA_MEMBER) if m not in names]
            if missing:
                raise PersistenceError(f"Model bundle {p} is missing members: {missing}")
            schema_dict = json.loads(zf.read(SCHEMA_MEMBER).decode("utf-8"))
            model = joblib.load(io.BytesIO(zf.read(MODEL_MEMBER)))
    except PersistenceError:
        raise
    except (OSError, zipfile.BadZipFile) as exc:
        raise PersistenceError(f"Cannot read model bundle {p}: {exc}") from exc
    except (ValueError, KeyError, EOFError, AttributeError, ImportError, pickle.UnpicklingError) as exc:
        raise PersistenceError(f"Corrupt model bundle {p}: {exc}") from exc

    try:
        schema = Schema.from_dict(schema_dict)
    except (KeyError, TypeError, ValueError) as exc:
        raise PersistenceError(f"Model bundle {p} carries an unreadable schema: {exc}") from exc
    return model, schema
