from __future__ import annotations

import os
import random

import numpy as np


def set_seed(seed: int) -> np.random.Generator:
    """
    Seed the global RNGs and hand back a dedicated numpy Generator.

    Trainers should draw from the returned generator (or pass `seed` as
    `random_state`) rather than relying on the global state.
    """
    random.seed(seed)
    os.environ["PYTHONHASHSEED"] = str(seed)
    np.random.seed(seed)
    return np.random.default_rng(seed)


def format_key(value) -> str:
    """Render an id as text; integral floats drop their fractional part (6.0 -> "6")."""
    if isinstance(value, (float, np.floating)) and float(value).is_integer():
        return str(int(value))
    if isinstance(value, (np.integer,)):
        return str(int(value))
    return str(value)
