# src/mldemo/errors.py
from __future__ import annotations


class MLDemoError(Exception):
    """Base class for every failure surfaced by the lifecycle layer."""


class InvalidParameter(MLDemoError, ValueError):
    pass


class InvalidState(MLDemoError, RuntimeError):
    pass


class IncompatibleSchema(MLDemoError, ValueError):
    pass


class TrainingFailure(MLDemoError, RuntimeError):
    pass


class PersistenceError(MLDemoError, OSError):
    pass


class InvalidInput(MLDemoError, ValueError):
    pass


class RankingTimeout(MLDemoError, TimeoutError):
    pass
