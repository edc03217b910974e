# src/mldemo/models/matrix_factorization.py
from __future__ import annotations

from typing import Dict, Hashable

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator, RegressorMixin
from sklearn.utils.validation import check_is_fitted

from mldemo.common.utils import format_key


class MatrixFactorizationRegressor(BaseEstimator, RegressorMixin):
    """
    Explicit-feedback matrix factorisation trained with SGD on squared loss.

    Users and items are key-encoded from the training data only. A pair with a
    user or item never seen during fit has no latent vector and is predicted
    as NaN; callers decide what to do with unscorable pairs.
    """

    def __init__(
        self,
        user_column: str = "user_id",
        item_column: str = "item_id",
        n_factors: int = 64,
        n_iterations: int = 10,
        learning_rate: float = 0.01,
        regularization: float = 0.05,
        init_scale: float = 0.1,
        random_state: int = 42,
    ):
        self.user_column = user_column
        self.item_column = item_column
        self.n_factors = n_factors
        self.n_iterations = n_iterations
        self.learning_rate = learning_rate
        self.regularization = regularization
        self.init_scale = init_scale
        self.random_state = random_state

    @staticmethod
    def _encode(values: pd.Series) -> Dict[Hashable, int]:
        keys: Dict[Hashable, int] = {}
        for v in values:
            k = format_key(v)
            if k not in keys:
                keys[k] = len(keys)
        return keys

    def fit(self, X: pd.DataFrame, y):
        if self.n_factors < 1:
            raise ValueError("n_factors must be >= 1")
        if self.n_iterations < 1:
            raise ValueError("n_iterations must be >= 1")

        ratings = np.asarray(y, dtype=np.float64)
        if ratings.size == 0:
            raise ValueError("cannot fit matrix factorisation on an empty frame")
        if not np.isfinite(ratings).all():
            raise ValueError("ratings contain NaN or infinite values")

        self.user_index_ = self._encode(X[self.user_column])
        self.item_index_ = self._encode(X[self.item_column])

        u = np.array([self.user_index_[format_key(v)] for v in X[self.user_column]], dtype=np.int64)
        i = np.array([self.item_index_[format_key(v)] for v in X[self.item_column]], dtype=np.int64)

        rng = np.random.default_rng(self.random_state)
        k = int(self.n_factors)
        P = rng.normal(0.0, self.init_scale, size=(len(self.user_index_), k))
        Q = rng.normal(0.0, self.init_scale, size=(len(self.item_index_), k))
        bu = np.zeros(len(self.user_index_))
        bi = np.zeros(len(self.item_index_))
        mu = float(ratings.mean())

        lr = float(self.learning_rate)
        reg = float(self.regularization)
        self.loss_history_ = []
        for _ in range(int(self.n_iterations)):
            for idx in rng.permutation(ratings.size):
                uu, ii = u[idx], i[idx]
                pu = P[uu].copy()
                err = ratings[idx] - (mu + bu[uu] + bi[ii] + pu @ Q[ii])
                bu[uu] += lr * (err - reg * bu[uu])
                bi[ii] += lr * (err - reg * bi[ii])
                P[uu] += lr * (err * Q[ii] - reg * pu)
                Q[ii] += lr * (err * pu - reg * Q[ii])
            pred = mu + bu[u] + bi[i] + np.einsum("ij,ij->i", P[u], Q[i])
            self.loss_history_.append(float(np.mean((ratings - pred) ** 2)))

        self.global_mean_ = mu
        self.user_factors_ = P
        self.item_factors_ = Q
        self.user_bias_ = bu
        self.item_bias_ = bi
        return self

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        check_is_fitted(self, "user_factors_")
        out = np.full(len(X), np.nan, dtype=np.float64)
        for row, (uv, iv) in enumerate(zip(X[self.user_column], X[self.item_column])):
            uu = self.user_index_.get(format_key(uv))
            ii = self.item_index_.get(format_key(iv))
            if uu is None or ii is None:
                continue
            out[row] = (
                self.global_mean_
                + self.user_bias_[uu]
                + self.item_bias_[ii]
                + self.user_factors_[uu] @ self.item_factors_[ii]
            )
        return out
