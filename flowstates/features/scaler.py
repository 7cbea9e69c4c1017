# -*- coding: utf-8 -*-
"""StandardScaler - zero-mean / unit-variance normalization (population std)."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from flowstates.errors import InvalidInputError, NotFittedError


def _as_matrix(data: Any) -> np.ndarray:
    try:
        X = np.asarray(data, dtype=float)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"Scaler input must be a rectangular numeric matrix: {e}") from e
    if X.ndim != 2:
        raise InvalidInputError(f"Scaler input must be 2-D (rows x features), got ndim={X.ndim}.")
    return X


class StandardScaler:
    """Column-wise z-score using the population standard deviation (divide by N).

    Constant columns (std == 0) transform to exactly 0.
    """

    def __init__(self):
        self.mean_: Optional[np.ndarray] = None
        self.std_: Optional[np.ndarray] = None

    @property
    def is_fitted(self) -> bool:
        return self.mean_ is not None and self.std_ is not None

    def fit(self, data: Sequence[Sequence[float]]) -> "StandardScaler":
        if len(data) == 0:
            raise InvalidInputError("Cannot fit StandardScaler on empty data.")
        X = _as_matrix(data)
        mean = X.mean(axis=0)
        std = np.sqrt(((X - mean) ** 2).mean(axis=0))
        self.mean_ = mean
        self.std_ = std
        return self

    def transform(self, data: Sequence[Sequence[float]]) -> np.ndarray:
        if not self.is_fitted:
            raise NotFittedError("StandardScaler has not been fitted. Call fit() first.")
        X = _as_matrix(data) if len(data) else np.empty((0, len(self.mean_)))
        if X.shape[1] != len(self.mean_):
            raise InvalidInputError(
                f"Expected {len(self.mean_)} columns but got {X.shape[1]}."
            )
        constant = self.std_ == 0
        safe_std = np.where(constant, 1.0, self.std_)
        out = (X - self.mean_) / safe_std
        out[:, constant] = 0.0
        return out

    def fit_transform(self, data: Sequence[Sequence[float]]) -> np.ndarray:
        return self.fit(data).transform(data)

    def to_json(self) -> Dict[str, List[float]]:
        if not self.is_fitted:
            raise NotFittedError("StandardScaler has not been fitted. Call fit() first.")
        return {
            'mean': [float(v) for v in self.mean_],
            'std': [float(v) for v in self.std_],
        }

    @classmethod
    def from_json(cls, data: Dict[str, Sequence[float]]) -> "StandardScaler":
        missing = [k for k in ('mean', 'std') if k not in data]
        if missing:
            raise InvalidInputError(f"Scaler JSON is missing keys: {missing}")
        mean = np.asarray(data['mean'], dtype=float)
        std = np.asarray(data['std'], dtype=float)
        if mean.ndim != 1 or mean.shape != std.shape:
            raise InvalidInputError("Scaler JSON 'mean' and 'std' must be equal-length vectors.")
        scaler = cls()
        scaler.mean_ = mean
        scaler.std_ = std
        return scaler
