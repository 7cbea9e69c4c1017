# -*- coding: utf-8 -*-
"""Seeded random source injected into GaussianHMM (k-means++ seeding)."""

from __future__ import annotations

import numpy as np


class SeededRandom:
    """Explicitly seeded uniform generator.

    Any object with ``random() -> float in [0, 1)`` can replace it.
    """

    def __init__(self, seed: int = 42):
        self.seed = int(seed)
        self._gen = np.random.default_rng(self.seed)

    def random(self) -> float:
        return float(self._gen.random())
