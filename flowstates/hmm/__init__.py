"""
HMM Module - Gaussian HMM for Flow Behavioral States
====================================================

Components:
- gaussian.py: diagonal-covariance Gaussian HMM (EM, Viterbi, BIC, JSON)
- rng.py: seeded random source for k-means++ seeding
- selection.py: BIC 기반 상태 수 선택
"""
from .gaussian import (
    GaussianHMM,
    FitResult,
    MIN_VARIANCE,
    TRANSITION_SMOOTHING,
    STICKY_DIAG,
    kmeans_plus_plus,
)
from .rng import SeededRandom
from .selection import (
    SelectionResult,
    select_n_states,
)

__all__ = [
    # Model
    'GaussianHMM',
    'FitResult',
    'MIN_VARIANCE',
    'TRANSITION_SMOOTHING',
    'STICKY_DIAG',
    'kmeans_plus_plus',

    # Randomness
    'SeededRandom',

    # Selection
    'SelectionResult',
    'select_n_states',
]
