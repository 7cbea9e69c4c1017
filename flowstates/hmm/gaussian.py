# -*- coding: utf-8 -*-
"""
Gaussian HMM (diagonal covariance)
==================================

Baum-Welch(EM) 학습 + Viterbi 디코딩.

Features:
- k-means++ 초기화 (주입된 seeded random source 사용)
- Sticky 전이행렬 초기값 (diag 0.7)
- log-space forward-backward (underflow 방지)
- 분산 floor (MIN_VARIANCE), 전이행렬 additive smoothing
- BIC, JSON 직렬화

Lifecycle: unfitted -> fit() -> fitted. fit()을 다시 호출하면 처음부터 재학습.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
from scipy.special import logsumexp

from flowstates.errors import InvalidInputError, NotFittedError
from flowstates.hmm.rng import SeededRandom

logger = logging.getLogger(__name__)

LOG_2PI = float(np.log(2.0 * np.pi))

# 분산 floor: 거의 퇴화된 클러스터에서 분산 붕괴 방지
MIN_VARIANCE = 1e-4

# 전이/시작 확률 additive smoothing (0행 방지)
TRANSITION_SMOOTHING = 1e-6

# Sticky prior: 자기전이 확률 초기값
STICKY_DIAG = 0.7

KMEANS_ITER = 10

# 외부에서 0 확률이 들어올 때 log(0) 방지
_PROB_FLOOR = 1e-300

ProgressCallback = Callable[[int, int, float], None]

_JSON_KEYS = ('nStates', 'nFeatures', 'means', 'variances', 'transitionMatrix', 'initialProbs')


@dataclass(frozen=True)
class FitResult:
    """EM 학습 결과"""
    iterations: int
    log_likelihood: float
    converged: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class _Params:
    means: np.ndarray      # (K, D)
    variances: np.ndarray  # (K, D)
    transmat: np.ndarray   # (K, K) P(j | i), row-stochastic
    startprob: np.ndarray  # (K,)

    @property
    def log_transmat(self) -> np.ndarray:
        return np.log(self.transmat)

    @property
    def log_startprob(self) -> np.ndarray:
        return np.log(self.startprob)


# ============================================================================
# Numerical helpers
# ============================================================================

def _log_emission(X: np.ndarray, means: np.ndarray, variances: np.ndarray) -> np.ndarray:
    """
    log N(x | mu_k, diag(var_k)) for every (t, k)

    Returns:
        (T, K) array
    """
    log_det = np.log(variances).sum(axis=1)  # (K,)
    diff = X[:, None, :] - means[None, :, :]  # (T, K, D)
    mahal = (diff ** 2 / variances[None, :, :]).sum(axis=2)
    n_features = X.shape[1]
    return -0.5 * (n_features * LOG_2PI + log_det[None, :] + mahal)


def _forward(log_b: np.ndarray, log_startprob: np.ndarray, log_transmat: np.ndarray) -> Tuple[np.ndarray, float]:
    T, K = log_b.shape
    log_alpha = np.empty((T, K))
    log_alpha[0] = log_startprob + log_b[0]
    for t in range(1, T):
        log_alpha[t] = logsumexp(log_alpha[t - 1][:, None] + log_transmat, axis=0) + log_b[t]
    return log_alpha, float(logsumexp(log_alpha[-1]))


def _backward(log_b: np.ndarray, log_transmat: np.ndarray) -> np.ndarray:
    T, K = log_b.shape
    log_beta = np.zeros((T, K))
    for t in range(T - 2, -1, -1):
        log_beta[t] = logsumexp(log_transmat + (log_b[t + 1] + log_beta[t + 1])[None, :], axis=1)
    return log_beta


def _uniform_index(rng: Any, n: int) -> int:
    """Uniform index in [0, n) from rng.random()"""
    return min(int(rng.random() * n), n - 1)


def _sq_distances(X: np.ndarray, C: np.ndarray) -> np.ndarray:
    """(N, K) squared euclidean distances"""
    d2 = (X ** 2).sum(axis=1)[:, None] - 2.0 * X @ C.T + (C ** 2).sum(axis=1)[None, :]
    return np.maximum(d2, 0.0)


def kmeans_plus_plus(X: np.ndarray, n_clusters: int, rng: Any, n_iter: int = KMEANS_ITER) -> Tuple[np.ndarray, np.ndarray]:
    """
    k-means++ seeding + Lloyd iterations

    Args:
        X: pooled observations (N, D)
        n_clusters: K
        rng: random source with random() -> [0, 1)
        n_iter: Lloyd iterations after seeding

    Returns:
        centroids (K, D), assignments (N,)
    """
    N = len(X)
    K = n_clusters

    if N <= K:
        # 관측치가 상태 수 이하면 순환 배정
        centroids = X[[k % N for k in range(K)]].copy()
    else:
        first = _uniform_index(rng, N)
        centroids = np.empty((K, X.shape[1]))
        centroids[0] = X[first]
        closest = ((X - X[first]) ** 2).sum(axis=1)
        for k in range(1, K):
            total = float(closest.sum())
            if total <= 0.0:
                # 모든 점이 기존 centroid와 동일 (중복 데이터)
                idx = _uniform_index(rng, N)
            else:
                cum = np.cumsum(closest)
                idx = int(np.searchsorted(cum, rng.random() * total, side='right'))
                idx = min(idx, N - 1)
            centroids[k] = X[idx]
            closest = np.minimum(closest, ((X - X[idx]) ** 2).sum(axis=1))

    assignments = np.zeros(N, dtype=int)
    for _ in range(n_iter):
        assignments = np.argmin(_sq_distances(X, centroids), axis=1)
        for k in range(K):
            members = X[assignments == k]
            if len(members):
                centroids[k] = members.mean(axis=0)

    return centroids, assignments


# ============================================================================
# GaussianHMM
# ============================================================================

class GaussianHMM:
    """
    Diagonal-covariance Gaussian HMM.

    사용법:
        hmm = GaussianHMM(4, 16, max_iter=50, tol=1e-2, seed=42)
        result = hmm.fit(sequences)          # List[(T_i, D)]
        states = hmm.predict(sequences[0])   # Viterbi path
        score = hmm.bic(sequences)

    ``rng`` replaces the default ``SeededRandom(seed)`` used for k-means++
    seeding. The default source is rebuilt at every fit(), so repeated fits on
    the same data give identical parameters.
    """

    def __init__(
        self,
        n_states: int,
        n_features: int,
        *,
        max_iter: int = 100,
        tol: float = 1e-4,
        seed: int = 42,
        rng: Optional[Any] = None,
    ):
        if int(n_states) < 1:
            raise InvalidInputError(f"n_states must be >= 1, got {n_states}")
        if int(n_features) < 1:
            raise InvalidInputError(f"n_features must be >= 1, got {n_features}")
        if int(max_iter) < 1:
            raise InvalidInputError(f"max_iter must be >= 1, got {max_iter}")

        self.n_states = int(n_states)
        self.n_features = int(n_features)
        self.max_iter = int(max_iter)
        self.tol = float(tol)
        self.seed = int(seed)
        self._rng = rng

        self._params: Optional[_Params] = None

    # -------------------- state --------------------

    @property
    def is_fitted(self) -> bool:
        return self._params is not None

    def _require_fitted(self) -> _Params:
        if self._params is None:
            raise NotFittedError("Model not fitted. Call fit() first.")
        return self._params

    @property
    def means_(self) -> np.ndarray:
        return self._require_fitted().means.copy()

    @property
    def variances_(self) -> np.ndarray:
        return self._require_fitted().variances.copy()

    @property
    def transmat_(self) -> np.ndarray:
        return self._require_fitted().transmat.copy()

    @property
    def startprob_(self) -> np.ndarray:
        return self._require_fitted().startprob.copy()

    @property
    def n_parameters(self) -> int:
        """means + variances + transition free params + initial free params"""
        K, D = self.n_states, self.n_features
        return 2 * K * D + K * (K - 1) + (K - 1)

    # -------------------- validation --------------------

    def _as_sequence(self, sequence: Any) -> np.ndarray:
        try:
            X = np.asarray(sequence, dtype=float)
        except (TypeError, ValueError) as e:
            raise InvalidInputError(f"Sequence must be a numeric (T, {self.n_features}) matrix: {e}") from e
        if X.ndim != 2 or len(X) == 0:
            raise InvalidInputError(
                f"Sequence must be a non-empty (T, {self.n_features}) matrix, got shape {X.shape}."
            )
        if X.shape[1] != self.n_features:
            raise InvalidInputError(f"Expected {self.n_features} features but got {X.shape[1]}.")
        if not np.all(np.isfinite(X)):
            raise InvalidInputError("Sequence contains NaN or infinite values.")
        return X

    def _as_batch(self, sequences: Sequence[Any]) -> List[np.ndarray]:
        if sequences is None or len(sequences) == 0:
            raise InvalidInputError("Cannot fit on empty sequences.")
        return [self._as_sequence(seq) for seq in sequences]

    # -------------------- initialization --------------------

    def _initial_params(self, pooled: np.ndarray) -> _Params:
        K = self.n_states
        rng = self._rng if self._rng is not None else SeededRandom(self.seed)

        centroids, _ = kmeans_plus_plus(pooled, K, rng)

        global_var = np.maximum(pooled.var(axis=0), MIN_VARIANCE)
        variances = np.tile(global_var, (K, 1))

        if K == 1:
            transmat = np.ones((1, 1))
        else:
            transmat = np.full((K, K), (1.0 - STICKY_DIAG) / (K - 1))
            np.fill_diagonal(transmat, STICKY_DIAG)

        return _Params(
            means=centroids,
            variances=variances,
            transmat=transmat,
            startprob=np.full(K, 1.0 / K),
        )

    # -------------------- EM --------------------

    def _e_step(self, seqs: List[np.ndarray], params: _Params) -> Tuple[Dict[str, Any], float]:
        K = self.n_states
        start = np.zeros(K)
        trans = np.zeros((K, K))
        gammas: List[np.ndarray] = []
        total_ll = 0.0
        log_pi = params.log_startprob
        log_A = params.log_transmat

        for X in seqs:
            log_b = _log_emission(X, params.means, params.variances)
            log_alpha, seq_ll = _forward(log_b, log_pi, log_A)
            log_beta = _backward(log_b, log_A)
            total_ll += seq_ll

            log_gamma = log_alpha + log_beta
            log_gamma -= logsumexp(log_gamma, axis=1, keepdims=True)
            gamma = np.exp(log_gamma)
            gammas.append(gamma)
            start += gamma[0]

            if len(X) > 1:
                log_xi = (
                    log_alpha[:-1, :, None]
                    + log_A[None, :, :]
                    + (log_b[1:] + log_beta[1:])[:, None, :]
                )
                log_xi -= logsumexp(log_xi, axis=(1, 2), keepdims=True)
                trans += np.exp(log_xi).sum(axis=0)

        return {'start': start, 'trans': trans, 'gammas': gammas}, total_ll

    def _m_step(self, seqs: List[np.ndarray], stats: Dict[str, Any], params: _Params) -> _Params:
        K, D = self.n_states, self.n_features
        gammas = stats['gammas']

        post = np.zeros(K)
        weighted_sum = np.zeros((K, D))
        for X, gamma in zip(seqs, gammas):
            post += gamma.sum(axis=0)
            weighted_sum += gamma.T @ X

        has_mass = post > 1e-12
        means = params.means.copy()
        means[has_mass] = weighted_sum[has_mass] / post[has_mass, None]

        weighted_sq = np.zeros((K, D))
        for X, gamma in zip(seqs, gammas):
            for k in np.flatnonzero(has_mass):
                diff = X - means[k]
                weighted_sq[k] += gamma[:, k] @ (diff ** 2)

        variances = params.variances.copy()
        variances[has_mass] = weighted_sq[has_mass] / post[has_mass, None]
        variances = np.maximum(variances, MIN_VARIANCE)

        trans = stats['trans'] + TRANSITION_SMOOTHING
        transmat = trans / trans.sum(axis=1, keepdims=True)

        start = stats['start'] + TRANSITION_SMOOTHING
        startprob = start / start.sum()

        return _Params(
            means=means,
            variances=variances,
            transmat=transmat,
            startprob=startprob,
        )

    def fit(self, sequences: Sequence[Any], *, on_progress: Optional[ProgressCallback] = None) -> FitResult:
        """
        Baum-Welch 학습

        Args:
            sequences: 시퀀스 리스트, 각 시퀀스는 (T_i, D)
            on_progress: on_progress(iteration, max_iter, log_likelihood), 매 iteration 1회 호출

        Returns:
            FitResult(iterations, log_likelihood, converged)

        Raises:
            InvalidInputError: 빈 입력, 차원 불일치
        """
        seqs = self._as_batch(sequences)
        pooled = np.vstack(seqs)

        params = self._initial_params(pooled)

        prev_ll = -np.inf
        converged = False
        iteration = 0

        for iteration in range(1, self.max_iter + 1):
            stats, total_ll = self._e_step(seqs, params)
            params = self._m_step(seqs, stats, params)

            logger.debug(f"EM iter {iteration}/{self.max_iter}: log_likelihood={total_ll:.6f}")
            if on_progress is not None:
                on_progress(iteration, self.max_iter, total_ll)

            if iteration > 1 and abs(total_ll - prev_ll) < self.tol:
                converged = True
                prev_ll = total_ll
                break
            prev_ll = total_ll

        self._params = params

        logger.debug(
            f"EM finished: K={self.n_states}, iterations={iteration}, "
            f"log_likelihood={prev_ll:.4f}, converged={converged}"
        )
        return FitResult(iterations=iteration, log_likelihood=float(prev_ll), converged=converged)

    # -------------------- inference --------------------

    def predict(self, sequence: Any) -> List[int]:
        """Viterbi 디코딩 (최대 확률 상태 경로)"""
        params = self._require_fitted()
        X = self._as_sequence(sequence)
        T, K = len(X), self.n_states
        if K == 1:
            return [0] * T

        log_b = _log_emission(X, params.means, params.variances)
        log_A = params.log_transmat
        delta = params.log_startprob + log_b[0]
        backpointer = np.zeros((T, K), dtype=int)

        for t in range(1, T):
            scores = delta[:, None] + log_A
            backpointer[t] = np.argmax(scores, axis=0)
            delta = scores[backpointer[t], np.arange(K)] + log_b[t]

        states = np.empty(T, dtype=int)
        states[-1] = int(np.argmax(delta))
        for t in range(T - 2, -1, -1):
            states[t] = backpointer[t + 1][states[t + 1]]

        return [int(s) for s in states]

    def predict_proba(self, sequence: Any) -> np.ndarray:
        """Posterior P(state_t = k | sequence), shape (T, K)"""
        params = self._require_fitted()
        X = self._as_sequence(sequence)
        log_b = _log_emission(X, params.means, params.variances)
        log_alpha, _ = _forward(log_b, params.log_startprob, params.log_transmat)
        log_beta = _backward(log_b, params.log_transmat)
        log_gamma = log_alpha + log_beta
        log_gamma -= logsumexp(log_gamma, axis=1, keepdims=True)
        return np.exp(log_gamma)

    def score(self, sequences: Sequence[Any]) -> float:
        """Total log-likelihood of a batch under the fitted parameters."""
        params = self._require_fitted()
        total = 0.0
        for X in self._as_batch(sequences):
            log_b = _log_emission(X, params.means, params.variances)
            _, seq_ll = _forward(log_b, params.log_startprob, params.log_transmat)
            total += seq_ll
        return total

    def bic(self, sequences: Sequence[Any]) -> float:
        """
        BIC = -2 * LL + n_parameters * ln(N)

        낮을수록 좋음. 후보 K 비교용.
        """
        self._require_fitted()
        seqs = self._as_batch(sequences)
        n_samples = sum(len(X) for X in seqs)
        return -2.0 * self.score(seqs) + self.n_parameters * float(np.log(n_samples))

    # -------------------- serialization --------------------

    def to_json(self) -> Dict[str, Any]:
        params = self._require_fitted()
        return {
            'nStates': self.n_states,
            'nFeatures': self.n_features,
            'means': params.means.tolist(),
            'variances': params.variances.tolist(),
            'transitionMatrix': params.transmat.tolist(),
            'initialProbs': params.startprob.tolist(),
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "GaussianHMM":
        missing = [k for k in _JSON_KEYS if k not in data]
        if missing:
            raise InvalidInputError(f"Model JSON is missing keys: {missing}")
        n_states = int(data['nStates'])
        n_features = int(data['nFeatures'])
        hmm = cls(n_states, n_features)

        means = np.asarray(data['means'], dtype=float)
        variances = np.asarray(data['variances'], dtype=float)
        transmat = np.asarray(data['transitionMatrix'], dtype=float)
        startprob = np.asarray(data['initialProbs'], dtype=float)

        expected = {
            'means': (means, (n_states, n_features)),
            'variances': (variances, (n_states, n_features)),
            'transitionMatrix': (transmat, (n_states, n_states)),
            'initialProbs': (startprob, (n_states,)),
        }
        for key, (arr, shape) in expected.items():
            if arr.shape != shape:
                raise InvalidInputError(f"Model JSON '{key}' has shape {arr.shape}, expected {shape}.")
        if np.any(variances <= 0):
            raise InvalidInputError("Model JSON 'variances' must be strictly positive.")

        hmm._params = _Params(
            means=means,
            variances=variances,
            transmat=np.maximum(transmat, _PROB_FLOOR),
            startprob=np.maximum(startprob, _PROB_FLOOR),
        )
        return hmm
