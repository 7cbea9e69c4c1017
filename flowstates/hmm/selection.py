# -*- coding: utf-8 -*-
"""
BIC Model Selection
===================

후보 상태 수 K를 오름차순으로 학습하면서 BIC 최소값 선택.
연속 patience회 BIC가 개선되지 않으면 조기 종료.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Sequence

import numpy as np

from flowstates.errors import InvalidInputError
from flowstates.hmm.gaussian import GaussianHMM

logger = logging.getLogger(__name__)


@dataclass
class SelectionResult:
    """BIC 선택 결과"""
    n_states: int
    best_bic: float
    bic_by_k: Dict[int, float] = field(default_factory=dict)
    stopped_early: bool = False


def select_n_states(
    sequences: Sequence[Any],
    n_features: int,
    *,
    min_states: int = 2,
    max_states: int = 10,
    max_iter: int = 10,
    tol: float = 0.1,
    seed: int = 42,
    patience: int = 2,
    on_candidate: Optional[Callable[[int, float], None]] = None,
) -> SelectionResult:
    """
    BIC 기반 상태 수 자동 선택

    Args:
        sequences: 학습 시퀀스 (표준화된 feature)
        n_features: feature 차원
        min_states / max_states: 후보 K 범위 (양끝 포함)
        max_iter / tol: 후보 모델 EM 설정 (가볍게)
        seed: 후보 모델 seed
        patience: 연속 비개선 횟수 한도
        on_candidate: on_candidate(k, bic), 후보 하나 끝날 때마다 호출

    Returns:
        SelectionResult
    """
    if min_states < 1:
        raise InvalidInputError(f"min_states must be >= 1, got {min_states}")
    if max_states < min_states:
        raise InvalidInputError(f"max_states ({max_states}) must be >= min_states ({min_states})")
    if patience < 1:
        raise InvalidInputError(f"patience must be >= 1, got {patience}")

    best_k = min_states
    best_bic = np.inf
    bic_by_k: Dict[int, float] = {}
    consecutive_increases = 0
    stopped_early = False

    for k in range(min_states, max_states + 1):
        candidate = GaussianHMM(k, n_features, max_iter=max_iter, tol=tol, seed=seed)
        candidate.fit(sequences)
        bic = candidate.bic(sequences)
        bic_by_k[k] = bic
        logger.debug(f"BIC candidate K={k}: {bic:.2f}")

        if on_candidate is not None:
            on_candidate(k, bic)

        if bic < best_bic:
            best_bic = bic
            best_k = k
            consecutive_increases = 0
        else:
            consecutive_increases += 1
            if consecutive_increases >= patience:
                stopped_early = k < max_states
                break

    logger.info(f"BIC selected K={best_k} (bic={best_bic:.2f}, candidates={sorted(bic_by_k)})")
    return SelectionResult(
        n_states=best_k,
        best_bic=float(best_bic),
        bic_by_k=bic_by_k,
        stopped_early=stopped_early,
    )
