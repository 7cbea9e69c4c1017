# -*- coding: utf-8 -*-
"""
State Discovery Pipeline
========================

Flow frame -> HMM 상태 할당 + 상태별 프로파일/이상치/요약.

단계:
1. host 시퀀스 구성 (IPV4_DST_ADDR, 시작 시각 정렬, inter-flow gap)
2. feature 추출 + 표준화
3. 상태 수 결정 (고정 또는 BIC)
4. 최종 학습 + host별 Viterbi 디코딩
5. 상태별 집계 -> 프로파일 -> 이상치 점수 + narrative

Progress (on_progress(percent, phase)):
    scaling 10-20 / bic-selection 25-40 / training 40-80 /
    predicting 80 / profiling 90 / done 100
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Hashable, List, Optional

import numpy as np
import pandas as pd

from flowstates.config import DiscoveryConfig, load_config
from flowstates.errors import InvalidInputError
from flowstates.features import (
    N_FEATURES,
    StandardScaler,
    build_host_sequences,
    extract_feature_matrix,
    reassemble,
    split_sequences,
)
from flowstates.features.sequences import HOST_COL
from flowstates.hmm import GaussianHMM, SelectionResult, select_n_states
from flowstates.narrative import (
    StateNarrativeGenerator,
    StateProfile,
    compute_state_signatures,
    profiles_from_signatures,
    score_anomalies,
)

logger = logging.getLogger(__name__)

ROW_ID_COL = 'rowid'

ProgressCallback = Callable[[int, str], None]


@dataclass
class DiscoveryResult:
    """상태 탐색 결과"""
    assignments: Dict[Hashable, int]
    profiles: List[StateProfile]
    n_states: int
    converged: bool
    iterations: int
    log_likelihood: float
    model: GaussianHMM
    scaler: StandardScaler
    bic_by_k: Dict[int, float] = field(default_factory=dict)

    def assignments_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {'row_id': list(self.assignments.keys()), 'state_id': list(self.assignments.values())}
        )

    def profiles_frame(self) -> pd.DataFrame:
        return pd.json_normalize([p.to_dict() for p in self.profiles])


def _row_ids(flows: pd.DataFrame) -> List[Any]:
    if ROW_ID_COL in flows.columns:
        return flows[ROW_ID_COL].tolist()
    return flows.index.tolist()


def _report(on_progress: Optional[ProgressCallback], percent: int, phase: str) -> None:
    logger.debug(f"progress {percent}% ({phase})")
    if on_progress is not None:
        on_progress(percent, phase)


def _choose_n_states(
    sequences: List[np.ndarray],
    n_rows: int,
    config: DiscoveryConfig,
    on_progress: Optional[ProgressCallback],
) -> SelectionResult:
    sel = config.selection

    if n_rows > sel.subsample_threshold:
        # host 정렬된 앞쪽 row만 사용
        remaining = sel.subsample_size
        bic_sequences = []
        for seq in sequences:
            if remaining <= 0:
                break
            bic_sequences.append(seq[:remaining])
            remaining -= len(seq)
        logger.info(f"BIC selection on first {sel.subsample_size} of {n_rows} rows")
    else:
        bic_sequences = sequences

    span = max(sel.max_states - sel.min_states + 1, 1)

    def on_candidate(k: int, bic: float) -> None:
        done = k - sel.min_states + 1
        _report(on_progress, 25 + int(round(done / span * 15)), 'bic-selection')

    return select_n_states(
        bic_sequences,
        N_FEATURES,
        min_states=sel.min_states,
        max_states=sel.max_states,
        max_iter=sel.max_iter,
        tol=sel.tol,
        seed=config.hmm.seed,
        patience=sel.patience,
        on_candidate=on_candidate,
    )


def discover_states(
    flows: pd.DataFrame,
    config: Optional[DiscoveryConfig] = None,
    *,
    on_progress: Optional[ProgressCallback] = None,
) -> DiscoveryResult:
    """
    Flow frame에서 행동 상태 탐색

    Args:
        flows: raw flow rows (extract_feature_matrix 필수 컬럼 + IPV4_DST_ADDR)
        config: DiscoveryConfig (None이면 load_config())
        on_progress: on_progress(percent, phase)

    Returns:
        DiscoveryResult

    Raises:
        InvalidInputError: 학습 가능한 flow 부족
        KeyError: 필수 컬럼 누락
    """
    if config is None:
        config = load_config()

    seq_cfg = config.sequences
    ordered = build_host_sequences(flows, min_flows_per_host=seq_cfg.min_flows_per_host)
    n_rows = len(ordered)
    logger.info(
        f"Sequences built: {n_rows}/{len(flows)} flows across "
        f"{ordered[HOST_COL].nunique()} hosts (min_flows_per_host={seq_cfg.min_flows_per_host})"
    )
    if n_rows < seq_cfg.min_training_flows:
        raise InvalidInputError(
            f"Need at least {seq_cfg.min_training_flows} flows for state discovery, got {n_rows}."
        )

    _report(on_progress, 10, 'scaling')
    X = extract_feature_matrix(ordered)
    scaler = StandardScaler()
    scaled = scaler.fit_transform(X)
    sequences, positions = split_sequences(scaled, ordered[HOST_COL].tolist())
    _report(on_progress, 20, 'scaling')

    bic_by_k: Dict[int, float] = {}
    if config.hmm.n_states > 0:
        n_states = config.hmm.n_states
        logger.info(f"Using configured n_states={n_states}")
    else:
        _report(on_progress, 25, 'bic-selection')
        selection = _choose_n_states(sequences, n_rows, config, on_progress)
        n_states = selection.n_states
        bic_by_k = selection.bic_by_k

    _report(on_progress, 40, 'training')
    model = GaussianHMM(
        n_states,
        N_FEATURES,
        max_iter=config.hmm.max_iter,
        tol=config.hmm.tol,
        seed=config.hmm.seed,
    )

    def on_iteration(iteration: int, max_iter: int, log_likelihood: float) -> None:
        _report(on_progress, 40 + int(round(iteration / max_iter * 40)), 'training')

    fit = model.fit(sequences, on_progress=on_iteration)
    if fit.converged:
        logger.info(
            f"HMM trained: K={n_states}, iterations={fit.iterations}, "
            f"log_likelihood={fit.log_likelihood:.2f}"
        )
    else:
        logger.warning(
            f"HMM did not converge within {config.hmm.max_iter} iterations "
            f"(K={n_states}, log_likelihood={fit.log_likelihood:.2f})"
        )

    _report(on_progress, 80, 'predicting')
    per_sequence = [model.predict(seq) for seq in sequences]
    states = reassemble(per_sequence, positions, n_rows)
    assignments = dict(zip(_row_ids(ordered), (int(s) for s in states)))

    _report(on_progress, 90, 'profiling')
    signatures = compute_state_signatures(ordered, states)
    profiles = profiles_from_signatures(signatures)
    for profile, anomaly in zip(profiles, score_anomalies(profiles)):
        profile.anomaly_score = anomaly.anomaly_score
        profile.anomaly_factors = anomaly.anomaly_factors
    StateNarrativeGenerator().annotate(profiles)

    flagged = [p.state_id for p in profiles if p.anomaly_score]
    logger.info(f"Profiled {len(profiles)} states (anomalous: {flagged})")

    _report(on_progress, 100, 'done')
    return DiscoveryResult(
        assignments=assignments,
        profiles=profiles,
        n_states=n_states,
        converged=fit.converged,
        iterations=fit.iterations,
        log_likelihood=fit.log_likelihood,
        model=model,
        scaler=scaler,
        bic_by_k=bic_by_k,
    )
