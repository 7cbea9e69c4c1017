# -*- coding: utf-8 -*-
"""
State Anomaly Scoring
=====================

상태 간 robust z-score로 이상 상태 랭킹.

지표:
- bytes_ratio
- duration       (avg_duration_ms)
- pkts_per_sec   (avg_pkts_per_sec)
- protocol_skew  (최대 프로토콜 비중 - 1/3)

z = 0.6745 * |x - median| / MAD
MAD == 0 이면 z = |x - median| / (1.2533 * meanAD), 그것도 0이면 z = 0
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Sequence

import numpy as np

from flowstates.narrative.profile import StateProfile


MAD_SCALE = 0.6745
MEAN_AD_SCALE = 1.2533
FACTOR_Z_THRESHOLD = 2.0
SCORE_PER_Z = 20.0
MAX_SCORE = 100
MAX_FACTORS = 3


@dataclass
class AnomalyScore:
    state_id: int
    anomaly_score: int
    anomaly_factors: List[str] = field(default_factory=list)


def _protocol_skew(profile: StateProfile) -> float:
    dist = profile.protocol_dist
    return max(dist.tcp, dist.udp, dist.icmp) - 1.0 / 3.0


def _metric_table(profiles: Sequence[StateProfile]) -> Dict[str, np.ndarray]:
    table = {
        'bytes_ratio': [p.bytes_ratio for p in profiles],
        'duration': [p.avg_duration_ms for p in profiles],
        'pkts_per_sec': [p.avg_pkts_per_sec for p in profiles],
        'protocol_skew': [_protocol_skew(p) for p in profiles],
    }
    # NaN -> 0 (불완전한 프로파일도 점수는 낸다)
    return {name: np.nan_to_num(np.asarray(v, dtype=float)) for name, v in table.items()}


def robust_z_scores(values: np.ndarray) -> np.ndarray:
    """Median/MAD 기반 z-score (|z|)"""
    values = np.asarray(values, dtype=float)
    if len(values) == 0:
        return values
    median = np.median(values)
    abs_dev = np.abs(values - median)

    mad = np.median(abs_dev)
    if mad > 0:
        return MAD_SCALE * abs_dev / mad

    mean_ad = abs_dev.mean()
    if mean_ad > 0:
        return abs_dev / (MEAN_AD_SCALE * mean_ad)

    return np.zeros_like(values)


def score_anomalies(profiles: Sequence[StateProfile]) -> List[AnomalyScore]:
    """
    상태별 이상치 점수 (0-100) + 상위 3개 요인

    profiles 순서대로 반환. 빈 입력이면 빈 리스트.
    """
    if not profiles:
        return []

    z_by_metric = {name: robust_z_scores(v) for name, v in _metric_table(profiles).items()}

    scores: List[AnomalyScore] = []
    for i, profile in enumerate(profiles):
        factors = [
            (name, float(z[i]))
            for name, z in z_by_metric.items()
            if z[i] >= FACTOR_Z_THRESHOLD
        ]
        factors.sort(key=lambda item: item[1], reverse=True)

        if factors:
            score = min(MAX_SCORE, int(round(SCORE_PER_Z * factors[0][1])))
        else:
            score = 0

        scores.append(AnomalyScore(
            state_id=profile.state_id,
            anomaly_score=score,
            anomaly_factors=[name for name, _ in factors[:MAX_FACTORS]],
        ))
    return scores
