# -*- coding: utf-8 -*-
"""
Per-host Flow Sequences
=======================

Flow rows -> destination host별 시계열 시퀀스.

- host별 그룹핑 (IPV4_DST_ADDR)
- flow 시작 시각 오름차순 정렬
- INTER_FLOW_GAP_MS: 같은 host의 직전 flow 시작 시각과의 간격 (첫 flow = 0)
- flow 수가 min_flows_per_host 미만인 host 제외
"""
from __future__ import annotations

from typing import Dict, Hashable, List, Sequence, Tuple

import numpy as np
import pandas as pd


HOST_COL = 'IPV4_DST_ADDR'
START_COL = 'FLOW_START_MILLISECONDS'
GAP_COL = 'INTER_FLOW_GAP_MS'
MIN_FLOWS_PER_HOST = 3


def build_host_sequences(
    flows: pd.DataFrame,
    *,
    min_flows_per_host: int = MIN_FLOWS_PER_HOST,
    host_col: str = HOST_COL,
    start_col: str = START_COL,
) -> pd.DataFrame:
    """
    Host별로 정렬된 flow frame 반환

    Args:
        flows: raw flow rows
        min_flows_per_host: 이 값 미만의 flow를 가진 host 제외
        host_col: 시퀀스 그룹 키 컬럼
        start_col: 정렬/간격 계산용 시작 시각 컬럼 (없으면 원래 순서 유지)

    Returns:
        DataFrame (원래 index 유지), host -> start 순 정렬, GAP_COL 포함
    """
    if host_col not in flows.columns:
        raise KeyError(f"Flow frame has no host column '{host_col}'.")

    df = flows.copy()
    df['_order'] = np.arange(len(df))

    counts = df.groupby(host_col, sort=False)[host_col].transform('size')
    df = df[counts >= min_flows_per_host]

    if start_col in df.columns:
        df = df.sort_values([host_col, start_col, '_order'], kind='mergesort')
        gap = df.groupby(host_col, sort=False)[start_col].diff()
        df[GAP_COL] = gap.fillna(0.0).clip(lower=0.0).astype(float)
    else:
        df = df.sort_values([host_col, '_order'], kind='mergesort')
        if GAP_COL not in df.columns:
            df[GAP_COL] = 0.0

    return df.drop(columns='_order')


def group_indices(group_ids: Sequence[Hashable]) -> Dict[Hashable, List[int]]:
    """group id -> row positions (첫 등장 순서 유지)"""
    groups: Dict[Hashable, List[int]] = {}
    for i, gid in enumerate(group_ids):
        groups.setdefault(gid, []).append(i)
    return groups


def split_sequences(
    X: np.ndarray,
    group_ids: Sequence[Hashable],
) -> Tuple[List[np.ndarray], List[List[int]]]:
    """
    Feature matrix를 group별 시퀀스로 분할

    Returns:
        sequences: group별 (T_g, D) 배열 리스트
        positions: 각 시퀀스의 원래 row 위치 (reassemble용)
    """
    if len(group_ids) != len(X):
        raise ValueError(f"group_ids length {len(group_ids)} != rows {len(X)}")
    groups = group_indices(group_ids)
    positions = list(groups.values())
    sequences = [X[idx] for idx in positions]
    return sequences, positions


def reassemble(per_sequence: Sequence[Sequence[int]], positions: Sequence[Sequence[int]], n_rows: int) -> np.ndarray:
    """시퀀스별 결과를 원래 row 순서로 되돌림"""
    out = np.full(n_rows, -1, dtype=int)
    for values, idx in zip(per_sequence, positions):
        out[list(idx)] = values
    return out
