# -*- coding: utf-8 -*-
"""
Flow Emission Features
======================

16차원 Emission Features 계산 (NetFlow 1 row -> 1 vector).

Features:
 [0] log1p_in_bytes
 [1] log1p_out_bytes
 [2] log1p_in_pkts
 [3] log1p_out_pkts
 [4] log1p_duration_ms
 [5] log1p_iat_avg: SRC_TO_DST_IAT_AVG (없으면 0)
 [6] bytes_ratio: IN_BYTES / (OUT_BYTES + 1)
 [7] pkts_per_second: duration 최소 1ms 처리
 [8] is_tcp, [9] is_udp, [10] is_icmp: one-hot (unknown protocol -> all 0)
[11] port_category: 0=well-known, 1=registered, 2=ephemeral
[12] is_conn_complete: CONN_STATE == 'SF'
[13] is_conn_rejected: CONN_STATE in REJECTED_STATES
[14] log1p_bytes_per_pkt
[15] log1p_inter_flow_gap: INTER_FLOW_GAP_MS (없으면 0)
"""
from __future__ import annotations

import math
from typing import Any, List, Mapping

import numpy as np
import pandas as pd


FEATURE_NAMES = [
    'log1p_in_bytes',
    'log1p_out_bytes',
    'log1p_in_pkts',
    'log1p_out_pkts',
    'log1p_duration_ms',
    'log1p_iat_avg',
    'bytes_ratio',
    'pkts_per_second',
    'is_tcp',
    'is_udp',
    'is_icmp',
    'port_category',
    'is_conn_complete',
    'is_conn_rejected',
    'log1p_bytes_per_pkt',
    'log1p_inter_flow_gap',
]

N_FEATURES = len(FEATURE_NAMES)

REQUIRED_COLUMNS = [
    'IN_BYTES',
    'OUT_BYTES',
    'IN_PKTS',
    'OUT_PKTS',
    'FLOW_DURATION_MILLISECONDS',
    'PROTOCOL',
    'L4_DST_PORT',
]

# Protocol numbers (IANA)
PROTO_TCP = 6
PROTO_UDP = 17
PROTO_ICMP = 1

# Port ranges (inclusive upper bounds)
WELL_KNOWN_MAX_PORT = 1023
REGISTERED_MAX_PORT = 49151

# Zeek conn_state values for rejected / failed / scan-like flows
REJECTED_STATES = frozenset({'REJ', 'RSTO', 'RSTR', 'S0'})

MIN_DURATION_S = 0.001


def _optional_number(flow: Mapping[str, Any], key: str) -> float:
    """Optional numeric field: missing, None, NaN -> 0.0"""
    value = flow.get(key)
    if value is None:
        return 0.0
    value = float(value)
    if math.isnan(value):
        return 0.0
    return value


def _optional_state(flow: Mapping[str, Any]) -> str:
    value = flow.get('CONN_STATE')
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return ''
    return str(value)


def port_category(port: float) -> int:
    """0 = well-known (<=1023), 1 = registered (1024-49151), 2 = ephemeral (>=49152)"""
    if port <= WELL_KNOWN_MAX_PORT:
        return 0
    if port <= REGISTERED_MAX_PORT:
        return 1
    return 2


def extract_flow_features(flow: Mapping[str, Any]) -> List[float]:
    """
    단일 flow -> 16차원 feature vector

    Args:
        flow: raw flow fields (dict, pandas row 등 Mapping)

    Returns:
        list of 16 floats in FEATURE_NAMES order
    """
    in_bytes = float(flow['IN_BYTES'])
    out_bytes = float(flow['OUT_BYTES'])
    in_pkts = float(flow['IN_PKTS'])
    out_pkts = float(flow['OUT_PKTS'])
    duration_ms = float(flow['FLOW_DURATION_MILLISECONDS'])
    protocol = int(flow['PROTOCOL'])
    conn_state = _optional_state(flow)

    total_pkts = in_pkts + out_pkts
    total_bytes = in_bytes + out_bytes
    duration_s = max(duration_ms / 1000.0, MIN_DURATION_S)

    return [
        # Volume (log-scaled)
        math.log1p(in_bytes),
        math.log1p(out_bytes),
        math.log1p(in_pkts),
        math.log1p(out_pkts),
        # Temporal
        math.log1p(duration_ms),
        math.log1p(_optional_number(flow, 'SRC_TO_DST_IAT_AVG')),
        # Ratios
        in_bytes / (out_bytes + 1.0),
        total_pkts / duration_s,
        # Protocol one-hot
        1.0 if protocol == PROTO_TCP else 0.0,
        1.0 if protocol == PROTO_UDP else 0.0,
        1.0 if protocol == PROTO_ICMP else 0.0,
        float(port_category(float(flow['L4_DST_PORT']))),
        # Connection state
        1.0 if conn_state == 'SF' else 0.0,
        1.0 if conn_state in REJECTED_STATES else 0.0,
        math.log1p(total_bytes / max(total_pkts, 1.0)),
        math.log1p(_optional_number(flow, 'INTER_FLOW_GAP_MS')),
    ]


def extract_feature_matrix(df: pd.DataFrame) -> np.ndarray:
    """
    DataFrame 전체에 extract_flow_features()를 벡터화 적용

    Args:
        df: flow rows (REQUIRED_COLUMNS 필수, optional 컬럼은 없어도 됨)

    Returns:
        (N, 16) float64 array
    """
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise KeyError(f"Flow frame is missing required columns: {missing}")

    def col(name: str) -> np.ndarray:
        return df[name].astype(float).to_numpy()

    def optional_col(name: str) -> np.ndarray:
        if name not in df.columns:
            return np.zeros(len(df))
        return pd.to_numeric(df[name], errors='coerce').fillna(0.0).astype(float).to_numpy()

    in_bytes = col('IN_BYTES')
    out_bytes = col('OUT_BYTES')
    in_pkts = col('IN_PKTS')
    out_pkts = col('OUT_PKTS')
    duration_ms = col('FLOW_DURATION_MILLISECONDS')
    protocol = df['PROTOCOL'].astype(int).to_numpy()
    port = col('L4_DST_PORT')

    if 'CONN_STATE' in df.columns:
        conn_state = df['CONN_STATE'].fillna('').astype(str)
    else:
        conn_state = pd.Series('', index=df.index)

    total_pkts = in_pkts + out_pkts
    total_bytes = in_bytes + out_bytes
    duration_s = np.maximum(duration_ms / 1000.0, MIN_DURATION_S)

    port_cat = np.where(port <= WELL_KNOWN_MAX_PORT, 0.0,
                        np.where(port <= REGISTERED_MAX_PORT, 1.0, 2.0))

    X = np.column_stack([
        np.log1p(in_bytes),
        np.log1p(out_bytes),
        np.log1p(in_pkts),
        np.log1p(out_pkts),
        np.log1p(duration_ms),
        np.log1p(optional_col('SRC_TO_DST_IAT_AVG')),
        in_bytes / (out_bytes + 1.0),
        total_pkts / duration_s,
        (protocol == PROTO_TCP).astype(float),
        (protocol == PROTO_UDP).astype(float),
        (protocol == PROTO_ICMP).astype(float),
        port_cat,
        (conn_state == 'SF').to_numpy().astype(float),
        conn_state.isin(REJECTED_STATES).to_numpy().astype(float),
        np.log1p(total_bytes / np.maximum(total_pkts, 1.0)),
        np.log1p(optional_col('INTER_FLOW_GAP_MS')),
    ])
    return X.reshape(len(df), N_FEATURES)
