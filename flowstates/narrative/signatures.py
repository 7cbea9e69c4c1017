# -*- coding: utf-8 -*-
"""
State Signatures
================

상태 할당 결과 -> 상태별 집계 (StateSignature).

컬럼:
    state_id, flow_count,
    avg_in_bytes, avg_out_bytes, bytes_ratio, avg_duration_ms, avg_pkts_per_sec,
    tcp_pct, udp_pct, icmp_pct,
    well_known_pct, registered_pct, ephemeral_pct
"""
from __future__ import annotations

from typing import List, Sequence

import numpy as np
import pandas as pd

from flowstates.features.extractor import (
    MIN_DURATION_S,
    PROTO_ICMP,
    PROTO_TCP,
    PROTO_UDP,
    REGISTERED_MAX_PORT,
    WELL_KNOWN_MAX_PORT,
)
from flowstates.narrative.profile import StateProfile


SIGNATURE_COLUMNS = [
    'state_id',
    'flow_count',
    'avg_in_bytes',
    'avg_out_bytes',
    'bytes_ratio',
    'avg_duration_ms',
    'avg_pkts_per_sec',
    'tcp_pct',
    'udp_pct',
    'icmp_pct',
    'well_known_pct',
    'registered_pct',
    'ephemeral_pct',
]


def compute_state_signatures(flows: pd.DataFrame, states: Sequence[int]) -> pd.DataFrame:
    """
    상태별 집계

    Args:
        flows: raw flow rows (IN_BYTES, OUT_BYTES, IN_PKTS, OUT_PKTS,
               FLOW_DURATION_MILLISECONDS, PROTOCOL, L4_DST_PORT)
        states: row별 상태 id (flows와 같은 순서/길이, 음수 = 미할당)

    Returns:
        DataFrame[SIGNATURE_COLUMNS], state_id 오름차순
    """
    if len(states) != len(flows):
        raise ValueError(f"states length {len(states)} != flow rows {len(flows)}")

    in_bytes = flows['IN_BYTES'].astype(float).to_numpy()
    out_bytes = flows['OUT_BYTES'].astype(float).to_numpy()
    pkts = (flows['IN_PKTS'] + flows['OUT_PKTS']).astype(float).to_numpy()
    duration = flows['FLOW_DURATION_MILLISECONDS'].astype(float).to_numpy()
    protocol = flows['PROTOCOL'].astype(int).to_numpy()
    port = flows['L4_DST_PORT'].astype(float).to_numpy()

    per_flow = pd.DataFrame({
        'state_id': np.asarray(states, dtype=int),
        'in_bytes': in_bytes,
        'out_bytes': out_bytes,
        'ratio': in_bytes / (out_bytes + 1.0),
        'duration': duration,
        'pps': pkts / np.maximum(duration / 1000.0, MIN_DURATION_S),
        'tcp': (protocol == PROTO_TCP).astype(float),
        'udp': (protocol == PROTO_UDP).astype(float),
        'icmp': (protocol == PROTO_ICMP).astype(float),
        'well_known': (port <= WELL_KNOWN_MAX_PORT).astype(float),
        'registered': ((port > WELL_KNOWN_MAX_PORT) & (port <= REGISTERED_MAX_PORT)).astype(float),
        'ephemeral': (port > REGISTERED_MAX_PORT).astype(float),
    })
    per_flow = per_flow[per_flow['state_id'] >= 0]

    if per_flow.empty:
        return pd.DataFrame(columns=SIGNATURE_COLUMNS)

    grouped = per_flow.groupby('state_id', sort=True)
    sig = grouped.mean()
    sig['flow_count'] = grouped.size()
    sig = sig.reset_index().rename(columns={
        'in_bytes': 'avg_in_bytes',
        'out_bytes': 'avg_out_bytes',
        'ratio': 'bytes_ratio',
        'duration': 'avg_duration_ms',
        'pps': 'avg_pkts_per_sec',
        'tcp': 'tcp_pct',
        'udp': 'udp_pct',
        'icmp': 'icmp_pct',
        'well_known': 'well_known_pct',
        'registered': 'registered_pct',
        'ephemeral': 'ephemeral_pct',
    })
    return sig[SIGNATURE_COLUMNS]


def profiles_from_signatures(signatures: pd.DataFrame) -> List[StateProfile]:
    return [StateProfile.from_signature(row) for _, row in signatures.iterrows()]
