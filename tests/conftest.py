# -*- coding: utf-8 -*-
"""Shared fixtures: synthetic flow frames and Gaussian cluster sequences."""

import numpy as np
import pandas as pd
import pytest


def make_flows(n_hosts=6, flows_per_host=12, seed=0):
    """
    두 가지 행동이 섞인 synthetic NetFlow frame.

    - 짝수 host: 작은 TCP/443 요청 (short, low-volume)
    - 홀수 host: 큰 UDP/ephemeral 전송 (long, high-volume)
    """
    rng = np.random.default_rng(seed)
    rows = []
    rowid = 1
    for h in range(n_hosts):
        bulk = h % 2 == 1
        start = 1_700_000_000_000 + h * 1000
        for _ in range(flows_per_host):
            start += int(rng.integers(50, 500))
            if bulk:
                row = {
                    'IN_BYTES': int(rng.integers(200_000, 400_000)),
                    'OUT_BYTES': int(rng.integers(1_000, 3_000)),
                    'IN_PKTS': int(rng.integers(150, 300)),
                    'OUT_PKTS': int(rng.integers(10, 30)),
                    'FLOW_DURATION_MILLISECONDS': int(rng.integers(20_000, 60_000)),
                    'PROTOCOL': 17,
                    'L4_DST_PORT': int(rng.integers(50_000, 60_000)),
                    'CONN_STATE': 'SF',
                }
            else:
                row = {
                    'IN_BYTES': int(rng.integers(100, 400)),
                    'OUT_BYTES': int(rng.integers(200, 500)),
                    'IN_PKTS': int(rng.integers(1, 4)),
                    'OUT_PKTS': int(rng.integers(1, 4)),
                    'FLOW_DURATION_MILLISECONDS': int(rng.integers(1, 50)),
                    'PROTOCOL': 6,
                    'L4_DST_PORT': 443,
                    'CONN_STATE': 'REJ' if rng.random() < 0.3 else 'SF',
                }
            row.update({
                'rowid': rowid,
                'IPV4_DST_ADDR': f"10.0.0.{h + 1}",
                'FLOW_START_MILLISECONDS': start,
                'SRC_TO_DST_IAT_AVG': float(rng.integers(0, 20)),
            })
            rows.append(row)
            rowid += 1

    df = pd.DataFrame(rows)
    # host별 flow가 섞여 들어오도록 셔플
    return df.sample(frac=1.0, random_state=seed).reset_index(drop=True)


def make_cluster_sequences(n_sequences=4, length=60, n_features=3, separation=8.0, seed=0):
    """
    두 Gaussian 클러스터 사이를 sticky하게 오가는 시퀀스.

    Returns:
        (sequences, labels)
    """
    rng = np.random.default_rng(seed)
    centers = np.stack([np.zeros(n_features), np.full(n_features, separation)])
    sequences, labels = [], []
    for _ in range(n_sequences):
        state = int(rng.integers(0, 2))
        seq_labels = []
        for _ in range(length):
            if rng.random() < 0.1:
                state = 1 - state
            seq_labels.append(state)
        seq_labels = np.asarray(seq_labels)
        X = centers[seq_labels] + rng.standard_normal((length, n_features))
        sequences.append(X)
        labels.append(seq_labels)
    return sequences, labels


@pytest.fixture
def flows_df():
    return make_flows()


@pytest.fixture
def cluster_data():
    return make_cluster_sequences()
