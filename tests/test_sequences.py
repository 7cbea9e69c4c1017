# -*- coding: utf-8 -*-
"""Tests for per-host sequence building."""

import numpy as np
import pandas as pd
import pytest

from flowstates.features import build_host_sequences, reassemble, split_sequences
from flowstates.features.sequences import GAP_COL, group_indices


def _frame(rows):
    return pd.DataFrame(rows, columns=['IPV4_DST_ADDR', 'FLOW_START_MILLISECONDS', 'tag'])


class TestBuildHostSequences:
    """Grouping, ordering, gaps."""

    def test_orders_by_host_then_start(self):
        df = _frame([
            ('b', 300, 'b3'),
            ('a', 200, 'a2'),
            ('b', 100, 'b1'),
            ('a', 100, 'a1'),
            ('b', 200, 'b2'),
            ('a', 400, 'a3'),
        ])
        out = build_host_sequences(df)
        assert out['tag'].tolist() == ['a1', 'a2', 'a3', 'b1', 'b2', 'b3']

    def test_gap_from_previous_flow_of_same_host(self):
        df = _frame([
            ('a', 100, 'a1'),
            ('b', 150, 'b1'),
            ('a', 250, 'a2'),
            ('a', 1000, 'a3'),
            ('b', 160, 'b2'),
            ('b', 160, 'b3'),
        ])
        out = build_host_sequences(df)
        gaps = dict(zip(out['tag'], out[GAP_COL]))
        assert gaps == {'a1': 0.0, 'a2': 150.0, 'a3': 750.0, 'b1': 0.0, 'b2': 10.0, 'b3': 0.0}

    def test_drops_small_hosts(self):
        df = _frame([
            ('a', 1, 'a1'), ('a', 2, 'a2'), ('a', 3, 'a3'),
            ('b', 1, 'b1'), ('b', 2, 'b2'),
        ])
        out = build_host_sequences(df)
        assert set(out['IPV4_DST_ADDR']) == {'a'}

        out = build_host_sequences(df, min_flows_per_host=2)
        assert set(out['IPV4_DST_ADDR']) == {'a', 'b'}

    def test_keeps_original_index(self):
        df = _frame([('a', 3, 'x'), ('a', 1, 'y'), ('a', 2, 'z')])
        df.index = [10, 20, 30]
        out = build_host_sequences(df)
        assert out.index.tolist() == [20, 30, 10]

    def test_does_not_mutate_input(self):
        df = _frame([('a', 3, 'x'), ('a', 1, 'y'), ('a', 2, 'z')])
        before = df.copy()
        build_host_sequences(df)
        pd.testing.assert_frame_equal(df, before)

    def test_without_start_column_keeps_order(self):
        df = pd.DataFrame({'IPV4_DST_ADDR': ['b', 'a', 'b', 'a', 'b', 'a'], 'tag': list('123456')})
        out = build_host_sequences(df)
        assert out['tag'].tolist() == ['2', '4', '6', '1', '3', '5']
        assert np.all(out[GAP_COL] == 0.0)

    def test_missing_host_column(self):
        with pytest.raises(KeyError, match="IPV4_DST_ADDR"):
            build_host_sequences(pd.DataFrame({'x': [1, 2, 3]}))


class TestSplitAndReassemble:
    """Per-group split and row-order restore."""

    def test_group_indices_first_appearance_order(self):
        groups = group_indices(['y', 'x', 'y', 'z', 'x'])
        assert list(groups) == ['y', 'x', 'z']
        assert groups['x'] == [1, 4]

    def test_split_then_reassemble(self):
        X = np.arange(12, dtype=float).reshape(6, 2)
        ids = ['a', 'b', 'a', 'c', 'b', 'a']
        sequences, positions = split_sequences(X, ids)

        assert [len(s) for s in sequences] == [3, 2, 1]
        np.testing.assert_array_equal(sequences[0], X[[0, 2, 5]])

        # 시퀀스별 결과 = 원래 row 번호
        per_sequence = [[int(v) for v in np.asarray(pos)] for pos in positions]
        out = reassemble(per_sequence, positions, len(X))
        np.testing.assert_array_equal(out, np.arange(6))

    def test_split_length_mismatch(self):
        with pytest.raises(ValueError, match="group_ids length"):
            split_sequences(np.zeros((3, 2)), ['a', 'b'])
