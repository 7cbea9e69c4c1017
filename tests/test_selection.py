# -*- coding: utf-8 -*-
"""Tests for BIC-based state-count selection."""

import pytest

from flowstates.errors import InvalidInputError
from flowstates.hmm import select_n_states


class TestSelectNStates:
    """Ascending sweep with early stopping."""

    def test_picks_two_for_two_clusters(self, cluster_data):
        sequences, _ = cluster_data
        result = select_n_states(sequences, 3)

        assert result.n_states == 2
        assert result.best_bic == pytest.approx(result.bic_by_k[2])
        assert result.best_bic == min(result.bic_by_k.values())

    def test_stops_early(self, cluster_data):
        sequences, _ = cluster_data
        result = select_n_states(sequences, 3, max_states=10, patience=2)

        assert result.stopped_early
        # K=2 최적 -> K=3, K=4 비개선 후 종료
        assert sorted(result.bic_by_k) == [2, 3, 4]

    def test_candidate_callback(self, cluster_data):
        sequences, _ = cluster_data
        seen = []
        result = select_n_states(
            sequences, 3, min_states=1, max_states=3, patience=5,
            on_candidate=lambda k, bic: seen.append((k, bic)),
        )
        assert [k for k, _ in seen] == [1, 2, 3]
        assert dict(seen) == result.bic_by_k
        assert not result.stopped_early

    def test_single_candidate(self, cluster_data):
        sequences, _ = cluster_data
        result = select_n_states(sequences, 3, min_states=3, max_states=3)
        assert result.n_states == 3
        assert list(result.bic_by_k) == [3]

    def test_deterministic(self, cluster_data):
        sequences, _ = cluster_data
        a = select_n_states(sequences, 3, max_states=4, seed=11)
        b = select_n_states(sequences, 3, max_states=4, seed=11)
        assert a == b

    @pytest.mark.parametrize("kwargs, match", [
        ({'min_states': 0}, "min_states"),
        ({'min_states': 5, 'max_states': 3}, "max_states"),
        ({'patience': 0}, "patience"),
    ])
    def test_invalid_arguments(self, cluster_data, kwargs, match):
        sequences, _ = cluster_data
        with pytest.raises(InvalidInputError, match=match):
            select_n_states(sequences, 3, **kwargs)
