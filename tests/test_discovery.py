# -*- coding: utf-8 -*-
"""Tests for the end-to-end state discovery pipeline."""

import json
import logging

import numpy as np
import pandas as pd
import pytest

from flowstates.config import DiscoveryConfig
from flowstates.errors import InvalidInputError
from flowstates.hmm import GaussianHMM
from flowstates.features import StandardScaler
from flowstates.pipeline import discover_states

from conftest import make_flows


def _config(n_states=2, max_states=4):
    cfg = DiscoveryConfig()
    cfg.hmm.n_states = n_states
    cfg.hmm.max_iter = 30
    cfg.selection.max_states = max_states
    return cfg


class TestDiscoverStates:
    """Fixed-K discovery."""

    def test_one_assignment_per_row(self, flows_df):
        result = discover_states(flows_df, _config())

        assert set(result.assignments) == set(flows_df['rowid'])
        assert all(0 <= s < result.n_states for s in result.assignments.values())
        assert result.n_states == 2
        assert result.bic_by_k == {}
        assert isinstance(result.model, GaussianHMM)
        assert isinstance(result.scaler, StandardScaler)

    def test_separates_behaviors(self, flows_df):
        result = discover_states(flows_df, _config())

        bulk = flows_df['IPV4_DST_ADDR'].map(lambda ip: int(ip.rsplit('.', 1)[1]) % 2 == 0)
        states = flows_df['rowid'].map(result.assignments)
        bulk_states = set(states[bulk])
        web_states = set(states[~bulk])
        assert len(bulk_states) == 1
        assert len(web_states) == 1
        assert bulk_states != web_states

    def test_profiles_have_narrative_and_score(self, flows_df):
        result = discover_states(flows_df, _config())

        assert 1 <= len(result.profiles) <= result.n_states
        assert sum(p.flow_count for p in result.profiles) == len(flows_df)
        for p in result.profiles:
            assert p.narrative
            assert p.anomaly_score is not None
            assert 0 <= p.anomaly_score <= 100

        narratives = ' '.join(p.narrative for p in result.profiles)
        assert 'high-volume' in narratives
        assert 'low-volume' in narratives

    def test_deterministic(self, flows_df):
        a = discover_states(flows_df, _config())
        b = discover_states(flows_df, _config())
        assert a.assignments == b.assignments
        assert a.log_likelihood == b.log_likelihood

    def test_input_row_order_irrelevant(self, flows_df):
        a = discover_states(flows_df, _config())
        shuffled = flows_df.sample(frac=1.0, random_state=123)
        b = discover_states(shuffled, _config())
        assert a.assignments == b.assignments

    def test_small_hosts_dropped(self, flows_df):
        extra = flows_df.iloc[:2].copy()
        extra['IPV4_DST_ADDR'] = '192.168.1.1'
        extra['rowid'] = [9001, 9002]
        result = discover_states(pd.concat([flows_df, extra], ignore_index=True), _config())
        assert 9001 not in result.assignments
        assert 9002 not in result.assignments

    def test_index_used_without_rowid(self, flows_df):
        df = flows_df.drop(columns=['rowid'])
        df.index = [f"flow-{i}" for i in range(len(df))]
        result = discover_states(df, _config())
        assert set(result.assignments) == set(df.index)

    def test_too_few_flows(self, flows_df):
        small = flows_df[flows_df['IPV4_DST_ADDR'] == '10.0.0.1'].iloc[:5]
        with pytest.raises(InvalidInputError, match="at least 10 flows"):
            discover_states(small, _config())

    def test_missing_required_column(self, flows_df):
        with pytest.raises(KeyError):
            discover_states(flows_df.drop(columns=['PROTOCOL']), _config())

    def test_progress_reported(self, flows_df):
        events = []
        discover_states(flows_df, _config(), on_progress=lambda pct, phase: events.append((pct, phase)))

        percents = [pct for pct, _ in events]
        assert percents == sorted(percents)
        assert events[-1] == (100, 'done')
        phases = [phase for _, phase in events]
        assert 'scaling' in phases
        assert 'training' in phases
        assert 'bic-selection' not in phases

    def test_outputs_serializable(self, flows_df):
        result = discover_states(flows_df, _config())
        json.dumps(result.model.to_json())
        json.dumps(result.scaler.to_json())
        assert len(result.assignments_frame()) == len(flows_df)
        frame = result.profiles_frame()
        assert 'narrative' in frame.columns
        assert 'protocol_dist.tcp' in frame.columns


class TestBICDiscovery:
    """Automatic state count."""

    def test_selects_from_candidates(self, flows_df):
        events = []
        result = discover_states(
            flows_df, _config(n_states=0), on_progress=lambda pct, phase: events.append((pct, phase))
        )
        assert result.bic_by_k
        assert result.n_states in result.bic_by_k
        assert result.n_states == min(result.bic_by_k, key=result.bic_by_k.get)
        assert any(phase == 'bic-selection' for _, phase in events)

    def test_subsampled_selection(self, flows_df, caplog):
        cfg = _config(n_states=0, max_states=3)
        cfg.selection.subsample_threshold = 20
        cfg.selection.subsample_size = 30
        with caplog.at_level(logging.INFO, logger='flowstates'):
            result = discover_states(flows_df, cfg)
        messages = [r.getMessage() for r in caplog.records]
        assert f"BIC selection on first 30 of {len(flows_df)} rows" in messages
        assert result.n_states in result.bic_by_k
        assert len(result.assignments) == len(flows_df)

    def test_full_data_below_threshold(self, flows_df, caplog):
        cfg = _config(n_states=0, max_states=3)
        cfg.selection.subsample_threshold = len(flows_df)
        with caplog.at_level(logging.INFO, logger='flowstates'):
            discover_states(flows_df, cfg)
        assert not any('BIC selection on first' in r.getMessage() for r in caplog.records)


class TestLogging:
    """Pipeline log output."""

    def test_info_phases_logged(self, flows_df, caplog):
        with caplog.at_level(logging.INFO, logger='flowstates'):
            discover_states(flows_df, _config())
        messages = ' '.join(r.getMessage() for r in caplog.records)
        assert 'Sequences built' in messages
        assert 'Profiled' in messages

    def test_non_convergence_warns(self, flows_df, caplog):
        cfg = _config()
        cfg.hmm.max_iter = 1
        with caplog.at_level(logging.WARNING, logger='flowstates'):
            result = discover_states(flows_df, cfg)
        assert not result.converged
        assert any(r.levelno == logging.WARNING for r in caplog.records)
