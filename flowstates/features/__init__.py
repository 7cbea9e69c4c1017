# -*- coding: utf-8 -*-
"""Flow feature extraction, scaling and per-host sequence building."""

from flowstates.features.extractor import (
    FEATURE_NAMES,
    N_FEATURES,
    REQUIRED_COLUMNS,
    REJECTED_STATES,
    extract_flow_features,
    extract_feature_matrix,
    port_category,
)
from flowstates.features.scaler import StandardScaler
from flowstates.features.sequences import (
    build_host_sequences,
    split_sequences,
    reassemble,
)

__all__ = [
    "FEATURE_NAMES",
    "N_FEATURES",
    "REQUIRED_COLUMNS",
    "REJECTED_STATES",
    "extract_flow_features",
    "extract_feature_matrix",
    "port_category",
    "StandardScaler",
    "build_host_sequences",
    "split_sequences",
    "reassemble",
]
