"""Config module"""

from .loader import (
    load_config,
    DiscoveryConfig,
    HMMParams,
    SelectionParams,
    SequenceParams,
)

__all__ = [
    'load_config',
    'DiscoveryConfig',
    'HMMParams',
    'SelectionParams',
    'SequenceParams',
]
