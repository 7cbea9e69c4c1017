"""Discovery pipeline"""

from .discovery import DiscoveryResult, discover_states

__all__ = ['DiscoveryResult', 'discover_states']
