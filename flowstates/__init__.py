"""
flowstates - NetFlow Behavioral State Discovery
===============================================

Core Components:
- features/: 16-dim flow features, StandardScaler, per-host sequences
- hmm/: Gaussian HMM (EM + k-means++ init), BIC model selection
- narrative/: state signatures, anomaly scoring, narrative text
- config/: YAML parameters + env overrides
- pipeline/: end-to-end discovery over in-memory flow rows
"""
__version__ = "0.1.0"
