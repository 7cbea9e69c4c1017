"""
Narrative Module
================

상태 프로파일 집계, 이상치 점수, 요약 문장 생성.
"""

from .profile import StateProfile, ProtocolDist, PortCategoryDist
from .signatures import SIGNATURE_COLUMNS, compute_state_signatures, profiles_from_signatures
from .anomaly import AnomalyScore, robust_z_scores, score_anomalies
from .generator import StateNarrativeGenerator, generate_narrative

__all__ = [
    'StateProfile',
    'ProtocolDist',
    'PortCategoryDist',
    'SIGNATURE_COLUMNS',
    'compute_state_signatures',
    'profiles_from_signatures',
    'AnomalyScore',
    'robust_z_scores',
    'score_anomalies',
    'StateNarrativeGenerator',
    'generate_narrative',
]
