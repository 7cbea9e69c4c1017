# -*- coding: utf-8 -*-
"""StateProfile - per-state aggregate statistics consumed by narrative/anomaly code."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional


@dataclass(frozen=True)
class ProtocolDist:
    tcp: float = 0.0
    udp: float = 0.0
    icmp: float = 0.0


@dataclass(frozen=True)
class PortCategoryDist:
    well_known: float = 0.0
    registered: float = 0.0
    ephemeral: float = 0.0


@dataclass
class StateProfile:
    """상태별 프로파일 (StateSignature 1:1 매핑)"""
    state_id: int
    flow_count: int
    avg_in_bytes: float
    avg_out_bytes: float
    bytes_ratio: float
    avg_duration_ms: float
    avg_pkts_per_sec: float
    protocol_dist: ProtocolDist = field(default_factory=ProtocolDist)
    port_category_dist: PortCategoryDist = field(default_factory=PortCategoryDist)

    # 이상치 점수 (score_anomalies 결과 병합)
    anomaly_score: Optional[int] = None
    anomaly_factors: List[str] = field(default_factory=list)
    narrative: Optional[str] = None

    @classmethod
    def from_signature(cls, row: Mapping[str, Any]) -> "StateProfile":
        """snake_case signature row (dict / pandas row) -> StateProfile"""
        return cls(
            state_id=int(row['state_id']),
            flow_count=int(row['flow_count']),
            avg_in_bytes=float(row['avg_in_bytes']),
            avg_out_bytes=float(row['avg_out_bytes']),
            bytes_ratio=float(row['bytes_ratio']),
            avg_duration_ms=float(row['avg_duration_ms']),
            avg_pkts_per_sec=float(row['avg_pkts_per_sec']),
            protocol_dist=ProtocolDist(
                tcp=float(row['tcp_pct']),
                udp=float(row['udp_pct']),
                icmp=float(row['icmp_pct']),
            ),
            port_category_dist=PortCategoryDist(
                well_known=float(row['well_known_pct']),
                registered=float(row['registered_pct']),
                ephemeral=float(row['ephemeral_pct']),
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
