# -*- coding: utf-8 -*-
"""
State Narrative Generator
=========================

StateProfile -> 한 줄 요약 문장 (규칙 기반).

형식:
    "<volume>, <duration>, <direction> traffic; <protocol> to <ports> (<n> flows)."

누락/NaN 값은 0으로 취급하고 절대 예외를 던지지 않는다.
"""
from __future__ import annotations

import math
from typing import Any, Optional

from flowstates.narrative.profile import StateProfile


# Volume (in + out bytes)
LOW_VOLUME_MAX = 1000.0
MEDIUM_VOLUME_MAX = 50000.0

# Duration (ms)
SHORT_DURATION_MAX = 100.0
MEDIUM_DURATION_MAX = 10000.0

# Direction (inbound fraction)
INBOUND_HEAVY_MIN = 0.7
OUTBOUND_HEAVY_MAX = 0.3

DOMINANT_PROTOCOL_MIN = 0.8
PREDOMINANT_PROTOCOL_MIN = 0.6
UDP_ICMP_MIX_MIN = 0.2
DOMINANT_PORT_MIN = 0.6


def _num(value: Any) -> float:
    try:
        x = float(value)
    except (TypeError, ValueError):
        return 0.0
    return x if math.isfinite(x) else 0.0


def _attr(obj: Any, name: str) -> Any:
    return getattr(obj, name, None) if obj is not None else None


def describe_volume(total_bytes: float) -> str:
    if total_bytes < LOW_VOLUME_MAX:
        return "low-volume"
    if total_bytes < MEDIUM_VOLUME_MAX:
        return "medium-volume"
    return "high-volume"


def describe_duration(duration_ms: float) -> str:
    if duration_ms < SHORT_DURATION_MAX:
        return "short-duration"
    if duration_ms < MEDIUM_DURATION_MAX:
        return "medium-duration"
    return "long-duration"


def describe_direction(in_bytes: float, out_bytes: float) -> str:
    total = in_bytes + out_bytes
    if total <= 0:
        return "bidirectional"
    inbound = in_bytes / total
    if inbound > INBOUND_HEAVY_MIN:
        return "inbound-heavy"
    if inbound < OUTBOUND_HEAVY_MAX:
        return "outbound-heavy"
    return "bidirectional"


def describe_protocol(tcp: float, udp: float, icmp: float) -> str:
    shares = [('TCP', tcp), ('UDP', udp), ('ICMP', icmp)]
    name, share = max(shares, key=lambda item: item[1])

    if share > DOMINANT_PROTOCOL_MIN:
        return f"{name} flows"
    if name == 'UDP' and share > 0 and icmp >= UDP_ICMP_MIX_MIN:
        return "mixed protocol (UDP/ICMP)"
    if share >= PREDOMINANT_PROTOCOL_MIN:
        return f"predominantly {name} flows"
    return "mixed protocol"


def describe_ports(well_known: float, registered: float, ephemeral: float) -> str:
    if well_known > DOMINANT_PORT_MIN:
        return "well-known ports"
    if registered > DOMINANT_PORT_MIN:
        return "registered ports"
    if ephemeral > DOMINANT_PORT_MIN:
        return "ephemeral ports"
    return "mixed port ranges"


def generate_narrative(profile: Optional[StateProfile]) -> str:
    """프로파일 요약 문장 (항상 비어있지 않은 문자열)"""
    in_bytes = max(_num(_attr(profile, 'avg_in_bytes')), 0.0)
    out_bytes = max(_num(_attr(profile, 'avg_out_bytes')), 0.0)
    duration = _num(_attr(profile, 'avg_duration_ms'))
    n_flows = int(_num(_attr(profile, 'flow_count')))

    proto = _attr(profile, 'protocol_dist')
    ports = _attr(profile, 'port_category_dist')

    volume = describe_volume(in_bytes + out_bytes)
    length = describe_duration(duration)
    direction = describe_direction(in_bytes, out_bytes)
    protocol = describe_protocol(
        _num(_attr(proto, 'tcp')),
        _num(_attr(proto, 'udp')),
        _num(_attr(proto, 'icmp')),
    )
    port_range = describe_ports(
        _num(_attr(ports, 'well_known')),
        _num(_attr(ports, 'registered')),
        _num(_attr(ports, 'ephemeral')),
    )

    unit = "flow" if n_flows == 1 else "flows"
    return (
        f"{volume}, {length}, {direction} traffic; "
        f"{protocol} to {port_range} ({n_flows} {unit})."
    )


class StateNarrativeGenerator:
    """generate_narrative 래퍼 (프로파일 리스트 일괄 처리)"""

    def generate(self, profile: Optional[StateProfile]) -> str:
        return generate_narrative(profile)

    def annotate(self, profiles):
        """각 프로파일의 narrative 필드를 채우고 그대로 반환"""
        for profile in profiles:
            profile.narrative = generate_narrative(profile)
        return profiles
