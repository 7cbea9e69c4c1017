"""
Config Loader
=============

YAML 기반 상태 탐색 파라미터 로더.

사용법:
    from flowstates.config import load_config

    config = load_config()                      # config/default.yaml
    config = load_config("runs/large.yaml")     # default + override
    print(config.hmm.max_iter)                  # 50

환경변수 오버라이드:
    FLOWSTATES_N_STATES=4      # BIC 선택 생략, 상태 수 고정
    FLOWSTATES_SEED=7          # 난수 seed
    FLOWSTATES_MAX_ITER=100    # 최종 모델 EM 반복 상한
"""

import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union
import yaml

from flowstates.errors import InvalidInputError


CONFIG_DIR = Path(__file__).parent.parent.parent / "config"
DEFAULT_CONFIG = CONFIG_DIR / "default.yaml"

ENV_N_STATES = "FLOWSTATES_N_STATES"
ENV_SEED = "FLOWSTATES_SEED"
ENV_MAX_ITER = "FLOWSTATES_MAX_ITER"


@dataclass
class HMMParams:
    """최종 모델 파라미터 (n_states <= 0 이면 BIC 선택)"""
    n_states: int = 0
    max_iter: int = 50
    tol: float = 1e-2
    seed: int = 42


@dataclass
class SelectionParams:
    """BIC 후보 탐색 파라미터"""
    min_states: int = 2
    max_states: int = 10
    max_iter: int = 10
    tol: float = 0.1
    patience: int = 2
    subsample_threshold: int = 15000
    subsample_size: int = 10000


@dataclass
class SequenceParams:
    """Host 시퀀스 구성 파라미터"""
    min_flows_per_host: int = 3
    min_training_flows: int = 10


@dataclass
class DiscoveryConfig:
    """통합 설정"""
    hmm: HMMParams = field(default_factory=HMMParams)
    selection: SelectionParams = field(default_factory=SelectionParams)
    sequences: SequenceParams = field(default_factory=SequenceParams)
    raw: Dict[str, Any] = field(default_factory=dict)


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with open(path, 'r', encoding='utf-8') as f:
        return yaml.safe_load(f) or {}


def _deep_merge(base: Dict, override: Dict) -> Dict:
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _env_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise InvalidInputError(f"{name} must be an integer, got {raw!r}") from None


def _apply_env_overrides(config: Dict) -> Dict:
    n_states = _env_int(ENV_N_STATES)
    if n_states is not None:
        config.setdefault("hmm", {})
        config["hmm"]["n_states"] = n_states
    seed = _env_int(ENV_SEED)
    if seed is not None:
        config.setdefault("hmm", {})
        config["hmm"]["seed"] = seed
    max_iter = _env_int(ENV_MAX_ITER)
    if max_iter is not None:
        if max_iter < 1:
            raise InvalidInputError(f"{ENV_MAX_ITER} must be >= 1, got {max_iter}")
        config.setdefault("hmm", {})
        config["hmm"]["max_iter"] = max_iter
    return config


def load_config(path: Optional[Union[str, Path]] = None) -> DiscoveryConfig:
    """설정 로드 (default.yaml + override 파일 + env)"""
    merged = _load_yaml(DEFAULT_CONFIG)
    if path is not None:
        merged = _deep_merge(merged, _load_yaml(Path(path)))
    merged = _apply_env_overrides(merged)

    hmm = merged.get("hmm", {}) or {}
    sel = merged.get("selection", {}) or {}
    seq = merged.get("sequences", {}) or {}

    return DiscoveryConfig(
        hmm=HMMParams(
            n_states=int(hmm.get("n_states", 0)),
            max_iter=int(hmm.get("max_iter", 50)),
            tol=float(hmm.get("tol", 1e-2)),
            seed=int(hmm.get("seed", 42)),
        ),
        selection=SelectionParams(
            min_states=int(sel.get("min_states", 2)),
            max_states=int(sel.get("max_states", 10)),
            max_iter=int(sel.get("max_iter", 10)),
            tol=float(sel.get("tol", 0.1)),
            patience=int(sel.get("patience", 2)),
            subsample_threshold=int(sel.get("subsample_threshold", 15000)),
            subsample_size=int(sel.get("subsample_size", 10000)),
        ),
        sequences=SequenceParams(
            min_flows_per_host=int(seq.get("min_flows_per_host", 3)),
            min_training_flows=int(seq.get("min_training_flows", 10)),
        ),
        raw=merged,
    )
