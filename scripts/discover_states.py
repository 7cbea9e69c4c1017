# -*- coding: utf-8 -*-
"""
Flow State Discovery
====================

NetFlow CSV/Parquet -> HMM 상태 할당 + 상태 프로파일.

출력 (--out 디렉토리):
- assignments.csv: row_id, state_id
- profiles.csv: 상태별 집계 + anomaly_score + narrative
- model.json: GaussianHMM 파라미터
- scaler.json: StandardScaler mean/std

사용법:
    python scripts/discover_states.py flows.csv --out results/
    python scripts/discover_states.py flows.parquet --n-states 4 --config runs/large.yaml
"""
import sys
import json
import argparse
import logging
from pathlib import Path

import pandas as pd

ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT))

from flowstates.config import load_config
from flowstates.pipeline import discover_states

logger = logging.getLogger("discover_states")


def read_flows(path: Path) -> pd.DataFrame:
    if path.suffix.lower() in ('.parquet', '.pq'):
        return pd.read_parquet(path)
    return pd.read_csv(path)


def main():
    parser = argparse.ArgumentParser(description='Discover behavioral states in NetFlow records')
    parser.add_argument('flows', type=Path, help='Flow file (CSV or Parquet)')
    parser.add_argument('--out', type=Path, default=Path('results'), help='Output directory')
    parser.add_argument('--config', type=Path, default=None, help='YAML override file')
    parser.add_argument('--n-states', type=int, default=None, help='Fixed number of states (skip BIC)')
    parser.add_argument('--seed', type=int, default=None, help='Random seed')
    parser.add_argument('-v', '--verbose', action='store_true', help='DEBUG logging')
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    config = load_config(args.config)
    if args.n_states is not None:
        config.hmm.n_states = args.n_states
    if args.seed is not None:
        config.hmm.seed = args.seed

    flows = read_flows(args.flows)
    logger.info(f"Loaded {len(flows)} flows from {args.flows}")

    last = {'phase': None}

    def on_progress(percent: int, phase: str) -> None:
        if phase != last['phase']:
            logger.info(f"[{percent:3d}%] {phase}")
            last['phase'] = phase

    result = discover_states(flows, config, on_progress=on_progress)

    args.out.mkdir(parents=True, exist_ok=True)
    result.assignments_frame().to_csv(args.out / 'assignments.csv', index=False)
    result.profiles_frame().to_csv(args.out / 'profiles.csv', index=False)
    with open(args.out / 'model.json', 'w', encoding='utf-8') as f:
        json.dump(result.model.to_json(), f)
    with open(args.out / 'scaler.json', 'w', encoding='utf-8') as f:
        json.dump(result.scaler.to_json(), f)

    for profile in result.profiles:
        logger.info(f"state {profile.state_id} (anomaly={profile.anomaly_score}): {profile.narrative}")
    logger.info(f"Wrote results to {args.out}")


if __name__ == "__main__":
    main()
