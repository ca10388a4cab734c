# -*- coding: utf-8 -*-
"""
Results IO helpers.

Write:
  * <name>.npz    (one file per deliverable: x, t, u, params)
  * metrics.json  (final times and stabilization metrics)
  * stages.csv    (configuration lineage: one row per stage)

This keeps on-disk layout stable for post-processing and reports.
"""
from __future__ import annotations
import json
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Iterable

import numpy as np
import pandas as pd

from pinsim.models.params import DeviceParams
from pinsim.models.solution import VARIABLES, Solution

def write_metrics(run_dir: Path, metrics: Dict[str, Any]) -> Path:
    run_dir.mkdir(parents=True, exist_ok=True)
    out = run_dir / "metrics.json"
    with open(out, "w") as f:
        json.dump(metrics, f, indent=2, sort_keys=True)
    return out

def save_solution_npz(run_dir: Path, name: str, sol: Solution) -> Path:
    """Arrays plus the producing configuration (as JSON text)."""
    run_dir.mkdir(parents=True, exist_ok=True)
    out = run_dir / f"{name}.npz"
    np.savez_compressed(
        out,
        x=sol.x, t=sol.t, u=sol.u,
        variables=np.array(VARIABLES),
        mirrored=np.array(sol.mirrored),
        params=np.array(json.dumps(sol.params.as_dict(), sort_keys=True)),
    )
    return out

def load_solution_npz(path: Path) -> Solution:
    with np.load(path) as data:
        params = DeviceParams(**json.loads(str(data["params"])))
        return Solution(params=params, x=data["x"], t=data["t"], u=data["u"],
                        mirrored=bool(data["mirrored"]))

def stage_table(records: Iterable) -> pd.DataFrame:
    """Flatten StageRecords: stage columns first, then every parameter."""
    rows = []
    for r in records:
        row = {"index": r.index, "stage": r.name, "deliverable": r.deliverable or "",
               "t_final": r.t_final, "verified": r.verified, "metric": r.metric,
               "stabilized": r.stabilized}
        row.update(asdict(r.params))
        rows.append(row)
    return pd.DataFrame(rows)

def write_stage_history(run_dir: Path, records: Iterable) -> Path:
    run_dir.mkdir(parents=True, exist_ok=True)
    out = run_dir / "stages.csv"
    stage_table(records).to_csv(out, index=False)
    return out
