"""Run directory and manifest helpers."""

from __future__ import annotations

import json
import os
import platform
import subprocess
import time
from pathlib import Path
from typing import Mapping

import numpy as np

RUNS_ENV = "NETSTEP_RUNS_DIR"
DEFAULT_RUNS_DIR = "runs"


def git_sha() -> str:
    try:
        out = subprocess.check_output(["git", "rev-parse", "HEAD"], stderr=subprocess.DEVNULL)
        return out.decode().strip()
    except (OSError, subprocess.CalledProcessError):  # pragma: no cover - git may be unavailable
        return "unknown"


def resolve_run_dir(run_dir: str | Path | None, name: str) -> Path:
    """Explicit ``run_dir`` wins; otherwise ``$NETSTEP_RUNS_DIR/<name>`` or ``runs/<name>``."""

    if run_dir:
        path = Path(run_dir)
    else:
        path = Path(os.environ.get(RUNS_ENV) or DEFAULT_RUNS_DIR) / name
    path.mkdir(parents=True, exist_ok=True)
    return path


def write_manifest(
    path: str | Path,
    *,
    config: Mapping[str, object],
    dataset_provenance: Mapping[str, object],
    network: Mapping[str, object] | None = None,
) -> str:
    """Write a manifest JSON file capturing reproducibility metadata."""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    manifest = {
        "git_sha": git_sha(),
        "generated_at": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "config": config,
        "dataset": dict(dataset_provenance),
        "network": dict(network or {}),
        "environment": {
            "python": platform.python_version(),
            "numpy": np.__version__,
        },
    }
    path.write_text(json.dumps(manifest, indent=2, default=str))
    return str(path)


__all__ = ["DEFAULT_RUNS_DIR", "RUNS_ENV", "git_sha", "resolve_run_dir", "write_manifest"]
