"""Metric sinks receiving per-epoch callbacks from the trainer."""

from __future__ import annotations

import csv
import json
import math
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from .artifacts import git_sha


def _numeric(metrics: Mapping[str, object]) -> Dict[str, Optional[float]]:
    """Keep numeric entries; non-finite values become ``None``."""

    out: Dict[str, Optional[float]] = {}
    for key, value in metrics.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        value = float(value)
        out[key] = value if math.isfinite(value) else None
    return out


class JsonlSink:
    """Append-only JSONL writer for metrics."""

    def __init__(
        self,
        path: str | Path,
        *,
        split: str = "train",
        seed: int | None = None,
        sha: str | None = None,
    ) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")
        self.split = split
        self.seed = seed
        self.sha = sha or git_sha()

    def _write(self, epoch: int, metrics: Mapping[str, object]) -> None:
        record: Dict[str, object] = {
            "epoch": int(epoch),
            "split": self.split,
            "seed": self.seed,
            "sha": self.sha,
        }
        record.update(_numeric(metrics))
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record) + "\n")

    def on_step(self, step: int, metrics: Mapping[str, object]) -> None:
        self._write(step, metrics)

    def on_epoch(self, epoch: int, metrics: Mapping[str, object]) -> None:
        self._write(epoch, metrics)

    __call__ = on_epoch


class CsvSink:
    """CSV writer whose columns are fixed by the first row written."""

    def __init__(self, path: str | Path, *, split: str = "train") -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")
        self.split = split
        self._fields: List[str] | None = None

    def _write(self, epoch: int, metrics: Mapping[str, object]) -> None:
        row: Dict[str, object] = {"epoch": int(epoch), "split": self.split}
        row.update(_numeric(metrics))
        if self._fields is None:
            self._fields = sorted(row)
        with self.path.open("a", encoding="utf-8", newline="") as handle:
            writer = csv.DictWriter(handle, fieldnames=self._fields, extrasaction="ignore")
            if handle.tell() == 0:
                writer.writeheader()
            writer.writerow(row)

    def on_step(self, step: int, metrics: Mapping[str, object]) -> None:
        self._write(step, metrics)

    def on_epoch(self, epoch: int, metrics: Mapping[str, object]) -> None:
        self._write(epoch, metrics)

    __call__ = on_epoch


__all__ = ["CsvSink", "JsonlSink"]
