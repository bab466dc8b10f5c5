"""Epoch-at-a-time training loop with cooperative stop/pause."""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import List, Mapping, Sequence, Union

import numpy as np

from ..core import tensor as T
from ..core.types import Array, RunResult
from ..debug.engine import DebugEngine
from .metrics import compute_metrics, default_metrics
from .network import Network

Model = Union[Network, DebugEngine]


@dataclass
class TrainingControl:
    """Flags polled by :class:`Trainer` between epochs."""

    stop_requested: bool = False
    paused: bool = False

    def stop(self) -> None:
        self.stop_requested = True

    def pause(self) -> None:
        self.paused = True

    def resume(self) -> None:
        self.paused = False
        self.stop_requested = False


class Trainer:
    """Drive full-batch training and report per-epoch metrics.

    A :class:`Network` is trained with its own clipped gradient descent; a
    :class:`DebugEngine` is trained through its optimizer
    (``train_one_epoch``).
    """

    def __init__(
        self,
        model: Model,
        callbacks: Sequence[object] | None = None,
        control: TrainingControl | None = None,
    ) -> None:
        self.model = model
        self.callbacks = list(callbacks or [])
        self.control = control or TrainingControl()
        self.history: List[float] = []

    @property
    def network(self) -> Network:
        return self.model.network if isinstance(self.model, DebugEngine) else self.model

    def run(
        self,
        inputs: Array,
        targets: Array,
        epochs: int,
        learning_rate: float,
        *,
        start_epoch: int = 1,
        task_type: str = "regression",
        metric_names: Sequence[str] | str = (),
        delay: float = 0.0,
        split_loggers: Mapping[str, Sequence[object]] | None = None,
    ) -> RunResult:
        """Train epochs ``start_epoch..epochs``.

        Stops early when the control is stopped or paused; a paused run
        reports the epoch to resume from in ``extra["resume_epoch"]``.
        """

        inputs = T.as_tensor(inputs)
        targets = T.as_tensor(targets)
        if isinstance(metric_names, str):
            metric_names = [m.strip() for m in metric_names.split(",") if m.strip()]
        if not metric_names or metric_names == ["default"]:
            metric_names = default_metrics(task_type)
        split_loggers = split_loggers or {}

        epoch = start_epoch - 1
        resume_epoch = None
        for epoch in range(start_epoch, epochs + 1):
            loss = self._train_epoch(inputs, targets, learning_rate)
            if math.isfinite(loss):
                self.history.append(loss)
            metrics = {"loss": loss}
            metrics.update(compute_metrics(metric_names, self.network.predict(inputs), targets))
            self._emit_epoch("train", epoch, metrics, split_loggers)

            if self.control.stop_requested:
                break
            if self.control.paused:
                resume_epoch = epoch + 1
                break
            if delay > 0 and epoch < epochs:
                time.sleep(delay)

        final_loss = self.history[-1] if self.history else float("nan")
        return RunResult(
            epochs=epoch,
            final_loss=final_loss,
            metrics_path="",
            manifest_path="",
            extra={
                "stopped": self.control.stop_requested,
                "resume_epoch": resume_epoch,
                "loss_history": list(self.history),
            },
        )

    # ------------------------------------------------------------------
    # Internal helpers

    def _train_epoch(self, inputs: Array, targets: Array, learning_rate: float) -> float:
        if isinstance(self.model, DebugEngine):
            return self.model.train_one_epoch(inputs, targets, learning_rate)
        return self.model.train(inputs, targets, 1, learning_rate)[0]

    def _emit_epoch(
        self,
        split: str,
        epoch: int,
        metrics: Mapping[str, float],
        loggers: Mapping[str, Sequence[object]],
    ) -> None:
        for callback in list(self.callbacks) + list(loggers.get(split, [])):
            if hasattr(callback, "on_epoch"):
                callback.on_epoch(epoch, metrics)  # type: ignore[attr-defined]
            elif callable(callback):
                callback(epoch, metrics)


def evaluate(network: Network, inputs: Array, targets: Array, task_type: str) -> Mapping[str, float]:
    """Loss plus the default metrics for ``task_type`` without training."""

    predictions = network.predict(np.asarray(inputs, dtype=np.float64))
    metrics = {"loss": network.loss_function.compute(predictions, targets)}
    metrics.update(compute_metrics(default_metrics(task_type), predictions, targets))
    return metrics


__all__ = ["Trainer", "TrainingControl", "evaluate"]
