"""Headless-safe plotting adapters."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Tuple

import numpy as np


def _pyplot():
    import matplotlib

    matplotlib.use("Agg", force=True)
    import matplotlib.pyplot as plt  # imported lazily for headless safety

    return plt


class PlotAdapter:
    """Collect the loss curve and optionally emit matplotlib figures."""

    def __init__(self, run_dir: str | Path, enable_plots: bool = False):
        self.enable_plots = enable_plots
        self.run_dir = Path(run_dir)
        self._history: List[Tuple[int, float]] = []
        if self.enable_plots:
            self.run_dir.mkdir(parents=True, exist_ok=True)

    @property
    def history(self) -> List[Tuple[int, float]]:
        return list(self._history)

    def on_epoch(self, epoch: int, metrics) -> None:
        loss = metrics.get("loss")
        if loss is not None and np.isfinite(loss):
            self._history.append((int(epoch), float(loss)))

    __call__ = on_epoch

    def plot_predictions(self, network, dataset) -> Optional[Path]:
        """Draw the fitted curve (regression) or decision surface (classification)."""

        if not self.enable_plots:
            return None
        plt = _pyplot()
        inputs, targets = dataset.tensors()
        fig, ax = plt.subplots()
        if dataset.data_spec.task_type == "regression":
            xs = inputs[:, 0]
            pad = 0.2 * ((xs.max() - xs.min()) or 10.0)
            grid = np.linspace(xs.min() - pad, xs.max() + pad, 200)
            curve = network.predict(grid.reshape(-1, 1))[:, 0]
            ax.scatter(xs, targets[:, 0], s=12, label="data")
            ax.plot(grid, curve, color="tab:red", label="prediction")
            ax.legend()
        else:
            x_lo, x_hi = inputs[:, 0].min() - 1.0, inputs[:, 0].max() + 1.0
            y_lo, y_hi = inputs[:, 1].min() - 1.0, inputs[:, 1].max() + 1.0
            surface = network.predict_2d(x_lo, x_hi, y_lo, y_hi, resolution=60)
            ax.imshow(
                surface,
                origin="lower",
                extent=(x_lo, x_hi, y_lo, y_hi),
                aspect="auto",
                cmap="coolwarm",
                alpha=0.6,
            )
            ax.scatter(inputs[:, 0], inputs[:, 1], c=targets[:, 0], cmap="coolwarm", s=14)
        ax.set_title(f"Predictions ({dataset.name})")
        path = self.run_dir / "predictions.png"
        fig.savefig(path)
        plt.close(fig)
        return path

    def close(self) -> Optional[Path]:
        if not self.enable_plots or not self._history:
            return None
        plt = _pyplot()
        epochs, losses = zip(*self._history)
        fig, ax = plt.subplots()
        ax.plot(epochs, losses)
        ax.set_xlabel("Epoch")
        ax.set_ylabel("Loss")
        ax.set_title("Training Curve")
        path = self.run_dir / "loss.png"
        fig.savefig(path)
        plt.close(fig)
        return path


__all__ = ["PlotAdapter"]
