"""In-memory synthetic 2D point sets."""

from __future__ import annotations

from typing import Callable, List, Sequence, Tuple

import numpy as np

from ..linear_regression import DataPoint
from .registry import DataSpec, DatasetSpec, register_dataset

CLUSTER_CENTERS = ((-2.0, 2.0), (2.0, 2.0), (0.0, -2.0))
# (x range, y range) of the four XOR blobs, label 0 on the diagonal
XOR_QUADRANTS = (
    ((-3.0, -1.0), (-3.0, -1.0), 0),
    ((1.0, 3.0), (1.0, 3.0), 0),
    ((-3.0, -1.0), (1.0, 3.0), 1),
    ((1.0, 3.0), (-3.0, -1.0), 1),
)


def _jitter(rng: np.random.Generator, spread: float, size: int) -> np.ndarray:
    """Uniform noise in ``[-spread / 2, spread / 2)``."""

    return (rng.random(size) - 0.5) * spread


def _regression(
    name: str,
    xs: np.ndarray,
    ys: np.ndarray,
    provenance: dict,
) -> DatasetSpec:
    points = tuple(DataPoint(float(x), float(y)) for x, y in zip(xs, ys))
    return DatasetSpec(
        name=name,
        points=points,
        data_spec=DataSpec(d_in=1, d_out=1, task_type="regression",
                           extra={"formula": provenance.get("formula", "")}),
        provenance={"type": "synthetic", "name": name, **provenance},
    )


def _curve(
    name: str,
    formula: str,
    fn: Callable[[np.ndarray], np.ndarray],
    default_points: int,
    default_noise: float,
) -> Callable[..., DatasetSpec]:
    def factory(
        n_points: int = default_points,
        seed: int = 0,
        noise: float = default_noise,
        x_min: float = -5.0,
        x_max: float = 5.0,
        **_: object,
    ) -> DatasetSpec:
        if n_points < 2:
            raise ValueError("n_points must be at least 2")
        rng = np.random.default_rng(seed)
        xs = np.linspace(x_min, x_max, n_points)
        ys = fn(xs) + _jitter(rng, noise, n_points)
        return _regression(
            name,
            xs,
            ys,
            {"formula": formula, "n_points": n_points, "seed": seed, "noise": noise},
        )

    factory.__name__ = f"make_{name}"
    return factory


register_dataset("linear", _curve("linear", "2x + 3", lambda x: 2.0 * x + 3.0, 30, 0.0))
register_dataset(
    "noisy_linear", _curve("noisy_linear", "2x + 3", lambda x: 2.0 * x + 3.0, 40, 3.0)
)
register_dataset(
    "quadratic",
    _curve("quadratic", "0.3x^2 - 2x + 1", lambda x: 0.3 * x * x - 2.0 * x + 1.0, 40, 1.0),
)
register_dataset(
    "sine", _curve("sine", "3sin(x) + 2", lambda x: 3.0 * np.sin(x) + 2.0, 50, 0.5)
)


@register_dataset("sine_pattern")
def make_sine_pattern(n_points: int = 50, seed: int = 0, noise: float = 1.5, **_: object) -> DatasetSpec:
    """Random x in ``[-4, 4)`` around ``2 sin(x) + 0.3 x``."""

    rng = np.random.default_rng(seed)
    xs = (rng.random(n_points) - 0.5) * 8.0
    ys = 2.0 * np.sin(xs) + 0.3 * xs + _jitter(rng, noise, n_points)
    return _regression(
        "sine_pattern",
        xs,
        ys,
        {"formula": "2sin(x) + 0.3x", "n_points": n_points, "seed": seed, "noise": noise},
    )


@register_dataset("scattered")
def make_scattered(n_points: int = 50, seed: int = 0, **_: object) -> DatasetSpec:
    rng = np.random.default_rng(seed)
    xs = -5.0 + rng.random(n_points) * 10.0
    ys = -5.0 + rng.random(n_points) * 10.0
    return _regression("scattered", xs, ys, {"n_points": n_points, "seed": seed})


def _classification(
    name: str, points: Sequence[DataPoint], num_classes: int, provenance: dict
) -> DatasetSpec:
    return DatasetSpec(
        name=name,
        points=tuple(points),
        data_spec=DataSpec(d_in=2, d_out=1, task_type="classification", num_classes=num_classes),
        provenance={"type": "synthetic", "name": name, **provenance},
    )


@register_dataset("xor")
def make_xor(points_per_blob: int = 20, seed: int = 0, **_: object) -> DatasetSpec:
    """Four uniform blobs; opposite corners share a label."""

    rng = np.random.default_rng(seed)
    points: List[DataPoint] = []
    for (x_lo, x_hi), (y_lo, y_hi), label in XOR_QUADRANTS:
        xs = rng.uniform(x_lo, x_hi, points_per_blob)
        ys = rng.uniform(y_lo, y_hi, points_per_blob)
        points.extend(DataPoint(float(x), float(y), label) for x, y in zip(xs, ys))
    return _classification("xor", points, 2, {"points_per_blob": points_per_blob, "seed": seed})


@register_dataset("clusters")
def make_clusters(
    n_points: int = 60,
    seed: int = 0,
    spread: float = 3.0,
    centers: Sequence[Tuple[float, float]] = CLUSTER_CENTERS,
    **_: object,
) -> DatasetSpec:
    """Labels cycle through the centers; each point is jittered around its center."""

    rng = np.random.default_rng(seed)
    points: List[DataPoint] = []
    for i in range(n_points):
        label = i % len(centers)
        cx, cy = centers[label]
        dx, dy = _jitter(rng, spread, 2)
        points.append(DataPoint(float(cx + dx), float(cy + dy), label))
    return _classification(
        "clusters", points, len(centers), {"n_points": n_points, "seed": seed, "spread": spread}
    )


__all__ = [
    "CLUSTER_CENTERS",
    "XOR_QUADRANTS",
    "make_clusters",
    "make_scattered",
    "make_sine_pattern",
    "make_xor",
]
