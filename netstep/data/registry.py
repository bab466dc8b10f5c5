"""Dataset registry and metadata contracts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, MutableMapping, Sequence, Tuple

from ..core.types import Array
from ..linear_regression import DataPoint
from .utils import points_to_tensors, train_test_split

TASK_TYPES = ("regression", "classification")


@dataclass(frozen=True)
class DataSpec:
    """Structural information about a dataset.

    Attributes
    ----------
    d_in:
        Number of input columns fed to the network (1 for regression on
        ``x``, 2 for classification on ``(x, y)``).
    d_out:
        Number of target columns.
    task_type:
        One of ``{"regression", "classification"}``.
    num_classes:
        Number of distinct labels for classification sets.
    extra:
        Free-form metadata, e.g. the generating formula.
    """

    d_in: int
    d_out: int
    task_type: str
    num_classes: int | None = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DatasetSpec:
    """A generated point set together with its metadata."""

    name: str
    points: Tuple[DataPoint, ...]
    data_spec: DataSpec
    provenance: Dict[str, Any]

    def __len__(self) -> int:
        return len(self.points)

    def tensors(self) -> Tuple[Array, Array]:
        """Return ``(inputs, targets)`` matrices for the dataset's task type."""

        return points_to_tensors(self.points, self.data_spec.task_type)

    def split(
        self, train_fraction: float = 0.8, *, seed: int = 0
    ) -> Tuple[Sequence[DataPoint], Sequence[DataPoint]]:
        return train_test_split(self.points, train_fraction, seed=seed)


DatasetFactory = Callable[..., DatasetSpec]


_REGISTRY: MutableMapping[str, DatasetFactory] = {}


def register_dataset(
    name: str | None = None,
    factory: DatasetFactory | None = None,
) -> Callable[[DatasetFactory], DatasetFactory] | DatasetFactory:
    """Register a dataset factory.

    ``register_dataset`` can be used both as a decorator::

        @register_dataset("linear")
        def make_linear(**kwargs):
            ...

    or directly::

        register_dataset("linear", make_linear)
    """

    def _decorator(func: DatasetFactory) -> DatasetFactory:
        _REGISTRY[str(name or func.__name__)] = func
        return func

    if factory is not None:
        return _decorator(factory)
    if name is None:
        raise TypeError("register_dataset requires a name when used without a decorator")
    return _decorator


def get_dataset(dataset: str | None = None, /, **options: Any) -> DatasetSpec:
    """Build the :class:`DatasetSpec` for ``dataset`` with generator ``options``."""

    if dataset is None:
        if "name" in options:
            dataset = str(options.pop("name"))
        else:
            raise TypeError("Dataset name must be provided")

    if dataset not in _REGISTRY:
        available = ", ".join(available_datasets())
        raise KeyError(f"Unknown dataset {dataset!r}. Available datasets: {available}")

    spec = _REGISTRY[dataset](**options)
    _validate_spec(spec)
    return spec


def available_datasets() -> Iterable[str]:
    """Return the sorted list of available dataset identifiers."""

    return sorted(_REGISTRY)


def _validate_spec(spec: DatasetSpec) -> None:
    if spec.data_spec.task_type not in TASK_TYPES:
        raise ValueError(f"Invalid task type: {spec.data_spec.task_type}")
    if spec.data_spec.task_type == "classification" and spec.data_spec.num_classes is None:
        raise ValueError("Classification datasets must define num_classes")
    if not spec.points:
        raise ValueError(f"Dataset {spec.name!r} produced no points")


get = get_dataset


__all__ = [
    "DataSpec",
    "DatasetSpec",
    "TASK_TYPES",
    "available_datasets",
    "get",
    "get_dataset",
    "register_dataset",
]
