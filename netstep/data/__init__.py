"""Dataset registry and synthetic point generators."""

# Ensure built-in datasets register themselves when the package is imported.
from . import synthetic as _synthetic  # noqa: F401
from .registry import (
    DatasetSpec,
    DataSpec,
    available_datasets,
    get,
    get_dataset,
    register_dataset,
)
from .utils import points_to_tensors, train_test_split

__all__ = [
    "DataSpec",
    "DatasetSpec",
    "available_datasets",
    "get",
    "get_dataset",
    "points_to_tensors",
    "register_dataset",
    "train_test_split",
]
