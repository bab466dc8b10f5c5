import numpy as np
import pytest

from netstep.data import (
    available_datasets,
    get_dataset,
    points_to_tensors,
    register_dataset,
    train_test_split,
)
from netstep.data.registry import DataSpec, DatasetSpec
from netstep.linear_regression import DataPoint


def test_builtin_datasets_are_registered():
    names = set(available_datasets())
    assert {"linear", "noisy_linear", "quadratic", "sine", "xor", "clusters"} <= names


def test_unknown_dataset_lists_available_names():
    with pytest.raises(KeyError) as info:
        get_dataset("mnist")
    assert "linear" in str(info.value)


def test_linear_dataset_is_noise_free_and_deterministic():
    spec = get_dataset("linear")
    assert len(spec) == 30
    assert spec.data_spec.d_in == 1
    for point in spec.points:
        assert point.y == pytest.approx(2.0 * point.x + 3.0)
    assert get_dataset("noisy_linear", seed=3).points == get_dataset("noisy_linear", seed=3).points


def test_classification_generators():
    xor = get_dataset("xor", points_per_blob=5)
    assert len(xor) == 20
    assert xor.data_spec.num_classes == 2
    for point in xor.points:
        assert point.label == (0 if point.x * point.y > 0 else 1)

    clusters = get_dataset("clusters", n_points=9)
    assert [p.label for p in clusters.points] == [0, 1, 2] * 3
    inputs, targets = clusters.tensors()
    assert inputs.shape == (9, 2)
    assert targets.shape == (9, 1)


def test_points_to_tensors_modes():
    points = [DataPoint(1.0, 2.0, None), DataPoint(3.0, 4.0, 1)]
    inputs, targets = points_to_tensors(points, "regression")
    assert inputs.tolist() == [[1.0], [3.0]]
    assert targets.tolist() == [[2.0], [4.0]]
    inputs, targets = points_to_tensors(points, "classification")
    assert inputs.tolist() == [[1.0, 2.0], [3.0, 4.0]]
    assert targets.tolist() == [[0.0], [1.0]]
    with pytest.raises(ValueError):
        points_to_tensors([], "regression")
    with pytest.raises(ValueError):
        points_to_tensors(points, "ranking")


def test_train_test_split_is_deterministic():
    points = [DataPoint(float(i), 0.0) for i in range(10)]
    train, test = train_test_split(points, 0.75, seed=1)
    assert len(train) == 7
    assert len(test) == 3
    assert sorted(p.x for p in train + test) == [float(i) for i in range(10)]
    assert train_test_split(points, 0.75, seed=1) == (train, test)


def test_register_dataset_direct_call():
    def make_tiny(**_):
        return DatasetSpec(
            name="tiny",
            points=(DataPoint(0.0, 1.0), DataPoint(1.0, 1.0)),
            data_spec=DataSpec(d_in=1, d_out=1, task_type="regression"),
            provenance={"type": "test"},
        )

    register_dataset("tiny-test", make_tiny)
    spec = get_dataset("tiny-test")
    inputs, targets = spec.tensors()
    assert np.array_equal(targets, [[1.0], [1.0]])


def test_invalid_spec_is_rejected():
    @register_dataset("broken-test")
    def make_broken(**_):
        return DatasetSpec(
            name="broken",
            points=(DataPoint(0.0, 0.0),),
            data_spec=DataSpec(d_in=2, d_out=1, task_type="classification"),
            provenance={},
        )

    with pytest.raises(ValueError):
        get_dataset("broken-test")
