import numpy as np
import pytest

from netstep.core import tensor as T
from netstep.core.activations import get_activation, sigmoid, softmax
from netstep.core.errors import ShapeMismatchError
from netstep.core.optimizers import Adam, RMSprop, SGD, get_optimizer


def test_transpose_is_an_involution():
    rng = np.random.default_rng(0)
    a = rng.standard_normal((3, 5))
    assert np.array_equal(T.transpose(T.transpose(a)), a)
    assert T.transpose(a).shape == (5, 3)


def test_identity_is_neutral_for_matmul():
    rng = np.random.default_rng(1)
    a = rng.standard_normal((4, 3))
    assert np.allclose(T.matmul(a, T.identity(3)), a)
    assert np.allclose(T.matmul(T.identity(4), a), a)


def test_matmul_rejects_mismatched_inner_dimension():
    with pytest.raises(ShapeMismatchError):
        T.matmul(T.zeros(2, 3), T.zeros(2, 3))


def test_elementwise_ops_require_equal_shapes():
    a = T.zeros(2, 2)
    with pytest.raises(ShapeMismatchError):
        T.add(a, T.zeros(2, 3))
    with pytest.raises(ShapeMismatchError):
        T.hadamard(a, T.zeros(3, 2))
    assert np.array_equal(T.subtract(T.identity(2), T.identity(2)), a)


def test_ragged_input_is_rejected():
    with pytest.raises(ShapeMismatchError):
        T.as_tensor([[1.0, 2.0], [3.0]])


def test_broadcast_add_and_col_sum():
    t = T.as_tensor([[1.0, 2.0], [3.0, 4.0]])
    out = T.broadcast_add(t, np.array([10.0, 20.0]))
    assert np.array_equal(out, [[11.0, 22.0], [13.0, 24.0]])
    assert np.array_equal(T.col_sum(t), [4.0, 6.0])
    with pytest.raises(ShapeMismatchError):
        T.broadcast_add(t, np.array([1.0, 2.0, 3.0]))


def test_clip_bounds_values():
    clipped = T.clip(np.array([[-9.0, 0.5, 7.0]]), 5.0)
    assert np.array_equal(clipped, [[-5.0, 0.5, 5.0]])
    with pytest.raises(ValueError):
        T.clip(np.zeros((1, 1)), -1.0)


def test_relu_backward_masks_non_positive_inputs():
    relu = get_activation("relu")
    z = np.array([[-1.0, 0.0, 2.0]])
    grad = relu.backward(np.ones_like(z), z)
    assert np.array_equal(grad, [[0.0, 0.0, 1.0]])


def test_sigmoid_is_stable_for_large_inputs():
    out = sigmoid(np.array([[-1000.0, 0.0, 1000.0]]))
    assert np.all(np.isfinite(out))
    assert out[0, 1] == pytest.approx(0.5)


def test_softmax_rows_sum_to_one():
    out = softmax(np.array([[1.0, 2.0, 3.0], [1000.0, 1000.0, 1000.0]]))
    assert np.allclose(out.sum(axis=1), 1.0)


def test_softmax_backward_uses_jacobian_diagonal():
    z = np.array([[0.5, -1.0, 2.0], [0.0, 0.0, 0.0]])
    grad = np.array([[1.0, 2.0, -1.0], [0.5, 0.5, 0.5]])
    s = softmax(z)
    expected = grad * s * (1.0 - s)
    assert np.allclose(get_activation("softmax").backward(grad, z), expected)

    full = np.array([g @ (np.diag(row) - np.outer(row, row)) for g, row in zip(grad, s)])
    assert not np.allclose(expected, full)


def test_unknown_activation_and_optimizer_raise_keyerror():
    with pytest.raises(KeyError):
        get_activation("swishy")
    with pytest.raises(KeyError):
        get_optimizer("lbfgs")


def test_sgd_update_is_plain_descent():
    w = np.ones((2, 2))
    out = SGD().update(w, np.full((2, 2), 0.5), 0.1)
    assert np.allclose(out, 0.95)
    assert np.array_equal(w, np.ones((2, 2)))


def test_adam_first_step_moves_by_learning_rate():
    opt = Adam()
    w = np.zeros((1, 2))
    out = opt.update(w, np.array([[1.0, -2.0]]), 0.01)
    # Bias-corrected first step is lr * sign(g)
    assert np.allclose(out, [[-0.01, 0.01]], atol=1e-6)
    assert opt.t == 1
    opt.update_bias(np.zeros(2), np.ones(2), 0.01)
    assert opt.t == 2


def test_optimizer_state_is_kept_per_slot():
    opt = RMSprop()
    grads = np.ones((2, 2))
    opt.update(np.zeros((2, 2)), grads, 0.1, slot=0)
    opt.update(np.zeros((2, 2)), grads, 0.1, slot=1)
    assert np.allclose(opt.state(0).v, opt.state(1).v)
    opt.update(np.zeros((2, 2)), grads, 0.1, slot=0)
    assert not np.allclose(opt.state(0).v, opt.state(1).v)


def test_optimizer_reinitialises_state_on_shape_change():
    opt = Adam()
    opt.update(np.zeros((2, 2)), np.ones((2, 2)), 0.1, slot=0)
    opt.update(np.zeros((3, 1)), np.ones((3, 1)), 0.1, slot=0)
    assert opt.state(0).m.shape == (3, 1)
    opt.reset()
    assert opt.t == 0
    assert opt.state(0).m is None


def test_optimizer_rejects_mismatched_gradients():
    with pytest.raises(ShapeMismatchError):
        SGD().update(np.zeros((2, 2)), np.zeros((2, 3)), 0.1)
