import numpy as np
import pytest

from netstep.core.errors import PreconditionError, ShapeMismatchError
from netstep.core.optimizers import Adam, SGD
from netstep.core.types import LayerConfig, NetworkConfig
from netstep.debug import DebugEngine

X = np.array([[-1.0], [0.0], [1.0], [2.0]])
Y = np.array([[-1.0], [1.0], [3.0], [5.0]])


def _config(**overrides):
    base = dict(
        input_size=1,
        output_size=1,
        layers=[LayerConfig(3, "tanh"), LayerConfig(1, "linear")],
        loss_function="mse",
        optimizer="sgd",
        learning_rate=0.1,
    )
    base.update(overrides)
    return NetworkConfig(**base)


def _engine(**overrides):
    engine = DebugEngine(_config(**overrides), seed=0)
    engine.set_data(X, Y)
    return engine


def test_history_and_undo_after_single_step():
    engine = _engine()
    assert engine.get_step_history() == []
    assert engine.phase == "idle"

    engine.step_forward_layer(0)
    assert len(engine.get_step_history()) == 1
    assert engine.can_undo

    assert engine.undo() is True
    assert engine.get_step_history() == []
    assert engine.undo() is False

    assert engine.redo() is True
    assert len(engine.get_step_history()) == 1
    assert engine.redo() is False


def test_step_next_walks_one_full_iteration():
    engine = _engine()
    before = engine.network.get_state()
    snapshots = [engine.step_next() for _ in range(engine.total_steps)]

    assert engine.total_steps == 7
    assert [s.step_type for s in snapshots] == [
        "forward",
        "forward",
        "loss",
        "backward",
        "backward",
        "backward",
        "update",
    ]
    assert [s.layer_index for s in snapshots] == [0, 1, None, None, 1, 0, None]
    assert [s.step_number for s in snapshots] == list(range(7))
    assert engine.phase == "update"
    assert not np.array_equal(engine.network.layers[0].weights, before.weights[0])

    following = engine.step_next()
    assert following.step_type == "forward"
    assert following.layer_index == 0
    assert engine.phase == "forward"


def test_phases_follow_latest_snapshot():
    engine = _engine()
    engine.step_forward_layer(0)
    assert engine.phase == "forward"
    engine.step_compute_loss()
    assert engine.phase == "loss"
    engine.step_backward_loss_gradient()
    assert engine.phase == "backward-gradient"
    engine.step_backward_layer(1)
    assert engine.phase == "backward"


def test_compute_loss_runs_missing_layers():
    engine = _engine()
    snapshot = engine.step_compute_loss()
    expected = engine.network.loss_function.compute(engine.network.predict(X), Y)
    assert snapshot.computation.output == pytest.approx(expected)
    assert engine.current_loss == pytest.approx(expected)
    assert len(engine.get_step_history()) == 1
    assert len(snapshot.network_state.activations) == 2


def test_sgd_update_matches_manual_descent():
    engine = _engine()
    engine.step_compute_loss()
    backward = engine.step_backward_complete()
    assert [s.layer_index for s in backward] == [1, 0]

    update = engine.step_update_weights()
    old = update.computation.input("Old Weights 0")
    grad = update.computation.input("Weight Gradients 0")
    assert np.allclose(engine.network.layers[0].weights, old - 0.1 * grad)
    assert update.computation.input("Learning Rate") == 0.1


def test_backward_layer_reports_input_gradient():
    engine = _engine()
    engine.step_compute_loss()
    engine.step_backward_loss_gradient()
    snapshot = engine.step_backward_layer(1)
    layer = engine.network.layers[1]
    incoming = snapshot.computation.input("∂L/∂a1")
    assert np.allclose(snapshot.computation.output, incoming @ layer.weights)
    assert snapshot.network_state.gradients is None


def test_out_of_order_calls_raise_precondition_errors():
    bare = DebugEngine(_config(), seed=0)
    with pytest.raises(PreconditionError):
        bare.step_forward_layer(0)

    engine = _engine()
    with pytest.raises(PreconditionError):
        engine.step_forward_layer(1)
    with pytest.raises(PreconditionError):
        engine.step_forward_layer(5)
    with pytest.raises(PreconditionError):
        engine.step_backward_loss_gradient()
    with pytest.raises(PreconditionError):
        engine.step_update_weights()

    engine.step_compute_loss()
    engine.step_backward_loss_gradient()
    with pytest.raises(PreconditionError):
        engine.step_backward_layer(0)
    engine.step_backward_layer(1)
    with pytest.raises(PreconditionError):
        engine.step_update_weights()
    engine.step_backward_layer(0)
    with pytest.raises(PreconditionError):
        engine.step_backward_layer(0)

    engine.step_update_weights()
    with pytest.raises(PreconditionError):
        engine.step_compute_loss()
    with pytest.raises(PreconditionError):
        engine.step_forward_layer(1)
    assert engine.step_forward_layer(0).layer_index == 0


def test_undo_restores_parameters_and_optimizer_state():
    engine = _engine(optimizer="adam")
    for _ in range(engine.total_steps):
        engine.step_next()
    updated = engine.network.layers[0].weights.copy()
    assert engine.optimizer.t == 4

    assert engine.undo()
    assert engine.phase == "backward"
    assert engine.optimizer.t == 0
    assert not np.array_equal(engine.network.layers[0].weights, updated)

    assert engine.redo()
    assert engine.optimizer.t == 4
    assert np.array_equal(engine.network.layers[0].weights, updated)


def test_new_step_after_undo_discards_redo_tail():
    engine = _engine()
    for _ in range(4):
        engine.step_next()
    engine.undo()
    engine.undo()
    assert engine.can_redo
    snapshot = engine.step_next()
    assert snapshot.step_type == "loss"
    assert len(engine.get_step_history()) == 3
    assert not engine.can_redo


def test_set_data_validates_shapes():
    engine = DebugEngine(_config(), seed=0)
    with pytest.raises(ShapeMismatchError):
        engine.set_data(np.zeros((4, 2)), np.zeros((4, 1)))
    with pytest.raises(ShapeMismatchError):
        engine.set_data(np.zeros((4, 1)), np.zeros((3, 1)))


def test_set_data_clears_history():
    engine = _engine()
    engine.step_next()
    engine.step_next()
    engine.set_data(X, Y)
    assert engine.get_step_history() == []
    assert engine.step_index == -1
    assert not engine.can_undo


def test_last_layer_width_follows_output_size():
    config = _config(output_size=2)
    with pytest.warns(RuntimeWarning):
        engine = DebugEngine(config, seed=0)
    assert engine.network.output_size == 2
    assert engine.config.layers[-1] == LayerConfig(2, "linear")


def test_update_config_swaps_optimizer_on_type_change():
    engine = _engine()
    original = engine.optimizer
    assert isinstance(original, SGD)
    engine.update_config(_config(learning_rate=0.5))
    assert engine.optimizer is original
    assert engine.config.learning_rate == 0.5
    engine.update_config(_config(optimizer="adam"))
    assert isinstance(engine.optimizer, Adam)
    assert engine.optimizer.t == 0


def test_detail_steps_do_not_record_history():
    engine = _engine()
    detail = engine.step_forward_pre_activation(0)
    layer = engine.network.layers[0]
    assert np.allclose(detail.output, X @ layer.weights.T + layer.bias)
    activation = engine.step_forward_activation(0)
    assert np.allclose(activation.output, np.tanh(detail.output))
    assert engine.get_step_history() == []


def test_train_one_epoch_reduces_loss_and_resets_stepping():
    engine = _engine(optimizer="rmsprop", learning_rate=0.01)
    engine.step_next()
    engine.step_next()
    losses = [engine.train_one_epoch(X, Y) for _ in range(50)]
    assert losses[-1] < losses[0]
    assert engine.step_next().layer_index == 0


def test_current_state_keeps_activation_slots_per_layer():
    engine = _engine()
    assert engine.get_current_state().activations is None
    engine.step_forward_layer(0)
    activations = engine.get_current_state().activations
    assert len(activations) == 2
    assert activations[0].shape == (4, 3)
    assert activations[1] is None


def test_train_one_epoch_accepts_nested_lists():
    engine = _engine()
    loss = engine.train_one_epoch(X.tolist(), Y.tolist())
    assert np.isfinite(loss)
    with pytest.raises(ShapeMismatchError):
        engine.train_one_epoch([[1.0], [2.0, 3.0]], Y.tolist())
