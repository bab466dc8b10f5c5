import json
from pathlib import Path

import pytest

from netstep.training import pipelines
from netstep.training.trainer import TrainingControl


def _config(tmp_path, name="run", optimizer="vanilla"):
    return {
        "data": {"name": "linear", "options": {"n_points": 20, "seed": 0}},
        "model": {
            "layers": [{"neurons": 4, "activation": "tanh"}, {"neurons": 1, "activation": "linear"}],
            "loss": "auto",
        },
        "train": {
            "epochs": 5,
            "lr": 0.01,
            "optimizer": optimizer,
            "seed": 11,
            "run_dir": str(tmp_path / name),
            "enable_plots": False,
        },
    }


def test_trainer_pipeline_produces_artifacts(tmp_path):
    config = _config(tmp_path)

    result = pipelines.run_pipeline(config)
    assert result.epochs == 5
    assert Path(result.metrics_path).exists()
    manifest = json.loads(Path(result.manifest_path).read_text())
    assert manifest["config"]["train"]["seed"] == 11
    assert manifest["dataset"]["type"] == "synthetic"
    assert manifest["dataset"]["name"] == "linear"
    assert manifest["network"]["dims"] == [1, 4, 1]

    metrics = [
        json.loads(line)
        for line in Path(result.metrics_path).read_text().splitlines()
        if line
    ]
    assert len(metrics) == 5
    first = metrics[0]
    assert first["split"] == "train"
    assert "sha" in first
    assert first["seed"] == 11
    assert all("loss" in entry and "r2" in entry for entry in metrics)

    run_dir = Path(config["train"]["run_dir"])
    assert (run_dir / "metrics.csv").exists()
    assert (run_dir / "summary.json").exists()
    assert json.loads((run_dir / "config.json").read_text())["train"]["optimizer"] == "vanilla"
    assert result.extra["final_metrics"]["loss"] == pytest.approx(result.final_loss)


@pytest.mark.parametrize("optimizer", ["sgd", "adam", "rmsprop"])
def test_optimizer_pipelines_train(tmp_path, optimizer):
    config = _config(tmp_path, optimizer, optimizer)
    config["train"]["epochs"] = 30
    result = pipelines.run_pipeline(config)
    losses = [
        json.loads(line)["loss"]
        for line in Path(result.metrics_path).read_text().splitlines()
    ]
    assert len(losses) == 30
    assert losses[-1] < losses[0]


def test_pipeline_determinism(tmp_path):
    base_config = _config(tmp_path, "run1", "adam")

    first = pipelines.run_pipeline(base_config)
    metrics_1 = Path(first.metrics_path).read_text()

    base_config["train"]["run_dir"] = str(tmp_path / "run2")
    second = pipelines.run_pipeline(base_config)
    metrics_2 = Path(second.metrics_path).read_text()

    assert metrics_1 == metrics_2


def test_last_layer_is_resized_to_dataset_outputs(tmp_path):
    config = _config(tmp_path)
    config["model"]["layers"][-1]["neurons"] = 3
    with pytest.warns(RuntimeWarning):
        result = pipelines.run_pipeline(config)
    manifest = json.loads(Path(result.manifest_path).read_text())
    assert manifest["config"]["model"]["layers"][-1]["neurons"] == 1


def test_stopped_run_reports_progress(tmp_path):
    control = TrainingControl()
    control.stop()
    result = pipelines.run_pipeline(_config(tmp_path), control=control)
    assert result.epochs == 1
    assert result.extra["stopped"] is True
    assert result.extra["resume_epoch"] is None


def test_invalid_configs_are_rejected(tmp_path):
    config = _config(tmp_path)
    del config["model"]
    with pytest.raises(KeyError):
        pipelines.run_pipeline(config)

    config = _config(tmp_path)
    config["train"]["optimizer"] = "lbfgs"
    with pytest.raises(ValueError):
        pipelines.run_pipeline(config)

    config = _config(tmp_path)
    config["model"]["layers"] = []
    with pytest.raises(ValueError):
        pipelines.run_pipeline(config)
