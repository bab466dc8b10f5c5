import json
from pathlib import Path

from netstep.training import pipelines


def test_summary_outputs_are_deterministic(tmp_path):
    config = {
        "data": {"name": "quadratic", "options": {"n_points": 24, "seed": 123}},
        "model": {
            "layers": [
                {"neurons": 6, "activation": "tanh"},
                {"neurons": 1, "activation": "linear"},
            ],
            "loss": "mse",
        },
        "train": {
            "epochs": 12,
            "lr": 0.01,
            "optimizer": "rmsprop",
            "seed": 55,
            "summary_tail": 4,
            "run_dir": str(tmp_path / "run_a"),
            "enable_plots": False,
        },
    }

    first = pipelines.run_pipeline(config)
    summary_a = Path(first.summary_path).read_bytes()
    metrics_a = Path(first.metrics_path).read_bytes()

    config["train"]["run_dir"] = str(tmp_path / "run_b")
    second = pipelines.run_pipeline(config)
    summary_b = Path(second.summary_path).read_bytes()
    metrics_b = Path(second.metrics_path).read_bytes()

    assert metrics_a == metrics_b
    assert summary_a == summary_b

    summary = json.loads(summary_a)
    assert summary["records"] == 12
    assert summary["tail_window"] == 4
    assert {"loss", "mae", "rmse", "r2"} <= set(summary["metrics"])
