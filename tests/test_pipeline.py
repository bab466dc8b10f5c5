from __future__ import annotations

import json
from pathlib import Path

import numpy as np
import pytest

import netstep
from netstep.training import pipelines


def test_presets_include_builtin_and_file_presets():
    names = set(pipelines.presets())
    assert {"linear-vanilla", "sine-adam", "xor-classification"} <= names
    assert {"quadratic-rmsprop", "clusters-sgd"} <= names
    for config in pipelines.presets().values():
        assert set(pipelines.REQUIRED_SECTIONS) <= set(config)


def test_load_preset_returns_a_copy():
    config = pipelines.load_preset("sine-adam")
    config["train"]["epochs"] = 1
    assert pipelines.load_preset("sine-adam")["train"]["epochs"] == 300
    file_config = pipelines.load_preset("quadratic-rmsprop")
    assert file_config["train"]["optimizer"] == "rmsprop"
    with pytest.raises(KeyError):
        pipelines.load_preset("does-not-exist")


def test_preset_file_must_have_all_sections(tmp_path):
    broken = tmp_path / "broken.yaml"
    broken.write_text("data:\n  name: linear\n")
    with pytest.raises(KeyError):
        pipelines._read_preset_file(broken)
    toml = tmp_path / "preset.toml"
    toml.write_text("[data]\n")
    with pytest.raises(ValueError):
        pipelines._read_preset_file(toml)


def test_pipeline_smoke_from_preset(tmp_path, capsys):
    config = pipelines.load_preset("xor-classification")
    config = json.loads(json.dumps(config))
    config["train"]["epochs"] = 3
    config["train"]["run_dir"] = str(tmp_path / "run")
    config["train"]["enable_plots"] = True
    result = netstep.run_pipeline(config)
    assert result.epochs == 3
    assert Path(result.metrics_path).exists()
    assert (tmp_path / "run" / "loss.png").exists()
    assert (tmp_path / "run" / "predictions.png").exists()
    assert set(result.extra["final_metrics"]) == {"loss", "accuracy", "precision", "recall", "f1"}
    banner = capsys.readouterr().out
    assert "Dimensions    : [2, 8, 1]" in banner
    assert "Optimizer     : adam (lr=0.05)" in banner


def test_metrics_determinism(tmp_path):
    base = pipelines.load_preset("linear-vanilla")
    base = json.loads(json.dumps(base))
    base["train"]["epochs"] = 20
    base["train"]["run_dir"] = str(tmp_path / "det")

    first = pipelines.run_pipeline(base)
    second = pipelines.run_pipeline(base)

    with Path(first.metrics_path).open() as handle:
        lines = handle.readlines()
    assert len(lines) == 20
    values_first = [json.loads(line)["loss"] for line in lines]

    with open(second.metrics_path) as handle:
        lines_second = handle.readlines()
    values_second = [json.loads(line)["loss"] for line in lines_second]

    assert np.allclose(values_first, values_second, atol=1e-12)
    assert values_first[-1] < values_first[0]


def test_public_api_exports():
    assert netstep.__version__ == "0.1.0"
    assert netstep.evaluate_expression("2x", 3) == 6.0
    network = netstep.Network([netstep.LayerConfig(2, "relu"), netstep.LayerConfig(1, "linear")])
    assert network.describe() == [1, 2, 1]
