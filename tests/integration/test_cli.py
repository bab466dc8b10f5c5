import json
from pathlib import Path

import pytest

from cli.main import main


def test_cli_basic_preset(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("NETSTEP_RUNS_DIR", raising=False)
    main(["--preset", "linear-vanilla", "--epochs", "3"])
    run_dir = Path("runs/linear-vanilla")
    assert (run_dir / "metrics.jsonl").exists()
    assert (run_dir / "manifest.json").exists()

    out = capsys.readouterr().out.strip().splitlines()
    assert out[0] == "=== netstep run ==="
    payload = json.loads(out[-1])
    assert payload["epochs"] == 3
    assert payload["summary"].endswith("summary.json")


def test_cli_runs_dir_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("NETSTEP_RUNS_DIR", str(tmp_path / "custom"))
    main(["--preset", "xor-classification", "--epochs", "2"])
    assert (tmp_path / "custom" / "xor-adam" / "metrics.csv").exists()


def test_cli_yaml_override_and_dump(tmp_path, capsys):
    override = tmp_path / "override.yaml"
    override.write_text("train:\n  epochs: 2\n  optimizer: sgd\n")
    dump = tmp_path / "resolved.json"
    main(
        [
            "--preset",
            "quadratic-rmsprop",
            "--config",
            str(override),
            "--seed",
            "9",
            "--run-dir",
            str(tmp_path / "run"),
            "--dump-config",
            str(dump),
        ]
    )
    resolved = json.loads(dump.read_text())
    assert resolved["train"]["epochs"] == 2
    assert resolved["train"]["optimizer"] == "sgd"
    assert resolved["train"]["seed"] == 9
    assert resolved["data"]["options"]["seed"] == 9
    assert resolved["data"]["name"] == "quadratic"

    payload = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert payload["run_dir"] == str(tmp_path / "run")


def test_cli_list_presets(capsys):
    with pytest.raises(SystemExit) as info:
        main(["--list-presets"])
    assert info.value.code == 0
    names = capsys.readouterr().out.split()
    assert {"linear-vanilla", "sine-adam", "xor-classification", "quadratic-rmsprop", "clusters-sgd"} <= set(names)
