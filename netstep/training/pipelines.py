"""Pipeline assembly: dataset -> network/engine -> trainer -> run artifacts."""

from __future__ import annotations

import json
import warnings
from copy import deepcopy
from pathlib import Path
from typing import Dict, List, Mapping, Sequence

import yaml

from ..core.types import LayerConfig, NetworkConfig, RunResult, as_layer_configs
from ..data import registry
from ..debug.engine import DebugEngine
from ..reporting.artifacts import resolve_run_dir, write_manifest
from ..reporting.metrics import CsvSink, JsonlSink
from ..reporting.plots import PlotAdapter
from ..reporting.summary import write_summary
from .losses import REGISTRY as LOSS_REGISTRY
from .network import Network
from .trainer import Trainer, TrainingControl

REQUIRED_SECTIONS = ("data", "model", "train")
OPTIMIZERS = ("vanilla", "sgd", "adam", "rmsprop")

_PRESETS: Dict[str, Mapping[str, object]] = {
    "linear-vanilla": {
        "data": {"name": "linear", "options": {"n_points": 30, "seed": 0}},
        "model": {
            "layers": [{"neurons": 1, "activation": "linear"}],
            "loss": "auto",
        },
        "train": {
            "epochs": 200,
            "lr": 0.01,
            "optimizer": "vanilla",
            "seed": 0,
            "enable_plots": False,
        },
    },
    "sine-adam": {
        "data": {"name": "sine", "options": {"n_points": 50, "seed": 0}},
        "model": {
            "layers": [
                {"neurons": 16, "activation": "tanh"},
                {"neurons": 16, "activation": "tanh"},
                {"neurons": 1, "activation": "linear"},
            ],
            "loss": "mse",
        },
        "train": {
            "epochs": 300,
            "lr": 0.01,
            "optimizer": "adam",
            "seed": 1,
            "enable_plots": False,
        },
    },
    "xor-classification": {
        "data": {"name": "xor", "options": {"points_per_blob": 20, "seed": 0}},
        "model": {
            "layers": [
                {"neurons": 8, "activation": "relu"},
                {"neurons": 1, "activation": "sigmoid"},
            ],
            "loss": "auto",
        },
        "train": {
            "epochs": 150,
            "lr": 0.05,
            "optimizer": "adam",
            "seed": 3,
            "enable_plots": False,
        },
    },
}

_PRESET_DIR = Path(__file__).resolve().parents[2] / "configs" / "presets"
_FILE_PRESETS_CACHE: Dict[str, Mapping[str, object]] | None = None


def _read_preset_file(path: Path) -> Mapping[str, object]:
    text = path.read_text()
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        data = yaml.safe_load(text) or {}
    elif suffix == ".json":
        data = json.loads(text or "{}")
    else:
        raise ValueError(f"Unsupported preset file type: {path.suffix}")

    if not isinstance(data, Mapping):
        raise TypeError(f"Preset {path.name} must decode to a mapping")
    missing = set(REQUIRED_SECTIONS) - set(data)
    if missing:
        raise KeyError(f"Preset {path.name} is missing required sections: {', '.join(sorted(missing))}")
    return data


def _file_presets() -> Dict[str, Mapping[str, object]]:
    global _FILE_PRESETS_CACHE
    if _FILE_PRESETS_CACHE is None:
        found: Dict[str, Mapping[str, object]] = {}
        if _PRESET_DIR.exists():
            for file in sorted(_PRESET_DIR.iterdir()):
                if file.suffix.lower() in {".yaml", ".yml", ".json"}:
                    found[file.stem] = json.loads(json.dumps(_read_preset_file(file)))
        _FILE_PRESETS_CACHE = found
    return {name: deepcopy(cfg) for name, cfg in _FILE_PRESETS_CACHE.items()}


def presets() -> Mapping[str, Mapping[str, object]]:
    combined: Dict[str, Mapping[str, object]] = {name: deepcopy(cfg) for name, cfg in _PRESETS.items()}
    combined.update(_file_presets())
    return combined


def load_preset(name: str) -> Mapping[str, object]:
    file_presets = _file_presets()
    if name in file_presets:
        return file_presets[name]
    if name not in _PRESETS:
        available = ", ".join(sorted(presets()))
        raise KeyError(f"Unknown preset {name!r}. Available presets: {available}")
    return deepcopy(_PRESETS[name])


class _MetricsCapture:
    def __init__(self) -> None:
        self.last: Mapping[str, float] = {}

    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        self.last = {k: float(v) for k, v in metrics.items()}


def build_layers(model_cfg: Mapping[str, object], d_out: int) -> List[LayerConfig]:
    """Layer list from the config; the last layer is resized to ``d_out`` with a warning."""

    layers = as_layer_configs(model_cfg.get("layers", []))
    if not layers:
        raise ValueError("model.layers must contain at least one layer")
    if layers[-1].neurons != d_out:
        warnings.warn(
            f"last layer width {layers[-1].neurons} replaced by dataset output size {d_out}",
            RuntimeWarning,
            stacklevel=2,
        )
        layers[-1] = LayerConfig(d_out, layers[-1].activation)
    return layers


def run_pipeline(
    config: Mapping[str, object], *, control: TrainingControl | None = None
) -> RunResult:
    for section in REQUIRED_SECTIONS:
        if section not in config:
            raise KeyError(f"Config is missing required section: {section}")
    data_cfg = dict(config["data"])
    model_cfg = dict(config["model"])
    train_cfg = dict(config["train"])

    dataset = registry.get(data_cfg["name"], **data_cfg.get("options", {}))
    data_spec = dataset.data_spec
    inputs, targets = dataset.tensors()

    seed = int(train_cfg.get("seed", 0))
    epochs = int(train_cfg.get("epochs", 1))
    lr = float(train_cfg.get("lr", 0.01))
    optimizer = str(train_cfg.get("optimizer", "vanilla")).lower()
    if optimizer not in OPTIMIZERS:
        raise ValueError(f"Unknown optimizer {optimizer!r}; expected one of {', '.join(OPTIMIZERS)}")
    loss = LOSS_REGISTRY.resolve(str(model_cfg.get("loss", "auto")), task_type=data_spec.task_type)
    layers = build_layers(model_cfg, data_spec.d_out)

    if optimizer == "vanilla":
        model: Network | DebugEngine = Network(layers, loss, data_spec.d_in, seed=seed)
        network = model
    else:
        model = DebugEngine(
            NetworkConfig(
                input_size=data_spec.d_in,
                output_size=data_spec.d_out,
                layers=layers,
                loss_function=loss.name,
                optimizer=optimizer,
                learning_rate=lr,
                epochs=epochs,
            ),
            seed=seed,
        )
        network = model.network

    run_dir = resolve_run_dir(train_cfg.get("run_dir"), f"{dataset.name}-{optimizer}")
    metrics_cfg = train_cfg.get("metrics", "default")
    metric_names = metrics_cfg if isinstance(metrics_cfg, str) else ",".join(map(str, metrics_cfg))

    _print_startup_summary(
        dataset_name=dataset.name,
        dims=network.describe(),
        activations=[layer.activation_type for layer in network.layers],
        loss=loss.name,
        optimizer=optimizer,
        lr=lr,
        param_count=network.parameter_count(),
    )

    jsonl = JsonlSink(run_dir / "metrics.jsonl", split="train", seed=seed)
    csv_sink = CsvSink(run_dir / "metrics.csv", split="train")
    plots = PlotAdapter(run_dir, enable_plots=bool(train_cfg.get("enable_plots", False)))
    capture = _MetricsCapture()

    trainer = Trainer(model, callbacks=[plots], control=control)
    result = trainer.run(
        inputs,
        targets,
        epochs,
        lr,
        task_type=data_spec.task_type,
        metric_names=metric_names,
        delay=float(train_cfg.get("delay", 0.0)),
        split_loggers={"train": [jsonl, csv_sink, capture]},
    )

    plots.plot_predictions(network, dataset)
    plots.close()

    safe = _safe_config(config, layers)
    manifest = write_manifest(
        run_dir / "manifest.json",
        config=safe,
        dataset_provenance=dataset.provenance,
        network={"dims": network.describe(), "parameters": network.parameter_count()},
    )
    summary_path = write_summary(
        jsonl.path, run_dir / "summary.json", tail=int(train_cfg.get("summary_tail", 32))
    )
    (run_dir / "config.json").write_text(json.dumps(safe, indent=2))

    return RunResult(
        epochs=result.epochs,
        final_loss=result.final_loss,
        metrics_path=str(jsonl.path),
        manifest_path=manifest,
        summary_path=summary_path,
        extra={
            "run_dir": str(run_dir),
            "final_metrics": dict(capture.last),
            "stopped": result.extra["stopped"],
            "resume_epoch": result.extra["resume_epoch"],
        },
    )


def _safe_config(config: Mapping[str, object], layers: Sequence[LayerConfig]) -> Mapping[str, object]:
    copied = json.loads(json.dumps(config))
    copied.setdefault("model", {})["layers"] = [
        {"neurons": layer.neurons, "activation": layer.activation} for layer in layers
    ]
    return copied


def _print_startup_summary(
    *,
    dataset_name: str,
    dims: Sequence[int],
    activations: Sequence[str],
    loss: str,
    optimizer: str,
    lr: float,
    param_count: int,
) -> None:
    print("=== netstep run ===")
    print(f"Dataset       : {dataset_name}")
    print(f"Dimensions    : {list(dims)}")
    print(f"Activations   : {', '.join(activations)}")
    print(f"Loss          : {loss}")
    print(f"Optimizer     : {optimizer} (lr={lr})")
    print(f"Parameters    : {param_count}")
    print("===================")


__all__ = ["build_layers", "load_preset", "presets", "run_pipeline"]
