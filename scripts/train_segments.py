from __future__ import annotations

import argparse
from dataclasses import replace
from pathlib import Path

from segment_digits.codec import N_DIGITS
from segment_digits.config import Settings, parse_layers
from segment_digits.inference.engine import load_state_dict_file
from segment_digits.inference.manifest import ModelManifest
from segment_digits.inference.predictor import argmax, predict
from segment_digits.logging import get_logger, init_logging
from segment_digits.model import Parameters
from segment_digits.training.driver import train_and_save


def parse_args(argv: list[str] | None, base: Settings) -> Settings:
    t = base.training
    m = base.models
    ap = argparse.ArgumentParser(description="Train the 7-segment digit classifier")
    ap.add_argument(
        "--hidden-layers",
        default=",".join(str(w) for w in t.hidden_layers),
        help="Comma-separated hidden layer widths; empty for a direct 7->10 model",
    )
    ap.add_argument("--passes", type=int, default=t.passes)
    ap.add_argument("--batch-size", type=int, default=t.batch_size)
    ap.add_argument("--lr", type=float, default=t.learning_rate)
    ap.add_argument("--optimizer", choices=["adam", "adamw", "sgd"], default=t.optimizer)
    ap.add_argument("--backend", default=t.backend, help="Torch device, e.g. cpu or cuda")
    ap.add_argument("--seed", type=int, default=t.seed)
    ap.add_argument("--out-dir", default=m.model_dir.as_posix(), help="Models root directory")
    ap.add_argument("--model-id", default=m.active_model, help="Model id folder name")
    ap.add_argument("--keep-runs", type=int, default=m.keep_runs)
    a = ap.parse_args(argv)
    try:
        hidden = parse_layers(str(a.hidden_layers))
    except ValueError:
        ap.error(f"--hidden-layers must be comma-separated integers, got {a.hidden_layers!r}")
    return replace(
        base,
        training=replace(
            t,
            hidden_layers=hidden,
            passes=int(a.passes),
            batch_size=int(a.batch_size),
            learning_rate=float(a.lr),
            optimizer=str(a.optimizer),
            backend=str(a.backend),
            seed=int(a.seed),
        ),
        models=replace(
            m,
            model_dir=Path(str(a.out_dir)),
            active_model=str(a.model_id),
            keep_runs=int(a.keep_runs),
        ),
    )


def report_predictions(model_dir: Path) -> int:
    """Log the predicted class for every digit; returns how many are correct."""
    log = get_logger()
    manifest = ModelManifest.from_path(model_dir / "manifest.json")
    params = Parameters.from_state_dict(load_state_dict_file(model_dir / "model.pt"))
    correct = 0
    for d in range(N_DIGITS):
        probs = predict(manifest.spec, params, d)
        top = argmax(probs)
        correct += int(top == d)
        log.info(f"digit_prediction digit={d} predicted={top} confidence={probs[top]:.4f}")
    return correct


def main(argv: list[str] | None = None) -> int:
    init_logging()
    settings = parse_args(argv, Settings.load())
    model_dir = train_and_save(settings)
    correct = report_predictions(model_dir)
    get_logger().info(f"training_summary correct={correct}/{N_DIGITS} model_dir={model_dir}")
    return 0


if __name__ == "__main__":  # pragma: no cover - script entry
    raise SystemExit(main())
