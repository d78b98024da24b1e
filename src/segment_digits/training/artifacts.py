from __future__ import annotations

import json
import logging
import secrets
import shutil
from datetime import UTC, datetime
from pathlib import Path
from time import time_ns

import torch

from ..codec import codec_signature
from ..inference.manifest import SCHEMA_VERSION
from ..model import ModelSpec, Parameters
from .train_config import TrainOptions


def write_artifacts(
    *,
    out_dir: Path,
    model_id: str,
    model: ModelSpec,
    parameters: Parameters,
    options: TrainOptions,
    train_acc: float,
) -> Path:
    """Save a run snapshot and refresh the canonical model.pt / manifest.json."""
    model_dir = out_dir / model_id
    model_dir.mkdir(parents=True, exist_ok=True)
    run_id = _new_run_id()
    model_unique = model_dir / f"model-{run_id}.pt"
    manifest_unique = model_dir / f"manifest-{run_id}.json"
    torch.save(parameters.state_dict(), model_unique.as_posix())
    logging.getLogger("segment_digits").info(
        f"model_saved run_id={run_id} size_bytes={model_unique.stat().st_size}"
    )
    manifest = {
        "schema_version": SCHEMA_VERSION,
        "model_id": model_id,
        "hidden_layers": list(model.hidden_layers),
        "n_inputs": model.n_inputs,
        "n_classes": model.n_classes,
        "version": "1.0.0",
        "created_at": datetime.now(UTC).isoformat(),
        "codec_hash": codec_signature(),
        "train_acc": float(train_acc),
        # Run metadata
        "run_id": run_id,
        "passes": int(options.passes),
        "batch_size": int(options.batch_size),
        "learning_rate": float(options.learning_rate),
        "optimizer": options.optimizer,
        "backend": options.backend,
        "seed": int(options.seed),
    }
    manifest_unique.write_text(json.dumps(manifest), encoding="utf-8")
    shutil.copy2(model_unique, model_dir / "model.pt")
    shutil.copy2(manifest_unique, model_dir / "manifest.json")
    return model_dir


def _new_run_id() -> str:
    # UTC second, then nanoseconds within it, then a random suffix
    ns = time_ns()
    run_ts = datetime.fromtimestamp(ns // 1_000_000_000, UTC).strftime("%Y%m%d-%H%M%S")
    return f"{run_ts}-{ns % 1_000_000_000:09d}-{secrets.token_hex(3)}"


def _run_id_from_name(name: str) -> str | None:
    """Run id of a snapshot file (model-<id>.pt / manifest-<id>.json), None otherwise."""
    for prefix, suffix in (("model-", ".pt"), ("manifest-", ".json")):
        if name.startswith(prefix) and name.endswith(suffix):
            rid = name[len(prefix) : -len(suffix)]
            return rid or None
    return None


def prune_model_artifacts(model_dir: Path, keep_runs: int) -> list[Path]:
    """Delete snapshot files of all but the newest `keep_runs` runs.

    Canonical model.pt / manifest.json are never touched. Run ids start with a
    zero-padded UTC timestamp down to the nanosecond, so lexicographic order is
    chronological.
    """
    keep = max(0, int(keep_runs))
    try:
        entries = list(model_dir.iterdir())
    except OSError as exc:
        logging.getLogger("segment_digits").error(
            "prune_list_failed dir=%s error=%s", model_dir, exc
        )
        raise
    run_ids = sorted({rid for p in entries if (rid := _run_id_from_name(p.name)) is not None})
    keep_set = set(run_ids[-keep:]) if keep > 0 else set()
    deleted: list[Path] = []
    for p in entries:
        rid = _run_id_from_name(p.name)
        if rid is None or rid in keep_set:
            continue
        try:
            p.unlink()
        except OSError as exc:
            logging.getLogger("segment_digits").error(
                "prune_delete_failed path=%s error=%s", p, exc
            )
            raise
        deleted.append(p)
    return deleted
