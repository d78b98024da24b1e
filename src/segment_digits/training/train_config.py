from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from typing import Final

import torch

from ..errors import InvalidOptions

OPTIMIZERS: Final[tuple[str, ...]] = ("adam", "adamw", "sgd")

# Alternate spellings accepted in override mappings
_ALIASES: Final[dict[str, str]] = {"epochs": "passes", "lr": "learning_rate"}


@dataclass(frozen=True)
class TrainOptions:
    # Full sweeps over the dataset
    passes: int = 1000
    # 1 = one optimizer step per example
    batch_size: int = 1
    learning_rate: float = 1e-3
    optimizer: str = "adam"
    # torch device string, e.g. "cpu", "cuda", "cuda:1", "mps"
    backend: str = "cpu"
    seed: int = 42
    shuffle: bool = True
    # Log cadence in passes; the last pass is always logged
    log_every: int = 100


def resolve_options(overrides: Mapping[str, object] | None = None) -> TrainOptions:
    """Apply `overrides` key by key onto the default options and validate the result."""
    opts = TrainOptions()
    if not overrides:
        return _validated(opts)
    known = {f.name: f for f in fields(TrainOptions)}
    changes: dict[str, object] = {}
    for raw_key, value in overrides.items():
        key = _ALIASES.get(raw_key, raw_key)
        if key not in known:
            raise InvalidOptions(f"unknown training option: {raw_key}")
        changes[key] = _coerce(key, value)
    return _validated(replace(opts, **changes))


def _coerce(key: str, value: object) -> object:
    if key in {"passes", "batch_size", "seed", "log_every"}:
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidOptions(f"{key} must be an int")
        return value
    if key == "learning_rate":
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidOptions("learning_rate must be a number")
        return float(value)
    if key == "shuffle":
        if not isinstance(value, bool):
            raise InvalidOptions("shuffle must be a bool")
        return value
    if not isinstance(value, str):
        raise InvalidOptions(f"{key} must be a string")
    return value.strip().lower() if key == "optimizer" else value.strip()


def _validated(opts: TrainOptions) -> TrainOptions:
    if opts.passes <= 0:
        raise InvalidOptions("passes must be > 0")
    if opts.batch_size <= 0:
        raise InvalidOptions("batch_size must be > 0")
    if opts.learning_rate <= 0.0:
        raise InvalidOptions("learning_rate must be > 0")
    if opts.log_every < 0:
        raise InvalidOptions("log_every must be >= 0")
    if opts.optimizer not in OPTIMIZERS:
        raise InvalidOptions(f"unsupported optimizer: {opts.optimizer}")
    resolve_device(opts.backend)
    return opts


def resolve_device(backend: str) -> torch.device:
    try:
        device = torch.device(backend)
    except RuntimeError:
        raise InvalidOptions(f"unknown backend: {backend}") from None
    if device.type == "cuda" and not torch.cuda.is_available():
        raise InvalidOptions("backend cuda requested but CUDA is not available")
    if device.type == "mps" and not torch.backends.mps.is_available():
        raise InvalidOptions("backend mps requested but MPS is not available")
    if device.type not in {"cpu", "cuda", "mps"}:
        raise InvalidOptions(f"unsupported backend: {backend}")
    return device
