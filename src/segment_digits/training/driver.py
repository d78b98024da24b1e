from __future__ import annotations

import random
import time
from collections.abc import Mapping
from pathlib import Path

import torch
from torch import Tensor
from torch.utils.data import DataLoader

from ..config import Settings
from ..logging import get_logger, log_event
from ..model import ModelSpec, Parameters, build_model, instantiate, load_into
from .artifacts import prune_model_artifacts, write_artifacts
from .dataset import SegmentDataset, build_training_set
from .loops import evaluate as _evaluate_module
from .loops import train_pass
from .optim import build_optimizer
from .progress import PassMetrics, ProgressEmitter, emit_progress, should_emit
from .train_config import TrainOptions, resolve_device, resolve_options


def train(
    model: ModelSpec,
    inputs: Tensor,
    targets: Tensor,
    options: Mapping[str, object] | None = None,
    *,
    emitter: ProgressEmitter | None = None,
) -> Parameters:
    """Fit `model` on (inputs, targets) and return the learned parameters.

    Defaults: categorical cross-entropy, Adam, 1000 passes, batch size 1 on
    CPU. Keys in `options` override those defaults (see `TrainOptions`).
    A model that fails to converge is not an error; the final accuracy is
    logged and the parameters are returned as-is.
    """
    params, _ = _fit(model, inputs, targets, resolve_options(options), emitter)
    return params


def _fit(
    model: ModelSpec,
    inputs: Tensor,
    targets: Tensor,
    opts: TrainOptions,
    emitter: ProgressEmitter | None,
) -> tuple[Parameters, float]:
    device = resolve_device(opts.backend)
    _check_shapes(model, inputs, targets)
    dataset = SegmentDataset(inputs, targets)
    _set_seed(opts.seed)
    loader: DataLoader[tuple[Tensor, Tensor]] = DataLoader(
        dataset,
        batch_size=opts.batch_size,
        shuffle=opts.shuffle,
        generator=torch.Generator().manual_seed(opts.seed),
    )
    module = instantiate(model).to(device)
    optimizer = build_optimizer(module, opts)

    log = get_logger()
    log.info(
        "training_started arch=%s passes=%d batch_size=%d optimizer=%s lr=%g backend=%s",
        model.arch,
        opts.passes,
        opts.batch_size,
        opts.optimizer,
        opts.learning_rate,
        device,
    )
    t_start = time.perf_counter()
    loss = _run_passes(module, loader, dataset, inputs, targets, device, optimizer, opts, emitter)
    acc = _evaluate_module(module, inputs, targets, device)
    log_event("training_finished", fields={"loss": float(loss), "accuracy": float(acc)})
    log.info(f"training_done time_s={time.perf_counter() - t_start:.2f}")
    if acc < 1.0:
        log.info(f"training_not_converged acc={acc:.4f}")
    return Parameters.from_module(module), acc


def _run_passes(
    module: torch.nn.Module,
    loader: DataLoader[tuple[Tensor, Tensor]],
    dataset: SegmentDataset,
    inputs: Tensor,
    targets: Tensor,
    device: torch.device,
    optimizer: torch.optim.Optimizer,
    opts: TrainOptions,
    emitter: ProgressEmitter | None,
) -> float:
    log = get_logger()
    loss = 0.0
    for p in range(1, opts.passes + 1):
        t0 = time.perf_counter()
        loss = train_pass(module, loader, device, optimizer)
        if not should_emit(p, opts.passes, opts.log_every):
            continue
        acc = _evaluate_module(module, inputs, targets, device)
        dt = time.perf_counter() - t0
        log.info(
            f"pass_done idx={p}/{opts.passes} examples={len(dataset)} "
            f"loss={loss:.4f} acc={acc:.4f} time_s={dt:.3f}"
        )
        emit_progress(
            emitter,
            PassMetrics(pass_idx=p, total_passes=opts.passes, loss=loss, accuracy=acc, time_s=dt),
        )
    return loss


def evaluate(model: ModelSpec, parameters: Parameters, inputs: Tensor, targets: Tensor) -> float:
    module = load_into(model, parameters)
    return _evaluate_module(module, inputs, targets, torch.device("cpu"))


def train_and_save(settings: Settings, *, emitter: ProgressEmitter | None = None) -> Path:
    """Train the configured architecture on the full digit set and write artifacts."""
    cfg = settings.training
    if settings.app.threads > 0:
        torch.set_num_threads(int(settings.app.threads))
    model = build_model(list(cfg.hidden_layers))
    inputs, targets = build_training_set()
    opts = resolve_options(cfg.to_options())
    params, acc = _fit(model, inputs, targets, opts, emitter)
    model_dir = write_artifacts(
        out_dir=settings.models.model_dir,
        model_id=settings.models.active_model,
        model=model,
        parameters=params,
        options=opts,
        train_acc=acc,
    )
    prune_model_artifacts(model_dir, settings.models.keep_runs)
    get_logger().info(f"artifact_written_to={model_dir}")
    return model_dir


def _check_shapes(model: ModelSpec, inputs: Tensor, targets: Tensor) -> None:
    if inputs.ndim != 2 or int(inputs.shape[1]) != model.n_inputs:
        raise ValueError(f"inputs must have shape (n, {model.n_inputs})")
    if targets.ndim != 2 or int(targets.shape[1]) != model.n_classes:
        raise ValueError(f"targets must have shape (n, {model.n_classes})")
    if int(inputs.shape[0]) != int(targets.shape[0]):
        raise ValueError("inputs and targets must have the same number of rows")


def _set_seed(seed: int) -> None:
    random.seed(seed)
    torch.manual_seed(seed)
