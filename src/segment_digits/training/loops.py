from __future__ import annotations

from collections.abc import Iterable
from typing import Final, Protocol

import torch
from torch import Tensor
from torch.optim.optimizer import Optimizer

# Probabilities are clipped to [eps, 1 - eps] before the log
_EPSILON: Final[float] = 1e-7


class _TrainableModel(Protocol):
    def train(self) -> object: ...  # pragma: no cover - typing only
    def eval(self) -> object: ...  # pragma: no cover - typing only
    def __call__(self, x: Tensor) -> Tensor: ...  # pragma: no cover - typing only


def categorical_crossentropy(probs: Tensor, targets: Tensor) -> Tensor:
    """Mean cross-entropy between softmax outputs and one-hot targets."""
    clipped = probs.clamp(_EPSILON, 1.0 - _EPSILON)
    return -(targets * torch.log(clipped)).sum(dim=-1).mean()


def train_pass(
    model: _TrainableModel,
    loader: Iterable[tuple[Tensor, Tensor]],
    device: torch.device,
    optimizer: Optimizer,
) -> float:
    """One sweep over `loader`; returns the example-weighted mean loss."""
    model.train()
    total = 0
    loss_sum = 0.0
    for x, y in loader:
        x = x.to(device)
        y = y.to(device)
        optimizer.zero_grad(set_to_none=True)
        probs = model(x)
        loss = categorical_crossentropy(probs, y)
        torch.autograd.backward((loss,))
        optimizer.step()
        n = int(y.size(0))
        total += n
        loss_sum += float(loss.item()) * n
    return loss_sum / total if total > 0 else 0.0


def evaluate(model: _TrainableModel, inputs: Tensor, targets: Tensor, device: torch.device) -> float:
    """Fraction of rows whose most probable class matches the one-hot target."""
    model.eval()
    with torch.no_grad():
        probs = model(inputs.to(device=device, dtype=torch.float32))
        preds = probs.argmax(dim=1).cpu()
    labels = targets.argmax(dim=1).cpu()
    total = int(labels.size(0))
    correct = int((preds == labels).sum().item())
    return (correct / total) if total > 0 else 0.0
