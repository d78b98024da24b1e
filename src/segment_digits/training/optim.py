from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Protocol

from torch.nn.parameter import Parameter
from torch.optim.adam import Adam
from torch.optim.adamw import AdamW
from torch.optim.sgd import SGD


class _TrainableModel(Protocol):
    def parameters(self) -> Iterable[Parameter]: ...  # pragma: no cover - typing only


class _Cfg(Protocol):
    @property
    def learning_rate(self) -> float: ...

    @property
    def optimizer(self) -> str: ...


if TYPE_CHECKING:
    from torch.optim.optimizer import Optimizer


def build_optimizer(model: _TrainableModel, cfg: _Cfg) -> Optimizer:
    if cfg.optimizer == "sgd":
        return SGD(model.parameters(), lr=cfg.learning_rate, momentum=0.9)
    if cfg.optimizer == "adamw":
        return AdamW(model.parameters(), lr=cfg.learning_rate)
    return Adam(model.parameters(), lr=cfg.learning_rate)
