"""Dense classifier architecture and learned-parameter snapshots.

Architecture (`ModelSpec`) and weights (`Parameters`) are separate immutable
values; the same spec can be paired with any number of snapshots.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Final

import torch
from torch import Tensor, nn

from .codec import N_DIGITS, N_SEGMENTS
from .errors import InvalidArchitecture

_ARCH_PREFIX: Final[str] = "dense"


@dataclass(frozen=True)
class ModelSpec:
    hidden_layers: tuple[int, ...]
    n_inputs: int = N_SEGMENTS
    n_classes: int = N_DIGITS

    @property
    def depth(self) -> int:
        """Number of hidden layers."""
        return len(self.hidden_layers)

    @property
    def layer_widths(self) -> tuple[int, ...]:
        return (self.n_inputs, *self.hidden_layers, self.n_classes)

    @property
    def total_params(self) -> int:
        widths = self.layer_widths
        return sum(w_in * w_out + w_out for w_in, w_out in zip(widths, widths[1:], strict=False))

    @property
    def arch(self) -> str:
        return "-".join([_ARCH_PREFIX, *(str(w) for w in self.layer_widths)])


def build_model(hidden_layer_sizes: Sequence[int]) -> ModelSpec:
    if isinstance(hidden_layer_sizes, (str, bytes)) or not isinstance(
        hidden_layer_sizes, Sequence
    ):
        raise InvalidArchitecture("hidden layer sizes must be a sequence of integers")
    sizes: list[int] = []
    for i, size in enumerate(hidden_layer_sizes):
        if isinstance(size, bool) or not isinstance(size, int):
            raise InvalidArchitecture(f"hidden layer {i} size must be an int")
        if size <= 0:
            raise InvalidArchitecture(f"hidden layer {i} size must be positive, got {size}")
        sizes.append(size)
    return ModelSpec(hidden_layers=tuple(sizes))


def instantiate(spec: ModelSpec) -> nn.Sequential:
    """Realize `spec` as a torch module: (Linear, ReLU)*, Linear, Softmax."""
    layers: list[nn.Module] = []
    prev = spec.n_inputs
    for width in spec.hidden_layers:
        layers.append(nn.Linear(prev, width))
        layers.append(nn.ReLU())
        prev = width
    layers.append(nn.Linear(prev, spec.n_classes))
    layers.append(nn.Softmax(dim=-1))
    return nn.Sequential(*layers)


@dataclass(frozen=True, eq=False)
class Parameters:
    """Read-only snapshot of learned weights, keyed by state-dict name.

    The stored tensors never leave this object; every accessor hands out
    clones, so in-place edits by callers cannot reach the snapshot.
    """

    _frozen: Mapping[str, Tensor] = field(repr=False)

    @staticmethod
    def from_module(module: nn.Module) -> Parameters:
        return Parameters.from_state_dict(module.state_dict())

    @staticmethod
    def from_state_dict(sd: Mapping[str, Tensor]) -> Parameters:
        frozen = {str(k): v.detach().cpu().clone() for k, v in sd.items()}
        return Parameters(_frozen=MappingProxyType(frozen))

    @property
    def tensors(self) -> Mapping[str, Tensor]:
        return MappingProxyType(self.state_dict())

    @property
    def shapes(self) -> dict[str, tuple[int, ...]]:
        return {k: tuple(v.shape) for k, v in self._frozen.items()}

    def state_dict(self) -> dict[str, Tensor]:
        return {k: v.clone() for k, v in self._frozen.items()}

    @property
    def n_values(self) -> int:
        return sum(int(v.numel()) for v in self._frozen.values())


def load_into(spec: ModelSpec, params: Parameters) -> nn.Sequential:
    """Instantiate `spec` and load `params` strictly; shape mismatches raise ValueError."""
    module = instantiate(spec)
    expected = {k: tuple(v.shape) for k, v in module.state_dict().items()}
    got = params.shapes
    if expected != got:
        raise ValueError(f"parameters do not match architecture {spec.arch}")
    module.load_state_dict(params.state_dict())
    return module


def fresh_parameters(spec: ModelSpec, seed: int | None = None) -> Parameters:
    """Untrained parameters for `spec`, optionally seeded."""
    if seed is not None:
        torch.manual_seed(seed)
    return Parameters.from_module(instantiate(spec))
