from __future__ import annotations

import torch
from torch import Tensor
from torch.utils.data import Dataset

from ..codec import N_DIGITS, encode


def build_inputs() -> Tensor:
    """Segment patterns for digits 0-9, shape (10, 7), uint8, digit-ascending."""
    rows = [list(encode(d)) for d in range(N_DIGITS)]
    return torch.tensor(rows, dtype=torch.uint8)


def build_targets() -> Tensor:
    """One-hot targets, shape (10, 10), uint8; row i is 1 only at column i."""
    return torch.eye(N_DIGITS, dtype=torch.uint8)


def build_training_set() -> tuple[Tensor, Tensor]:
    return build_inputs(), build_targets()


class SegmentDataset(Dataset[tuple[Tensor, Tensor]]):
    """Row-aligned (pattern, one-hot) pairs as float32 tensors for a DataLoader."""

    def __init__(self, inputs: Tensor, targets: Tensor) -> None:
        if inputs.ndim != 2 or targets.ndim != 2:
            raise ValueError("inputs and targets must be 2-D")
        if int(inputs.shape[0]) != int(targets.shape[0]):
            raise ValueError("inputs and targets must have the same number of rows")
        self._x = inputs.to(dtype=torch.float32)
        self._y = targets.to(dtype=torch.float32)

    def __len__(self) -> int:
        return int(self._x.shape[0])

    def __getitem__(self, idx: int) -> tuple[Tensor, Tensor]:
        return self._x[idx], self._y[idx]
