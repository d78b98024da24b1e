from __future__ import annotations

from .dataset import SegmentDataset, build_inputs, build_targets, build_training_set
from .driver import evaluate, train, train_and_save
from .train_config import TrainOptions, resolve_options

__all__ = [
    "SegmentDataset",
    "TrainOptions",
    "build_inputs",
    "build_targets",
    "build_training_set",
    "evaluate",
    "resolve_options",
    "train",
    "train_and_save",
]
