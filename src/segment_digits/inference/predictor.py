from __future__ import annotations

from collections.abc import Sequence

import torch

from ..codec import check_length, encode
from ..model import ModelSpec, Parameters, load_into
from .types import ProbabilityDistribution


def predict(model: ModelSpec, parameters: Parameters, digit: int) -> ProbabilityDistribution:
    """Class probabilities the trained network assigns to the pattern of `digit`."""
    return predict_pattern(model, parameters, encode(digit))


def predict_pattern(
    model: ModelSpec, parameters: Parameters, pattern: Sequence[float]
) -> ProbabilityDistribution:
    check_length(pattern)
    module = load_into(model, parameters)
    module.eval()
    x = torch.tensor([[float(v) for v in pattern]], dtype=torch.float32)
    with torch.no_grad():
        probs = module(x)[0]
    return tuple(float(p) for p in probs.tolist())


def argmax(probs: ProbabilityDistribution) -> int:
    top_idx = 0
    best = probs[0]
    for i in range(1, len(probs)):
        if probs[i] > best:
            best = probs[i]
            top_idx = i
    return top_idx
