from __future__ import annotations

from dataclasses import dataclass

# Ten non-negative floats summing to 1, indexed by digit
ProbabilityDistribution = tuple[float, ...]


@dataclass(frozen=True)
class PredictOutput:
    # None when the request carried a raw pattern rather than a digit
    digit: int | None
    predicted: int
    confidence: float
    probs: ProbabilityDistribution
    model_id: str
