from __future__ import annotations

from pydantic import StrictInt
from pydantic.dataclasses import dataclass as pydantic_dataclass


@pydantic_dataclass(frozen=True)
class DecodeRequest:
    # No coercion: "1", true and 1.0 are rejected
    pattern: list[StrictInt]


@pydantic_dataclass(frozen=True)
class RenderRequest:
    # Any value other than 1 renders the segment inactive
    pattern: list[float]
    transform: str | None = None


@pydantic_dataclass(frozen=True)
class PatternPredictRequest:
    pattern: list[float]


@pydantic_dataclass(frozen=True)
class PatternResponse:
    digit: int
    pattern: list[int]
    segments: list[str]


@pydantic_dataclass(frozen=True)
class DecodeResponse:
    digit: int


@pydantic_dataclass(frozen=True)
class PredictResponse:
    digit: int | None
    predicted: int
    confidence: float
    probs: list[float]
    model_id: str
    latency_ms: int
