from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class PassMetrics:
    pass_idx: int
    total_passes: int
    loss: float
    accuracy: float
    time_s: float


class ProgressEmitter(Protocol):
    def emit(self, metrics: PassMetrics) -> None: ...


def should_emit(pass_idx: int, total_passes: int, cadence: int) -> bool:
    """First and last pass always; otherwise every `cadence` passes (<= 0 means every pass)."""
    if cadence <= 0:
        return True
    return pass_idx == 1 or pass_idx == total_passes or pass_idx % cadence == 0


def emit_progress(emitter: ProgressEmitter | None, metrics: PassMetrics) -> None:
    if emitter is None:
        return
    try:
        emitter.emit(metrics)
    except (RuntimeError, ValueError, TypeError) as exc:
        logging.getLogger("segment_digits").error("progress_emitter_failed error=%s", exc)
        raise
