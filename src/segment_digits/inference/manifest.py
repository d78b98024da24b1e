from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Final

from ..codec import N_DIGITS, N_SEGMENTS
from ..model import ModelSpec

SCHEMA_VERSION: Final[str] = "v1"
_ALLOWED_SCHEMA_VERSIONS: Final[tuple[str, ...]] = (SCHEMA_VERSION,)


@dataclass(frozen=True)
class ModelManifest:
    schema_version: str
    model_id: str
    hidden_layers: tuple[int, ...]
    n_inputs: int
    n_classes: int
    version: str
    created_at: datetime
    codec_hash: str
    train_acc: float

    @property
    def spec(self) -> ModelSpec:
        return ModelSpec(
            hidden_layers=self.hidden_layers, n_inputs=self.n_inputs, n_classes=self.n_classes
        )

    @staticmethod
    def from_path(path: Path) -> ModelManifest:
        return ModelManifest.from_json(path.read_text(encoding="utf-8"))

    @staticmethod
    def from_json(s: str) -> ModelManifest:
        obj: object = json.loads(s)
        if not isinstance(obj, dict):
            raise ValueError("manifest must be a JSON object")
        return ModelManifest.from_dict({str(k): v for k, v in obj.items()})

    @staticmethod
    def from_dict(d: dict[str, object]) -> ModelManifest:
        created_at_str = str(d["created_at"]) if "created_at" in d else ""
        created = datetime.fromisoformat(created_at_str) if created_at_str else datetime.now()
        n_inputs = int(str(d.get("n_inputs", N_SEGMENTS)))
        n_classes = int(str(d.get("n_classes", N_DIGITS)))
        train_acc = float(str(d.get("train_acc", 0.0)))
        if n_inputs != N_SEGMENTS:
            raise ValueError(f"n_inputs must be {N_SEGMENTS}")
        if n_classes != N_DIGITS:
            raise ValueError(f"n_classes must be {N_DIGITS}")
        if not (0.0 <= train_acc <= 1.0):
            raise ValueError("train_acc must be within [0,1]")
        hidden = _hidden_layers(d.get("hidden_layers"))
        schema_version = str(d.get("schema_version", "")).strip()
        model_id = str(d.get("model_id", "")).strip()
        version = str(d.get("version", "")).strip()
        codec_hash = str(d.get("codec_hash", "")).strip()
        if not schema_version or not model_id or not version or not codec_hash:
            raise ValueError("manifest is missing required fields")
        if schema_version not in _ALLOWED_SCHEMA_VERSIONS:
            raise ValueError("unsupported manifest schema version")
        return ModelManifest(
            schema_version=schema_version,
            model_id=model_id,
            hidden_layers=hidden,
            n_inputs=n_inputs,
            n_classes=n_classes,
            version=version,
            created_at=created,
            codec_hash=codec_hash,
            train_acc=train_acc,
        )


def _hidden_layers(raw: object) -> tuple[int, ...]:
    if not isinstance(raw, list):
        raise ValueError("hidden_layers must be a list")
    out: list[int] = []
    for v in raw:
        if isinstance(v, bool) or not isinstance(v, int) or v <= 0:
            raise ValueError("hidden_layers entries must be positive integers")
        out.append(v)
    return tuple(out)
