from __future__ import annotations

import logging
import pickle
import threading
import zipfile
from collections.abc import Sequence
from pathlib import Path
from typing import Final

import torch
from torch import Tensor

from ..codec import codec_signature, encode
from ..config import Settings
from ..errors import AppError, ErrorCode, status_for
from ..logging import get_logger
from ..model import ModelSpec, Parameters, load_into
from .manifest import ModelManifest
from .predictor import argmax, predict_pattern
from .types import PredictOutput

_LOAD_ERRORS: Final[tuple[type[BaseException], ...]] = (
    OSError,
    ValueError,
    RuntimeError,
    TypeError,
    EOFError,
    pickle.UnpicklingError,
    zipfile.BadZipFile,
)


class InferenceEngine:
    """Serves predictions from the active model artifact on disk."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._logger = get_logger()
        self._lock = threading.RLock()
        self._spec: ModelSpec | None = None
        self._params: Parameters | None = None
        self._manifest: ModelManifest | None = None

    @property
    def ready(self) -> bool:
        return self._params is not None and self._manifest is not None

    @property
    def model_id(self) -> str | None:
        return self._manifest.model_id if self._manifest is not None else None

    @property
    def manifest(self) -> ModelManifest | None:
        return self._manifest

    def activate(self, manifest: ModelManifest, parameters: Parameters) -> None:
        """Serve `parameters` directly; shapes are checked against the manifest."""
        spec = manifest.spec
        load_into(spec, parameters)
        with self._lock:
            self._spec = spec
            self._params = parameters
            self._manifest = manifest

    def predict(self, digit: int) -> PredictOutput:
        pattern = encode(digit)
        out = self._predict_impl(pattern)
        return PredictOutput(
            digit=digit,
            predicted=out.predicted,
            confidence=out.confidence,
            probs=out.probs,
            model_id=out.model_id,
        )

    def predict_pattern(self, pattern: Sequence[float]) -> PredictOutput:
        return self._predict_impl(pattern)

    def _predict_impl(self, pattern: Sequence[float]) -> PredictOutput:
        with self._lock:
            spec, params, man = self._spec, self._params, self._manifest
        if spec is None or params is None or man is None:
            raise AppError(
                ErrorCode.service_not_ready,
                status_for(ErrorCode.service_not_ready),
                "Model not loaded. Train a model first.",
            )
        probs = predict_pattern(spec, params, pattern)
        top = argmax(probs)
        return PredictOutput(
            digit=None,
            predicted=top,
            confidence=float(probs[top]),
            probs=probs,
            model_id=man.model_id,
        )

    def try_load_active(self) -> None:
        model_dir = self._settings.models.model_dir / self._settings.models.active_model
        manifest_path = model_dir / "manifest.json"
        model_path = model_dir / "model.pt"
        if not (manifest_path.exists() and model_path.exists()):
            return
        try:
            manifest = ModelManifest.from_path(manifest_path)
        except (OSError, ValueError):
            self._logger.info("manifest_load_failed path=%s", manifest_path)
            return
        if manifest.codec_hash != codec_signature():
            # Trained against a different segment table
            self._logger.info("codec_hash_mismatch model_id=%s", manifest.model_id)
            return
        try:
            sd = load_state_dict_file(model_path)
        except _LOAD_ERRORS:
            logging.getLogger("segment_digits").info("state_dict_load_failed")
            return
        try:
            self.activate(manifest, Parameters.from_state_dict(sd))
        except (ValueError, RuntimeError):
            self._logger.info("state_dict_invalid model_id=%s", manifest.model_id)
            return
        self._logger.info(
            "model_loaded model_id=%s hidden_layers=%s",
            manifest.model_id,
            ",".join(str(w) for w in manifest.hidden_layers) or "none",
        )


def load_state_dict_file(path: Path) -> dict[str, Tensor]:
    obj = torch.load(path.as_posix(), map_location=torch.device("cpu"), weights_only=True)
    if not isinstance(obj, dict):
        raise ValueError("state dict file did not contain a dict")
    out: dict[str, Tensor] = {}
    for k, v in obj.items():
        if isinstance(k, str) and torch.is_tensor(v):
            out[k] = v
        else:
            raise ValueError("invalid state dict entry")
    return out
