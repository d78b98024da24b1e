from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import UTC, datetime
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

import segment_digits.api.app as app_mod
from segment_digits.api.app import create_app
from segment_digits.codec import codec_signature, encode
from segment_digits.config import Settings
from segment_digits.inference.engine import InferenceEngine
from segment_digits.inference.manifest import ModelManifest
from segment_digits.inference.types import PredictOutput
from segment_digits.model import build_model, fresh_parameters
from segment_digits.version import VersionInfo


def _settings(model_dir: Path) -> Settings:
    s = Settings.defaults()
    return replace(s, models=replace(s.models, model_dir=model_dir, active_model="seg_api"))


def _ready_engine(s: Settings) -> InferenceEngine:
    eng = InferenceEngine(s)
    man = ModelManifest(
        schema_version="v1",
        model_id="seg_api",
        hidden_layers=(8,),
        n_inputs=7,
        n_classes=10,
        version="1.0.0",
        created_at=datetime.now(UTC),
        codec_hash=codec_signature(),
        train_acc=1.0,
    )
    eng.activate(man, fresh_parameters(build_model([8]), seed=0))
    return eng


def test_health_ready_and_models_active_not_ready(tmp_path: Path) -> None:
    client = TestClient(create_app(_settings(tmp_path)))
    r1 = client.get("/healthz")
    assert r1.status_code == 200
    assert r1.json() == {"status": "ok"}
    r2 = client.get("/readyz")
    assert r2.json()["status"] == "not_ready"
    r3 = client.get("/v1/models/active")
    assert r3.json() == {"model_loaded": False, "model_id": None}


def test_version_route(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        app_mod,
        "get_version",
        lambda: VersionInfo(service="segment-digits", version="9.9.9", build=None, commit="abc"),
    )
    client = TestClient(create_app(_settings(tmp_path)))
    body = client.get("/version").json()
    assert body["service"] == "segment-digits"
    assert body["version"] == "9.9.9"
    assert body["commit"] == "abc"


def test_digit_pattern_and_decode(tmp_path: Path) -> None:
    client = TestClient(create_app(_settings(tmp_path)))
    r = client.get("/v1/digits/1")
    assert r.status_code == 200
    assert r.json() == {
        "digit": 1,
        "pattern": [0, 0, 1, 0, 0, 1, 0],
        "segments": ["upper_right", "lower_right"],
    }
    r2 = client.post("/v1/decode", json={"pattern": list(encode(9))})
    assert r2.status_code == 200
    assert r2.json() == {"digit": 9}


def test_codec_errors_map_to_status_codes(tmp_path: Path) -> None:
    client = TestClient(create_app(_settings(tmp_path)))
    r1 = client.get("/v1/digits/12", headers={"X-Request-ID": "rid-1"})
    assert r1.status_code == 400
    body = r1.json()
    assert body["code"] == "invalid_digit"
    assert body["request_id"] == "rid-1"
    assert r1.headers["X-Request-ID"] == "rid-1"

    r2 = client.post("/v1/decode", json={"pattern": [1, 1, 1]})
    assert r2.status_code == 400
    assert r2.json()["code"] == "invalid_pattern_length"

    r3 = client.post("/v1/decode", json={"pattern": [0, 0, 0, 0, 0, 0, 0]})
    assert r3.status_code == 422
    assert r3.json()["code"] == "unknown_pattern"


def test_svg_routes(tmp_path: Path) -> None:
    client = TestClient(create_app(_settings(tmp_path)))
    r = client.get("/v1/digits/8/svg", params={"transform": "scale(0.5)"})
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("image/svg+xml")
    assert r.text.startswith("<svg ")
    assert '<g transform="scale(0.5)">' in r.text

    r2 = client.post("/v1/render", json={"pattern": [2, 1, 0, 0, 0, 0, 0]})
    assert r2.status_code == 200
    assert r2.text.count("<path ") == 7

    r3 = client.post("/v1/render", json={"pattern": [1, 1]})
    assert r3.status_code == 400
    assert r3.json()["code"] == "invalid_pattern_length"


def test_render_colors_follow_settings(tmp_path: Path) -> None:
    s = _settings(tmp_path)
    s = replace(s, render=replace(s.render, active_fill="#123456"))
    client = TestClient(create_app(s))
    r = client.get("/v1/digits/8/svg")
    assert r.text.count('fill="#123456"') == 7


def test_predict_not_ready_returns_503(tmp_path: Path) -> None:
    client = TestClient(create_app(_settings(tmp_path)))
    r = client.get("/v1/predict/3")
    assert r.status_code == 503
    assert r.json()["code"] == "service_not_ready"


def test_predict_routes_with_loaded_model(tmp_path: Path) -> None:
    s = _settings(tmp_path)
    client = TestClient(create_app(s, engine_provider=lambda: _ready_engine(s)))
    r = client.get("/readyz")
    assert r.json() == {"status": "ready", "model_id": "seg_api"}

    r1 = client.get("/v1/predict/5")
    assert r1.status_code == 200
    body = r1.json()
    assert body["digit"] == 5
    assert body["model_id"] == "seg_api"
    assert len(body["probs"]) == 10
    assert abs(sum(body["probs"]) - 1.0) < 1e-5
    assert body["confidence"] == max(body["probs"])
    assert body["latency_ms"] >= 0

    r2 = client.post("/v1/predict", json={"pattern": [1, 0, 1, 1, 0, 1, 1]})
    assert r2.status_code == 200
    assert r2.json()["digit"] is None

    r3 = client.get("/v1/predict/42")
    assert r3.status_code == 400
    assert r3.json()["code"] == "invalid_digit"

    active = client.get("/v1/models/active").json()
    assert active["model_loaded"] is True
    assert active["arch"] == "dense-7-8-10"
    assert active["hidden_layers"] == [8]


def test_unexpected_error_returns_internal_error(tmp_path: Path) -> None:
    s = _settings(tmp_path)

    class _Broken(InferenceEngine):
        def predict(self, digit: int) -> PredictOutput:
            raise RuntimeError("boom")

    client = TestClient(
        create_app(s, engine_provider=lambda: _Broken(s)), raise_server_exceptions=False
    )
    r = client.get("/v1/predict/1")
    assert r.status_code == 500
    assert r.json()["code"] == "internal_error"


def test_decode_route_does_not_coerce_values(tmp_path: Path) -> None:
    client = TestClient(create_app(_settings(tmp_path)))
    for bad in (["1", 1, 1, 1, 1, 1, 1], [True] * 7, [1.0, 1, 1, 1, 1, 1, 1]):
        r = client.post("/v1/decode", json={"pattern": bad})
        assert r.status_code == 422
    r2 = client.post("/v1/render", json={"pattern": [1.0, 1, 1, 1, 1, 1, 1]})
    assert r2.status_code == 200


def test_predict_runs_off_the_event_loop(tmp_path: Path) -> None:
    s = _settings(tmp_path)
    seen: list[bool] = []

    class _LoopAware(InferenceEngine):
        def predict(self, digit: int) -> PredictOutput:
            try:
                asyncio.get_running_loop()
            except RuntimeError:
                seen.append(False)
            else:
                seen.append(True)
            return PredictOutput(
                digit=digit, predicted=digit, confidence=1.0, probs=(0.1,) * 10, model_id="m"
            )

    client = TestClient(create_app(s, engine_provider=lambda: _LoopAware(s)))
    assert client.get("/v1/predict/2").status_code == 200
    assert seen == [False]
