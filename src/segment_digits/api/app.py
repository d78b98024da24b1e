from __future__ import annotations

import time
from collections.abc import Callable
from typing import cast

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from ..codec import decode, encode, lit_segments
from ..config import Settings
from ..errors import AppError, ErrorCode, new_error
from ..inference.engine import InferenceEngine
from ..inference.types import PredictOutput
from ..logging import init_logging, log_event
from ..middleware import RequestIdMiddleware
from ..render import RenderStyle, render_svg
from ..request_context import current_request_id
from ..version import get_version
from .schemas import (
    DecodeRequest,
    DecodeResponse,
    PatternPredictRequest,
    PatternResponse,
    PredictResponse,
    RenderRequest,
)

_SVG_MEDIA_TYPE = "image/svg+xml"


async def _handle_app_error(_: Request, exc: Exception) -> JSONResponse:
    # Registered for AppError only
    err = cast(AppError, exc)
    body = new_error(err.code, current_request_id(), message=err.message)
    return JSONResponse(status_code=err.http_status, content=body.to_dict())


async def _handle_unexpected(_: Request, exc: Exception) -> JSONResponse:
    body = new_error(ErrorCode.internal_error, current_request_id())
    return JSONResponse(status_code=500, content=body.to_dict())


def _create_engine(settings: Settings) -> InferenceEngine:
    engine = InferenceEngine(settings)
    engine.try_load_active()
    return engine


def _register_basic(app: FastAPI, engine: InferenceEngine) -> None:
    async def _healthz() -> dict[str, str]:
        return {"status": "ok"}

    async def _readyz() -> dict[str, object]:
        if engine.ready:
            return {"status": "ready", "model_id": engine.model_id}
        return {"status": "not_ready", "model_loaded": False, "model_id": None}

    async def _version() -> dict[str, object]:
        v = get_version()
        return {"service": v.service, "version": v.version, "build": v.build, "commit": v.commit}

    async def _model_active() -> dict[str, object]:
        man = engine.manifest
        if man is None:
            return {"model_loaded": False, "model_id": None}
        return {
            "model_loaded": True,
            "model_id": man.model_id,
            "hidden_layers": list(man.hidden_layers),
            "arch": man.spec.arch,
            "version": man.version,
            "created_at": man.created_at.isoformat(),
            "schema_version": man.schema_version,
            "train_acc": man.train_acc,
        }

    app.add_api_route("/healthz", _healthz, methods=["GET"])
    app.add_api_route("/readyz", _readyz, methods=["GET"])
    app.add_api_route("/version", _version, methods=["GET"])
    app.add_api_route("/v1/models/active", _model_active, methods=["GET"])


def _register_codec(app: FastAPI) -> None:
    async def _digit_pattern(digit: int) -> PatternResponse:
        pattern = encode(digit)
        return PatternResponse(
            digit=digit, pattern=list(pattern), segments=list(lit_segments(pattern))
        )

    async def _decode_pattern(body: DecodeRequest) -> DecodeResponse:
        return DecodeResponse(digit=decode(body.pattern))

    app.add_api_route(
        "/v1/digits/{digit}", _digit_pattern, methods=["GET"], response_model=PatternResponse
    )
    app.add_api_route(
        "/v1/decode", _decode_pattern, methods=["POST"], response_model=DecodeResponse
    )


def _register_render(app: FastAPI, provide_style: Callable[[], RenderStyle]) -> None:
    async def _digit_svg(digit: int, transform: str | None = None) -> Response:
        svg = render_svg(encode(digit), transform, style=provide_style())
        return Response(content=svg, media_type=_SVG_MEDIA_TYPE)

    async def _render_pattern(body: RenderRequest) -> Response:
        svg = render_svg(body.pattern, body.transform, style=provide_style())
        return Response(content=svg, media_type=_SVG_MEDIA_TYPE)

    app.add_api_route("/v1/digits/{digit}/svg", _digit_svg, methods=["GET"])
    app.add_api_route("/v1/render", _render_pattern, methods=["POST"])


def _register_predict(app: FastAPI, provide_engine: Callable[[], InferenceEngine]) -> None:
    def _respond(out: PredictOutput, t0: float) -> PredictResponse:
        dt_ms = int((time.perf_counter() - t0) * 1000.0)
        fields: dict[str, object] = {
            "latency_ms": dt_ms,
            "predicted": int(out.predicted),
            "confidence": float(out.confidence),
            "model_id": out.model_id,
        }
        if out.digit is not None:
            fields["digit"] = int(out.digit)
        log_event("predict_finished", fields=fields)
        return PredictResponse(
            digit=out.digit,
            predicted=int(out.predicted),
            confidence=float(out.confidence),
            probs=[float(p) for p in out.probs],
            model_id=out.model_id,
            latency_ms=dt_ms,
        )

    # Plain def: FastAPI runs these in its threadpool, off the event loop
    def _predict_digit(digit: int) -> PredictResponse:
        t0 = time.perf_counter()
        return _respond(provide_engine().predict(digit), t0)

    def _predict_pattern(body: PatternPredictRequest) -> PredictResponse:
        t0 = time.perf_counter()
        return _respond(provide_engine().predict_pattern(body.pattern), t0)

    app.add_api_route(
        "/v1/predict/{digit}", _predict_digit, methods=["GET"], response_model=PredictResponse
    )
    app.add_api_route(
        "/v1/predict", _predict_pattern, methods=["POST"], response_model=PredictResponse
    )


def create_app(
    settings: Settings | None = None,
    engine_provider: Callable[[], InferenceEngine] | None = None,
) -> FastAPI:
    """Application factory.

    `engine_provider` replaces the artifact-backed engine, primarily for tests.
    """
    s = settings or Settings.load()
    init_logging()
    app = FastAPI(title="segment-digits")
    app.add_middleware(RequestIdMiddleware)
    app.add_exception_handler(AppError, _handle_app_error)
    app.add_exception_handler(Exception, _handle_unexpected)

    engine: InferenceEngine = (
        engine_provider() if engine_provider is not None else _create_engine(s)
    )
    style = RenderStyle(
        active_fill=s.render.active_fill,
        inactive_fill=s.render.inactive_fill,
        stroke=s.render.stroke,
    )

    def _provide_engine() -> InferenceEngine:
        return engine

    def _provide_style() -> RenderStyle:
        return style

    app.state.provide_engine = _provide_engine

    _register_basic(app, engine)
    _register_codec(app)
    _register_render(app, _provide_style)
    _register_predict(app, _provide_engine)
    return app


# Default ASGI app, e.g. `uvicorn segment_digits.api.app:app`
app = create_app()
