from __future__ import annotations

import json
import logging
import os
import sys
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Final, Literal, Protocol, TypedDict, runtime_checkable

from .request_context import current_request_id

_LOGGER_NAME: Final[str] = "segment_digits"
_ENV_PREFIX: Final[str] = "SEGMENT_DIGITS_"

_INT_FIELDS: Final[frozenset[str]] = frozenset({"latency_ms", "digit", "predicted"})
_FLOAT_FIELDS: Final[frozenset[str]] = frozenset({"confidence", "loss", "accuracy"})


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        rid = current_request_id()
        payload: dict[str, object] = {
            "ts": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if rid:
            payload["request_id"] = rid
        # Structured fields written by log_event
        extra = _parse_evt_fields(record.getMessage())
        if extra:
            if "event" in extra:
                payload["message"] = str(extra.pop("event"))
            payload.update(extra)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


_ANSI_RESET: Final[str] = "\x1b[0m"
_CYAN: Final[str] = "\x1b[36m"
_GREEN: Final[str] = "\x1b[92m"
_MAGENTA: Final[str] = "\x1b[95m"
_RED: Final[str] = "\x1b[91m"

# (threshold, tag, color) from most to least severe
_LEVEL_TAGS: Final[tuple[tuple[int, str, str], ...]] = (
    (logging.CRITICAL, "CRIT", _MAGENTA),
    (logging.ERROR, "ERROR", _RED),
    (logging.WARNING, "WARN", "\x1b[93m"),
    (logging.INFO, "INFO", _CYAN),
    (logging.NOTSET, "DEBUG", "\x1b[90m"),
)


def _paint(text: str, *codes: str) -> str:
    return "".join(codes) + text + _ANSI_RESET


class _ConsoleFormatter(logging.Formatter):
    """One colored line per record: ``[time] [LEVEL] event key=value ... tail``."""

    _DIM = "\x1b[2m"
    _BOLD = "\x1b[1m"

    def format(self, record: logging.LogRecord) -> str:
        event, pairs, tail = _split_event(record.getMessage())
        out: list[str] = [
            _paint(f"[{datetime.now(UTC).strftime('%H:%M:%S')}]", self._DIM),
            self._level(record.levelno),
        ]
        if record.name and record.name != _LOGGER_NAME:
            out.append(_paint(record.name, self._DIM))
        if event:
            out.append(_paint(event, self._BOLD, "\x1b[94m"))
        out.extend(f"{_paint(k, _CYAN)}={self._value(k, v)}" for k, v in pairs)
        if tail:
            out.append(tail)
        if record.exc_info:
            out.append("\n" + _paint(self.formatException(record.exc_info), _RED))
        rid = current_request_id()
        if rid:
            out.append(_paint(f"rid={rid}", self._DIM))
        return " ".join(out)

    def _level(self, levelno: int) -> str:
        for threshold, tag, color in _LEVEL_TAGS:
            if levelno >= threshold:
                return _paint(f"[{tag}]", self._BOLD, color)
        return f"[{logging.getLevelName(levelno)}]"

    @staticmethod
    def _value(key: str, raw: str) -> str:
        v = raw.strip()
        if key.endswith(("_ms", "_s")):
            return _paint(v, _MAGENTA)
        if _is_float_str(v) or key in {"acc", "accuracy", "train_acc"}:
            return _paint(v, _GREEN)
        return _paint(v, "\x1b[97m")


def _split_event(msg: str) -> tuple[str | None, list[tuple[str, str]], str | None]:
    """Split ``event k=v ... words`` (or an EVT line) into its parts."""
    if msg.startswith("EVT "):
        fields = _parse_evt_fields(msg)
        name = str(fields.pop("event", "event"))
        return name, [(k, str(v)) for k, v in fields.items()], None
    tokens = msg.split()
    event = tokens.pop(0) if tokens and "=" not in tokens[0] else None
    pairs: list[tuple[str, str]] = []
    rest: list[str] = []
    for tok in tokens:
        key, sep, val = tok.partition("=")
        if sep and key:
            pairs.append((key, val))
        else:
            rest.append(tok)
    return event, pairs, " ".join(rest) or None


class LogEvent(TypedDict, total=False):
    event: str
    latency_ms: int
    digit: int
    predicted: int
    confidence: float
    loss: float
    accuracy: float
    model_id: str


def log_event(event: str, fields: Mapping[str, object] | None = None) -> None:
    parts: list[str] = [f"event={event}"]
    if fields is not None:
        for key in ("latency_ms", "digit", "predicted"):
            val = fields.get(key)
            if isinstance(val, int) and not isinstance(val, bool):
                parts.append(f"{key}={val}")
        for key in ("confidence", "loss", "accuracy"):
            val = fields.get(key)
            if isinstance(val, float):
                parts.append(f"{key}={val:.6f}")
        model_id = fields.get("model_id")
        if isinstance(model_id, str) and model_id:
            # Values must stay a single token
            parts.append(f"model_id={model_id.replace(' ', '_')}")
    get_logger().info("EVT " + " ".join(parts))


def _parse_evt_fields(msg: str) -> dict[str, object]:
    if not msg.startswith("EVT "):
        return {}
    out: dict[str, object] = {}
    for tok in msg[4:].split():
        k, sep, v = tok.partition("=")
        key = k.strip()
        if not sep or not key:
            continue
        val: object = v
        if key in _INT_FIELDS and v.lstrip("-").isdigit():
            val = int(v)
        elif key in _FLOAT_FIELDS and _is_float_str(v):
            val = float(v)
        out[key] = val
    return out


def _is_float_str(s: str) -> bool:
    body = s[1:] if s.startswith("-") else s
    if not body:
        return False
    return body.count(".") <= 1 and body.replace(".", "", 1).isdigit()


LogStyle = Literal["json", "pretty", "auto"]


def _env_level() -> int:
    v = os.environ.get(_ENV_PREFIX + "LOG_LEVEL")
    if not v:
        return logging.INFO
    return {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }.get(v.strip().upper(), logging.INFO)


def init_logging(style: LogStyle = "auto") -> logging.Logger:
    """Initialize or refresh the project logger.

    Rebinds the handler to the current ``sys.stdout`` on every call so that
    replaced streams (pytest capture) are honored, and never stacks handlers.
    """
    logger = logging.getLogger(_LOGGER_NAME)
    lvl = _env_level()
    logger.setLevel(lvl)
    logger.propagate = _env_truthy(_ENV_PREFIX + "LOG_PROPAGATE")

    for h in list(logger.handlers):
        if isinstance(h, logging.StreamHandler):
            logger.removeHandler(h)

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(_choose_formatter(style))
    handler.setLevel(lvl)
    logger.addHandler(handler)
    return logger


def get_logger() -> logging.Logger:
    return logging.getLogger(_LOGGER_NAME)


def _env_truthy(name: str) -> bool:
    v = os.environ.get(name)
    if not v:
        return False
    return v.strip().lower() in {"1", "true", "yes", "on", "y"}


@runtime_checkable
class _HasIsatty(Protocol):
    def isatty(self) -> bool: ...


def _choose_formatter(style: LogStyle = "auto") -> logging.Formatter:
    if style == "json":
        return _JsonFormatter()
    if style == "pretty":
        return _ConsoleFormatter()

    force_json = _env_truthy(_ENV_PREFIX + "LOG_JSON")
    force_pretty = _env_truthy(_ENV_PREFIX + "LOG_PRETTY")
    out_stream = sys.stdout
    is_tty = isinstance(out_stream, _HasIsatty) and bool(out_stream.isatty())
    if not force_json and (force_pretty or is_tty):
        return _ConsoleFormatter()
    return _JsonFormatter()
