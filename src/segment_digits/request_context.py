from __future__ import annotations

import contextvars

# Correlation id of the HTTP request being served; blank outside requests
request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "segment_digits_request_id", default=""
)


def current_request_id() -> str:
    return request_id_var.get()
