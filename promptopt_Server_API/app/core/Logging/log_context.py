"""
Lightweight logging context helpers for propagating request/job identifiers.

Usage:

    from promptopt_Server_API.app.core.Logging.log_context import log_context, new_job_id

    job_id = new_job_id()
    with log_context(job_id=job_id, opt_component="orchestrator") as log:
        log.info("Starting work")
        ...

The context manager both contextualizes the base logger (so nested logs inherit
the fields) and returns a bound logger for convenience.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Any
import uuid

from loguru import logger


def new_job_id() -> str:
    """Return a new opaque job identifier (hex)."""
    return uuid.uuid4().hex


def new_request_id() -> str:
    """Return a new opaque request identifier (hex)."""
    return uuid.uuid4().hex


@contextmanager
def log_context(**fields: Any) -> Iterator[Any]:
    """Context manager that sets structured logging fields and yields a bound logger.

    - Adds fields to the logger context (via logger.contextualize) so that any
      logs emitted inside the context inherit them.
    - Yields a logger bound with the same fields for direct use.
    """
    clean = {k: v for k, v in fields.items() if v is not None}
    with logger.contextualize(**clean):
        bound = logger.bind(**clean)
        yield bound


def ensure_request_id(request: Any) -> str:
    """Return a request_id from a FastAPI Request or synthesize one.

    - Falls back to `X-Request-ID` header if present.
    - Generates a new request_id if none is found.
    """
    try:
        headers = getattr(request, "headers", {}) or {}
        req_id = headers.get("X-Request-ID") or headers.get("x-request-id")
        return str(req_id) if req_id else new_request_id()
    except Exception:
        return new_request_id()

