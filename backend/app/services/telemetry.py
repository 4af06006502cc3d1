import time
import json
import logging
from contextlib import contextmanager
from typing import Optional
from functools import wraps

from fastapi import HTTPException

logger = logging.getLogger("examprep.telemetry")


def emit_event(event: str, *, route: str, version: str, provider: Optional[str] = None,
               documents: Optional[int] = None, error_type: Optional[str] = None,
               latency_ms: Optional[int] = None, ok: Optional[bool] = None):
    payload = {
        "event": event,
        "route": route,
        "version": version,
        "provider": provider,
        "documents": documents,
        "error_type": error_type,
        "latency_ms": latency_ms,
        "ok": ok,
        "ts": time.time(),
    }
    # log as single-line JSON for easy parsing in prod
    logger.info("telemetry=%s", json.dumps(payload, separators=(",", ":")))


def _error_type(e: Exception) -> str:
    # routes turn pipeline errors into HTTPException; report the pipeline error
    if isinstance(e, HTTPException) and e.__cause__ is not None:
        return e.__cause__.__class__.__name__
    return e.__class__.__name__


@contextmanager
def track(event: str, *, route: str, version: str, **fields):
    """Time the enclosed block and emit one event with its outcome."""
    t0 = time.time()
    ok = True
    err = None
    try:
        yield
    except Exception as e:
        ok = False
        err = _error_type(e)
        raise
    finally:
        emit_event(event, route=route, version=version, error_type=err,
                   latency_ms=int((time.time() - t0) * 1000), ok=ok, **fields)


def instrument(route: str, version: str):
    def deco(fn):
        @wraps(fn)
        async def wrapped(*args, **kwargs):
            with track("api_call", route=route, version=version):
                return await fn(*args, **kwargs)
        return wrapped
    return deco
