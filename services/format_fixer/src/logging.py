from opentelemetry import trace
import contextvars, hashlib, os, logging, time, json
from typing import Optional

SERVICE_NAME = os.getenv("SERVICE_NAME", "format-fixer")
ENV = os.getenv("ENVIRONMENT", "local")

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
_logger = logging.getLogger(SERVICE_NAME)

# Set for the duration of a bucket run; copied into worker threads by anyio
_run_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("run_id", default=None)

def set_run_id(run_id: Optional[str]) -> contextvars.Token:
    return _run_id.set(run_id)

def reset_run_id(token: contextvars.Token) -> None:
    _run_id.reset(token)

def hash_preview(data) -> str:
    """Digest + length stand-in for record bodies, which are never logged raw."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return f"sha256={hashlib.sha256(data).hexdigest()[:12]},len={len(data)}"

def jlog(event: str = "", severity: str = "INFO", **fields):
    span = trace.get_current_span()
    ctx = span.get_span_context() if span else None
    trace_id = f"{ctx.trace_id:032x}" if ctx and ctx.trace_id else None
    span_id = f"{ctx.span_id:016x}" if ctx and ctx.span_id else None

    record = {
        "event": event,
        "severity": severity,
        "service": SERVICE_NAME,
        "env": ENV,
        "ts": time.time(),
        "run_id": _run_id.get(),
        "trace_id": trace_id,
        "span_id": span_id,
    }
    record.update(fields)
    _logger.log(getattr(logging, severity, logging.INFO), json.dumps(record, ensure_ascii=False, default=str))
