"""
Observability for the insurance engine: structured logs, call metrics
and health probes.

Logging is configured from the environment:
- WEATHERCOVER_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
- WEATHERCOVER_LOG_FORMAT: json or text (json when WEATHERCOVER_PRODUCTION is set)

Usage:
    from weathercover.observability import get_logger

    logger = get_logger(__name__)
    logger.info("Claim settled", claim_id=claim_id, payout=payout)
"""

import json
import logging
import os
import sys
import time
import uuid
from collections import Counter, deque
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Deque, Dict, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

# Populated per HTTP request; empty for direct engine use.
request_id_var: ContextVar[str] = ContextVar("request_id", default="")
caller_id_var: ContextVar[str] = ContextVar("caller_id", default="")

_RESERVED_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

_LATENCY_WINDOW = 1000


# ============================================================
# SETTINGS
# ============================================================

@dataclass(frozen=True)
class LogSettings:
    level: int
    json_output: bool

    @classmethod
    def from_env(cls) -> "LogSettings":
        level_name = os.environ.get("WEATHERCOVER_LOG_LEVEL", "INFO").upper()
        level = logging.getLevelName(level_name)
        if not isinstance(level, int):
            level = logging.INFO

        fmt = os.environ.get("WEATHERCOVER_LOG_FORMAT", "").lower()
        if fmt in ("json", "text"):
            json_output = fmt == "json"
        else:
            production = os.environ.get("WEATHERCOVER_PRODUCTION", "")
            json_output = production.lower() in ("1", "true", "yes")
        return cls(level=level, json_output=json_output)


# ============================================================
# FORMATTERS
# ============================================================

def _structured_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """Keyword fields passed through ContextLogger, in call order."""
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _RESERVED_ATTRS and not key.startswith("_")
    }


def _json_safe(value: Any) -> Any:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value


class StructuredFormatter(logging.Formatter):
    """One JSON object per line, tagged with the request and caller in scope."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if request_id_var.get():
            entry["request_id"] = request_id_var.get()
        if caller_id_var.get():
            entry["caller_id"] = caller_id_var.get()

        entry.update({k: _json_safe(v) for k, v in _structured_fields(record).items()})

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


class TextFormatter(logging.Formatter):
    """Single-line output for a terminal."""

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created, timezone.utc).strftime("%H:%M:%S")
        tag = f" [{request_id_var.get()[:8]}]" if request_id_var.get() else ""
        line = f"{stamp} {record.levelname:<8}{tag} {record.name}: {record.getMessage()}"

        fields = _structured_fields(record)
        if fields:
            line += " | " + ", ".join(f"{k}={v}" for k, v in fields.items())
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class ContextLogger(logging.LoggerAdapter):
    """Accepts arbitrary keyword arguments as structured log fields."""

    _PASSTHROUGH = ("exc_info", "stack_info", "stacklevel", "extra")

    def process(self, msg, kwargs):
        fields = dict(kwargs.pop("extra", None) or {})
        for key in [k for k in kwargs if k not in self._PASSTHROUGH]:
            fields[key] = kwargs.pop(key)
        kwargs["extra"] = fields
        return msg, kwargs


def get_logger(name: str) -> ContextLogger:
    return ContextLogger(logging.getLogger(name), {})


def setup_logging(settings: Optional[LogSettings] = None) -> None:
    """Install a single stdout handler on the root logger."""
    settings = settings or LogSettings.from_env()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(settings.level)
    handler.setFormatter(StructuredFormatter() if settings.json_output else TextFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(settings.level)

    for noisy in ("uvicorn.access", "httpx"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


# ============================================================
# REQUEST CONTEXT
# ============================================================

class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Binds a request ID and the claimed caller key to the logging context,
    logs each response with its latency and echoes X-Request-ID.

    The caller key is only a log tag here; routes verify the signature.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]
        request_id_var.set(request_id)
        caller_id_var.set(request.headers.get("X-Caller-Key", "")[:16])

        logger = get_logger("weathercover.request")
        route = f"{request.method} {request.url.path}"
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            elapsed = (time.perf_counter() - started) * 1000
            logger.exception(f"{route} -> 500", duration_ms=round(elapsed, 2))
            get_metrics().record_request(elapsed, success=False)
            raise
        else:
            elapsed = (time.perf_counter() - started) * 1000
            status = response.status_code
            logger.log(
                logging.WARNING if status >= 400 else logging.INFO,
                f"{route} -> {status}",
                status_code=status,
                duration_ms=round(elapsed, 2),
            )
            get_metrics().record_request(elapsed, success=status < 500)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            caller_id_var.set("")
            request_id_var.set("")


# ============================================================
# METRICS
# ============================================================

def _window() -> Deque[float]:
    return deque(maxlen=_LATENCY_WINDOW)


def _percentile(samples: Deque[float], p: float) -> Optional[float]:
    if not samples:
        return None
    ordered = sorted(samples)
    return ordered[min(int(len(ordered) * p), len(ordered) - 1)]


@dataclass
class MetricsCollector:
    """
    Process-local counters for engine calls and HTTP traffic.

    Latencies keep the most recent samples only.
    """

    calls_committed: int = 0
    calls_rejected: int = 0
    rejections_by_kind: Counter = field(default_factory=Counter)
    claims_paid: int = 0
    claims_rejected: int = 0
    amount_paid_out: int = 0
    requests_total: int = 0
    requests_failed: int = 0
    call_latencies_ms: Deque[float] = field(default_factory=_window)
    request_latencies_ms: Deque[float] = field(default_factory=_window)

    def record_call(self, latency_ms: float) -> None:
        self.calls_committed += 1
        self.call_latencies_ms.append(latency_ms)

    def record_rejection(self, kind: str) -> None:
        self.calls_rejected += 1
        self.rejections_by_kind[kind] += 1

    def record_claim_outcome(self, paid: bool, amount: int = 0) -> None:
        if not paid:
            self.claims_rejected += 1
            return
        self.claims_paid += 1
        self.amount_paid_out += amount

    def record_request(self, latency_ms: float, success: bool) -> None:
        self.requests_total += 1
        self.requests_failed += 0 if success else 1
        self.request_latencies_ms.append(latency_ms)

    def get_summary(self) -> Dict[str, Any]:
        return {
            "calls_committed": self.calls_committed,
            "calls_rejected": self.calls_rejected,
            "rejections_by_kind": dict(self.rejections_by_kind),
            "claims_paid": self.claims_paid,
            "claims_rejected": self.claims_rejected,
            "amount_paid_out": self.amount_paid_out,
            "requests_total": self.requests_total,
            "requests_failed": self.requests_failed,
            "call_latency_p50_ms": _percentile(self.call_latencies_ms, 0.5),
            "call_latency_p95_ms": _percentile(self.call_latencies_ms, 0.95),
            "request_latency_p50_ms": _percentile(self.request_latencies_ms, 0.5),
            "request_latency_p95_ms": _percentile(self.request_latencies_ms, 0.95),
        }


_metrics = MetricsCollector()


def get_metrics() -> MetricsCollector:
    return _metrics


# ============================================================
# HEALTH
# ============================================================

@dataclass
class HealthStatus:
    healthy: bool
    checks: Dict[str, Dict[str, Any]]
    duration_ms: float


def _journal_check(engine) -> Dict[str, Any]:
    head = engine.store.get_head()
    valid = engine.verify_journal()
    return {
        "status": "healthy" if valid else "unhealthy",
        "valid": valid,
        "event_count": head.next_sequence,
        "last_hash": f"{head.last_event_hash[:16]}..." if head.last_event_hash else None,
    }


def _treasury_check(engine) -> Dict[str, Any]:
    return {
        "status": "healthy",
        "balance": engine.get_treasury().balance,
        "paused": engine.is_paused(),
    }


def check_health(engine=None) -> HealthStatus:
    """
    Liveness plus, given an engine, journal integrity and treasury state.

    A broken journal marks the whole status unhealthy.
    """
    started = time.perf_counter()
    checks: Dict[str, Dict[str, Any]] = {"liveness": {"status": "healthy"}}
    healthy = True

    if engine is not None:
        try:
            checks["journal"] = _journal_check(engine)
            checks["treasury"] = _treasury_check(engine)
        except Exception as e:
            checks["journal"] = {"status": "unhealthy", "valid": False, "error": str(e)}
        healthy = checks["journal"]["valid"]

    return HealthStatus(
        healthy=healthy,
        checks=checks,
        duration_ms=round((time.perf_counter() - started) * 1000, 2),
    )
