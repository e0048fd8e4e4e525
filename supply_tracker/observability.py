from __future__ import annotations

import contextlib
import contextvars
import json
import logging
import threading
import time
import uuid
from datetime import datetime, timezone
from typing import Dict

from flask import g, has_request_context, request


_HTTP_DURATION_BUCKETS_MS = (5.0, 10.0, 25.0, 50.0, 100.0, 250.0, 500.0, 1000.0, 2500.0, 5000.0, 10000.0)
_SUPPLY_API_LATENCY_BUCKETS_MS = (1.0, 10.0, 50.0, 100.0, 250.0, 500.0, 750.0, 1000.0, 2500.0, 5000.0)

_LOG_REQUEST_ID_CTX: contextvars.ContextVar[str] = contextvars.ContextVar("log_request_id", default="")


def _normalize_request_id(value: str | None) -> str:
    return str(value or "").strip() or "n/a"


def set_log_request_id(request_id: str | None) -> None:
    _LOG_REQUEST_ID_CTX.set(_normalize_request_id(request_id))


@contextlib.contextmanager
def bind_request_id(request_id: str | None):
    token = _LOG_REQUEST_ID_CTX.set(_normalize_request_id(request_id))
    try:
        yield _LOG_REQUEST_ID_CTX.get()
    finally:
        _LOG_REQUEST_ID_CTX.reset(token)


def _background_request_id(default: str | None = None) -> str:
    request_id = str(_LOG_REQUEST_ID_CTX.get() or "").strip()
    if request_id:
        return request_id
    return default or "n/a"


class JsonLogFormatter(logging.Formatter):
    _base_keys = {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
    }

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, object] = {
            "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if has_request_context():
            payload["request_id"] = current_request_id(default="n/a")
            payload["path"] = request.path
            payload["method"] = request.method
            if request.url_rule is not None:
                payload["route"] = request.url_rule.rule
        else:
            record_request_id = str(getattr(record, "request_id", "") or "").strip()
            payload["request_id"] = record_request_id or _background_request_id(default="n/a")

        for key, value in record.__dict__.items():
            if key in self._base_keys or key.startswith("_"):
                continue
            if key in payload:
                continue
            if callable(value):
                continue
            payload[key] = value

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, separators=(",", ":"), default=str)


def configure_json_logging(app) -> None:
    if not bool(app.config.get("LOG_JSON", True)):
        return
    level_name = str(app.config.get("LOG_LEVEL", "INFO")).strip().upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonLogFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level)
    app.logger.handlers = []
    app.logger.propagate = True


def ensure_request_id() -> str:
    request_id = str(getattr(g, "request_id", "") or "").strip()
    if request_id:
        set_log_request_id(request_id)
        return request_id
    incoming = str(request.headers.get("X-Request-Id") or "").strip()
    request_id = incoming or str(uuid.uuid4())
    g.request_id = request_id
    set_log_request_id(request_id)
    return request_id


def current_request_id(default: str | None = None) -> str:
    if has_request_context():
        request_id = str(getattr(g, "request_id", "") or "").strip()
        if request_id:
            return request_id
    return _background_request_id(default=default)


class MetricsRegistry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._requests_total = 0
        self._errors_total = 0
        self._http_request_total: Dict[tuple[str, str, str], int] = {}
        self._http_request_duration_ms: Dict[tuple[str, str], dict] = {}

        self._mirror_batches_total = 0
        self._mirror_documents = 0
        self._mirror_feed_errors_total: Dict[str, int] = {}
        self._mirror_stale_callbacks_total = 0
        self._mirror_rejected_documents_total = 0
        self._mirror_last_batch_timestamp = 0.0
        self._notifications_total: Dict[str, int] = {}
        self._supply_api_calls_total: Dict[tuple[str, str], int] = {}
        self._supply_api_latency_ms = self._new_histogram_state(_SUPPLY_API_LATENCY_BUCKETS_MS)

    @staticmethod
    def _bucket_label(limit: float) -> str:
        return f"{limit:g}"

    @classmethod
    def _new_histogram_state(cls, limits: tuple[float, ...]) -> dict:
        return {
            "count": 0,
            "sum": 0.0,
            "buckets": {cls._bucket_label(limit): 0 for limit in limits} | {"+Inf": 0},
        }

    @classmethod
    def _observe_histogram(cls, state: dict, value: float, limits: tuple[float, ...]) -> None:
        duration = max(0.0, float(value))
        state["count"] += 1
        state["sum"] += duration
        for limit in limits:
            if duration <= limit:
                key = cls._bucket_label(limit)
                state["buckets"][key] = int(state["buckets"].get(key, 0)) + 1
        state["buckets"]["+Inf"] = int(state["count"])

    def observe_http(self, method: str, route: str, status_code: int, duration_ms: float) -> None:
        method_key = str(method or "GET").strip().upper() or "GET"
        route_key = str(route or "unknown").strip() or "unknown"
        status_key = str(int(status_code))
        with self._lock:
            self._requests_total += 1
            if int(status_code) >= 400:
                self._errors_total += 1
            key = (method_key, route_key, status_key)
            self._http_request_total[key] = int(self._http_request_total.get(key, 0)) + 1
            histogram = self._http_request_duration_ms.setdefault(
                (method_key, route_key),
                self._new_histogram_state(_HTTP_DURATION_BUCKETS_MS),
            )
            self._observe_histogram(histogram, duration_ms, _HTTP_DURATION_BUCKETS_MS)

    def observe_mirror_batch(self, document_count: int) -> None:
        with self._lock:
            self._mirror_batches_total += 1
            self._mirror_documents = max(0, int(document_count or 0))
            self._mirror_last_batch_timestamp = time.time()

    def observe_mirror_feed_error(self, code: str) -> None:
        key = str(code or "unknown").strip() or "unknown"
        with self._lock:
            self._mirror_feed_errors_total[key] = int(self._mirror_feed_errors_total.get(key, 0)) + 1

    def observe_mirror_stale_callback(self, count: int = 1) -> None:
        increment = max(0, int(count or 0))
        if increment <= 0:
            return
        with self._lock:
            self._mirror_stale_callbacks_total += increment

    def observe_mirror_rejected_documents(self, count: int = 1) -> None:
        increment = max(0, int(count or 0))
        if increment <= 0:
            return
        with self._lock:
            self._mirror_rejected_documents_total += increment

    def observe_notification(self, title: str) -> None:
        key = str(title or "unknown").strip() or "unknown"
        with self._lock:
            self._notifications_total[key] = int(self._notifications_total.get(key, 0)) + 1

    def observe_supply_api_call(self, operation: str, result: str, duration_ms: float) -> None:
        key = (
            str(operation or "unknown").strip() or "unknown",
            str(result or "unknown").strip().lower() or "unknown",
        )
        with self._lock:
            self._supply_api_calls_total[key] = int(self._supply_api_calls_total.get(key, 0)) + 1
            self._observe_histogram(self._supply_api_latency_ms, duration_ms, _SUPPLY_API_LATENCY_BUCKETS_MS)

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "requests_total": int(self._requests_total),
                "errors_total": int(self._errors_total),
                "mirror": {
                    "batches_total": int(self._mirror_batches_total),
                    "documents": int(self._mirror_documents),
                    "feed_errors_total": int(sum(self._mirror_feed_errors_total.values())),
                    "stale_callbacks_total": int(self._mirror_stale_callbacks_total),
                    "rejected_documents_total": int(self._mirror_rejected_documents_total),
                    "last_batch_timestamp": float(self._mirror_last_batch_timestamp),
                },
                "notifications": {
                    "total": int(sum(self._notifications_total.values())),
                    "by_title": dict(sorted(self._notifications_total.items())),
                },
                "supply_api": {
                    "calls_total": int(sum(self._supply_api_calls_total.values())),
                },
            }

    def prometheus_snapshot(self) -> dict:
        with self._lock:
            return {
                "http_request_total": [
                    {"method": method, "route": route, "status": status, "value": int(value)}
                    for (method, route, status), value in sorted(self._http_request_total.items())
                ],
                "http_request_duration_ms": [
                    {
                        "method": method,
                        "route": route,
                        "count": int(histogram["count"]),
                        "sum": float(histogram["sum"]),
                        "buckets": {label: int(count) for label, count in histogram["buckets"].items()},
                    }
                    for (method, route), histogram in sorted(self._http_request_duration_ms.items())
                ],
                "mirror_batches_total": int(self._mirror_batches_total),
                "mirror_documents": int(self._mirror_documents),
                "mirror_feed_errors_total": dict(sorted(self._mirror_feed_errors_total.items())),
                "mirror_stale_callbacks_total": int(self._mirror_stale_callbacks_total),
                "mirror_rejected_documents_total": int(self._mirror_rejected_documents_total),
                "mirror_last_batch_timestamp": float(self._mirror_last_batch_timestamp),
                "notifications_total": dict(sorted(self._notifications_total.items())),
                "supply_api_calls_total": {
                    key: int(value) for key, value in sorted(self._supply_api_calls_total.items())
                },
                "supply_api_latency_ms": {
                    "count": int(self._supply_api_latency_ms["count"]),
                    "sum": float(self._supply_api_latency_ms["sum"]),
                    "buckets": {label: int(count) for label, count in self._supply_api_latency_ms["buckets"].items()},
                },
            }

    def reset(self) -> None:
        with self._lock:
            self._requests_total = 0
            self._errors_total = 0
            self._http_request_total.clear()
            self._http_request_duration_ms.clear()
            self._mirror_batches_total = 0
            self._mirror_documents = 0
            self._mirror_feed_errors_total.clear()
            self._mirror_stale_callbacks_total = 0
            self._mirror_rejected_documents_total = 0
            self._mirror_last_batch_timestamp = 0.0
            self._notifications_total.clear()
            self._supply_api_calls_total.clear()
            self._supply_api_latency_ms = self._new_histogram_state(_SUPPLY_API_LATENCY_BUCKETS_MS)


_METRICS = MetricsRegistry()


def mark_request_start() -> None:
    g._request_started_at = time.perf_counter()


def observe_response(response):
    started = float(getattr(g, "_request_started_at", 0.0) or 0.0)
    elapsed_ms = 0.0
    if started > 0.0:
        elapsed_ms = (time.perf_counter() - started) * 1000.0
    route = request.url_rule.rule if request.url_rule is not None else request.path
    _METRICS.observe_http(request.method, route, int(response.status_code), elapsed_ms)
    response.headers["X-Response-Time-Ms"] = f"{elapsed_ms:.2f}"
    return response


def metrics_snapshot() -> dict:
    return _METRICS.snapshot()


def observe_mirror_batch(document_count: int) -> None:
    _METRICS.observe_mirror_batch(document_count)


def observe_mirror_feed_error(code: str) -> None:
    _METRICS.observe_mirror_feed_error(code)


def observe_mirror_stale_callback(count: int = 1) -> None:
    _METRICS.observe_mirror_stale_callback(count)


def observe_mirror_rejected_documents(count: int = 1) -> None:
    _METRICS.observe_mirror_rejected_documents(count)


def observe_notification(title: str) -> None:
    _METRICS.observe_notification(title)


def observe_supply_api_call(operation: str, result: str, duration_ms: float) -> None:
    _METRICS.observe_supply_api_call(operation, result, duration_ms)


def _prom_label(value: object) -> str:
    return str(value).replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


def _prom_line(name: str, value: int | float, labels: dict[str, object] | None = None) -> str:
    if labels:
        labels_blob = ",".join(f'{key}="{_prom_label(val)}"' for key, val in sorted(labels.items()))
        return f"{name}{{{labels_blob}}} {value}"
    return f"{name} {value}"


def prometheus_metrics_text(*, view_sizes: dict[str, int] | None = None) -> str:
    snapshot = _METRICS.prometheus_snapshot()
    lines: list[str] = []

    lines.append("# HELP http_request_total Total HTTP requests by method, route and status.")
    lines.append("# TYPE http_request_total counter")
    for sample in snapshot["http_request_total"]:
        lines.append(
            _prom_line(
                "http_request_total",
                int(sample["value"]),
                labels={"method": sample["method"], "route": sample["route"], "status": sample["status"]},
            )
        )

    lines.append("# HELP http_request_duration_ms HTTP request duration in milliseconds.")
    lines.append("# TYPE http_request_duration_ms histogram")
    for hist in snapshot["http_request_duration_ms"]:
        base_labels = {"method": hist["method"], "route": hist["route"]}
        for le_label, bucket_value in hist["buckets"].items():
            lines.append(
                _prom_line("http_request_duration_ms_bucket", int(bucket_value), labels=base_labels | {"le": le_label})
            )
        lines.append(_prom_line("http_request_duration_ms_sum", float(hist["sum"]), labels=base_labels))
        lines.append(_prom_line("http_request_duration_ms_count", int(hist["count"]), labels=base_labels))

    lines.append("# HELP mirror_batches_total Change feed batches applied to the purchase request mirror.")
    lines.append("# TYPE mirror_batches_total counter")
    lines.append(_prom_line("mirror_batches_total", int(snapshot["mirror_batches_total"])))

    lines.append("# HELP mirror_documents Purchase requests held by the mirror after the last batch.")
    lines.append("# TYPE mirror_documents gauge")
    lines.append(_prom_line("mirror_documents", int(snapshot["mirror_documents"])))

    lines.append("# HELP mirror_feed_errors_total Change feed errors by code.")
    lines.append("# TYPE mirror_feed_errors_total counter")
    for code, value in snapshot["mirror_feed_errors_total"].items():
        lines.append(_prom_line("mirror_feed_errors_total", int(value), labels={"code": code}))

    lines.append("# HELP mirror_stale_callbacks_total Feed callbacks ignored after unsubscribe.")
    lines.append("# TYPE mirror_stale_callbacks_total counter")
    lines.append(_prom_line("mirror_stale_callbacks_total", int(snapshot["mirror_stale_callbacks_total"])))

    lines.append("# HELP mirror_rejected_documents_total Documents skipped because they could not be mapped.")
    lines.append("# TYPE mirror_rejected_documents_total counter")
    lines.append(_prom_line("mirror_rejected_documents_total", int(snapshot["mirror_rejected_documents_total"])))

    lines.append("# HELP mirror_last_batch_timestamp Unix timestamp of the last applied batch.")
    lines.append("# TYPE mirror_last_batch_timestamp gauge")
    lines.append(_prom_line("mirror_last_batch_timestamp", float(snapshot["mirror_last_batch_timestamp"])))

    lines.append("# HELP notifications_total User notifications raised by title.")
    lines.append("# TYPE notifications_total counter")
    for title, value in snapshot["notifications_total"].items():
        lines.append(_prom_line("notifications_total", int(value), labels={"title": title}))

    lines.append("# HELP supply_api_calls_total Supply input API calls by operation and result.")
    lines.append("# TYPE supply_api_calls_total counter")
    for (operation, result), value in snapshot["supply_api_calls_total"].items():
        lines.append(
            _prom_line("supply_api_calls_total", int(value), labels={"operation": operation, "result": result})
        )

    lines.append("# HELP supply_api_latency_ms Supply input API latency in milliseconds.")
    lines.append("# TYPE supply_api_latency_ms histogram")
    latency_hist = snapshot["supply_api_latency_ms"]
    for le_label, bucket_value in latency_hist["buckets"].items():
        lines.append(_prom_line("supply_api_latency_ms_bucket", int(bucket_value), labels={"le": le_label}))
    lines.append(_prom_line("supply_api_latency_ms_sum", float(latency_hist["sum"])))
    lines.append(_prom_line("supply_api_latency_ms_count", int(latency_hist["count"])))

    lines.append("# HELP order_view_size Orders currently classified into each view.")
    lines.append("# TYPE order_view_size gauge")
    for view, size in sorted((view_sizes or {}).items()):
        lines.append(_prom_line("order_view_size", int(size), labels={"view": view}))

    return "\n".join(lines) + "\n"


def reset_metrics_for_tests() -> None:
    _METRICS.reset()
    set_log_request_id(None)
