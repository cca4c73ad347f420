import json
import logging
import time
from collections import defaultdict
from contextvars import ContextVar
from dataclasses import dataclass
from threading import Lock

_request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

LOGGER_NAME = "fulfillment.tracking"
TRANSITIONS_LOGGER_NAME = "fulfillment.transitions"


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", _request_id_ctx.get()),
            "order_id": getattr(record, "order_id", None),
            "topic": getattr(record, "topic", None),
        }
        details = getattr(record, "details", None)
        if details:
            payload["details"] = details
        return json.dumps(payload, default=str)


def configure_logging(level: int = logging.INFO) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)


@dataclass
class MetricsSnapshot:
    counters: dict[str, int]
    timings: dict[str, dict[str, float]]


class MetricsStore:
    def __init__(self) -> None:
        self._lock = Lock()
        self._counters: dict[str, int] = defaultdict(int)
        self._timings: dict[str, list[float]] = defaultdict(list)

    def increment(self, name: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[name] += amount

    def observe(self, name: str, value_s: float) -> None:
        with self._lock:
            self._timings[name].append(value_s)

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._timings.clear()

    def snapshot(self) -> MetricsSnapshot:
        with self._lock:
            counters = dict(self._counters)
            timing_values = {key: list(values) for key, values in self._timings.items()}

        timings: dict[str, dict[str, float]] = {}
        for key, values in timing_values.items():
            if not values:
                continue
            timings[key] = {
                "count": float(len(values)),
                "avg_s": sum(values) / len(values),
                "max_s": max(values),
            }
        return MetricsSnapshot(counters=counters, timings=timings)


metrics_store = MetricsStore()


def set_request_id(request_id: str) -> None:
    _request_id_ctx.set(request_id)


def get_request_id() -> str | None:
    return _request_id_ctx.get()


def log_event(
    message: str,
    *,
    order_id: str | None = None,
    topic: str | None = None,
    level: int = logging.INFO,
    logger_name: str = LOGGER_NAME,
    **details: object,
) -> None:
    logging.getLogger(logger_name).log(
        level,
        message,
        extra={
            "request_id": get_request_id(),
            "order_id": order_id,
            "topic": topic,
            "details": details or None,
        },
    )


class observe_timing:
    def __init__(self, metric_name: str) -> None:
        self.metric_name = metric_name
        self._start = 0.0

    def __enter__(self) -> "observe_timing":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        elapsed = time.perf_counter() - self._start
        metrics_store.observe(self.metric_name, elapsed)
