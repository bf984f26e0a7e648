"""
In-process counters for the generation service, served at /metrics.

Counts requests, quota decisions and image outcomes, keeps the last few
latencies of each pipeline run and the last few failures. Nothing here
survives a restart; today's quota usage lives in the quota store.
"""

import threading
import time
from collections import Counter, defaultdict, deque

MAX_SAMPLES = 100
MAX_ERRORS = 20

_lock = threading.Lock()
_counters: Counter = Counter()
_gauges: dict = {}
_latency_ms = defaultdict(lambda: deque(maxlen=MAX_SAMPLES))
_errors = deque(maxlen=MAX_ERRORS)


def inc_counter(name: str, amount: int = 1):
    """Bump a counter such as 'quota.admitted' or 'images.failed'."""
    if amount <= 0:
        return
    with _lock:
        _counters[name] += amount


def get_counter(name: str) -> int:
    with _lock:
        return _counters[name]


def set_gauge(name: str, value: float):
    with _lock:
        _gauges[name] = value


def record_latency(operation: str, duration_ms: float):
    with _lock:
        _latency_ms[operation].append(duration_ms)


def record_error(operation: str, error_type: str, message: str):
    with _lock:
        _errors.append({
            "at": time.time(),
            "operation": operation,
            "type": error_type,
            "message": message[:300],
        })


def get_snapshot() -> dict:
    now = time.time()
    with _lock:
        latency = {
            operation: {
                "count": len(samples),
                "avg": sum(samples) / len(samples),
                "max": max(samples),
                "last": samples[-1],
            }
            for operation, samples in _latency_ms.items()
            if samples
        }
        return {
            "counters": dict(_counters),
            "latency": latency,
            "recent_errors": list(_errors),
            "uptime_seconds": now - _gauges.get("start_time", now),
        }


def reset():
    with _lock:
        _counters.clear()
        _gauges.clear()
        _latency_ms.clear()
        _errors.clear()
