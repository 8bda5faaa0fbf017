"""
In-process counters for the auth and SMS flows.

Series are keyed by metric name plus a sorted label tuple and live for the
lifetime of the worker process. ``prometheus_text`` renders them in the
text exposition format.
"""
import re
from collections import Counter
from threading import Lock

Labels = tuple[tuple[str, str], ...]

METRIC_HELP: dict[str, str] = {
    "http_requests_total": "HTTP requests served.",
    "http_errors_total": "HTTP responses with an error envelope.",
    "phone_send_total": "Verification code send requests by result.",
    "phone_verify_total": "Verification code checks by result.",
    "sms_status_total": "SMS delivery status callbacks by status.",
}

_INVALID_NAME_CHARS = re.compile(r"[^a-zA-Z0-9_:]")

_lock = Lock()
_series: Counter[tuple[str, Labels]] = Counter()


def _labels(labels: dict[str, str]) -> Labels:
    return tuple(sorted((str(k), str(v)) for k, v in labels.items()))


def increment_counter(name: str, value: int = 1, **labels: str) -> None:
    with _lock:
        _series[(name, _labels(labels))] += int(value)


def counter_value(name: str, **labels: str) -> int:
    with _lock:
        return _series[(name, _labels(labels))]


def reset_metrics() -> None:
    with _lock:
        _series.clear()


def _sorted_series() -> list[tuple[str, Labels, int]]:
    with _lock:
        return sorted((name, labels, value) for (name, labels), value in _series.items())


def snapshot_metrics() -> dict[str, list[dict]]:
    snapshot: dict[str, list[dict]] = {}
    for name, labels, value in _sorted_series():
        snapshot.setdefault(name, []).append({"labels": dict(labels), "value": value})
    return snapshot


def _exposition_name(name: str) -> str:
    name = _INVALID_NAME_CHARS.sub("_", name)
    return name if name[:1].isalpha() or name[:1] in "_:" else f"metric_{name}"


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')
    return f'"{escaped}"'


def prometheus_text() -> str:
    lines: list[str] = []
    current = None
    for raw_name, labels, value in _sorted_series():
        name = _exposition_name(raw_name)
        if raw_name != current:
            current = raw_name
            if raw_name in METRIC_HELP:
                lines.append(f"# HELP {name} {METRIC_HELP[raw_name]}")
            lines.append(f"# TYPE {name} counter")
        rendered = ",".join(f"{key}={_quote(val)}" for key, val in labels)
        lines.append(f"{name}{{{rendered}}} {value}" if rendered else f"{name} {value}")
    return "\n".join(lines) + "\n"
