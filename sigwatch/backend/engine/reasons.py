"""
engine/reasons.py

Human-readable "reason" strings stored on each alert.

A reason builder is any callable (hit, rule) -> str; the wrapper treats it
as a black box and lets its exceptions propagate.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from .merge import MISSING, get_path
from .models import CompleteRule, SearchHit

BuildReasonMessage = Callable[[SearchHit, CompleteRule], str]


def _field(hit: SearchHit, path: str) -> Any:
    value = get_path(hit.source, path)
    if value is MISSING:
        value = hit.fields.get(path, MISSING)
    if value is MISSING or value is None:
        return None
    if isinstance(value, list):
        value = ", ".join(str(v) for v in value) if value else None
    return value


def _endpoint(address: Any, port: Any) -> str | None:
    if address is None:
        return None
    return f"{address}:{port}" if port is not None else str(address)


def build_reason_message_for_query_alert(hit: SearchHit, rule: CompleteRule) -> str:
    """
    e.g. "process event with process sshd, source 10.0.0.5:51234, by root
    on web-01 created high alert Suspicious SSH."

    Only the parts present in the hit are rendered.
    """
    category = _field(hit, "event.category")
    parts: list[str] = []

    process = _field(hit, "process.name")
    if process is not None:
        parts.append(f"process {process}")
    file_name = _field(hit, "file.name")
    if file_name is not None:
        parts.append(f"file {file_name}")
    source = _endpoint(_field(hit, "source.ip"), _field(hit, "source.port"))
    if source is not None:
        parts.append(f"source {source}")
    destination = _endpoint(_field(hit, "destination.ip"), _field(hit, "destination.port"))
    if destination is not None:
        parts.append(f"destination {destination}")

    message = f"{category} event" if category is not None else "event"
    if parts:
        message += " with " + ", ".join(parts)

    user = _field(hit, "user.name")
    if user is not None:
        message += f", by {user}" if parts else f" by {user}"
    host = _field(hit, "host.name")
    if host is not None:
        message += f" on {host}"

    return f"{message} created {rule.severity} alert {rule.name}."
