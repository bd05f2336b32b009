"""
engine/ids.py

Deterministic alert id generation.
"""

from __future__ import annotations

import hashlib

DEFAULT_SPACE_ID = "default"

_SEPARATOR = "\x00"


def generate_id(doc_index: str, doc_id: str, version: str, rule_key: str) -> str:
    """
    SHA-256 hex digest over the four inputs joined with NUL.

    Same inputs always give the same id, which makes re-executing a rule
    over the same hits idempotent at the storage layer. The separator keeps
    ("1", "23") and ("12", "3") apart.
    """
    raw = _SEPARATOR.join((doc_index, doc_id, version, rule_key)).encode()
    return hashlib.sha256(raw).hexdigest()


def rule_key(space_id: str | None, rule_id: str) -> str:
    """Scope a rule id to its space; no space means the default space."""
    return f"{space_id or DEFAULT_SPACE_ID}:{rule_id}"
