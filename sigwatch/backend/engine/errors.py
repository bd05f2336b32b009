"""
engine/errors.py

Input-contract errors raised by the alert-building path.

All are ValueError subclasses carrying the offending field or value so the
caller can log exactly what was wrong with the batch.
"""

from __future__ import annotations


class MalformedHitError(ValueError):
    """A search hit is missing a required field or carries a corrupt one."""

    def __init__(self, field: str, detail: str = "missing required field") -> None:
        self.field = field
        super().__init__(f"malformed search hit: {detail} {field!r}")


class MalformedRuleError(ValueError):
    """A rule definition is missing a required field."""

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"malformed rule definition: missing required field {field!r}")


class UnknownMergeStrategyError(ValueError):
    def __init__(self, value: object) -> None:
        self.value = value
        super().__init__(f"unknown alert merge strategy {value!r}")
