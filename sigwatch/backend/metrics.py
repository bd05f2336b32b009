"""
backend/metrics.py

Lightweight thread-safe counters for rule execution and alert wrapping.
No external dependencies — uses Python's threading.Lock.

Usage:
    from sigwatch.backend.metrics import METRICS
    METRICS.alerts_built.inc(len(alerts))
    print(METRICS.as_dict())
"""

import threading


class Counter:
    """A thread-safe integer counter."""

    __slots__ = ("_value", "_lock")

    def __init__(self) -> None:
        self._value = 0
        self._lock = threading.Lock()

    def inc(self, amount: int = 1) -> None:
        with self._lock:
            self._value += amount

    def reset(self) -> None:
        with self._lock:
            self._value = 0

    @property
    def value(self) -> int:
        with self._lock:
            return self._value

    def __repr__(self) -> str:  # pragma: no cover
        return f"Counter({self._value})"


class Metrics:
    """Singleton holding all process counters."""

    def __init__(self) -> None:
        # --- Hit wrapper ---
        self.hits_received: Counter = Counter()
        """Search hits handed to HitWrapper.wrap()."""

        self.alerts_built: Counter = Counter()
        """Alert candidates that survived ancestry deduplication."""

        self.alerts_suppressed_ancestry: Counter = Counter()
        """Candidates dropped because the rule already appears in their ancestry."""

        # --- Rule execution ---
        self.rule_runs: Counter = Counter()
        self.rule_run_failures: Counter = Counter()
        self.search_errors: Counter = Counter()

        # --- Storage ---
        self.alerts_persisted: Counter = Counter()
        """Rows actually inserted (re-executions hit INSERT OR IGNORE)."""

    def as_dict(self) -> dict:
        """Return all counters as a plain dict (safe for JSON serialisation)."""
        return {
            name: counter.value
            for name, counter in vars(self).items()
            if isinstance(counter, Counter)
        }

    def reset_all(self) -> None:
        """Reset every counter to zero (useful in tests)."""
        for attr in vars(self).values():
            if isinstance(attr, Counter):
                attr.reset()


# Module-level singleton, import from here everywhere
METRICS = Metrics()
