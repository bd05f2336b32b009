"""
engine/execution_log.py

Rule-scoped diagnostic logger.

Every message is prefixed with the rule id, name and space so a single
rule run can be followed through the process log. Status changes are also
kept on the instance for the executor to report back.
"""

from __future__ import annotations

import logging

logger = logging.getLogger("sigwatch.rule_execution")


class RuleExecutionLogger:
    def __init__(self, rule_id: str, rule_name: str = "", space_id: str | None = None) -> None:
        self.rule_id = rule_id
        self.rule_name = rule_name
        self.space_id = space_id
        self.last_status: str | None = None
        self.last_message: str = ""

    @property
    def _prefix(self) -> str:
        return f"[rule={self.rule_id} name={self.rule_name!r} space={self.space_id or '-'}]"

    def debug(self, msg: str, *args: object) -> None:
        logger.debug("%s " + msg, self._prefix, *args)

    def info(self, msg: str, *args: object) -> None:
        logger.info("%s " + msg, self._prefix, *args)

    def warn(self, msg: str, *args: object) -> None:
        logger.warning("%s " + msg, self._prefix, *args)

    def error(self, msg: str, *args: object) -> None:
        logger.error("%s " + msg, self._prefix, *args)

    def log_status_change(self, status: str, message: str = "") -> None:
        """Record the run outcome: 'running' | 'succeeded' | 'failed'."""
        self.last_status = status
        self.last_message = message
        level = logging.ERROR if status == "failed" else logging.INFO
        logger.log(level, "%s status=%s %s", self._prefix, status, message)

    def __repr__(self) -> str:
        return f"RuleExecutionLogger({self.rule_id!r} status={self.last_status})"
