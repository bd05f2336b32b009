"""
storage/repository.py

Persistence for wrapped alerts.

A batch is written in one transaction with INSERT OR IGNORE: alert ids are
deterministic, so re-running a rule over the same hits stores nothing new,
and a failed batch leaves no partial rows behind.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import time
from collections.abc import Sequence
from typing import Any

from ..engine import fields as f
from ..engine.models import WrappedAlert
from ..metrics import METRICS
from .database import Database

logger = logging.getLogger(__name__)


class AlertRepository:
    def __init__(self, db: Database) -> None:
        self._db = db

    # ==================================================================
    # Write methods
    # ==================================================================

    def save_alerts(self, alerts: Sequence[WrappedAlert]) -> int:
        """
        Insert a batch of alerts; return how many were new.

        Raises on any failure after rolling the whole batch back.
        """
        if not alerts:
            return 0

        now = time.time()
        rows = []
        for alert in alerts:
            src = alert.source
            space_ids = src.get(f.ALERT_SPACE_IDS) or [""]
            rows.append((
                alert.id,
                src[f.TIMESTAMP],
                src[f.ALERT_RULE_UUID],
                src.get(f.ALERT_RULE_NAME, ""),
                space_ids[0],
                src.get(f.ALERT_REASON, ""),
                src.get(f.ALERT_DEPTH, 1),
                json.dumps(src, default=str),
                now,
            ))

        before = self._db.conn.total_changes
        try:
            self._db.executemany(
                """
                INSERT OR IGNORE INTO alerts (
                    alert_id, timestamp, rule_id, rule_name, space_id,
                    reason, depth, source, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                rows,
            )
            self._db.commit()
        except sqlite3.Error as exc:
            self._db.rollback()
            logger.error("save_alerts failed — batch of %d rolled back: %s", len(rows), exc)
            raise

        inserted = self._db.conn.total_changes - before
        METRICS.alerts_persisted.inc(inserted)
        if inserted < len(rows):
            logger.debug("save_alerts: %d of %d alert(s) already stored", len(rows) - inserted, len(rows))
        return inserted

    # ==================================================================
    # Read methods
    # ==================================================================

    def get_alerts(
        self,
        limit: int = 100,
        offset: int = 0,
        rule_id: str | None = None,
        space_id: str | None = None,
    ) -> list[dict[str, Any]]:
        """Return alerts newest first, optionally filtered."""
        where, params = self._where(rule_id=rule_id, space_id=space_id)
        cur = self._db.execute(
            f"SELECT * FROM alerts {where} ORDER BY timestamp DESC, alert_id LIMIT ? OFFSET ?",
            (*params, limit, offset),
        )
        return [self._row_to_dict(r) for r in cur.fetchall()]

    def get_alert_count(
        self,
        rule_id: str | None = None,
        space_id: str | None = None,
    ) -> int:
        where, params = self._where(rule_id=rule_id, space_id=space_id)
        cur = self._db.execute(f"SELECT COUNT(*) FROM alerts {where}", params)
        return cur.fetchone()[0]

    def get_alert_by_id(self, alert_id: str) -> dict[str, Any] | None:
        cur = self._db.execute("SELECT * FROM alerts WHERE alert_id = ?", (alert_id,))
        row = cur.fetchone()
        return self._row_to_dict(row) if row else None

    def get_stats_summary(self) -> dict[str, Any]:
        total = self._db.execute("SELECT COUNT(*) FROM alerts").fetchone()[0]
        by_rule = {
            r["rule_id"]: r["n"]
            for r in self._db.execute(
                "SELECT rule_id, COUNT(*) AS n FROM alerts GROUP BY rule_id ORDER BY n DESC"
            ).fetchall()
        }
        by_space = {
            r["space_id"]: r["n"]
            for r in self._db.execute(
                "SELECT space_id, COUNT(*) AS n FROM alerts GROUP BY space_id ORDER BY n DESC"
            ).fetchall()
        }
        latest = self._db.execute("SELECT MAX(timestamp) FROM alerts").fetchone()[0]
        return {
            "total_alerts": total,
            "alerts_by_rule": by_rule,
            "alerts_by_space": by_space,
            "latest_alert_timestamp": latest,
        }

    # ==================================================================
    # Helpers
    # ==================================================================

    @staticmethod
    def _where(**filters: str | None) -> tuple[str, tuple]:
        clauses = [f"{column} = ?" for column, value in filters.items() if value is not None]
        params = tuple(value for value in filters.values() if value is not None)
        return ("WHERE " + " AND ".join(clauses) if clauses else ""), params

    @staticmethod
    def _row_to_dict(row: sqlite3.Row) -> dict[str, Any]:
        d = dict(row)
        try:
            d["source"] = json.loads(d["source"])
        except (TypeError, ValueError):
            logger.warning("Alert %s has undecodable source JSON", d.get("alert_id"))
            d["source"] = {}
        return d
