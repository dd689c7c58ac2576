from __future__ import annotations

import os
import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable

from .models import Rule
from .settings import settings


def utc_now() -> str:
    # Microseconds keep created_at ordering stable for rows created in the same second.
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def _resolve_db_path() -> str:
    """Return a file path usable by sqlite.

    If the configured path is a directory (a bind mount created by Docker
    for a missing file, for example) the DB file is placed inside it.
    """

    p = os.path.abspath(settings.db_path)

    if os.path.isdir(p):
        p = os.path.join(p, "tsr.db")

    parent = os.path.dirname(p)
    if parent and not os.path.exists(parent):
        os.makedirs(parent, exist_ok=True)

    return p


def connect() -> sqlite3.Connection:
    conn = sqlite3.connect(_resolve_db_path(), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def init_db() -> None:
    """Create tables if they do not exist."""
    with connect() as conn:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS traffic_rules (
              id TEXT PRIMARY KEY,
              service_name TEXT NOT NULL,
              version1_name TEXT NOT NULL,
              version2_name TEXT NOT NULL,
              version1_weight INTEGER NOT NULL,
              version2_weight INTEGER NOT NULL,
              rule_type TEXT NOT NULL, -- WEIGHTED|HEADER_MATCH|PATH_BASED
              is_active INTEGER NOT NULL DEFAULT 1,
              created_at TEXT NOT NULL,
              updated_at TEXT NOT NULL,
              deployed_at TEXT
            );

            CREATE TABLE IF NOT EXISTS events (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              ts TEXT NOT NULL,
              level TEXT NOT NULL,
              service_name TEXT,
              version TEXT,
              message TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_events_ts ON events(ts);
            CREATE INDEX IF NOT EXISTS idx_rules_created_at ON traffic_rules(created_at);
            """
        )


def log_event(level: str, message: str, service_name: str | None = None, version: str | None = None) -> None:
    with connect() as conn:
        conn.execute(
            "INSERT INTO events (ts, level, service_name, version, message) VALUES (?, ?, ?, ?, ?)",
            (utc_now(), level.upper(), service_name, version, message),
        )


@dataclass(frozen=True)
class RuleRow:
    id: str
    service_name: str
    version1_name: str
    version2_name: str
    version1_weight: int
    version2_weight: int
    rule_type: str
    is_active: bool
    created_at: str
    updated_at: str
    deployed_at: str | None

    def to_rule(self) -> Rule:
        return Rule(
            service_name=self.service_name,
            version1_name=self.version1_name,
            version2_name=self.version2_name,
            version1_weight=self.version1_weight,
            version2_weight=self.version2_weight,
            rule_type=self.rule_type,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "serviceName": self.service_name,
            "version1Name": self.version1_name,
            "version2Name": self.version2_name,
            "version1Weight": self.version1_weight,
            "version2Weight": self.version2_weight,
            "ruleType": self.rule_type,
            "isActive": self.is_active,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "deployedAt": self.deployed_at,
        }


def _row(r: sqlite3.Row) -> RuleRow:
    d = dict(r)
    d["is_active"] = bool(d["is_active"])
    return RuleRow(**d)


def _rows(rows: Iterable[sqlite3.Row]) -> list[RuleRow]:
    return [_row(r) for r in rows]


def create_rule(rule: Rule) -> RuleRow:
    rule_id = uuid.uuid4().hex
    now = utc_now()
    with connect() as conn:
        conn.execute(
            """
            INSERT INTO traffic_rules (id, service_name, version1_name, version2_name, version1_weight,
                                       version2_weight, rule_type, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                rule_id,
                rule.service_name,
                rule.version1_name,
                rule.version2_name,
                rule.version1_weight,
                rule.version2_weight,
                rule.rule_type.value,
                now,
                now,
            ),
        )
        row = conn.execute("SELECT * FROM traffic_rules WHERE id=?", (rule_id,)).fetchone()
        return _row(row)


def get_rule(rule_id: str) -> RuleRow | None:
    with connect() as conn:
        row = conn.execute("SELECT * FROM traffic_rules WHERE id=?", (rule_id,)).fetchone()
        return _row(row) if row else None


def list_rules() -> list[RuleRow]:
    with connect() as conn:
        rows = conn.execute("SELECT * FROM traffic_rules ORDER BY created_at DESC").fetchall()
        return _rows(rows)


def update_rule(rule_id: str, rule: Rule) -> RuleRow | None:
    with connect() as conn:
        cur = conn.execute(
            """
            UPDATE traffic_rules
            SET service_name=?, version1_name=?, version2_name=?, version1_weight=?,
                version2_weight=?, rule_type=?, updated_at=?
            WHERE id=?
            """,
            (
                rule.service_name,
                rule.version1_name,
                rule.version2_name,
                rule.version1_weight,
                rule.version2_weight,
                rule.rule_type.value,
                utc_now(),
                rule_id,
            ),
        )
        if cur.rowcount == 0:
            return None
        row = conn.execute("SELECT * FROM traffic_rules WHERE id=?", (rule_id,)).fetchone()
        return _row(row)


def update_deployed_at(rule_id: str, ts: str | None = None) -> None:
    with connect() as conn:
        conn.execute(
            "UPDATE traffic_rules SET deployed_at=?, updated_at=? WHERE id=?",
            (ts or utc_now(), utc_now(), rule_id),
        )


def delete_rule(rule_id: str) -> bool:
    with connect() as conn:
        cur = conn.execute("DELETE FROM traffic_rules WHERE id=?", (rule_id,))
        return cur.rowcount > 0


def latest_events(limit: int = 100) -> list[dict[str, Any]]:
    with connect() as conn:
        rows = conn.execute("SELECT * FROM events ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
        return [dict(r) for r in rows]
