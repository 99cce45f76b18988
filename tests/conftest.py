"""Shared fixtures for all tests."""

from __future__ import annotations

import itertools
from pathlib import Path
from unittest.mock import patch

import pytest

import shared.config_store as config_mod
from shared.auth import Session, SessionState
from shared.data_store import DataStoreError


class FakeStore:
    """In-memory stand-in for shared.data_store with the same call signatures.

    Records every call in ``calls`` and raises DataStoreError for any
    operation listed in ``fail_on`` ({"insert": "message"}).
    """

    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.calls: list[tuple] = []
        self.fail_on: dict[str, str] = {}
        self._seq = itertools.count(1)

    def _next_stamp(self) -> tuple[str, str]:
        n = next(self._seq)
        return f"id-{n}", f"2024-01-01T00:{n // 60:02d}:{n % 60:02d}"

    def _check(self, op: str, session) -> None:
        session.require()
        if op in self.fail_on:
            raise DataStoreError(self.fail_on[op])

    def seed(self, table: str, *rows: dict) -> list[dict]:
        stored = []
        for row in rows:
            new_id, stamp = self._next_stamp()
            record = {"id": new_id, "created_at": stamp, **row}
            self.tables.setdefault(table, []).append(record)
            stored.append(dict(record))
        return stored

    def select(self, session, table, columns="*", *, filters=None, in_filters=None,
               order=None, descending=False):
        self.calls.append(("select", table, dict(filters or {}), dict(in_filters or {}), order, descending))
        self._check("select", session)
        rows = [dict(r) for r in self.tables.get(table, [])]
        for column, value in (filters or {}).items():
            rows = [r for r in rows if r.get(column) == value]
        for column, values in (in_filters or {}).items():
            allowed = list(values)
            rows = [r for r in rows if r.get(column) in allowed]
        if order:
            rows.sort(key=lambda r: (r.get(order) is not None, str(r.get(order) or "")),
                      reverse=descending)
        return rows

    def select_one(self, session, table, record_id, columns="*"):
        rows = self.select(session, table, columns, filters={"id": record_id})
        return rows[0] if rows else None

    def insert(self, session, table, rows):
        self.calls.append(("insert", table, [dict(r) for r in rows]))
        self._check("insert", session)
        return self.seed(table, *rows)

    def update(self, session, table, record_id, values):
        self.calls.append(("update", table, record_id, dict(values)))
        self._check("update", session)
        for row in self.tables.get(table, []):
            if row["id"] == record_id:
                row.update(values)
                return [dict(row)]
        return []

    def delete(self, session, table, record_id):
        self.calls.append(("delete", table, record_id))
        self._check("delete", session)
        self.tables[table] = [r for r in self.tables.get(table, []) if r["id"] != record_id]

    def calls_of(self, op: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == op]


@pytest.fixture()
def fake_store():
    return FakeStore()


@pytest.fixture()
def session():
    """An authenticated session for user-1."""
    return Session(
        user_id="user-1",
        email="ana@example.com",
        access_token="token-1",
        refresh_token="refresh-1",
        state=SessionState.AUTHENTICATED,
    )


@pytest.fixture()
def tmp_config_dir(tmp_path: Path):
    """Point shared.config_store at an empty temporary config directory."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    with patch.object(config_mod, "CONFIG_DIR", config_dir):
        yield config_dir
