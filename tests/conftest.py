"""Shared fixtures: an in-memory stand-in for the Supabase query builder and a wired TestClient."""

import copy
import re
import uuid
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from thisisme.clients.notifier import get_notifier
from thisisme.core.security import create_access_token
from thisisme.database.supabase_client import get_supabase
from thisisme.main import app
from thisisme.modules.ai_support.routes import get_claude_client, get_github_factory
from thisisme.modules.vapi.webhook_log import webhook_log


def _like(pattern: str, value) -> bool:
    if value is None:
        return False
    regex = "^" + ".*".join(re.escape(part) for part in pattern.split("%")) + "$"
    return re.match(regex, str(value), re.IGNORECASE | re.DOTALL) is not None


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table_name = table
        self.op = "select"
        self.columns = "*"
        self.payload = None
        self.on_conflict = "id"
        self.filters = []
        self.order_by = []
        self.limit_to = None

    # Builders
    def select(self, columns: str = "*", **kwargs):
        self.op, self.columns = "select", columns
        return self

    def insert(self, payload):
        self.op, self.payload = "insert", payload
        return self

    def update(self, payload):
        self.op, self.payload = "update", payload
        return self

    def upsert(self, payload, on_conflict: str = "id", **kwargs):
        self.op, self.payload, self.on_conflict = "upsert", payload, on_conflict
        return self

    def delete(self):
        self.op = "delete"
        return self

    # Filters
    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self.filters.append(lambda row: row.get(column) != value)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def ilike(self, column, pattern):
        self.filters.append(lambda row: _like(pattern, row.get(column)))
        return self

    def gte(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None and row.get(column) >= value)
        return self

    def lte(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None and row.get(column) <= value)
        return self

    def or_(self, expression: str):
        clauses = []
        for part in expression.split(","):
            column, op, value = part.split(".", 2)
            if op == "eq":
                clauses.append(lambda row, c=column, v=value: str(row.get(c)) == v)
            elif op == "ilike":
                clauses.append(lambda row, c=column, v=value: _like(v, row.get(c)))
            else:
                raise NotImplementedError(op)
        self.filters.append(lambda row: any(clause(row) for clause in clauses))
        return self

    def order(self, column, desc: bool = False):
        self.order_by.append((column, desc))
        return self

    def limit(self, count):
        self.limit_to = count
        return self

    # Execution
    def _matches(self, row) -> bool:
        return all(f(row) for f in self.filters)

    def _project(self, row):
        if self.columns.strip() == "*":
            return copy.deepcopy(row)
        return {c.strip(): copy.deepcopy(row.get(c.strip())) for c in self.columns.split(",")}

    def _new_row(self, data):
        row = {"id": str(uuid.uuid4()), "created_at": datetime.now(timezone.utc).isoformat()}
        row.update(copy.deepcopy(data))
        return row

    def execute(self):
        rows = self.db.tables.setdefault(self.table_name, [])
        self.db.calls.append((self.table_name, self.op))
        if self.table_name in self.db.failing_tables:
            raise RuntimeError(f"{self.table_name} unavailable")

        if self.op == "insert":
            payload = self.payload if isinstance(self.payload, list) else [self.payload]
            inserted = [self._new_row(item) for item in payload]
            rows.extend(inserted)
            return SimpleNamespace(data=copy.deepcopy(inserted))

        if self.op == "upsert":
            payload = self.payload if isinstance(self.payload, list) else [self.payload]
            keys = [k.strip() for k in self.on_conflict.split(",")]
            out = []
            for item in payload:
                existing = next(
                    (r for r in rows if all(k in item and r.get(k) == item[k] for k in keys)), None
                )
                if existing is not None:
                    existing.update(copy.deepcopy(item))
                    out.append(copy.deepcopy(existing))
                else:
                    row = self._new_row(item)
                    rows.append(row)
                    out.append(copy.deepcopy(row))
            return SimpleNamespace(data=out)

        matched = [r for r in rows if self._matches(r)]
        if self.op == "update":
            for row in matched:
                row.update(copy.deepcopy(self.payload))
            return SimpleNamespace(data=copy.deepcopy(matched))
        if self.op == "delete":
            self.db.tables[self.table_name] = [r for r in rows if not self._matches(r)]
            return SimpleNamespace(data=copy.deepcopy(matched))

        for column, desc in reversed(self.order_by):
            matched.sort(key=lambda r: (r.get(column) is None, r.get(column) or ""), reverse=desc)
        if self.limit_to is not None:
            matched = matched[:self.limit_to]
        return SimpleNamespace(data=[self._project(r) for r in matched])


class FakeSupabase:
    def __init__(self):
        self.tables = {}
        self.calls = []
        self.failing_tables = set()

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def seed(self, table: str, **row):
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", datetime.now(timezone.utc).isoformat())
        self.tables.setdefault(table, []).append(row)
        return row

    def rows(self, table: str):
        return self.tables.get(table, [])


@pytest.fixture
def db():
    return FakeSupabase()


@pytest.fixture
def notifier():
    mock = MagicMock()
    mock.email_enabled = True
    mock.sms_enabled = True
    return mock


@pytest.fixture
def claude():
    mock = MagicMock()
    mock.model = "claude-test"
    return mock


@pytest.fixture
def github():
    mock = MagicMock()
    mock.repository = "acme/thisisme"
    return mock


@pytest.fixture
def client(db, notifier, claude, github):
    app.dependency_overrides[get_supabase] = lambda: db
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_claude_client] = lambda: claude
    app.dependency_overrides[get_github_factory] = lambda: (lambda token, repository: github)
    webhook_log.clear()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    def _make_user(email: str = "user@example.com", **fields):
        fields.setdefault("full_name", "Test User")
        fields.setdefault("is_admin", False)
        fields.setdefault("is_premium", False)
        return db.seed("users", email=email, **fields)
    return _make_user


def auth_headers(user: dict) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user['id'], user['email'])}"}
