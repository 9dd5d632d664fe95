from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional

import pytest

from tests.factories import iso


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    """Minimal stand-in for the postgrest query builder used by the services"""

    def __init__(self, db: "FakeSupabase", table: str):
        self._db = db
        self._table = table
        self._op = "select"
        self._payload: Any = None
        self._on_conflict: Optional[str] = None
        self._filters: List[Callable[[dict], bool]] = []
        self._order: Optional[tuple] = None
        self._limit: Optional[int] = None

    def select(self, *args, **kwargs):
        self._op = "select"
        return self

    def insert(self, payload):
        self._op, self._payload = "insert", payload
        return self

    def upsert(self, payload, on_conflict: Optional[str] = None, **kwargs):
        self._op, self._payload, self._on_conflict = "upsert", payload, on_conflict
        return self

    def update(self, payload):
        self._op, self._payload = "update", payload
        return self

    def delete(self):
        self._op = "delete"
        return self

    def eq(self, column, value):
        self._filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column, values):
        values = list(values)
        self._filters.append(lambda row: row.get(column) in values)
        return self

    def order(self, column, desc: bool = False):
        self._order = (column, desc)
        return self

    def limit(self, count):
        self._limit = count
        return self

    def _matches(self, row: dict) -> bool:
        return all(check(row) for check in self._filters)

    def execute(self) -> FakeResponse:
        self._db.calls.append((self._table, self._op))
        if self._table in self._db.failing_tables:
            raise RuntimeError(f"{self._table} unavailable")
        rows = self._db.tables.setdefault(self._table, [])

        if self._op == "select":
            result = [dict(row) for row in rows if self._matches(row)]
            if self._order:
                column, desc = self._order
                result.sort(key=lambda row: str(row.get(column) or ""), reverse=desc)
            if self._limit is not None:
                result = result[:self._limit]
            return FakeResponse(result)

        if self._op == "insert":
            payload = self._payload if isinstance(self._payload, list) else [self._payload]
            rows.extend(dict(item) for item in payload)
            return FakeResponse([dict(item) for item in payload])

        if self._op == "upsert":
            payload = self._payload if isinstance(self._payload, list) else [self._payload]
            keys = [key.strip() for key in (self._on_conflict or "id").split(",")]
            stored = []
            for item in payload:
                existing = next((row for row in rows if all(row.get(k) == item.get(k) for k in keys)), None)
                if existing is None:
                    existing = dict(item)
                    rows.append(existing)
                else:
                    existing.update(item)
                stored.append(dict(existing))
            return FakeResponse(stored)

        if self._op == "update":
            updated = []
            for row in rows:
                if self._matches(row):
                    row.update(self._payload)
                    updated.append(dict(row))
            return FakeResponse(updated)

        removed = [row for row in rows if self._matches(row)]
        self._db.tables[self._table] = [row for row in rows if not self._matches(row)]
        return FakeResponse([dict(row) for row in removed])


class FakeRpc:
    def __init__(self, handler: Callable[[Dict[str, Any]], Any], params: Dict[str, Any]):
        self._handler = handler
        self._params = params

    def execute(self) -> FakeResponse:
        return FakeResponse(self._handler(self._params))


class FakeAuth:
    def __init__(self, users_by_token: Dict[str, dict]):
        self.users_by_token = users_by_token
        self.calls = 0

    def get_user(self, jwt: str):
        self.calls += 1
        user = self.users_by_token.get(jwt)
        if user is None:
            raise RuntimeError("invalid JWT")
        return SimpleNamespace(user=SimpleNamespace(**user))


class FakeSupabase:
    def __init__(self, tables: Optional[Dict[str, List[dict]]] = None):
        self.tables: Dict[str, List[dict]] = {name: [dict(row) for row in rows] for name, rows in (tables or {}).items()}
        self.rpc_handlers: Dict[str, Callable[[Dict[str, Any]], Any]] = {}
        self.failing_tables: set = set()
        self.calls: List[tuple] = []
        self.auth = FakeAuth({})

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rpc(self, name: str, params: Dict[str, Any]) -> FakeRpc:
        handler = self.rpc_handlers.get(name)
        if handler is None:
            raise RuntimeError(f"function {name} does not exist")
        return FakeRpc(handler, params)


@pytest.fixture
def fake_supabase() -> FakeSupabase:
    return FakeSupabase({
        "user_profiles": [
            {"id": "legacy-admin", "email": "legacy@example.com", "role": "ADMIN"},
            {"id": "support-1", "email": "support@example.com", "role": "ADMIN"},
            {"id": "super-1", "email": "root@example.com", "role": "ADMIN"},
            {"id": "provider-1", "email": "provider@example.com", "role": "PROVIDER"},
            {"id": "client-1", "email": "client@example.com", "role": "CLIENT"},
        ],
        "user_role_assignments": [
            {"user_id": "support-1", "staff_role": "SUPPORT_LEAD", "assigned_at": iso()},
            {"user_id": "super-1", "staff_role": "SUPER_ADMIN", "assigned_at": iso()},
        ],
        "user_staff_permissions": [],
        "user_permission_overrides": [
            {
                "user_id": "support-1",
                "permission_code": "support.messages.reply",
                "allowed": False,
                "updated_at": iso(),
            },
        ],
        "provider_profiles": [
            {"id": "provider-1", "subscription_tier": "PROFESSIONAL"},
        ],
        "provider_entitlement_overrides": [],
    })
