"""
tests/conftest.py — Shared Test Fixtures
=========================================

Provides :class:`FakeStore`, an in-memory stand-in for
:class:`togu.store.client.RemoteStore` with the same async API.  It
evaluates the filter formulas the services build, sorts and paginates, and
can simulate the two things that make the real store hard:

* **read-after-write lag** — a created record stays invisible to the next
  ``lag`` list calls on its table;
* **failures** — ``fail("list", exc)`` makes the next matching call raise.
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of togu.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

import copy  # noqa: E402
import re  # noqa: E402
from collections import defaultdict  # noqa: E402
from datetime import UTC, datetime, timedelta  # noqa: E402
from typing import Any  # noqa: E402

import pytest  # noqa: E402

from togu.errors import StoreHTTPError  # noqa: E402
from togu.store.records import StorePage, StoreRecord  # noqa: E402

EPOCH = datetime(2026, 1, 1, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Formula evaluation
# ---------------------------------------------------------------------------
_TOKEN = re.compile(
    r"""\s*(?:
        (?P<str>'(?:\\.|[^'\\])*')
      | (?P<field>\{[^}]*\})
      | (?P<num>\d+(?:\.\d+)?)
      | (?P<name>[A-Za-z_]+)
      | (?P<op>!=|>=|<=|[=><(),])
    )""",
    re.VERBOSE,
)


def _tokenize(text: str) -> list[tuple[str, str]]:
    text = text.strip()
    tokens = []
    pos = 0
    while pos < len(text):
        match = _TOKEN.match(text, pos)
        if match is None:
            raise ValueError(f"Unparseable formula at {pos}: {text!r}")
        pos = match.end()
        kind = match.lastgroup
        tokens.append((kind, match.group(kind)))
    return tokens


def _field_value(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, list):
        return ", ".join(str(v) for v in value)
    return value


def _compare(op: str, left: Any, right: Any) -> bool:
    numeric = (int, float)
    if isinstance(left, numeric) and isinstance(right, numeric):
        a, b = left, right
    else:
        a, b = str(left), str(right)
    return {
        "=": a == b,
        "!=": a != b,
        ">": a > b,
        "<": a < b,
        ">=": a >= b,
        "<=": a <= b,
    }[op]


def _call(name: str, args: list[Any]) -> Any:
    if name == "AND":
        return all(bool(a) for a in args)
    if name == "OR":
        return any(bool(a) for a in args)
    if name == "NOT":
        return not args[0]
    if name == "FIND":
        return str(args[1]).find(str(args[0])) + 1
    if name == "LOWER":
        return str(args[0]).lower()
    raise ValueError(f"Unsupported formula function {name}")


class _Formula:
    def __init__(self, text: str, fields: dict[str, Any]) -> None:
        self.tokens = _tokenize(text)
        self.i = 0
        self.fields = fields

    def _peek(self) -> tuple[str | None, str | None]:
        return self.tokens[self.i] if self.i < len(self.tokens) else (None, None)

    def _take(self) -> tuple[str | None, str | None]:
        token = self._peek()
        self.i += 1
        return token

    def _expect(self, value: str) -> None:
        _, got = self._take()
        if got != value:
            raise ValueError(f"Expected {value!r}, got {got!r}")

    def evaluate(self) -> Any:
        value = self._comparison()
        if self.i != len(self.tokens):
            raise ValueError(f"Trailing tokens: {self.tokens[self.i:]}")
        return value

    def _comparison(self) -> Any:
        left = self._primary()
        kind, value = self._peek()
        if kind == "op" and value not in ("(", ")", ","):
            self._take()
            return _compare(value, left, self._primary())
        return left

    def _primary(self) -> Any:
        kind, value = self._take()
        if kind == "str":
            return re.sub(r"\\(.)", r"\1", value[1:-1])
        if kind == "num":
            return float(value) if "." in value else int(value)
        if kind == "field":
            return _field_value(self.fields.get(value[1:-1]))
        if kind == "op" and value == "(":
            inner = self._comparison()
            self._expect(")")
            return inner
        if kind == "name":
            self._expect("(")
            args = []
            if self._peek()[1] != ")":
                args.append(self._comparison())
                while self._peek()[1] == ",":
                    self._take()
                    args.append(self._comparison())
            self._expect(")")
            return _call(value.upper(), args)
        raise ValueError(f"Unexpected token {value!r}")


def evaluate_formula(text: str, fields: dict[str, Any]) -> bool:
    return bool(_Formula(text, fields).evaluate())


# ---------------------------------------------------------------------------
# Fake store
# ---------------------------------------------------------------------------
class FakeStore:
    """In-memory RemoteStore with formula filtering, lag and failure injection."""

    def __init__(self, *, lag: int = 0) -> None:
        self.tables: dict[str, dict[str, dict]] = defaultdict(dict)
        self.calls: list[tuple[str, str]] = []
        self.lag = lag
        self.closed = False
        self._hidden: dict[tuple[str, str], int] = {}
        self._failures: dict[str, list[tuple[str | None, BaseException]]] = defaultdict(list)
        self._seq = 0

    # -- test helpers -------------------------------------------------------
    def seed(self, table: str, fields: dict[str, Any]) -> str:
        """Insert a record directly (visible immediately, not logged)."""
        return self._insert(table, fields)["id"]

    def fields(self, table: str, record_id: str) -> dict[str, Any]:
        return self.tables[table][record_id]["fields"]

    def rows(self, table: str) -> list[dict[str, Any]]:
        return [r["fields"] for r in self.tables[table].values()]

    def fail(self, op: str, *excs: BaseException, table: str | None = None) -> None:
        for exc in excs:
            self._failures[op].append((table, exc))

    def count(self, op: str, table: str | None = None) -> int:
        return sum(1 for o, t in self.calls if o == op and (table is None or t == table))

    def writes(self, table: str | None = None) -> int:
        return self.count("create", table) + self.count("update", table)

    # -- internals ----------------------------------------------------------
    def _check(self, op: str, table: str) -> None:
        self.calls.append((op, table))
        pending = self._failures[op]
        for i, (only_table, exc) in enumerate(pending):
            if only_table is None or only_table == table:
                del pending[i]
                raise exc

    def _insert(self, table: str, fields: dict[str, Any]) -> dict:
        self._seq += 1
        record_id = f"rec{self._seq:05d}"
        created = (EPOCH + timedelta(minutes=self._seq)).isoformat().replace("+00:00", "Z")
        fields = copy.deepcopy(fields)
        if table in ("Questions", "Answers"):
            fields.setdefault("Created Date", created)
        authors = fields.get("Author")
        if isinstance(authors, list):
            names = [
                self.tables["Users"][uid]["fields"].get("Name")
                for uid in authors if uid in self.tables["Users"]
            ]
            if names:
                fields["Author Name"] = names
        record = {"id": record_id, "createdTime": created, "fields": fields}
        self.tables[table][record_id] = record
        return record

    def _existing(self, table: str, record_id: str) -> dict:
        record = self.tables[table].get(record_id)
        if record is None:
            raise StoreHTTPError(404, '{"error":"NOT_FOUND"}')
        return record

    @staticmethod
    def _model(record: dict) -> StoreRecord:
        return StoreRecord.model_validate(copy.deepcopy(record))

    # -- RemoteStore API ----------------------------------------------------
    async def list(
        self,
        table: str,
        *,
        formula: str | None = None,
        sort=(),
        page_size: int | None = None,
        offset: str | None = None,
        max_records: int | None = None,
    ) -> StorePage:
        self._check("list", table)
        visible = []
        for record_id, record in self.tables[table].items():
            key = (table, record_id)
            if self._hidden.get(key, 0) > 0:
                self._hidden[key] -= 1
                continue
            visible.append(record)

        if formula:
            visible = [r for r in visible if evaluate_formula(formula, r["fields"])]
        for field_name, direction in reversed(list(sort)):
            visible.sort(
                key=lambda r: (r["fields"].get(field_name) is not None, r["fields"].get(field_name)),
                reverse=direction == "desc",
            )
        if max_records:
            visible = visible[:max_records]

        start = int(offset) if offset else 0
        size = page_size or 100
        chunk = visible[start:start + size]
        next_offset = str(start + size) if start + size < len(visible) else None
        return StorePage(records=[self._model(r) for r in chunk], offset=next_offset)

    async def list_all(self, table: str, *, formula: str | None = None, sort=()) -> list[StoreRecord]:
        records: list[StoreRecord] = []
        offset = None
        while True:
            page = await self.list(table, formula=formula, sort=sort, offset=offset)
            records.extend(page.records)
            if not page.offset:
                return records
            offset = page.offset

    async def get(self, table: str, record_id: str) -> StoreRecord:
        self._check("get", table)
        return self._model(self._existing(table, record_id))

    async def create(self, table: str, fields: dict[str, Any]) -> StoreRecord:
        self._check("create", table)
        record = self._insert(table, fields)
        if self.lag:
            self._hidden[(table, record["id"])] = self.lag
        return self._model(record)

    async def update(self, table: str, record_id: str, fields: dict[str, Any]) -> StoreRecord:
        self._check("update", table)
        record = self._existing(table, record_id)
        record["fields"].update(copy.deepcopy(fields))
        return self._model(record)

    async def delete(self, table: str, record_id: str) -> None:
        self._check("delete", table)
        self._existing(table, record_id)
        del self.tables[table][record_id]

    async def aclose(self) -> None:
        self.closed = True


def seed_badges(store: FakeStore) -> dict[str, str]:
    """Insert the standard badge catalog; returns name → record id."""
    names = ["First Question", "Question Master", "First Answer", "Answer Expert", "Centurion"]
    return {
        name: store.seed("Badges", {"Badge Name": name, "Description": f"{name} badge", "EarnedBy": []})
        for name in names
    }


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def make_store():
    """Factory for stores with non-default behavior (e.g. ``make_store(lag=2)``)."""
    return FakeStore


@pytest.fixture
def badge_catalog():
    return seed_badges


@pytest.fixture
def no_sleep():
    """An async sleep that returns immediately and records requested delays."""
    delays: list[float] = []

    async def _sleep(seconds: float) -> None:
        delays.append(seconds)

    _sleep.delays = delays
    return _sleep


@pytest.fixture
def config():
    from togu.config import ToguConfig

    return ToguConfig(base_id="appTEST")
