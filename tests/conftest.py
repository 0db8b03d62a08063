import asyncio
import re
from collections import Counter
from typing import Any, Dict, List, Optional

import pytest
from asyncmy.cursors import SSDictCursor

from dbfac import DbFacility
from dbfac.base.interface import BaseInterface

INSERT = re.compile(r"INSERT INTO (\w+) \(([\w, ]+)\) VALUES", re.I)
SELECT = re.compile(r"SELECT \* FROM (\w+)(?: ORDER BY (\w+))?$", re.I)
DELETE = re.compile(r"DELETE FROM (\w+)$", re.I)


class DriverError(Exception):
    """Stands in for a driver error carrying a MySQL error code"""

    def __init__(self, errno: int, msg: str) -> None:
        super().__init__(errno, msg)
        self.errno = errno


class FakeDatabase:
    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {
            "sampleTestTable": []
        }

    def run(self, tables, sql: str, params):
        """Return (rows, rowcount). rows is None without a result set."""
        sql = " ".join(sql.split())
        if match := INSERT.match(sql):
            table, columns = match.groups()
            names = [column.strip() for column in columns.split(",")]
            if isinstance(params, dict):
                tables[table].append({name: params[name] for name in names})
            else:
                tables[table].append(dict(zip(names, params)))
            return None, 1
        if match := SELECT.match(sql):
            table, order = match.groups()
            rows = [dict(row) for row in tables[table]]
            if order:
                rows.sort(key=lambda row: row[order])
            return rows, len(rows)
        if match := DELETE.match(sql):
            (table,) = match.groups()
            count = len(tables[table])
            tables[table].clear()
            return None, count
        raise DriverError(1064, f"ER_PARSE_ERROR near '{sql[:20]}'")


class FakeCursor:
    def __init__(self, conn):
        self.conn = conn
        self.rows: Optional[List[Dict[str, Any]]] = None
        self.rowcount = -1
        self.description = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        pass

    async def execute(self, sql, params=None):
        self.conn.calls["query"] += 1
        self.conn.check("query")
        self.rows, self.rowcount = self.conn.run(sql, params)
        if self.rows is not None:
            self.description = (("name",), ("age",))
        return self.rowcount

    async def fetchall(self):
        return self.rows


class FakeStreamCursor:
    def __init__(self, conn):
        self.conn = conn
        self.rows: List[Dict[str, Any]] = []
        self.position = 0

    async def execute(self, sql, params=None):
        self.conn.calls["query"] += 1
        self.conn.check("query")
        await self.conn.stall("query")
        rows, _ = self.conn.run(sql, params)
        self.rows = rows or []
        return 0

    async def fetchone(self):
        self.conn.calls["fetch"] += 1
        self.conn.check("fetch")
        if self.position >= len(self.rows):
            return None
        row = self.rows[self.position]
        self.position += 1
        return row

    async def close(self):
        self.conn.calls["cursor_close"] += 1
        self.conn.check("cursor_close")
        self.position = len(self.rows)


class FakeConnection:
    def __init__(self, pool: "FakePool"):
        self.pool = pool
        self.calls = pool.calls
        self.staged: Optional[Dict[str, List[Dict[str, Any]]]] = None
        self.closed = False

    def check(self, operation: str) -> None:
        error = self.pool.failures.get(operation)
        if error is not None:
            raise error

    async def stall(self, operation: str) -> None:
        """Hang forever once `operation` is reached, if asked to"""
        reached = self.pool.stalls.get(operation)
        if reached is not None:
            reached.set()
            await asyncio.Event().wait()

    def run(self, sql, params):
        tables = self.staged
        if tables is None:
            tables = self.pool.database.tables
        return self.pool.database.run(tables, sql, params)

    async def begin(self):
        self.calls["begin"] += 1
        self.check("begin")
        await self.stall("begin")
        self.staged = {
            name: [dict(row) for row in rows]
            for name, rows in self.pool.database.tables.items()
        }

    async def commit(self):
        self.calls["commit"] += 1
        self.check("commit")
        self.pool.database.tables = self.staged
        self.staged = None

    async def rollback(self):
        self.calls["rollback"] += 1
        self.check("rollback")
        await self.stall("rollback")
        self.staged = None

    def cursor(self, cursor=None):
        if cursor is SSDictCursor:
            return FakeStreamCursor(self)
        return FakeCursor(self)

    def close(self):
        self.closed = True


class FakePool(BaseInterface):
    scheme = "fake"

    def _setup_pool(self):
        self.database = FakeDatabase()
        self.calls: Counter = Counter()
        self.failures: Dict[str, BaseException] = {}
        self.stalls: Dict[str, asyncio.Event] = {}
        self.free: List[FakeConnection] = []
        self.used: List[FakeConnection] = []
        self.opened = False

    async def open(self):
        self.opened = True

    async def close(self):
        self.opened = False

    async def acquire(self):
        self.calls["acquire"] += 1
        self.check("acquire")
        conn = self.free.pop() if self.free else FakeConnection(self)
        self.used.append(conn)
        return conn

    async def release(self, conn):
        self.calls["release"] += 1
        self.check("release")
        self.used.remove(conn)
        self.free.append(conn)

    async def destroy(self, conn):
        self.calls["destroy"] += 1
        conn.close()
        if conn in self.used:
            self.used.remove(conn)
        self.check("destroy")

    def check(self, operation: str) -> None:
        error = self.failures.get(operation)
        if error is not None:
            raise error

    @property
    def active_count(self) -> int:
        return len(self.used)

    def operations(self) -> Counter:
        """Calls made so far, without the statement counters"""
        return Counter(
            {
                key: value
                for key, value in self.calls.items()
                if key not in ("query", "fetch", "cursor_close")
            }
        )


@pytest.fixture
def pool():
    return FakePool(dsn="fake://user@localhost:3306/test")


@pytest.fixture
async def facility(pool):
    facility = DbFacility(pool=pool)
    await facility.start()
    return facility


@pytest.fixture
def characters(pool):
    pool.database.tables["t"] = [
        {"name": "Legolas", "age": 1357},
        {"name": "Aragorn", "age": 87},
        {"name": "Gimli", "age": 139},
    ]
    return pool.database.tables["t"]
