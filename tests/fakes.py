"""Fakes standing in for PostgreSQL in unit tests."""

import asyncio

from noise_mcp.errors import QueryFailure


class FakeStore:
    """Stand-in for NoiseStore that records queries and returns canned rows."""

    def __init__(self, rows=None, error: Exception | None = None):
        self.rows = rows or []
        self.error = error
        self.calls: list[tuple[str, tuple]] = []

    async def fetch_all(self, query, *args, timeout=None):
        self.calls.append((query, args))
        if self.error is not None:
            raise QueryFailure(f"Database query failed: {self.error}") from self.error
        return [dict(row) for row in self.rows]

    async def fetch_val(self, query, *args, timeout=None):
        self.calls.append((query, args))
        return 1

    async def check_connection(self):
        return self.error is None

    @property
    def last_query(self):
        return self.calls[-1][0]

    @property
    def last_args(self):
        return self.calls[-1][1]


class FakeConnection:
    """Connection double for NoiseStore tests."""

    def __init__(self, rows=None, error: Exception | None = None):
        self.rows = rows or []
        self.error = error

    async def fetch(self, query, *args):
        if self.error is not None:
            raise self.error
        return self.rows

    async def fetchval(self, query, *args):
        if self.error is not None:
            raise self.error
        return 1


class FakePool:
    """Pool double that hands out one connection and counts releases.

    With a ``gate`` event, acquire blocks until the event is set.
    """

    def __init__(
        self,
        conn: FakeConnection,
        gate: asyncio.Event | None = None,
        acquire_error: Exception | None = None,
    ):
        self.conn = conn
        self.gate = gate
        self.acquire_error = acquire_error
        self.acquired = 0
        self.released = 0
        self.closed = False

    async def acquire(self):
        if self.gate is not None:
            await self.gate.wait()
        if self.acquire_error is not None:
            raise self.acquire_error
        self.acquired += 1
        return self.conn

    async def release(self, conn):
        self.released += 1

    async def close(self):
        self.closed = True
