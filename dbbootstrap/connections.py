"""Synchronous connection handles over asyncpg and DB-API drivers."""

from __future__ import annotations

import asyncio
import importlib
import logging
import threading
from types import ModuleType, TracebackType
from typing import Any, Coroutine, Protocol, TypeVar, runtime_checkable

import asyncpg

from .drivers import ASYNCPG_IMPORT
from .dsn import dsn_to_url, is_url, parse_dsn
from .models import ConnectionSpec

LOG = logging.getLogger(__name__)

PING_QUERY = "SELECT 1"

T = TypeVar("T")


@runtime_checkable
class Connection(Protocol):
    """Handle returned to callers. Connects lazily on first use."""

    def ping(self) -> None:
        """Connect if needed and verify the server answers."""

    def execute(self, statement: str) -> object:
        """Run a statement that returns no rows."""

    def close(self) -> None:
        """Release the underlying connection."""


class Connector(Protocol):
    """Opens connection handles for a driver specification."""

    def open(self, spec: ConnectionSpec, open_string: str) -> Connection: ...


class _HandleBase:
    def __enter__(self):
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:  # pragma: no cover - overridden
        raise NotImplementedError


class AsyncpgConnection(_HandleBase):
    """Blocking façade over an asyncpg connection.

    asyncpg connections are bound to the loop that created them, so each
    handle owns a private event loop running on a daemon thread.
    """

    def __init__(self, open_string: str) -> None:
        self._dsn, self._timeout = _asyncpg_target(open_string)
        self._conn: asyncpg.Connection | None = None
        self._closed = False
        self._loop = asyncio.new_event_loop()
        self._loop_thread = threading.Thread(
            target=self._loop.run_forever,
            name="dbbootstrap-asyncpg",
            daemon=True,
        )
        self._loop_thread.start()

    @property
    def dsn(self) -> str:
        """URL handed to ``asyncpg.connect``."""

        return self._dsn

    @property
    def raw(self) -> asyncpg.Connection | None:
        """The underlying asyncpg connection, once established."""

        return self._conn

    @property
    def closed(self) -> bool:
        return self._closed

    def ping(self) -> None:
        self._run(self._fetchval(PING_QUERY))

    def execute(self, statement: str, *args: object) -> str:
        return self._run(self._execute(statement, *args))

    def fetch(self, query: str, *args: object) -> list[asyncpg.Record]:
        return self._run(self._fetch(query, *args))

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            if self._conn is not None:
                future = asyncio.run_coroutine_threadsafe(self._conn.close(), self._loop)
                future.result()
        finally:
            self._conn = None
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._loop_thread.join(timeout=1)
            if not self._loop.is_running():
                self._loop.close()

    def __del__(self) -> None:  # pragma: no cover - best effort cleanup
        try:
            self.close()
        except Exception:
            pass

    def _run(self, coro: Coroutine[Any, Any, T]) -> T:
        if self._closed:
            coro.close()
            raise RuntimeError("Connection is closed")
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result()

    async def _connection(self) -> asyncpg.Connection:
        if self._conn is None:
            kwargs: dict[str, object] = {"dsn": self._dsn}
            if self._timeout is not None:
                kwargs["timeout"] = self._timeout
            self._conn = await asyncpg.connect(**kwargs)
        return self._conn

    async def _fetchval(self, query: str) -> object:
        conn = await self._connection()
        return await conn.fetchval(query)

    async def _execute(self, statement: str, *args: object) -> str:
        conn = await self._connection()
        return await conn.execute(statement, *args)

    async def _fetch(self, query: str, *args: object) -> list[asyncpg.Record]:
        conn = await self._connection()
        return await conn.fetch(query, *args)


class DbApiConnection(_HandleBase):
    """Handle for any PEP 249 driver module exposing ``connect(dsn)``.

    The open string is passed as the single positional argument, so only
    drivers that accept a connection string work here (sqlite3, psycopg,
    psycopg2). Keyword-only drivers such as PyMySQL are not supported.
    """

    def __init__(self, import_path: str, open_string: str) -> None:
        self._module = _load_driver_module(import_path)
        self._open_string = open_string
        self._conn: Any | None = None
        self._closed = False

    @property
    def raw(self) -> Any | None:
        return self._conn

    @property
    def closed(self) -> bool:
        return self._closed

    def ping(self) -> None:
        self.fetch(PING_QUERY)

    def execute(self, statement: str, *params: object) -> int:
        cursor = self._connection().cursor()
        try:
            if params:
                cursor.execute(statement, params)
            else:
                cursor.execute(statement)
            return cursor.rowcount
        finally:
            cursor.close()

    def fetch(self, query: str, *params: object) -> list[tuple[object, ...]]:
        cursor = self._connection().cursor()
        try:
            if params:
                cursor.execute(query, params)
            else:
                cursor.execute(query)
            return [tuple(row) for row in cursor.fetchall()]
        finally:
            cursor.close()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._conn is not None:
            conn, self._conn = self._conn, None
            conn.close()

    def _connection(self) -> Any:
        if self._closed:
            raise RuntimeError("Connection is closed")
        if self._conn is None:
            conn = self._module.connect(self._open_string)
            # CREATE DATABASE refuses to run inside a transaction block.
            if hasattr(conn, "autocommit"):
                conn.autocommit = True
            self._conn = conn
        return self._conn


class DriverConnector:
    """Default connector: asyncpg for the postgres drivers, DB-API otherwise."""

    def open(self, spec: ConnectionSpec, open_string: str) -> Connection:
        LOG.debug(
            "Opening connection",
            extra={"driver": spec.name, "import_path": spec.import_path},
        )
        if spec.import_path == ASYNCPG_IMPORT:
            return AsyncpgConnection(open_string)
        return DbApiConnection(spec.import_path, open_string)


def _asyncpg_target(open_string: str) -> tuple[str, float | None]:
    """Turn a URL or ``key=value`` string into asyncpg's URL plus a connect timeout."""

    if is_url(open_string):
        return open_string.strip(), None
    fields = parse_dsn(open_string)
    # asyncpg would forward an unknown URL parameter to the server as a setting.
    raw_timeout = fields.pop("connect_timeout", None)
    timeout = float(raw_timeout) if raw_timeout else None
    return dsn_to_url(fields), timeout


def _load_driver_module(import_path: str) -> ModuleType:
    module = importlib.import_module(import_path)
    if not callable(getattr(module, "connect", None)):
        raise ImportError(f"Module '{import_path}' does not provide a DB-API connect()")
    return module


__all__ = [
    "AsyncpgConnection",
    "Connection",
    "Connector",
    "DbApiConnection",
    "DriverConnector",
    "PING_QUERY",
]
