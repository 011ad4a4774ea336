"""Open a ready-to-use connection from a resolved configuration.

The bootstrapper opens the configured database and pings it. When the
dialect reports that the target database does not exist, it connects to the
dialect's maintenance database, creates the target, and reopens the original
connection string. Finally it applies the schema search path, if one was
requested, and hands the connection to the caller.
"""

from __future__ import annotations

import logging
from typing import Callable

from .connections import Connection, Connector, DriverConnector
from .dialects import Dialect, FailureKind
from .errors import DatabaseConnectionError, ProvisioningError, SchemaError
from .models import Configuration, ConnectionSpec

LOG = logging.getLogger(__name__)

MISSING_DATABASE_NOTICE = "Database does not exist. Trying to create it."

Notifier = Callable[[str], None]


class ConnectionBootstrapper:
    """Opens, provisions and configures connections for a :class:`Configuration`."""

    def __init__(
        self,
        connector: Connector | None = None,
        *,
        notify: Notifier | None = print,
        ping_after_reopen: bool = True,
    ) -> None:
        self._connector = connector or DriverConnector()
        self._notify = notify
        self._ping_after_reopen = ping_after_reopen

    def open(self, configuration: Configuration) -> Connection:
        """Return an open connection; the caller must close it."""

        driver = configuration.driver
        dialect = driver.dialect
        assert dialect is not None  # ConfigResolver only emits valid specs

        conn = self._open(driver, driver.open_string)
        try:
            conn.ping()
        except Exception as exc:
            _release(conn)
            if dialect.classify_connection_failure(exc) is not FailureKind.MISSING_DATABASE:
                raise DatabaseConnectionError(
                    f"Cannot reach database for environment '{configuration.environment}': {exc}"
                ) from exc
            self._provision(driver, dialect)
            conn = self._reopen(driver)

        try:
            self._apply_schema(conn, dialect, configuration.schema)
        except SchemaError:
            _release(conn)
            raise
        LOG.debug(
            "Connection ready",
            extra={"environment": configuration.environment, "driver": driver.name},
        )
        return conn

    def _open(self, driver: ConnectionSpec, open_string: str) -> Connection:
        try:
            return self._connector.open(driver, open_string)
        except Exception as exc:
            raise DatabaseConnectionError(f"Cannot open '{driver.name}' connection: {exc}") from exc

    def _reopen(self, driver: ConnectionSpec) -> Connection:
        conn = self._open(driver, driver.open_string)
        if not self._ping_after_reopen:
            return conn
        try:
            conn.ping()
        except Exception as exc:
            _release(conn)
            raise DatabaseConnectionError(f"Cannot reach newly created database: {exc}") from exc
        return conn

    def _provision(self, driver: ConnectionSpec, dialect: Dialect) -> None:
        if self._notify is not None:
            self._notify(MISSING_DATABASE_NOTICE)
        if not dialect.supports_provisioning:
            raise ProvisioningError(f"Dialect '{dialect.name}' cannot create databases")
        name = dialect.database_name(driver.open_string)
        if not name:
            raise ProvisioningError("cannot determine database name")

        LOG.info("Creating missing database", extra={"database": name, "driver": driver.name})
        try:
            maintenance = self._connector.open(driver, dialect.maintenance_open_string(driver.open_string))
        except Exception as exc:
            raise ProvisioningError(f"Cannot open maintenance connection: {exc}") from exc
        try:
            maintenance.execute(dialect.create_database_sql(name))
        except Exception as exc:
            raise ProvisioningError(f"Cannot create database '{name}': {exc}") from exc
        finally:
            _release(maintenance)

    def _apply_schema(self, conn: Connection, dialect: Dialect, schema: str) -> None:
        statement = dialect.search_path_sql(schema)
        if statement is None:
            return
        try:
            conn.execute(statement)
        except Exception as exc:
            raise SchemaError(f"Cannot set search path to '{schema}': {exc}") from exc


def open_database(configuration: Configuration, **kwargs: object) -> Connection:
    """Bootstrap a connection with a default :class:`ConnectionBootstrapper`."""

    return ConnectionBootstrapper(**kwargs).open(configuration)  # type: ignore[arg-type]


def _release(conn: Connection) -> None:
    try:
        conn.close()
    except Exception:  # pragma: no cover - best effort cleanup
        LOG.debug("Ignoring error while closing connection", exc_info=True)


__all__ = [
    "ConnectionBootstrapper",
    "MISSING_DATABASE_NOTICE",
    "Notifier",
    "open_database",
]
