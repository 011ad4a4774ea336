"""Dialect capability objects consumed by the resolver and the bootstrapper."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import sqlglot
from sqlglot.dialects.dialect import Dialect as SqlglotDialect

from .dsn import DsnError, is_url, parse_dsn, replace_field, url_to_dsn

MISSING_DATABASE_SQLSTATE = "3D000"


class FailureKind(str, Enum):
    """Classification of a failed reachability ping."""

    MISSING_DATABASE = "missing_database"
    OTHER = "other"


@dataclass(frozen=True)
class Dialect:
    """Capabilities of a database family.

    The base class describes a family with no provisioning or search path
    support; connection strings pass through untouched.
    """

    name: str
    sqlglot_name: str

    supports_provisioning = False

    @property
    def sqlglot_dialect(self) -> SqlglotDialect:
        return SqlglotDialect.get_or_raise(self.sqlglot_name)

    def transpile(self, sql: str, read: str | None = None) -> list[str]:
        """Render SQL written in ``read`` (default: this dialect) for this dialect."""

        return sqlglot.transpile(sql, read=read or self.sqlglot_name, write=self.sqlglot_name)

    def normalize_open_string(self, open_string: str) -> str:
        return open_string

    def classify_connection_failure(self, exc: BaseException) -> FailureKind:
        return FailureKind.OTHER

    def database_name(self, open_string: str) -> str | None:
        return None

    def maintenance_open_string(self, open_string: str) -> str:
        raise NotImplementedError(f"Dialect '{self.name}' cannot provision databases")

    def create_database_sql(self, name: str) -> str:
        raise NotImplementedError(f"Dialect '{self.name}' cannot provision databases")

    def search_path_sql(self, schema: str | None) -> str | None:
        return None


@dataclass(frozen=True)
class PostgresDialect(Dialect):
    """PostgreSQL family: URL normalization, database provisioning, search_path."""

    name: str = "postgres"
    sqlglot_name: str = "postgres"
    maintenance_database: str = "postgres"

    supports_provisioning = True

    def normalize_open_string(self, open_string: str) -> str:
        if not is_url(open_string):
            return open_string
        try:
            return url_to_dsn(open_string)
        except DsnError:
            return open_string

    def classify_connection_failure(self, exc: BaseException) -> FailureKind:
        # asyncpg and psycopg 3 expose ``sqlstate``; psycopg2 uses ``pgcode``.
        code = getattr(exc, "sqlstate", None) or getattr(exc, "pgcode", None)
        if code == MISSING_DATABASE_SQLSTATE:
            return FailureKind.MISSING_DATABASE
        return FailureKind.OTHER

    def database_name(self, open_string: str) -> str | None:
        try:
            fields = parse_dsn(self.normalize_open_string(open_string))
        except DsnError:
            return None
        return fields.get("dbname") or None

    def maintenance_open_string(self, open_string: str) -> str:
        return replace_field(self.normalize_open_string(open_string), "dbname", self.maintenance_database)

    def create_database_sql(self, name: str) -> str:
        return f"CREATE DATABASE {name}"

    def search_path_sql(self, schema: str | None) -> str | None:
        if not schema:
            return None
        return f"SET search_path TO {schema}"


@dataclass(frozen=True)
class RedshiftDialect(PostgresDialect):
    """Amazon Redshift speaks the postgres protocol; its default database is ``dev``."""

    name: str = "redshift"
    sqlglot_name: str = "redshift"
    maintenance_database: str = "dev"


def default_dialects() -> tuple[Dialect, ...]:
    """Dialects selectable by name from a ``dialect:`` entry in dbconf.yml."""

    return (
        PostgresDialect(),
        RedshiftDialect(),
        Dialect(name="sqlite3", sqlglot_name="sqlite"),
    )


__all__ = [
    "Dialect",
    "FailureKind",
    "MISSING_DATABASE_SQLSTATE",
    "PostgresDialect",
    "RedshiftDialect",
    "default_dialects",
]
