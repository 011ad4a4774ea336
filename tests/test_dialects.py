"""Tests for dialect capabilities."""

from __future__ import annotations

from dbbootstrap.dialects import Dialect, FailureKind, PostgresDialect, RedshiftDialect


class _SqlStateError(Exception):
    def __init__(self, sqlstate: str) -> None:
        super().__init__(f"sqlstate {sqlstate}")
        self.sqlstate = sqlstate


class _Psycopg2Error(Exception):
    pgcode = "3D000"


def test_postgres_classifies_missing_database() -> None:
    dialect = PostgresDialect()

    assert dialect.classify_connection_failure(_SqlStateError("3D000")) is FailureKind.MISSING_DATABASE
    assert dialect.classify_connection_failure(_Psycopg2Error()) is FailureKind.MISSING_DATABASE
    assert dialect.classify_connection_failure(_SqlStateError("28P01")) is FailureKind.OTHER
    assert dialect.classify_connection_failure(OSError("refused")) is FailureKind.OTHER


def test_generic_dialect_never_reports_missing_database() -> None:
    dialect = Dialect(name="sqlite3", sqlglot_name="sqlite")

    assert dialect.classify_connection_failure(_SqlStateError("3D000")) is FailureKind.OTHER
    assert dialect.supports_provisioning is False
    assert dialect.search_path_sql("tenant_a") is None
    assert dialect.normalize_open_string("postgres://u@h/db") == "postgres://u@h/db"


def test_postgres_normalizes_urls_best_effort() -> None:
    dialect = PostgresDialect()

    assert dialect.normalize_open_string("postgres://u:p@host:5432/mydb") == (
        "dbname=mydb host=host password=p port=5432 user=u"
    )
    assert dialect.normalize_open_string("postgres://host:bad/mydb") == "postgres://host:bad/mydb"
    assert dialect.normalize_open_string("dbname=app sslmode=disable") == "dbname=app sslmode=disable"


def test_postgres_database_name_extraction() -> None:
    dialect = PostgresDialect()

    assert dialect.database_name("host=h dbname=missingdb user=u") == "missingdb"
    assert dialect.database_name("postgres://u@h/fromurl") == "fromurl"
    assert dialect.database_name("host=h user=u") is None
    assert dialect.database_name("dbname='unterminated") is None


def test_postgres_maintenance_open_string_swaps_dbname() -> None:
    dialect = PostgresDialect()

    assert dialect.maintenance_open_string("host=h dbname=missingdb user=u") == "host=h dbname=postgres user=u"


def test_redshift_uses_dev_as_maintenance_database() -> None:
    dialect = RedshiftDialect()

    assert dialect.maintenance_open_string("dbname=warehouse") == "dbname=dev"
    assert dialect.search_path_sql("analytics") == "SET search_path TO analytics"


def test_postgres_statements_are_verbatim() -> None:
    dialect = PostgresDialect()

    assert dialect.create_database_sql("missingdb") == "CREATE DATABASE missingdb"
    assert dialect.search_path_sql("tenant_a,public") == "SET search_path TO tenant_a,public"
    assert dialect.search_path_sql("") is None


def test_dialects_compare_by_value() -> None:
    assert PostgresDialect() == PostgresDialect()
    assert PostgresDialect() != RedshiftDialect()


def test_transpile_renders_for_dialect() -> None:
    assert PostgresDialect().transpile("SELECT 1") == ["SELECT 1"]
