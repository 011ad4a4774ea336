"""Database configuration resolution and connection bootstrap for migrations."""

from .bootstrap import ConnectionBootstrapper, open_database
from .config import ConfigResolver, load_configuration
from .connections import Connection, Connector, DriverConnector
from .dialects import Dialect, FailureKind, PostgresDialect, RedshiftDialect
from .drivers import DriverRegistry
from .errors import (
    ConfigError,
    DatabaseConnectionError,
    DbBootstrapError,
    DriverValidationError,
    ProvisioningError,
    SchemaError,
)
from .models import Configuration, ConnectionSpec, DriverDescriptor

__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "ConfigResolver",
    "Configuration",
    "Connection",
    "ConnectionBootstrapper",
    "ConnectionSpec",
    "Connector",
    "DatabaseConnectionError",
    "DbBootstrapError",
    "Dialect",
    "DriverConnector",
    "DriverDescriptor",
    "DriverRegistry",
    "DriverValidationError",
    "FailureKind",
    "PostgresDialect",
    "ProvisioningError",
    "RedshiftDialect",
    "SchemaError",
    "load_configuration",
    "open_database",
]
