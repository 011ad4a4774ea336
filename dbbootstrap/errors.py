"""Error taxonomy raised while resolving configuration or bootstrapping connections."""

from __future__ import annotations


class DbBootstrapError(RuntimeError):
    """Base error for configuration and connection bootstrap failures."""


class ConfigError(DbBootstrapError):
    """Raised when dbconf.yml is missing, unparsable, or lacks a required key."""


class DriverValidationError(DbBootstrapError):
    """Raised when a resolved driver has no usable import path or dialect."""


class DatabaseConnectionError(DbBootstrapError):
    """Raised when opening or probing the target database fails."""


class ProvisioningError(DbBootstrapError):
    """Raised when a missing database cannot be created."""


class SchemaError(DbBootstrapError):
    """Raised when the schema search path cannot be applied."""


__all__ = [
    "ConfigError",
    "DatabaseConnectionError",
    "DbBootstrapError",
    "DriverValidationError",
    "ProvisioningError",
    "SchemaError",
]
