"""Shared dataclasses passed between the resolver and the bootstrapper."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .dialects import Dialect
from .dsn import redact


@dataclass(frozen=True, slots=True)
class DriverDescriptor:
    """Registry entry describing a database backend."""

    name: str
    import_path: str = ""
    dialect: Dialect | None = None

    @property
    def is_valid(self) -> bool:
        return bool(self.import_path) and self.dialect is not None


@dataclass(frozen=True, slots=True)
class ConnectionSpec:
    """Driver details resolved for one environment."""

    name: str
    open_string: str
    import_path: str = ""
    dialect: Dialect | None = None

    @property
    def is_valid(self) -> bool:
        return bool(self.import_path) and self.dialect is not None

    def redacted_open_string(self) -> str:
        """Connection string with the password masked, safe for log output."""

        return redact(self.open_string)


@dataclass(frozen=True, slots=True)
class Configuration:
    """Validated configuration for one environment of a migrations project."""

    migrations_dir: Path
    environment: str
    driver: ConnectionSpec
    schema: str = ""


__all__ = ["Configuration", "ConnectionSpec", "DriverDescriptor"]
