"""Resolve the per-environment driver configuration stored in dbconf.yml."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import replace
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as ModelValidationError

from .drivers import DriverRegistry
from .errors import ConfigError, DriverValidationError
from .models import Configuration, ConnectionSpec

LOG = logging.getLogger(__name__)

CONFIG_FILENAME = "dbconf.yml"
MIGRATIONS_DIRNAME = "migrations"

_ENV_REF = re.compile(r"\$(?:\{(?P<braced>[^}]*)\}|(?P<bare>[A-Za-z_][A-Za-z0-9_]*|[0-9*#$@!?-]))")


class EnvironmentSection(BaseModel):
    """One environment entry of dbconf.yml."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    driver: str
    open: str
    import_path: str | None = Field(default=None, alias="import")
    dialect: str | None = None

    @field_validator("driver", "open", "import_path", "dialect", mode="before")
    @classmethod
    def _scalars_as_text(cls, value: Any) -> Any:
        # YAML turns bare numbers and booleans into non-strings.
        if isinstance(value, (bool, int, float)):
            return str(value)
        return value


def expand_env(value: str, environ: Mapping[str, str] | None = None) -> str:
    """Replace ``$NAME`` and ``${NAME}`` references; unset names become empty.

    Single-character special names (``$1``, ``$$``, ``$?`` ...) are looked up
    the same way, so they also expand to an empty string when unset.
    """

    env = os.environ if environ is None else environ

    def _lookup(match: re.Match[str]) -> str:
        name = match.group("braced") or match.group("bare") or ""
        return env.get(name, "")

    return _ENV_REF.sub(_lookup, value)


class ConfigResolver:
    """Builds a validated :class:`Configuration` from a migrations directory."""

    def __init__(
        self,
        registry: DriverRegistry | None = None,
        *,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._registry = registry or DriverRegistry.default()
        self._environ = environ

    @property
    def registry(self) -> DriverRegistry:
        return self._registry

    def resolve(self, base_path: str | os.PathLike[str], environment: str, schema: str = "") -> Configuration:
        """Resolve ``environment`` from ``<base_path>/dbconf.yml``.

        ``schema`` is passed through to the configuration unchanged; it is
        never read from the file.
        """

        base = Path(base_path)
        config_file = base / CONFIG_FILENAME
        section = self._read_section(config_file, environment)

        driver_name = expand_env(section.driver, self._environ)
        open_string = expand_env(section.open, self._environ)

        descriptor = self._registry.describe(driver_name)
        if descriptor.dialect is not None:
            open_string = descriptor.dialect.normalize_open_string(open_string)

        spec = ConnectionSpec(
            name=driver_name,
            open_string=open_string,
            import_path=descriptor.import_path,
            dialect=descriptor.dialect,
        )
        if section.import_path is not None:
            spec = replace(spec, import_path=section.import_path)
        if section.dialect is not None:
            dialect = self._registry.dialect_by_name(section.dialect)
            if dialect is None:
                LOG.warning(
                    "Unknown dialect override",
                    extra={"environment": environment, "dialect": section.dialect},
                )
            spec = replace(spec, dialect=dialect)

        if not spec.is_valid:
            raise DriverValidationError(
                f"Invalid driver configuration for environment '{environment}': {_describe(spec)}"
            )

        LOG.debug(
            "Resolved database configuration",
            extra={
                "environment": environment,
                "driver": spec.name,
                "dsn": spec.redacted_open_string(),
            },
        )
        return Configuration(
            migrations_dir=base / MIGRATIONS_DIRNAME,
            environment=environment,
            driver=spec,
            schema=schema,
        )

    def _read_section(self, config_file: Path, environment: str) -> EnvironmentSection:
        try:
            with config_file.open("r", encoding="utf-8") as handle:
                raw = yaml.safe_load(handle)
        except FileNotFoundError as exc:
            raise ConfigError(f"Configuration file not found: {config_file}") from exc
        except OSError as exc:
            raise ConfigError(f"Cannot read {config_file}: {exc}") from exc
        except yaml.YAMLError as exc:
            raise ConfigError(f"Cannot parse {config_file}: {exc}") from exc

        if not isinstance(raw, dict):
            raise ConfigError(f"Expected a mapping of environments in {config_file}")
        section = raw.get(environment)
        if section is None:
            raise ConfigError(f"Environment '{environment}' not found in {config_file}")
        if not isinstance(section, dict):
            raise ConfigError(f"Environment '{environment}' in {config_file} is not a mapping")

        try:
            return EnvironmentSection.model_validate(section)
        except ModelValidationError as exc:
            missing = [str(error["loc"][0]) for error in exc.errors() if error["type"] == "missing"]
            if missing:
                raise ConfigError(
                    f"Missing '{missing[0]}' for environment '{environment}' in {config_file}"
                ) from exc
            raise ConfigError(f"Invalid environment '{environment}' in {config_file}: {exc}") from exc


def load_configuration(
    base_path: str | os.PathLike[str],
    environment: str,
    schema: str = "",
    *,
    registry: DriverRegistry | None = None,
) -> Configuration:
    """Resolve a configuration with a fresh :class:`ConfigResolver`."""

    return ConfigResolver(registry).resolve(base_path, environment, schema)


def _describe(spec: ConnectionSpec) -> str:
    dialect = spec.dialect.name if spec.dialect is not None else None
    return f"driver={spec.name!r} import={spec.import_path!r} dialect={dialect!r}"


__all__ = [
    "CONFIG_FILENAME",
    "ConfigResolver",
    "EnvironmentSection",
    "MIGRATIONS_DIRNAME",
    "expand_env",
    "load_configuration",
]
