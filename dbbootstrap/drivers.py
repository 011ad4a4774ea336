"""Registry mapping driver names to their import path and dialect."""

from __future__ import annotations

from typing import Iterable

from .dialects import Dialect, PostgresDialect, default_dialects
from .models import DriverDescriptor

ASYNCPG_IMPORT = "asyncpg"


class DriverRegistry:
    """Collects the drivers and dialects known to the resolver."""

    def __init__(
        self,
        drivers: Iterable[DriverDescriptor] | None = None,
        dialects: Iterable[Dialect] | None = None,
    ) -> None:
        self._drivers: dict[str, DriverDescriptor] = {}
        self._dialects: dict[str, Dialect] = {}
        self.register_many(drivers or ())
        for dialect in dialects or ():
            self.register_dialect(dialect)

    @classmethod
    def default(cls) -> DriverRegistry:
        """Registry preloaded with the postgres drivers and built-in dialects."""

        postgres = PostgresDialect()
        return cls(
            drivers=(
                DriverDescriptor(name="postgres", import_path=ASYNCPG_IMPORT, dialect=postgres),
                DriverDescriptor(name="postgresql", import_path=ASYNCPG_IMPORT, dialect=postgres),
            ),
            dialects=default_dialects(),
        )

    def register(self, descriptor: DriverDescriptor) -> None:
        """Register (or replace) a driver descriptor."""

        if not descriptor.name:
            raise ValueError("Driver descriptor is missing a name")
        self._drivers[descriptor.name] = descriptor

    def register_many(self, descriptors: Iterable[DriverDescriptor]) -> None:
        for descriptor in descriptors:
            self.register(descriptor)

    def register_dialect(self, dialect: Dialect) -> None:
        """Make a dialect selectable by name."""

        self._dialects[dialect.name] = dialect

    def describe(self, name: str) -> DriverDescriptor:
        """Return the descriptor for ``name``.

        Unknown drivers get an empty descriptor rather than an error, since
        dbconf.yml may supply the import path and dialect itself.
        """

        return self._drivers.get(name) or DriverDescriptor(name=name)

    def dialect_by_name(self, name: str) -> Dialect | None:
        return self._dialects.get(name)

    @property
    def drivers(self) -> tuple[DriverDescriptor, ...]:
        return tuple(self._drivers.values())

    @property
    def dialects(self) -> tuple[Dialect, ...]:
        return tuple(self._dialects.values())


__all__ = ["ASYNCPG_IMPORT", "DriverRegistry"]
