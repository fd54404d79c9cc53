"""Driver registry: mounts drivers from the static registration table."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping

from pyodb.config import Environment, OdbConfig
from pyodb.drivers.base import Closeable, Driver, DriverEntry
from pyodb.drivers.fs import create_fs_driver
from pyodb.drivers.memory import create_memory_driver
from pyodb.drivers.mongodb import create_mongodb_driver
from pyodb.drivers.sqlite import create_sqlite_driver
from pyodb.exceptions import UnknownDriverError

_logger = logging.getLogger(__name__)

_BOTH = frozenset({Environment.SERVER, Environment.CLIENT})

DRIVER_TABLE: dict[str, DriverEntry] = {
    "mongodb": DriverEntry("mongodb", frozenset({Environment.SERVER}), create_mongodb_driver),
    "fs": DriverEntry("fs", frozenset({Environment.SERVER}), create_fs_driver),
    "sqlite": DriverEntry("sqlite", frozenset({Environment.CLIENT}), create_sqlite_driver),
    "memory": DriverEntry("memory", _BOTH, create_memory_driver),
}


class DriverRegistry:
    """Mounted driver instances of one context.

    Drivers stay mounted until :meth:`close`.
    """

    def __init__(self, config: OdbConfig, table: Mapping[str, DriverEntry] | None = None) -> None:
        self._config = config
        self._table: Mapping[str, DriverEntry] = DRIVER_TABLE if table is None else table
        self._drivers: dict[str, Driver] = {}

    @property
    def names(self) -> list[str]:
        return list(self._drivers)

    def __contains__(self, name: object) -> bool:
        return name in self._drivers

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._drivers))

    def _selected(self, requested: Iterable[str] | None) -> list[str]:
        wanted = list(requested) if requested is not None else None
        if self._config.test:
            # Environment gating is bypassed in test mode.
            return wanted if wanted is not None else list(self._table)
        candidates = wanted if wanted is not None else list(self._table)
        selected: list[str] = []
        for name in candidates:
            entry = self._table.get(name)
            # Unknown names are kept so they get reported as failed.
            if entry is None or entry.supports(self._config.environment):
                selected.append(name)
            else:
                _logger.debug(
                    "Skipping driver %s: not available in %s environment",
                    name,
                    self._config.environment,
                )
        return selected

    async def init(self, requested: Iterable[str] | None = None) -> dict[str, bool]:
        """Mount every selected driver and report per-driver success.

        A failing driver is logged and reported as ``False``; it never
        prevents the remaining drivers from mounting.
        """
        status: dict[str, bool] = {}
        for name in self._selected(requested):
            if name in self._drivers:
                status[name] = True
                continue
            entry = self._table.get(name)
            try:
                if entry is None:
                    raise UnknownDriverError(name)
                driver = await entry.factory(self._config)
            except Exception as exc:
                _logger.warning(
                    "Driver for %s wasn't mounted (%s). If you need this driver, check its setup is correct.",
                    name,
                    exc,
                )
                _logger.debug("Driver %s mount failure", name, exc_info=True)
                status[name] = False
                continue
            self._drivers[name] = driver
            _logger.info("%s driver mounted.", name)
            status[name] = True
        return status

    def get(self, name: str) -> Driver:
        """Return the mounted driver *name*.

        Raises :class:`UnknownDriverError` for names that are not mounted.
        """
        driver = self._drivers.get(name)
        if driver is None:
            raise UnknownDriverError(name)
        return driver

    async def close(self) -> None:
        """Run every driver's close hook, then forget all drivers."""
        for name, driver in list(self._drivers.items()):
            if not isinstance(driver, Closeable):
                continue
            try:
                await driver.close()
                _logger.info("%s driver closed.", name)
            except Exception:
                _logger.error("Failed to close %s driver", name, exc_info=True)
        self._drivers.clear()
