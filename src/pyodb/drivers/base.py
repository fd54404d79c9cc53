"""Storage driver contract.

Every backend implements :class:`Driver`. Optional capabilities are
separate interfaces a driver opts into by subclassing them:

* :class:`QueryTransformer`: rewrite a generic field-equality query into
  the driver's native filter (e.g. targeting ``state_json.<field>``).
* :class:`Closeable`: release connections/files on shutdown.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any

from pyodb.config import Environment, OdbConfig

#: Prefix every bundled driver filters on.
STATE_JSON_PREFIX = "state_json."


class Driver(ABC):
    """Backend holding the documents of its collections."""

    #: Name the driver is registered under.
    name: str = ""

    @abstractmethod
    async def create(self, collection: str, value: Any) -> Mapping[str, Any]:
        """Store *value* as a new document.

        Returns ``{"id": ..., "state_tree": ...}`` for the new document.
        """

    @abstractmethod
    async def query(self, collection: str, query: dict[str, Any]) -> Mapping[str, Any] | None:
        """Return ``{"id": ..., "state_tree": ...}`` of the first match, or ``None``."""

    @abstractmethod
    async def update(self, collection: str, doc_id: Any, state: Any) -> Any:
        """Overwrite the document *doc_id* with *state*; the result is driver-defined."""

    @abstractmethod
    async def remove(self, collection: str, doc_id: Any) -> bool:
        """Delete the document *doc_id*; ``True`` if something was deleted."""


class QueryTransformer(ABC):
    """Optional capability: native query translation."""

    @abstractmethod
    def transform_query(self, query: dict[str, Any]) -> dict[str, Any]:
        """Translate a generic field-equality query into the native form."""


class Closeable(ABC):
    """Optional capability: shutdown hook."""

    @abstractmethod
    async def close(self) -> None:
        """Release every resource held by the driver."""


def prefix_state_json(query: dict[str, Any]) -> dict[str, Any]:
    """Target each query field at the ``state_json`` projection."""
    return {f"{STATE_JSON_PREFIX}{key}": value for key, value in query.items()}


DriverFactory = Callable[[OdbConfig], Awaitable[Driver]]


@dataclass(frozen=True)
class DriverEntry:
    """One row of the driver registration table."""

    name: str
    environments: frozenset[Environment]
    factory: DriverFactory

    def supports(self, environment: Environment) -> bool:
        return environment in self.environments
