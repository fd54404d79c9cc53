"""Document sessions: binding live objects to storage drivers.

:class:`OdbContext` owns the mounted drivers, the collection schemas and
the active watchers. :meth:`OdbContext.odb` locates or creates a
document, hands back a live object rebuilt from it, and keeps the
document in sync with every later mutation of that object.

Usage::

    async with OdbContext(OdbConfig.from_env()) as odb:
        odb.register_schema("users", {"name": FieldRule(is_str, "Name must be a string.")})
        user = await odb.odb("fs", "users", {"name": "ada"}, {"name": "ada"})
        user["name"] = "Ada"  # persisted in the background
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import ValidationError as PydanticValidationError

from pyodb._redact import redact_for_log
from pyodb.config import OdbConfig
from pyodb.documents import DriverDocument
from pyodb.drivers.base import Driver, DriverEntry, QueryTransformer
from pyodb.exceptions import MalformedDocumentError, StateTreeError, ValidationError
from pyodb.observable.codec import from_state_tree
from pyodb.observable.tracked import LiveObject, Mutation, ObservedList
from pyodb.registry import DriverRegistry
from pyodb.validation import FieldRule, Validator
from pyodb.watch import MutationSubscription, WatcherManager

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Binding:
    driver: str
    collection: str
    doc_id: Any
    live: LiveObject


def _is_container(value: Any) -> bool:
    return isinstance(value, (Mapping, list, ObservedList))


class OdbContext:
    """Drivers, schemas and watchers of one application."""

    def __init__(
        self,
        config: OdbConfig | None = None,
        *,
        driver_table: Mapping[str, DriverEntry] | None = None,
    ) -> None:
        self._config = config or OdbConfig()
        self._registry = DriverRegistry(self._config, driver_table)
        self._validator = Validator()
        self._watchers = WatcherManager()
        self._bindings: dict[int, _Binding] = {}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> OdbContext:
        await self.init()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def init(self, drivers: Iterable[str] | None = None) -> dict[str, bool]:
        """Mount drivers; returns ``{driver name: mounted}``."""
        return await self._registry.init(drivers)

    async def close(self) -> None:
        """Close every driver, cancel every watcher and reset the context.

        Persistence writes already in flight are not awaited.
        """
        await self._registry.close()
        self._watchers.cancel_all()
        self._bindings.clear()

    async def flush(self) -> None:
        """Wait for every persistence write scheduled so far."""
        await self._watchers.drain()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def config(self) -> OdbConfig:
        return self._config

    @property
    def registry(self) -> DriverRegistry:
        return self._registry

    @property
    def validator(self) -> Validator:
        return self._validator

    @property
    def watchers(self) -> WatcherManager:
        return self._watchers

    def register_schema(self, collection: str, schema: Mapping[str, FieldRule | Mapping[str, Any]]) -> None:
        """Register the validation schema of *collection*."""
        self._validator.register(collection, schema)

    def document_id(self, live: object) -> Any:
        """Id of the document *live* is bound to, or ``None``."""
        binding = self._bindings.get(id(live))
        return binding.doc_id if binding is not None else None

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def odb(
        self,
        driver: str,
        collection: str,
        query: Mapping[str, Any] | None = None,
        value: Any = None,
    ) -> LiveObject | Literal[False]:
        """Locate or create a document and return it as a bound live object.

        An empty query always creates a new document from *value*. A
        non-empty query binds the first match; on a miss a document is
        created from *value*, or ``False`` is returned when no value was
        given. ``False`` is also returned when *value* fails validation
        or a schema predicate raises.

        Raises :class:`UnknownDriverError` for an unmounted driver and
        :class:`MalformedDocumentError` when the driver answers with a
        document lacking an id or a usable state tree.
        """
        backend = self._registry.get(driver)
        if value is not None and not _is_container(value):
            raise TypeError(f"Document value must be a dict or list, got {type(value).__name__}")

        try:
            await self._validator.validate(collection, value)
        except ValidationError as exc:
            _logger.warning("%s", exc)
            return False
        except Exception as exc:
            _logger.warning("Validation of %s/%s raised: %s", driver, collection, exc)
            _logger.debug("Validation failure", exc_info=True)
            return False

        native = self._native_query(backend, query)
        if not native:
            raw = await backend.create(collection, value if value is not None else {})
        else:
            raw = await backend.query(collection, native)
            if not raw:
                if value is None:
                    _logger.debug(
                        "No document in %s/%s matches %s",
                        driver,
                        collection,
                        redact_for_log(native),
                    )
                    return False
                raw = await backend.create(collection, value)

        doc = self._check_document(driver, collection, raw)
        try:
            live = from_state_tree(doc.state_tree)
        except StateTreeError as exc:
            raise MalformedDocumentError(
                f"Driver {driver} returned an unusable state tree for {collection}: {exc}",
                driver=driver,
                collection=collection,
            ) from exc

        self._bind(driver, backend, collection, doc.id, live)
        return live

    async def remove(self, driver: str, collection: str, query: Mapping[str, Any]) -> bool:
        """Delete the first document matching *query*.

        An empty query matches the first document of the collection.
        Lookup and delete failures are logged and reported as ``False``.
        """
        backend = self._registry.get(driver)
        native = self._native_query(backend, query)
        try:
            raw = await backend.query(collection, native)
            if not raw:
                return False
            doc = self._check_document(driver, collection, raw)
            return bool(await backend.remove(collection, doc.id))
        except Exception as exc:
            _logger.error("Failed to remove document from %s/%s: %s", driver, collection, exc)
            _logger.debug("Remove failure", exc_info=True)
            return False

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _native_query(backend: Driver, query: Mapping[str, Any] | None) -> dict[str, Any]:
        generic = dict(query or {})
        if isinstance(backend, QueryTransformer):
            return backend.transform_query(generic)
        return generic

    @staticmethod
    def _check_document(driver: str, collection: str, raw: Any) -> DriverDocument:
        if isinstance(raw, DriverDocument):
            return raw
        if not isinstance(raw, Mapping):
            raise MalformedDocumentError(
                f"Driver {driver} returned {type(raw).__name__} instead of a document for {collection}",
                driver=driver,
                collection=collection,
            )
        try:
            return DriverDocument.model_validate(dict(raw))
        except PydanticValidationError as exc:
            raise MalformedDocumentError(
                f"Driver {driver} returned a malformed document for {collection}: {exc}",
                driver=driver,
                collection=collection,
            ) from exc

    def _bind(self, driver: str, backend: Driver, collection: str, doc_id: Any, live: LiveObject) -> None:
        validator = self._validator

        async def persist(mutation: Mutation) -> None:
            try:
                await validator.validate(collection, live)
            except ValidationError as exc:
                # The live object keeps the rejected value; the backend keeps the last valid state.
                _logger.warning(
                    "Mutation of %s in %s/%s not persisted: %s",
                    redact_for_log(list(mutation.path)),
                    collection,
                    doc_id,
                    exc,
                )
                return
            await backend.update(collection, doc_id, live)

        subscription = MutationSubscription(live, persist, label=f"{driver}:{collection}/{doc_id}")
        self._watchers.track(subscription)
        subscription.start()
        self._bindings[id(live)] = _Binding(driver=driver, collection=collection, doc_id=doc_id, live=live)
