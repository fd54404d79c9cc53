"""Per-collection schemas and value validation.

A schema maps field names to a :class:`FieldRule`::

    validator.register("users", {
        "name": FieldRule(lambda v: isinstance(v, str), "Name must be a string."),
    })

Predicates may be plain callables or return an awaitable.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from pyodb.exceptions import MissingFieldError, PredicateFailedError

Predicate = Callable[[Any], bool | Awaitable[bool]]


@dataclass(frozen=True)
class FieldRule:
    """Predicate and failure message for one schema field."""

    validate: Predicate
    message: str = "Invalid value."


Schema = Mapping[str, FieldRule]


def _as_rule(field: str, rule: FieldRule | Mapping[str, Any]) -> FieldRule:
    if isinstance(rule, FieldRule):
        return rule
    if isinstance(rule, Mapping) and callable(rule.get("validate")):
        return FieldRule(validate=rule["validate"], message=str(rule.get("message", FieldRule.message)))
    raise TypeError(f"Schema field {field!r} needs a callable 'validate'")


class Validator:
    """Registry of collection schemas."""

    def __init__(self) -> None:
        self._schemas: dict[str, dict[str, FieldRule]] = {}

    @property
    def schemas(self) -> Mapping[str, Mapping[str, FieldRule]]:
        return MappingProxyType(self._schemas)

    def register(self, collection: str, schema: Mapping[str, FieldRule | Mapping[str, Any]]) -> None:
        """Register (or replace) the schema of *collection*."""
        self._schemas[collection] = {field: _as_rule(field, rule) for field, rule in schema.items()}

    def unregister(self, collection: str) -> None:
        self._schemas.pop(collection, None)

    async def validate(self, collection: str, data: Any) -> None:
        """Check *data* against the schema of *collection*.

        Collections without a schema accept anything. Fields are checked
        in declaration order and the first failure is raised as
        :class:`MissingFieldError` or :class:`PredicateFailedError`.
        """
        schema = self._schemas.get(collection)
        if not schema:
            return

        for field, rule in schema.items():
            if not isinstance(data, Mapping) or field not in data:
                raise MissingFieldError(collection=collection, field=field)
            value = data[field]
            result = rule.validate(value)
            if inspect.isawaitable(result):
                result = await result
            if not result:
                raise PredicateFailedError(
                    collection=collection,
                    field=field,
                    rule_message=rule.message,
                    value=value,
                )
