"""Custom exception hierarchy for pyodb."""

from __future__ import annotations

from typing import Any


class OdbError(Exception):
    """Base exception for all pyodb errors."""


class OdbConfigError(OdbError):
    """Invalid or missing configuration."""


class StateTreeError(OdbError):
    """A value could not be encoded to, or decoded from, a state tree."""


class ValidationError(OdbError):
    """A value does not satisfy the schema registered for its collection."""

    def __init__(self, message: str, *, collection: str, field: str) -> None:
        self.collection = collection
        self.field = field
        super().__init__(message)


class MissingFieldError(ValidationError):
    """A schema field is absent from the validated value."""

    def __init__(self, *, collection: str, field: str) -> None:
        super().__init__(
            f"Validation Error: Missing field '{field}' in collection '{collection}'.",
            collection=collection,
            field=field,
        )


class PredicateFailedError(ValidationError):
    """A schema predicate returned a falsy result.

    ``rule_message`` is the message configured on the schema field and
    ``value`` the offending value.
    """

    def __init__(self, *, collection: str, field: str, rule_message: str, value: Any) -> None:
        self.rule_message = rule_message
        self.value = value
        super().__init__(
            f"Validation Error: {rule_message} - {value!r}",
            collection=collection,
            field=field,
        )


class DriverUnavailableError(OdbError):
    """A storage driver could not be used."""

    def __init__(self, message: str, *, driver: str) -> None:
        self.driver = driver
        super().__init__(message)


class UnknownDriverError(DriverUnavailableError):
    """The requested driver is not mounted in the registry.

    Raised for names that are not in the driver table as well as for
    drivers whose initialization failed.
    """

    def __init__(self, driver: str) -> None:
        super().__init__(f"Unknown or unmounted driver: {driver!r}", driver=driver)


class MalformedDocumentError(OdbError):
    """A driver returned a document without a usable id or state tree."""

    def __init__(self, message: str, *, driver: str, collection: str) -> None:
        self.driver = driver
        self.collection = collection
        super().__init__(message)


class SubscriptionClosedError(OdbError):
    """A subscription was started twice or restarted after cancellation."""
