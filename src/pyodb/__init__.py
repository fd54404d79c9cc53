"""pyodb - Live objects transparently persisted through pluggable storage drivers."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyodb")
except PackageNotFoundError:
    __version__ = "0+local"
from pyodb.config import Environment, OdbConfig
from pyodb.context import OdbContext
from pyodb.documents import DriverDocument, StateDocument, make_state_document
from pyodb.drivers import Closeable, Driver, DriverEntry, QueryTransformer
from pyodb.exceptions import (
    DriverUnavailableError,
    MalformedDocumentError,
    MissingFieldError,
    OdbConfigError,
    OdbError,
    PredicateFailedError,
    StateTreeError,
    SubscriptionClosedError,
    UnknownDriverError,
    ValidationError,
)
from pyodb.observable import Mutation, MutationKind, ObservedDict, ObservedList, observe
from pyodb.registry import DRIVER_TABLE, DriverRegistry
from pyodb.validation import FieldRule, Validator
from pyodb.watch import MutationSubscription, WatcherManager

__all__ = [
    "__version__",
    "Closeable",
    "DRIVER_TABLE",
    "Driver",
    "DriverDocument",
    "DriverEntry",
    "DriverRegistry",
    "DriverUnavailableError",
    "Environment",
    "FieldRule",
    "MalformedDocumentError",
    "MissingFieldError",
    "Mutation",
    "MutationKind",
    "MutationSubscription",
    "ObservedDict",
    "ObservedList",
    "OdbConfig",
    "OdbConfigError",
    "OdbContext",
    "OdbError",
    "PredicateFailedError",
    "QueryTransformer",
    "StateDocument",
    "StateTreeError",
    "SubscriptionClosedError",
    "UnknownDriverError",
    "ValidationError",
    "Validator",
    "WatcherManager",
    "make_state_document",
    "observe",
]
