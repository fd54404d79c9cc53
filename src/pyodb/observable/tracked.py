"""Observable dict/list containers.

A live object is a tree of :class:`ObservedDict` and :class:`ObservedList`
nodes sharing one :class:`Observer` owned by the root. Every mutation
anywhere in the tree is reported to the root observer as a
:class:`Mutation` carrying the full path of the changed slot.

Plain dicts and lists assigned into a live object are converted into
observed containers and attached to the tree. Observed containers taken
from another tree are copied, so a node always has exactly one parent.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator, Mapping, MutableMapping, MutableSequence, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

_logger = logging.getLogger(__name__)

_MISSING = object()


class MutationKind(StrEnum):
    SET = "set"
    DELETE = "delete"
    INSERT = "insert"


@dataclass(frozen=True)
class Mutation:
    """One change to a live object.

    ``path`` leads from the root to the changed slot; its last element is
    the dict key or list index that changed.
    """

    kind: MutationKind
    path: tuple[Any, ...]
    old: Any = None
    new: Any = None

    @property
    def key(self) -> Any:
        return self.path[-1] if self.path else None


MutationListener = Callable[[Mutation], None]


class Observer:
    """Fan-out of mutations to synchronous listeners."""

    def __init__(self) -> None:
        self._listeners: list[MutationListener] = []

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def watch(self, listener: MutationListener) -> Callable[[], None]:
        """Register *listener* and return a callable that unregisters it."""
        self._listeners.append(listener)

        def unwatch() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return unwatch

    def emit(self, mutation: Mutation) -> None:
        for listener in list(self._listeners):
            try:
                listener(mutation)
            except Exception:
                _logger.warning("Mutation listener failed for path=%s", mutation.path, exc_info=True)


class _ObservedContainer:
    """Tree bookkeeping shared by the observed containers."""

    def __init__(self) -> None:
        self._parent: _ObservedContainer | None = None
        self._observer: Observer | None = Observer()

    @property
    def observer(self) -> Observer:
        """Observer of the tree this container belongs to."""
        node = self
        while node._parent is not None:
            node = node._parent
        assert node._observer is not None
        return node._observer

    def _key_of(self, child: _ObservedContainer) -> Any:
        raise NotImplementedError

    def _path(self) -> tuple[Any, ...]:
        parts: list[Any] = []
        node = self
        while node._parent is not None:
            parts.append(node._parent._key_of(node))
            node = node._parent
        return tuple(reversed(parts))

    def _emit(self, kind: MutationKind, key: Any, old: Any = None, new: Any = None) -> None:
        self.observer.emit(Mutation(kind=kind, path=self._path() + (key,), old=old, new=new))

    def _adopt(self, value: Any, current: Any = _MISSING) -> Any:
        if value is current:
            return value
        if isinstance(value, Mapping):
            child: _ObservedContainer = ObservedDict(value)
        elif _is_list_like(value):
            child = ObservedList(value)
        else:
            return value
        child._parent = self
        child._observer = None
        return child

    @staticmethod
    def _release(value: Any) -> None:
        if isinstance(value, _ObservedContainer):
            value._parent = None
            value._observer = Observer()


def _is_list_like(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray, tuple))


class ObservedDict(_ObservedContainer, MutableMapping[str, Any]):
    """A dict that reports every change to its tree's observer."""

    def __init__(self, data: Mapping[str, Any] | Iterable[tuple[str, Any]] | None = None, /, **kwargs: Any) -> None:
        super().__init__()
        self._data: dict[str, Any] = {}
        initial = dict(data.items() if isinstance(data, Mapping) else (data or ()), **kwargs)
        for key, value in initial.items():
            self._data[key] = self._adopt(value)

    def _key_of(self, child: _ObservedContainer) -> Any:
        for key, value in self._data.items():
            if value is child:
                return key
        raise LookupError("container is not a child of this dict")

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        old = self._data.get(key, _MISSING)
        new = self._adopt(value, old)
        self._data[key] = new
        if old is not new:
            self._release(old)
        self._emit(MutationKind.SET, key, None if old is _MISSING else old, new)

    def __delitem__(self, key: str) -> None:
        old = self._data.pop(key)
        self._release(old)
        self._emit(MutationKind.DELETE, key, old)

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._data!r})"


class ObservedList(_ObservedContainer, MutableSequence[Any]):
    """A list that reports every change to its tree's observer."""

    def __init__(self, data: Iterable[Any] | None = None, /) -> None:
        super().__init__()
        self._data: list[Any] = [self._adopt(value) for value in (data or ())]

    def _key_of(self, child: _ObservedContainer) -> Any:
        for index, value in enumerate(self._data):
            if value is child:
                return index
        raise LookupError("container is not a child of this list")

    def _normalize(self, index: int) -> int:
        size = len(self._data)
        if index < 0:
            index += size
        if not 0 <= index < size:
            raise IndexError("list index out of range")
        return index

    def __getitem__(self, index: Any) -> Any:
        if isinstance(index, slice):
            return list(self._data[index])
        return self._data[index]

    def __setitem__(self, index: Any, value: Any) -> None:
        if isinstance(index, slice):
            old_items = self._data[index]
            self._data[index] = [self._adopt(item) for item in value]
            for item in old_items:
                self._release(item)
            self._emit(MutationKind.SET, index, old_items, list(self._data[index]))
            return
        index = self._normalize(index)
        old = self._data[index]
        new = self._adopt(value, old)
        self._data[index] = new
        if old is not new:
            self._release(old)
        self._emit(MutationKind.SET, index, old, new)

    def __delitem__(self, index: Any) -> None:
        if isinstance(index, slice):
            old_items = self._data[index]
            del self._data[index]
            for item in old_items:
                self._release(item)
            self._emit(MutationKind.DELETE, index, old_items)
            return
        index = self._normalize(index)
        old = self._data.pop(index)
        self._release(old)
        self._emit(MutationKind.DELETE, index, old)

    def __len__(self) -> int:
        return len(self._data)

    def insert(self, index: int, value: Any) -> None:
        size = len(self._data)
        if index < 0:
            index = max(index + size, 0)
        index = min(index, size)
        new = self._adopt(value)
        self._data.insert(index, new)
        self._emit(MutationKind.INSERT, index, None, new)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ObservedList):
            return self._data == other._data
        if _is_list_like(other):
            return self._data == list(other)  # type: ignore[call-overload]
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._data!r})"


LiveObject = ObservedDict | ObservedList


def observe(value: Any) -> LiveObject:
    """Wrap a plain dict or list into a live object.

    Live objects are returned unchanged.
    """
    if isinstance(value, (ObservedDict, ObservedList)):
        return value
    if isinstance(value, Mapping):
        return ObservedDict(value)
    if _is_list_like(value):
        return ObservedList(value)
    raise TypeError(f"Only dicts and lists can be observed, got {type(value).__name__}")
