"""State-tree codec.

A state tree is a JSON-compatible snapshot of a live object that keeps
the container type of every node::

    {"@type": "dict", "value": {"name": "a", "tags": {"@type": "list", "value": ["x"]}}}

JSON scalars (``None``, bools, numbers, strings) are stored as-is. The
plain projection produced by :func:`to_plain` drops the tags and is what
drivers filter queries on.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from typing import Any

from pyodb.exceptions import StateTreeError
from pyodb.observable.tracked import LiveObject, observe

TYPE_KEY = "@type"
VALUE_KEY = "value"

_DICT = "dict"
_LIST = "list"
_TUPLE = "tuple"


def _check_scalar(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise StateTreeError(f"Non-finite float cannot be stored: {value!r}")
        return value
    raise StateTreeError(f"Unsupported value type in state tree: {type(value).__name__}")


def to_state_tree(value: Any) -> Any:
    """Encode *value* into a tagged state tree."""
    if isinstance(value, Mapping):
        encoded: dict[str, Any] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise StateTreeError(f"State tree keys must be strings, got {type(key).__name__}")
            encoded[key] = to_state_tree(item)
        return {TYPE_KEY: _DICT, VALUE_KEY: encoded}
    if isinstance(value, tuple):
        return {TYPE_KEY: _TUPLE, VALUE_KEY: [to_state_tree(item) for item in value]}
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return {TYPE_KEY: _LIST, VALUE_KEY: [to_state_tree(item) for item in value]}
    return _check_scalar(value)


def _decode(node: Any) -> Any:
    if isinstance(node, Mapping):
        tag = node.get(TYPE_KEY)
        inner = node.get(VALUE_KEY)
        if tag == _DICT and isinstance(inner, Mapping):
            return {key: _decode(item) for key, item in inner.items()}
        if tag == _LIST and isinstance(inner, list):
            return [_decode(item) for item in inner]
        if tag == _TUPLE and isinstance(inner, list):
            return tuple(_decode(item) for item in inner)
        raise StateTreeError(f"Untagged or unknown container in state tree: tag={tag!r}")
    if isinstance(node, list):
        raise StateTreeError("Untagged list in state tree")
    return _check_scalar(node)


def from_state_tree(tree: Any) -> LiveObject:
    """Rebuild a fresh live object from a state tree.

    The root of the tree must be a dict or list node.
    """
    decoded = _decode(tree)
    if isinstance(decoded, (dict, list)):
        return observe(decoded)
    raise StateTreeError(f"State tree root must be a dict or list, got {type(decoded).__name__}")


def to_plain(value: Any) -> Any:
    """Project *value* to plain JSON data without type tags."""
    if isinstance(value, Mapping):
        return {str(key): to_plain(item) for key, item in value.items()}
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return [to_plain(item) for item in value]
    return _check_scalar(value)
