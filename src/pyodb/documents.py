"""Persisted document shapes shared by every driver.

Drivers store a :class:`StateDocument` (``state_tree`` + ``state_json``)
under a driver-assigned id, and hand a :class:`DriverDocument` back to
the core after ``create`` and ``query``.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from pyodb.observable.codec import to_plain, to_state_tree


class StateDocument(BaseModel):
    """Both projections of one value, as written to a backend."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    state_tree: dict[str, Any]
    state_json: Any

    def to_record(self, **extra: Any) -> dict[str, Any]:
        """Plain dict ready to be written, with driver fields (e.g. the id) added."""
        record = self.model_dump()
        record.update(extra)
        return record


class DriverDocument(BaseModel):
    """What a driver returns for a created or found document."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: Any
    state_tree: dict[str, Any]

    @field_validator("id")
    @classmethod
    def _require_id(cls, value: Any) -> Any:
        if value is None or value == "":
            raise ValueError("document id must be set")
        return value


def make_state_document(value: Any) -> StateDocument:
    """Build the persisted projections of a live or plain value."""
    return StateDocument(state_tree=to_state_tree(value), state_json=to_plain(value))


def matches_query(state_json: Any, query: dict[str, Any], *, prefix: str = "") -> bool:
    """Flat field-equality match against a plain JSON projection.

    Query keys may carry *prefix* (e.g. ``"state_json."``), which is
    stripped before comparing. An empty query matches every document.
    """
    if not query:
        return True
    if not isinstance(state_json, dict):
        return False
    for key, expected in query.items():
        field = key[len(prefix) :] if prefix and key.startswith(prefix) else key
        if field not in state_json or not _json_equal(state_json[field], expected):
            return False
    return True


def _json_equal(left: Any, right: Any) -> bool:
    # JSON keeps true and 1 apart
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left is right
    return bool(left == right)
