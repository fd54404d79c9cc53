from __future__ import annotations

import asyncio

import pytest

from pyodb.exceptions import MissingFieldError, PredicateFailedError
from pyodb.observable import observe
from pyodb.validation import FieldRule, Validator


def _is_str(value: object) -> bool:
    return isinstance(value, str)


@pytest.mark.asyncio
async def test_collection_without_schema_accepts_anything() -> None:
    validator = Validator()

    await validator.validate("anything", {"x": 1})
    await validator.validate("anything", None)
    await validator.validate("anything", [1, 2])


@pytest.mark.asyncio
async def test_missing_field_is_reported() -> None:
    validator = Validator()
    validator.register("users", {"name": FieldRule(_is_str, "Name must be a string.")})

    with pytest.raises(MissingFieldError) as excinfo:
        await validator.validate("users", {"other": 1})

    assert excinfo.value.field == "name"
    assert excinfo.value.collection == "users"
    assert "Missing field 'name'" in str(excinfo.value)


@pytest.mark.asyncio
async def test_missing_value_counts_as_missing_fields() -> None:
    validator = Validator()
    validator.register("users", {"name": FieldRule(_is_str)})

    with pytest.raises(MissingFieldError):
        await validator.validate("users", None)


@pytest.mark.asyncio
async def test_failed_predicate_carries_message_and_value() -> None:
    validator = Validator()
    validator.register("users", {"name": FieldRule(_is_str, "Name must be a string.")})

    with pytest.raises(PredicateFailedError) as excinfo:
        await validator.validate("users", {"name": 123})

    assert excinfo.value.rule_message == "Name must be a string."
    assert excinfo.value.value == 123
    assert "Name must be a string." in str(excinfo.value)


@pytest.mark.asyncio
async def test_async_predicates_are_awaited() -> None:
    async def is_positive(value: object) -> bool:
        await asyncio.sleep(0)
        return isinstance(value, int) and value > 0

    validator = Validator()
    validator.register("counters", {"count": FieldRule(is_positive, "Count must be positive.")})

    await validator.validate("counters", {"count": 3})
    with pytest.raises(PredicateFailedError):
        await validator.validate("counters", {"count": -1})


@pytest.mark.asyncio
async def test_dict_rules_are_normalized_and_checked_in_order() -> None:
    validator = Validator()
    validator.register(
        "items",
        {
            "first": {"validate": _is_str, "message": "First must be a string."},
            "second": {"validate": _is_str, "message": "Second must be a string."},
        },
    )

    assert isinstance(validator.schemas["items"]["first"], FieldRule)
    with pytest.raises(PredicateFailedError) as excinfo:
        await validator.validate("items", {"first": 1, "second": 2})
    assert excinfo.value.field == "first"


@pytest.mark.asyncio
async def test_live_objects_validate_like_dicts() -> None:
    validator = Validator()
    validator.register("users", {"name": FieldRule(_is_str)})

    await validator.validate("users", observe({"name": "ada"}))


def test_rule_without_callable_is_rejected() -> None:
    validator = Validator()

    with pytest.raises(TypeError):
        validator.register("users", {"name": {"message": "no predicate"}})


@pytest.mark.asyncio
async def test_unregister_removes_schema() -> None:
    validator = Validator()
    validator.register("users", {"name": FieldRule(_is_str)})
    validator.unregister("users")

    await validator.validate("users", {})
    assert "users" not in validator.schemas
