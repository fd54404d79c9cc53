from __future__ import annotations

import asyncio
import logging

import pytest

from pyodb.exceptions import SubscriptionClosedError
from pyodb.observable import Mutation, ObservedDict
from pyodb.watch import MutationSubscription, WatcherManager


@pytest.mark.asyncio
async def test_each_mutation_reaches_the_handler() -> None:
    live = ObservedDict({"a": 1})
    seen: list[tuple[object, ...]] = []

    async def handler(mutation: Mutation) -> None:
        seen.append(mutation.path)

    subscription = MutationSubscription(live, handler)
    subscription.start()
    live["a"] = 2
    live["b"] = 3
    await subscription.drain()

    assert sorted(seen) == [("a",), ("b",)]
    assert subscription.active


@pytest.mark.asyncio
async def test_overlapping_mutations_run_as_independent_tasks() -> None:
    live = ObservedDict()
    release = asyncio.Event()
    finished: list[object] = []

    async def handler(mutation: Mutation) -> None:
        await release.wait()
        finished.append(mutation.key)

    subscription = MutationSubscription(live, handler)
    subscription.start()
    live["a"] = 1
    live["b"] = 2
    await asyncio.sleep(0)

    assert subscription.pending == 2
    release.set()
    await subscription.drain()
    assert sorted(finished) == ["a", "b"]
    assert subscription.pending == 0


@pytest.mark.asyncio
async def test_cancelled_subscription_stops_and_cannot_restart() -> None:
    live = ObservedDict()
    seen: list[Mutation] = []

    async def handler(mutation: Mutation) -> None:
        seen.append(mutation)

    subscription = MutationSubscription(live, handler)
    subscription.start()
    subscription.cancel()
    subscription.cancel()
    live["a"] = 1
    await subscription.drain()

    assert seen == []
    assert subscription.cancelled
    assert live.observer.listener_count == 0
    with pytest.raises(SubscriptionClosedError):
        subscription.start()


@pytest.mark.asyncio
async def test_mutation_before_cancel_is_still_delivered() -> None:
    live = ObservedDict()
    seen: list[object] = []

    async def handler(mutation: Mutation) -> None:
        seen.append(mutation.key)

    subscription = MutationSubscription(live, handler)
    subscription.start()
    live["a"] = 1
    subscription.cancel()
    live["b"] = 2

    assert subscription.pending == 1
    await subscription.drain()
    assert seen == ["a"]


@pytest.mark.asyncio
async def test_double_start_is_rejected() -> None:
    async def handler(_mutation: Mutation) -> None:
        return None

    subscription = MutationSubscription(ObservedDict(), handler)
    subscription.start()

    with pytest.raises(SubscriptionClosedError):
        subscription.start()


@pytest.mark.asyncio
async def test_handler_failure_is_logged_not_raised(caplog: pytest.LogCaptureFixture) -> None:
    live = ObservedDict()

    async def handler(_mutation: Mutation) -> None:
        raise RuntimeError("write failed")

    subscription = MutationSubscription(live, handler, label="memory:things/1")
    subscription.start()

    with caplog.at_level(logging.ERROR, logger="pyodb.watch"):
        live["a"] = 1
        await subscription.drain()

    assert live["a"] == 1
    assert "memory:things/1" in caplog.text


@pytest.mark.asyncio
async def test_manager_allows_one_active_watcher_per_object() -> None:
    async def handler(_mutation: Mutation) -> None:
        return None

    live = ObservedDict()
    manager = WatcherManager()
    first = MutationSubscription(live, handler)
    manager.track(first)

    with pytest.raises(SubscriptionClosedError):
        manager.track(MutationSubscription(live, handler))

    first.cancel()
    replacement = MutationSubscription(live, handler)
    manager.track(replacement)
    assert manager.subscription_for(live) is replacement
    assert live in manager


class _BrokenSubscription(MutationSubscription):
    def cancel(self) -> None:
        raise RuntimeError("cancel failed")


@pytest.mark.asyncio
async def test_cancel_all_tolerates_failures(caplog: pytest.LogCaptureFixture) -> None:
    async def handler(_mutation: Mutation) -> None:
        return None

    manager = WatcherManager()
    broken = _BrokenSubscription(ObservedDict(), handler)
    healthy = MutationSubscription(ObservedDict(), handler)
    healthy.start()
    manager.track(broken)
    manager.track(healthy)

    with caplog.at_level(logging.ERROR, logger="pyodb.watch"):
        manager.cancel_all()

    assert healthy.cancelled
    assert len(manager) == 0
    assert "Failed to close watcher" in caplog.text
