"""Mutation subscriptions and the set of active watchers.

A :class:`MutationSubscription` turns the synchronous mutation
notifications of one live object into asyncio tasks: every mutation runs
the async handler as its own task, so handlers of overlapping mutations
are not serialized. Subscriptions can be cancelled and cannot be
restarted afterwards.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from pyodb.exceptions import SubscriptionClosedError
from pyodb.observable.tracked import LiveObject, Mutation

_logger = logging.getLogger(__name__)

MutationHandler = Callable[[Mutation], Awaitable[None]]


class MutationSubscription:
    """Delivers the mutations of one live object to an async handler."""

    def __init__(
        self,
        target: LiveObject,
        handler: MutationHandler,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
        label: str = "",
    ) -> None:
        self._target = target
        self._handler = handler
        self._loop = loop
        self._label = label or type(target).__name__
        self._unwatch: Callable[[], None] | None = None
        self._cancelled = False
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def target(self) -> LiveObject:
        return self._target

    @property
    def active(self) -> bool:
        return self._unwatch is not None and not self._cancelled

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def pending(self) -> int:
        """Handler tasks scheduled and not finished yet."""
        return len(self._tasks)

    def start(self) -> None:
        """Begin delivering mutations. Must be called with a running loop
        unless one was given to the constructor."""
        if self._cancelled:
            raise SubscriptionClosedError(f"Subscription {self._label} was cancelled and cannot be restarted")
        if self._unwatch is not None:
            raise SubscriptionClosedError(f"Subscription {self._label} is already started")
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        self._unwatch = self._target.observer.watch(self._on_mutation)

    def cancel(self) -> None:
        """Stop delivering mutations.

        Handler tasks for mutations that happened before the call still
        run; they are not awaited here.
        """
        if self._cancelled:
            return
        self._cancelled = True
        unwatch = self._unwatch
        self._unwatch = None
        if unwatch is not None:
            unwatch()

    async def drain(self) -> None:
        """Wait until every handler task scheduled so far has finished."""
        # Let pending call_soon_threadsafe callbacks spawn their tasks.
        await asyncio.sleep(0)
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
            await asyncio.sleep(0)

    def _on_mutation(self, mutation: Mutation) -> None:
        loop = self._loop
        if self._cancelled or loop is None:
            return
        if loop.is_closed():
            _logger.debug("Dropping mutation on %s: event loop is closed", self._label)
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._spawn(mutation)
        else:
            loop.call_soon_threadsafe(self._spawn, mutation)

    def _spawn(self, mutation: Mutation) -> None:
        # Mutations accepted before cancel() are still delivered.
        if self._loop is None:
            return
        task = self._loop.create_task(self._run(mutation))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, mutation: Mutation) -> None:
        try:
            await self._handler(mutation)
        except Exception:
            _logger.error("Mutation handler failed on %s path=%s", self._label, mutation.path, exc_info=True)


class WatcherManager:
    """Active subscriptions of one context, at most one per live object."""

    def __init__(self) -> None:
        self._subscriptions: dict[int, MutationSubscription] = {}

    def __len__(self) -> int:
        return len(self._subscriptions)

    def __contains__(self, live: object) -> bool:
        return id(live) in self._subscriptions

    def subscription_for(self, live: object) -> MutationSubscription | None:
        return self._subscriptions.get(id(live))

    def track(self, subscription: MutationSubscription) -> None:
        key = id(subscription.target)
        existing = self._subscriptions.get(key)
        if existing is not None and not existing.cancelled:
            raise SubscriptionClosedError("Live object already has an active watcher")
        self._subscriptions[key] = subscription

    async def drain(self) -> None:
        for subscription in list(self._subscriptions.values()):
            await subscription.drain()

    def cancel_all(self) -> None:
        """Cancel every tracked subscription and forget them."""
        for subscription in list(self._subscriptions.values()):
            try:
                subscription.cancel()
                _logger.debug("Watcher closed.")
            except Exception:
                _logger.error("Failed to close watcher", exc_info=True)
        self._subscriptions.clear()
