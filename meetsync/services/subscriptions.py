"""Race-safe lifecycle for named-event subscriptions.

Establishing a listener is asynchronous, so a caller may dispose its
subscription before the listener exists. Each subscription carries a
``wanted`` flag: the delivery wrapper checks it before every handler call,
and an establishment that completes after disposal tears the fresh listener
down immediately instead of keeping it.
"""

import asyncio
import logging
from collections.abc import Callable, Hashable
from typing import Any

from pydantic import BaseModel, ValidationError

from meetsync.services.event_bus import EventBus, Unlisten

logger = logging.getLogger(__name__)


class SubscriptionError(Exception):
    """Raised when a listener could not be established."""

    def __init__(self, event_name: str, cause: BaseException):
        super().__init__(f"Failed to subscribe to {event_name}: {cause}")
        self.event_name = event_name
        self.cause = cause


class Subscription:
    """Cancellation token for one handler on one event name."""

    def __init__(
        self,
        manager: "SubscriptionManager",
        event_name: str,
        handler: Callable[[Any], None],
        payload_type: type[BaseModel] | None = None,
        slot: Hashable | None = None,
    ):
        self._manager = manager
        self.event_name = event_name
        self.slot = slot
        self._handler = handler
        self._payload_type = payload_type
        self._wanted = True
        self._unlisten: Unlisten | None = None
        self._error: SubscriptionError | None = None
        self._settled = asyncio.Event()
        self._task: asyncio.Task | None = None

    @property
    def active(self) -> bool:
        """True while the subscription is wanted and its listener is live."""
        return self._wanted and self._unlisten is not None

    @property
    def disposed(self) -> bool:
        return not self._wanted

    def _start(self, source: EventBus) -> None:
        self._task = asyncio.create_task(self._establish(source))

    async def _establish(self, source: EventBus) -> None:
        try:
            unlisten = await source.listen(self.event_name, self._deliver)
        except Exception as e:
            self._error = SubscriptionError(self.event_name, e)
            self._wanted = False
            logger.error("Subscription to %s failed: %s", self.event_name, e)
            self._manager._forget(self)
            self._settled.set()
            return

        if self._wanted:
            self._unlisten = unlisten
        else:
            # Disposed while establishing
            unlisten()
            logger.debug("Tore down late listener for %s", self.event_name)
        self._settled.set()

    def _deliver(self, raw: Any) -> None:
        if not self._wanted:
            return
        payload = raw
        if self._payload_type is not None and not isinstance(raw, self._payload_type):
            try:
                payload = self._payload_type.model_validate(raw)
            except ValidationError as e:
                logger.warning(
                    "Skipping malformed %s payload: %s", self.event_name, e.errors()[:1]
                )
                return
        try:
            self._handler(payload)
        except Exception as e:
            logger.error("Handler for %s failed, update skipped: %s", self.event_name, e)

    async def ready(self) -> None:
        """Wait until establishment settles. Raises SubscriptionError on failure."""
        await self._settled.wait()
        if self._error is not None:
            raise self._error

    def dispose(self) -> None:
        """Stop delivery. Safe to call more than once."""
        if not self._wanted:
            return
        self._wanted = False
        if self._unlisten is not None:
            unlisten, self._unlisten = self._unlisten, None
            unlisten()
        self._manager._forget(self)


class SubscriptionManager:
    """Owns every subscription a component makes against one event source."""

    def __init__(self, source: EventBus):
        self._source = source
        self._subscriptions: list[Subscription] = []
        self._slots: dict[Hashable, Subscription] = {}

    def subscribe(
        self,
        event_name: str,
        handler: Callable[[Any], None],
        payload_type: type[BaseModel] | None = None,
        slot: Hashable | None = None,
    ) -> Subscription:
        """Start listening for ``event_name``.

        Returns the cancellation token immediately; establishment continues in
        the background. Subscribing into an occupied ``slot`` disposes the
        previous occupant first.
        """
        if slot is not None and slot in self._slots:
            self._slots[slot].dispose()

        subscription = Subscription(self, event_name, handler, payload_type, slot)
        self._subscriptions.append(subscription)
        if slot is not None:
            self._slots[slot] = subscription
        subscription._start(self._source)
        return subscription

    def _forget(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
        if subscription.slot is not None and self._slots.get(subscription.slot) is subscription:
            del self._slots[subscription.slot]

    def cancel_all(self) -> None:
        for subscription in list(self._subscriptions):
            subscription.dispose()

    @property
    def subscriptions(self) -> list[Subscription]:
        return list(self._subscriptions)

    def __len__(self) -> int:
        return len(self._subscriptions)
