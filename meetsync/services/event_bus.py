import asyncio
import json
import logging
from collections.abc import Callable
from typing import Any

import websockets

logger = logging.getLogger(__name__)

EventCallback = Callable[[Any], None]
Unlisten = Callable[[], None]


class EventBus:
    """In-process named-event bus.

    ``listen`` is a coroutine because establishing a listener is asynchronous
    on every real transport; callers must not assume it resolves before they
    lose interest in the event.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[EventCallback]] = {}

    async def listen(self, event_name: str, callback: EventCallback) -> Unlisten:
        """Register a callback for an event name. Returns the unlisten function."""
        self._listeners.setdefault(event_name, []).append(callback)

        def unlisten() -> None:
            callbacks = self._listeners.get(event_name)
            if not callbacks:
                return
            try:
                callbacks.remove(callback)
            except ValueError:
                return
            if not callbacks:
                del self._listeners[event_name]

        return unlisten

    def emit(self, event_name: str, payload: Any) -> int:
        """Deliver a payload to every listener of an event. Returns the delivery count."""
        callbacks = list(self._listeners.get(event_name, ()))
        for callback in callbacks:
            try:
                callback(payload)
            except Exception as e:
                logger.error("Listener for %s failed: %s", event_name, e)
        return len(callbacks)

    def listener_count(self, event_name: str) -> int:
        return len(self._listeners.get(event_name, ()))

    async def close(self) -> None:
        self._listeners.clear()


class WebSocketEventSource(EventBus):
    """Event source backed by an upstream producer's websocket stream."""

    def __init__(self, url: str) -> None:
        super().__init__()
        self._url = url
        self._ws = None
        self._reader_task: asyncio.Task | None = None
        self._connect_lock = asyncio.Lock()
        self._pending_sends: set[asyncio.Task] = set()

    async def _ensure_connected(self) -> None:
        async with self._connect_lock:
            if self._ws is not None:
                return
            logger.info("Connecting to event stream at %s", self._url)
            self._ws = await websockets.connect(self._url)
            self._reader_task = asyncio.create_task(self._read_loop())
            # Names that kept local listeners across a dropped connection
            for event_name in list(self._listeners):
                await self._ws.send(json.dumps({"type": "listen", "event": event_name}))

    async def listen(self, event_name: str, callback: EventCallback) -> Unlisten:
        await self._ensure_connected()
        first = self.listener_count(event_name) == 0
        unlisten_local = await super().listen(event_name, callback)
        if first:
            try:
                await self._ws.send(json.dumps({"type": "listen", "event": event_name}))
            except Exception:
                unlisten_local()
                raise

        def unlisten() -> None:
            unlisten_local()
            if self.listener_count(event_name) == 0 and self._ws is not None:
                self._send_later({"type": "unlisten", "event": event_name})

        return unlisten

    def _send_later(self, frame: dict) -> None:
        t = asyncio.create_task(self._ws.send(json.dumps(frame)))
        self._pending_sends.add(t)
        t.add_done_callback(self._pending_sends.discard)
        t.add_done_callback(self._log_send_failure)

    def _log_send_failure(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        e = task.exception()
        if e is not None:
            logger.warning("Event stream send failed: %s", e)

    def dispatch(self, raw: str | bytes) -> None:
        """Route one upstream frame to local listeners."""
        try:
            frame = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("Dropping undecodable event frame")
            return
        if not isinstance(frame, dict) or "event" not in frame:
            logger.debug("Ignoring non-event frame: %s", frame)
            return
        self.emit(frame["event"], frame.get("payload", {}))

    async def _read_loop(self) -> None:
        try:
            async for raw in self._ws:
                self.dispatch(raw)
        except websockets.ConnectionClosed:
            logger.warning("Event stream connection closed")
        except Exception as e:
            logger.error("Event stream reader error: %s", e)
        finally:
            self._ws = None

    async def close(self) -> None:
        await super().close()
        if self._reader_task and not self._reader_task.done():
            self._reader_task.cancel()
            try:
                await self._reader_task
            except asyncio.CancelledError:
                pass
        if self._ws is not None:
            await self._ws.close()
            self._ws = None
