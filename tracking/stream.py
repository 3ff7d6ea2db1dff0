import asyncio
import inspect
from collections import defaultdict
from enum import Enum
from typing import Any, Callable, Optional

from common.logger import get_logger

Listener = Callable[[Any], Any]
AnyListener = Callable[[str, Any], Any]


def event_name(name: Any) -> str:
    return name.value if isinstance(name, Enum) else str(name)


class NotificationStream:
    """Named lifecycle notifications of one tracking session.

    Listeners are plain callables receiving the payload; a listener that
    returns an awaitable is scheduled on the running loop. The stream is
    closed by its session once a terminal notification has been delivered,
    at which point every listener is detached.
    """

    def __init__(self) -> None:
        self._logger = get_logger(__name__)
        self._loop = asyncio.get_running_loop()
        self._listeners: dict[str, list[Listener]] = defaultdict(list)
        self._any_listeners: list[AnyListener] = []
        self._pending: set[asyncio.Future] = set()
        self._outcome: asyncio.Future = self._loop.create_future()
        self._on_cancel: Optional[Callable[[], None]] = None

    @property
    def closed(self) -> bool:
        return self._outcome.done()

    def on(self, name: str, listener: Listener) -> "NotificationStream":
        self._listeners[event_name(name)].append(listener)
        return self

    def once(self, name: str, listener: Listener) -> "NotificationStream":
        def _wrapper(payload: Any) -> Any:
            self.off(name, _wrapper)
            return listener(payload)

        return self.on(name, _wrapper)

    def on_any(self, listener: AnyListener) -> "NotificationStream":
        self._any_listeners.append(listener)
        return self

    def off(self, name: str, listener: Listener) -> "NotificationStream":
        listeners = self._listeners.get(event_name(name), [])
        if listener in listeners:
            listeners.remove(listener)
        return self

    def remove_all_listeners(self) -> None:
        self._listeners.clear()
        self._any_listeners.clear()

    def listener_count(self, name: str) -> int:
        return len(self._listeners.get(event_name(name), []))

    def emit(self, name: str, payload: Any) -> bool:
        name = event_name(name)
        listeners = list(self._listeners.get(name, []))
        any_listeners = list(self._any_listeners)

        for listener in listeners:
            self._call(name, listener, payload)
        for listener in any_listeners:
            self._call(name, listener, name, payload)

        return bool(listeners or any_listeners)

    def _call(self, name: str, listener: Callable[..., Any], *args: Any) -> None:
        try:
            result = listener(*args)
        except Exception:
            self._logger.exception("Listener of '%s' raised", name)
            return

        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._pending.add(task)
            task.add_done_callback(self._on_listener_done)

    def _on_listener_done(self, task: asyncio.Future) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return

        exc = task.exception()
        if exc is not None:
            self._logger.error("Asynchronous listener raised", exc_info=exc)

    def close(self, name: Optional[str] = None, payload: Any = None) -> None:
        """Detach every listener and resolve `wait()`.

        Called by the owning session, exactly once per session.
        """
        self.remove_all_listeners()
        if not self._outcome.done():
            self._outcome.set_result(None if name is None else (event_name(name), payload))

    def bind_cancel(self, callback: Callable[[], None]) -> None:
        self._on_cancel = callback

    def cancel(self) -> None:
        """Stop tracking without emitting anything further."""
        if self._on_cancel is not None:
            self._on_cancel()
        else:
            self.close()

    async def wait(self) -> Optional[tuple[str, Any]]:
        """Wait for the terminal notification.

        Returns its `(name, payload)`, or None when the session was cancelled.
        """
        return await asyncio.shield(self._outcome)
