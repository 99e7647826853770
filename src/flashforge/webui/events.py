"""Synchronous publish/subscribe primitive used by the stateful services.

How to use the most important parts:
- `EventEmitter`: subclass it (or hold one) and call `emit(name, *args)` to notify
  every handler registered with `on(name, handler)`, in registration order.

Handlers run synchronously inside `emit`. A handler that raises is logged and
skipped; the remaining handlers still run and the caller of `emit` never sees
the error. Emissions with no registered handlers are dropped.
"""

import collections.abc
import typing

import structlog

logger = structlog.get_logger(__name__)

Handler = collections.abc.Callable[..., typing.Any]


class EventEmitter:
    """Named-event emitter with ordered, failure-isolated fan-out."""

    def __init__(self) -> None:
        """Initialize an emitter with no listeners."""
        self._listeners: dict[str, list[Handler]] = {}

    def on(self, event: str, handler: Handler) -> typing.Self:
        """Register `handler` for `event`. Returns the emitter for chaining."""
        self._listeners.setdefault(event, []).append(handler)
        return self

    def once(self, event: str, handler: Handler) -> typing.Self:
        """Register `handler` to run on the next emission of `event` only."""

        def _once_wrapper(*args: typing.Any) -> typing.Any:
            self.off(event, _once_wrapper)
            return handler(*args)

        _once_wrapper.listener = handler  # type: ignore[attr-defined]
        return self.on(event, _once_wrapper)

    def off(self, event: str, handler: Handler) -> typing.Self:
        """Remove the first registration of `handler` for `event`, if any.

        Handlers registered with `once` are matched by the original callable.
        """
        listeners = self._listeners.get(event)
        if not listeners:
            return self
        for registered in listeners:
            if registered == handler or getattr(registered, "listener", None) == handler:
                listeners.remove(registered)
                break
        else:
            return self
        if not listeners:
            del self._listeners[event]
        return self

    def emit(self, event: str, *args: typing.Any) -> bool:
        """Invoke every handler registered for `event` with `args`.

        Returns:
            True if at least one handler was registered, False otherwise.
        """
        listeners = self._listeners.get(event)
        if not listeners:
            return False

        # Snapshot so handlers can register or remove listeners while we iterate
        for handler in list(listeners):
            try:
                handler(*args)
            except Exception:
                logger.exception("Error in event listener", event_name=str(event), handler=repr(handler))
        return True

    def remove_all_listeners(self, event: str | None = None) -> typing.Self:
        """Remove all handlers for `event`, or every handler when `event` is None."""
        if event is None:
            self._listeners.clear()
        else:
            self._listeners.pop(event, None)
        return self

    def listener_count(self, event: str) -> int:
        """Number of handlers currently registered for `event`."""
        return len(self._listeners.get(event, []))

    def event_names(self) -> list[str]:
        """Names of events that currently have at least one handler."""
        return list(self._listeners)
