"""Printer connection and printing state tracking.

How to use the most important parts:
- `PrinterState`: the abstract status vocabulary (Busy, Ready, Printing, Paused, Completed, Error).
- `PrinterStateTracker`: the single source of truth for the current state. The printer
  driver integration calls `set_state`, `on_connected` and `on_disconnected`; everything
  else subscribes to the events listed in `consts.StateEvent`.
- `StateChangeEvent`: the immutable record passed to `state-changed` handlers.

The tracker does not judge transition legality; any state may follow any other.
It only derives notifications from the (previous, current) pair.
"""

from __future__ import annotations

import datetime
import enum
import threading
import time

import pydantic
import structlog

from flashforge.webui import consts
from flashforge.webui.events import EventEmitter

logger = structlog.get_logger(__name__)


class PrinterState(enum.StrEnum):
    """Abstract printer status."""

    BUSY = "Busy"
    READY = "Ready"
    PRINTING = "Printing"
    PAUSED = "Paused"
    COMPLETED = "Completed"
    ERROR = "Error"

    @classmethod
    def from_raw(cls, value: object) -> PrinterState:
        """Map a raw driver status string onto the vocabulary.

        Matching is case-insensitive. Anything unrecognised is treated as `BUSY`.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower()
            for member in cls:
                if member.value.lower() == normalized:
                    return member
        logger.debug("Unrecognised printer status, treating as Busy", raw=value)
        return cls.BUSY

    @property
    def is_disconnected(self) -> bool:
        """True for the two states that mean "no usable connection"."""
        return self in (PrinterState.BUSY, PrinterState.ERROR)


STATE_DESCRIPTIONS: dict[PrinterState, str] = {
    PrinterState.BUSY: "Printer is busy processing",
    PrinterState.READY: "Ready for new print job",
    PrinterState.PRINTING: "Currently printing",
    PrinterState.PAUSED: "Print job paused",
    PrinterState.COMPLETED: "Print job completed",
    PrinterState.ERROR: "Printer error occurred",
}


def derived_events(previous: PrinterState, current: PrinterState) -> list[consts.StateEvent]:
    """Connection and printing events implied by a `previous -> current` transition, in emission order."""
    events: list[consts.StateEvent] = []
    if previous.is_disconnected and not current.is_disconnected:
        events.append(consts.StateEvent.CONNECTED)
    if not previous.is_disconnected and current.is_disconnected:
        events.append(consts.StateEvent.DISCONNECTED)
    if previous != PrinterState.PRINTING and current == PrinterState.PRINTING:
        events.append(consts.StateEvent.PRINTING_STARTED)
    # Pausing is not stopping
    if previous == PrinterState.PRINTING and current not in (PrinterState.PRINTING, PrinterState.PAUSED):
        events.append(consts.StateEvent.PRINTING_STOPPED)
    return events


class StateChangeEvent(pydantic.BaseModel):
    """Record of one accepted transition."""

    previous_state: PrinterState
    current_state: PrinterState
    timestamp: datetime.datetime
    reason: str | None = None

    model_config = pydantic.ConfigDict(frozen=True)


class StateInfo(pydantic.BaseModel):
    """Snapshot of the tracker for diagnostics."""

    current_state: PrinterState
    description: str
    time_since_change: float
    transition_count: int
    last_change: datetime.datetime


class PrinterStateTracker(EventEmitter):
    """Tracks the printer state and emits semantic transition events.

    Events (see `consts.StateEvent`):
        state-changed: one `StateChangeEvent` argument, once per accepted transition.
        connected / disconnected: no arguments.
        printing-started / printing-stopped: no arguments.

    Usage Example:
    ```python
        >>> tracker = PrinterStateTracker()
        >>> tracker.on(StateEvent.CONNECTED, lambda: print("online"))
        >>> tracker.on_connected()
        online
        >>> tracker.get_current_state()
        <PrinterState.READY: 'Ready'>
    ```
    """

    def __init__(self, initial_state: PrinterState = PrinterState.BUSY) -> None:
        """Create a tracker.

        Args:
            initial_state: Starting state. Defaults to `Busy`.
        """
        super().__init__()
        self._lock = threading.Lock()
        self._current_state = PrinterState(initial_state)
        self._last_state_change = datetime.datetime.now(datetime.UTC)
        self._last_change_monotonic = time.monotonic()
        self._transition_count = 0

    # -- Queries ------------------------------------------------------------

    def get_current_state(self) -> PrinterState:
        """Current printer state."""
        return self._current_state

    def is_connected(self) -> bool:
        """True unless the state is `Busy` or `Error`."""
        return not self._current_state.is_disconnected

    def is_printing(self) -> bool:
        return self._current_state == PrinterState.PRINTING

    def is_paused(self) -> bool:
        return self._current_state == PrinterState.PAUSED

    def is_ready(self) -> bool:
        """True when the printer can accept a new job (`Ready` or `Completed`)."""
        return self._current_state in (PrinterState.READY, PrinterState.COMPLETED)

    def has_error(self) -> bool:
        return self._current_state == PrinterState.ERROR

    def is_active(self) -> bool:
        """True while a job is loaded (`Printing` or `Paused`)."""
        return self._current_state in (PrinterState.PRINTING, PrinterState.PAUSED)

    @property
    def last_state_change(self) -> datetime.datetime:
        return self._last_state_change

    @property
    def transition_count(self) -> int:
        return self._transition_count

    def time_since_last_change(self) -> float:
        """Seconds elapsed since the last accepted transition (or construction)."""
        return time.monotonic() - self._last_change_monotonic

    def state_description(self) -> str:
        return STATE_DESCRIPTIONS[self._current_state]

    def state_info(self) -> StateInfo:
        return StateInfo(
            current_state=self._current_state,
            description=self.state_description(),
            time_since_change=self.time_since_last_change(),
            transition_count=self._transition_count,
            last_change=self._last_state_change,
        )

    # -- Transitions --------------------------------------------------------

    def set_state(self, new_state: PrinterState, reason: str | None = None) -> bool:
        """Move to `new_state` and notify observers.

        Setting the current state again is a silent success: nothing is recorded
        and no event fires.

        Args:
            new_state: Target state.
            reason: Optional human-readable cause, carried on the `StateChangeEvent`.

        Returns:
            Always True.
        """
        self._transition(PrinterState(new_state), reason)
        return True

    def _transition(self, new_state: PrinterState, reason: str | None) -> list[consts.StateEvent]:
        """Apply a transition and emit its events. Returns the derived events fired."""
        with self._lock:
            previous_state = self._current_state
            if new_state == previous_state:
                return []

            self._current_state = new_state
            self._last_state_change = datetime.datetime.now(datetime.UTC)
            self._last_change_monotonic = time.monotonic()
            self._transition_count += 1
            event = StateChangeEvent(
                previous_state=previous_state,
                current_state=new_state,
                timestamp=self._last_state_change,
                reason=reason,
            )

        logger.info("State changed", previous=str(previous_state), current=str(new_state), reason=reason)
        self.emit(consts.StateEvent.CHANGED, event)

        fired = derived_events(previous_state, new_state)
        for name in fired:
            self.emit(name)
        return fired

    def on_connected(self) -> None:
        """The driver established a connection: move to `Ready` and emit `connected`.

        `connected` fires once per call, whether it came from the transition itself
        or the printer was already in a connected state.
        """
        fired = self._transition(PrinterState.READY, consts.REASON_CONNECTED)
        if consts.StateEvent.CONNECTED not in fired:
            self.emit(consts.StateEvent.CONNECTED)

    def on_disconnected(self) -> None:
        """The driver lost its connection: move to `Busy` and emit `disconnected`."""
        fired = self._transition(PrinterState.BUSY, consts.REASON_DISCONNECTED)
        if consts.StateEvent.DISCONNECTED not in fired:
            self.emit(consts.StateEvent.DISCONNECTED)

    def on_print_started(self) -> None:
        self.set_state(PrinterState.PRINTING, "print job started")

    def on_print_paused(self) -> None:
        self.set_state(PrinterState.PAUSED, "print job paused")

    def on_print_resumed(self) -> None:
        self.set_state(PrinterState.PRINTING, "print job resumed")

    def on_print_completed(self) -> None:
        self.set_state(PrinterState.COMPLETED, "print job completed")

    def on_error(self, message: str | None = None) -> None:
        self.set_state(PrinterState.ERROR, message or "unknown error")

    def clear_error(self) -> None:
        """Return to `Ready`, but only when currently in `Error`."""
        if self._current_state == PrinterState.ERROR:
            self.set_state(PrinterState.READY, "error cleared")

    # -- Lifecycle ----------------------------------------------------------

    def reset(self) -> None:
        """Return to `Busy` without emitting, clear counters and drop all listeners."""
        with self._lock:
            self._current_state = PrinterState.BUSY
            self._last_state_change = datetime.datetime.now(datetime.UTC)
            self._last_change_monotonic = time.monotonic()
            self._transition_count = 0
        self.remove_all_listeners()

    def dispose(self) -> None:
        """Drop all listeners. State queries keep working afterwards."""
        self.remove_all_listeners()
