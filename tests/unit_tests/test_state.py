"""Tests for the printer state tracker."""

import itertools
from unittest import mock

import pytest
from structlog.testing import capture_logs

from flashforge.webui.consts import StateEvent
from flashforge.webui.state import PrinterState, PrinterStateTracker, StateChangeEvent, derived_events

ALL_STATES = list(PrinterState)
DISCONNECTED = {PrinterState.BUSY, PrinterState.ERROR}


class Recorder:
    """Subscribes to every tracker event and records emissions in order."""

    def __init__(self, tracker: PrinterStateTracker):
        self.events: list[tuple[str, tuple]] = []
        for name in StateEvent:
            tracker.on(name, self._make(name))

    def _make(self, name):
        return lambda *args: self.events.append((name, args))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def count(self, name: str) -> int:
        return self.names().count(name)

    def clear(self) -> None:
        self.events.clear()


@pytest.fixture
def tracker():
    t = PrinterStateTracker()
    yield t
    t.dispose()


def test_initial_state_is_busy(tracker):
    assert tracker.get_current_state() == PrinterState.BUSY
    assert not tracker.is_connected()
    assert tracker.transition_count == 0


@pytest.mark.parametrize("state", ALL_STATES)
def test_equal_state_is_silent_noop(state):
    tracker = PrinterStateTracker(state)
    recorder = Recorder(tracker)
    before = tracker.last_state_change

    assert tracker.set_state(state, "again") is True

    assert recorder.events == []
    assert tracker.get_current_state() == state
    assert tracker.last_state_change == before
    assert tracker.transition_count == 0


@pytest.mark.parametrize("previous,current", list(itertools.permutations(ALL_STATES, 2)))
def test_transition_events(previous, current):
    tracker = PrinterStateTracker(previous)
    recorder = Recorder(tracker)

    tracker.set_state(current)

    assert recorder.count(StateEvent.CHANGED) == 1
    assert recorder.names()[0] == StateEvent.CHANGED

    crosses_up = previous in DISCONNECTED and current not in DISCONNECTED
    crosses_down = previous not in DISCONNECTED and current in DISCONNECTED
    assert recorder.count(StateEvent.CONNECTED) == (1 if crosses_up else 0)
    assert recorder.count(StateEvent.DISCONNECTED) == (1 if crosses_down else 0)

    starts = current == PrinterState.PRINTING
    stops = previous == PrinterState.PRINTING and current != PrinterState.PAUSED
    assert recorder.count(StateEvent.PRINTING_STARTED) == (1 if starts else 0)
    assert recorder.count(StateEvent.PRINTING_STOPPED) == (1 if stops else 0)


@pytest.mark.parametrize("previous,current", list(itertools.permutations(ALL_STATES, 2)))
def test_predicates_agree_with_state(previous, current):
    tracker = PrinterStateTracker(previous)
    tracker.set_state(current)

    state = tracker.get_current_state()
    assert state == current
    assert tracker.is_ready() == (state in {PrinterState.READY, PrinterState.COMPLETED})
    assert tracker.is_connected() == (state not in DISCONNECTED)
    assert tracker.is_printing() == (state == PrinterState.PRINTING)
    assert tracker.is_paused() == (state == PrinterState.PAUSED)
    assert tracker.has_error() == (state == PrinterState.ERROR)
    assert tracker.is_active() == (state in {PrinterState.PRINTING, PrinterState.PAUSED})


def test_printing_to_paused_fires_neither_printing_event():
    assert derived_events(PrinterState.PRINTING, PrinterState.PAUSED) == []


def test_derived_events_order():
    assert derived_events(PrinterState.BUSY, PrinterState.PRINTING) == [
        StateEvent.CONNECTED,
        StateEvent.PRINTING_STARTED,
    ]
    assert derived_events(PrinterState.PRINTING, PrinterState.ERROR) == [
        StateEvent.DISCONNECTED,
        StateEvent.PRINTING_STOPPED,
    ]


def test_state_changed_payload(tracker):
    handler = mock.Mock()
    tracker.on(StateEvent.CHANGED, handler)

    tracker.set_state(PrinterState.READY, "manual")

    handler.assert_called_once()
    event = handler.call_args.args[0]
    assert isinstance(event, StateChangeEvent)
    assert event.previous_state == PrinterState.BUSY
    assert event.current_state == PrinterState.READY
    assert event.reason == "manual"
    assert event.timestamp == tracker.last_state_change
    assert tracker.transition_count == 1


def test_driver_scenario(tracker):
    recorder = Recorder(tracker)

    tracker.on_connected()
    assert tracker.get_current_state() == PrinterState.READY
    assert recorder.names() == [StateEvent.CHANGED, StateEvent.CONNECTED]
    recorder.clear()

    tracker.set_state(PrinterState.PRINTING)
    assert recorder.names() == [StateEvent.CHANGED, StateEvent.PRINTING_STARTED]
    recorder.clear()

    tracker.set_state(PrinterState.PAUSED)
    assert recorder.names() == [StateEvent.CHANGED]
    recorder.clear()

    tracker.on_disconnected()
    assert tracker.get_current_state() == PrinterState.BUSY
    assert recorder.names() == [StateEvent.CHANGED, StateEvent.DISCONNECTED]


def test_on_connected_when_already_ready_emits_connected_once():
    tracker = PrinterStateTracker(PrinterState.READY)
    recorder = Recorder(tracker)

    tracker.on_connected()

    assert recorder.names() == [StateEvent.CONNECTED]


def test_on_connected_from_printing_moves_to_ready():
    tracker = PrinterStateTracker(PrinterState.PRINTING)
    recorder = Recorder(tracker)

    tracker.on_connected()

    assert tracker.get_current_state() == PrinterState.READY
    assert recorder.count(StateEvent.CONNECTED) == 1
    assert recorder.count(StateEvent.PRINTING_STOPPED) == 1
    changed = recorder.events[0][1][0]
    assert changed.reason == "connection established"


def test_on_disconnected_when_already_busy_emits_disconnected_once(tracker):
    recorder = Recorder(tracker)

    tracker.on_disconnected()

    assert recorder.names() == [StateEvent.DISCONNECTED]


def test_failing_listener_does_not_block_state_change(tracker):
    after = mock.Mock()
    tracker.on(StateEvent.CHANGED, mock.Mock(side_effect=ValueError("bad handler")))
    tracker.on(StateEvent.CHANGED, after)

    with capture_logs() as logs:
        assert tracker.set_state(PrinterState.READY) is True

    assert tracker.get_current_state() == PrinterState.READY
    after.assert_called_once()
    assert any(entry["event"] == "Error in event listener" for entry in logs)


def test_lifecycle_helpers(tracker):
    tracker.on_connected()
    tracker.on_print_started()
    assert tracker.is_printing()
    tracker.on_print_paused()
    assert tracker.is_paused()
    tracker.on_print_resumed()
    assert tracker.is_printing()
    tracker.on_print_completed()
    assert tracker.get_current_state() == PrinterState.COMPLETED
    assert tracker.is_ready()


def test_on_error_and_clear_error(tracker):
    handler = mock.Mock()
    tracker.on(StateEvent.CHANGED, handler)

    tracker.on_error()
    assert tracker.has_error()
    assert handler.call_args.args[0].reason == "unknown error"

    tracker.on_error("nozzle clog")  # already in Error: silent
    assert handler.call_count == 1

    tracker.clear_error()
    assert tracker.get_current_state() == PrinterState.READY


def test_clear_error_outside_error_does_nothing(tracker):
    tracker.clear_error()
    assert tracker.get_current_state() == PrinterState.BUSY
    assert tracker.transition_count == 0


def test_state_info(tracker):
    tracker.set_state(PrinterState.PRINTING)
    info = tracker.state_info()

    assert info.current_state == PrinterState.PRINTING
    assert info.description == "Currently printing"
    assert info.transition_count == 1
    assert info.time_since_change >= 0


def test_time_since_last_change_uses_monotonic(tracker):
    with mock.patch("flashforge.webui.state.time.monotonic", return_value=tracker._last_change_monotonic + 5):
        assert tracker.time_since_last_change() == pytest.approx(5)


def test_reset_returns_to_busy_silently(tracker):
    handler = mock.Mock()
    tracker.set_state(PrinterState.PRINTING)
    tracker.on(StateEvent.CHANGED, handler)

    tracker.reset()

    assert tracker.get_current_state() == PrinterState.BUSY
    assert tracker.transition_count == 0
    assert tracker.event_names() == []
    handler.assert_not_called()


def test_dispose_keeps_queries_working(tracker):
    handler = mock.Mock()
    tracker.on(StateEvent.CHANGED, handler)
    tracker.dispose()

    tracker.set_state(PrinterState.READY)

    handler.assert_not_called()
    assert tracker.is_connected()


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("Ready", PrinterState.READY),
        ("printing", PrinterState.PRINTING),
        (" PAUSED ", PrinterState.PAUSED),
        (PrinterState.ERROR, PrinterState.ERROR),
        ("heating", PrinterState.BUSY),
        (None, PrinterState.BUSY),
    ],
)
def test_from_raw(raw, expected):
    assert PrinterState.from_raw(raw) == expected
