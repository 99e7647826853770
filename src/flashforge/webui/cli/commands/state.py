"""Printer state commands."""

import cyclopts

from flashforge.webui import consts
from flashforge.webui.cli import common
from flashforge.webui.state import PrinterState, PrinterStateTracker, StateChangeEvent

state_app = cyclopts.App(name="state", help="Inspect printer state transitions")


@state_app.command(name="replay")
def replay_command(states: list[str], *, initial: str = "Busy"):
    """Feed a sequence of states into a fresh tracker and list the emitted events.

    Unrecognised state names are treated as Busy.

    Args:
        states: Printer states to apply in order, e.g. Ready Printing Paused.
        initial: Starting state.
    """
    tracker = PrinterStateTracker(PrinterState.from_raw(initial))
    fired: list[tuple[str, str]] = []

    def record(event_name: str):
        def handler(*args):
            detail = ""
            if args and isinstance(args[0], StateChangeEvent):
                detail = f"{args[0].previous_state} -> {args[0].current_state}"
            fired.append((event_name, detail))

        return handler

    for event_name in consts.StateEvent:
        tracker.on(event_name, record(str(event_name)))

    rows: list[list[str]] = []
    for step, raw in enumerate(states, start=1):
        tracker.set_state(PrinterState.from_raw(raw))
        rows.extend([str(step), name, detail] for name, detail in fired)
        fired.clear()

    common.output_table("State events", ["Step", "Event", "Transition"], rows)
    common.output_message(f"Final state: [bold]{tracker.get_current_state()}[/bold]")
    tracker.dispose()
