"""Hello WebUI example: drive the core with a fake printer."""

from flashforge.webui import CommandResult, PrinterState, WebUIApplication
from flashforge.webui.config import Settings
from flashforge.webui.consts import StateEvent


class EchoPrinter:
    """Pretends to be a printer; every command succeeds."""

    def __getattr__(self, name):
        def command(*args):
            print(f"  printer <- {name}{args}")
            return CommandResult(success=True)

        return command

    def get_status(self):
        return None


with WebUIApplication(EchoPrinter(), Settings(webui_password="hello")) as app:
    app.tracker.on(StateEvent.CHANGED, lambda e: print(f"{e.previous_state} -> {e.current_state}"))
    app.tracker.on(StateEvent.PRINTING_STARTED, lambda: print("printing started"))

    login = app.router.handle_login("127.0.0.1", {"password": "hello"})
    bearer = f"Bearer {login.body.data['token']}"

    app.tracker.on_connected()
    response = app.router.handle_request(bearer, {"command": "set-bed-temp", "data": {"temperature": 60}})
    print(response.status_code, response.body.message)

    app.tracker.set_state(PrinterState.PRINTING)
