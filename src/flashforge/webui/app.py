"""Composition root for the WebUI core.

`WebUIApplication` constructs the state tracker, session store, login rate limiter
and protocol router once, wires them together and tears them down on `shutdown()`.
Components receive the tracker by reference; there is no module-level instance.
"""

import structlog

from flashforge.webui import auth, config, router
from flashforge.webui.state import PrinterState, PrinterStateTracker

logger = structlog.get_logger(__name__)


class WebUIApplication:
    """Owns the lifetime of the stateful WebUI services.

    Usage Example:
    ```python
        >>> app = WebUIApplication(driver=my_driver)
        >>> app.tracker.on_connected()
        >>> response = app.router.handle_request(headers.get("Authorization"), body)
        >>> app.shutdown()
    ```
    """

    def __init__(
        self,
        driver: router.PrinterDriver,
        settings: config.Settings | None = None,
        initial_state: PrinterState = PrinterState.BUSY,
    ) -> None:
        """Build and wire the services.

        Args:
            driver: Printer integration that executes commands.
            settings: WebUI settings. Defaults to the lazily loaded `config.settings`.
            initial_state: Starting printer state.
        """
        self.settings = settings if settings is not None else config.settings
        self.tracker = PrinterStateTracker(initial_state)
        self.auth_manager = auth.AuthManager(self.settings)
        self.rate_limiter = auth.LoginRateLimiter.from_settings(self.settings)
        self.router = router.ProtocolRouter(self.tracker, driver, self.auth_manager, self.rate_limiter)
        self._closed = False

        if self.settings.uses_default_password:
            logger.warning("WebUI is using the default password; change it in the settings")
        logger.info("WebUI core started", port=self.settings.webui_port, state=str(initial_state))

    def shutdown(self) -> None:
        """Release listeners and sessions. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self.router.dispose()
        self.tracker.dispose()
        self.auth_manager.dispose()
        logger.info("WebUI core stopped")

    def __enter__(self) -> "WebUIApplication":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()
