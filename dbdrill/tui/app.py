"""
Textual front end: draws the navigator and feeds it key events.
"""

import logging
import sys
from contextlib import contextmanager

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.events import Key, Resize
from textual.logging import TextualHandler
from textual.widgets import Static

from ..navigation import KeyResult, Navigator
from . import render

logger = logging.getLogger(__name__)

# rows taken by the breadcrumb, table header and status lines
CHROME_HEIGHT = 4


def _is_terminal(stream) -> bool:
    return stream in (sys.stderr, sys.stdout, sys.__stderr__, sys.__stdout__)


@contextmanager
def textual_logging():
    """
    Route console log records through Textual while the app owns the terminal.

    Stream handlers writing to the terminal are swapped for a TextualHandler
    and put back afterwards. File handlers are left alone.
    """
    root = logging.getLogger()
    console = [
        handler
        for handler in root.handlers
        if isinstance(handler, logging.StreamHandler) and _is_terminal(handler.stream)
    ]
    if not console:
        yield
        return

    textual_handler = TextualHandler()
    textual_handler.setLevel(console[0].level)
    textual_handler.setFormatter(console[0].formatter)
    for handler in console:
        root.removeHandler(handler)
    root.addHandler(textual_handler)
    try:
        yield
    finally:
        root.removeHandler(textual_handler)
        for handler in console:
            root.addHandler(handler)


class DrillApp(App[None]):
    """Full screen drill-down browser over one Navigator."""

    TITLE = "dbdrill"
    ENABLE_COMMAND_PALETTE = False
    BINDINGS = [
        Binding("ctrl+c", "quit", "Quit", show=False, priority=True),
    ]
    CSS = """
    #breadcrumbs {
        height: 1;
        background: $boost;
        padding: 0 1;
    }
    #body {
        height: 1fr;
        padding: 0 1;
    }
    #status {
        height: 1;
        dock: bottom;
        padding: 0 1;
    }
    """

    def __init__(self, navigator: Navigator, **kwargs):
        super().__init__(**kwargs)
        self.navigator = navigator

    def compose(self) -> ComposeResult:
        yield Static(id="breadcrumbs")
        yield Static(id="body")
        yield Static(id="status")

    def on_mount(self) -> None:
        self.refresh_view()

    def on_resize(self, event: Resize) -> None:
        self.refresh_view()

    def refresh_view(self) -> None:
        height = max(self.size.height - CHROME_HEIGHT, 1)
        self.query_one("#breadcrumbs", Static).update(render.breadcrumbs(self.navigator))
        self.query_one("#body", Static).update(render.body(self.navigator, height))
        self.query_one("#status", Static).update(render.status_line(self.navigator))

    async def on_key(self, event: Key) -> None:
        event.stop()
        event.prevent_default()
        if self.navigator.busy:
            logger.debug(f"Ignoring {event.key} while a query is running")
            return
        key = event.character if event.is_printable and event.character else event.key
        self.run_worker(self._dispatch(key), group="keys")

    async def _dispatch(self, key: str) -> None:
        # shows the busy status if the key starts a query that is still running
        self.set_timer(0.2, self.refresh_view)
        result = await self.navigator.handle_key(key)
        if result is KeyResult.QUIT:
            self.exit()
            return
        self.refresh_view()
