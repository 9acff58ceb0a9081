"""crashrec - Main Textual application."""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime
from queue import Empty, Queue

from textual.app import App, ComposeResult
from textual.containers import Horizontal, VerticalScroll
from textual.widgets import Button, Checkbox, Footer, Input, Label, Select, Static

from crashrec.config import Settings, configure_logging, get_settings
from crashrec.controller import Controller, ViewState
from crashrec.models import Activity, HowItWasStopped, utc_now
from crashrec.saver import SaveResult, SaveWorker
from crashrec.store import LoadError, RecordStore

logger = logging.getLogger(__name__)


class CrashRecorderApp(App):
    """Main crashrec application."""

    TITLE = "Crash recorder"
    SUB_TITLE = "Interruption log"

    CSS = """
    Screen {
        layout: vertical;
        padding: 1 2;
    }

    #title {
        text-style: bold;
        margin-bottom: 1;
    }

    Horizontal {
        height: auto;
        margin-top: 1;
    }

    .elapsed {
        width: 1fr;
        padding: 1 0 0 1;
    }

    #buttons {
        align-horizontal: right;
    }

    #buttons Button {
        margin-left: 1;
    }

    #history-title {
        width: 1fr;
        padding-top: 1;
    }

    #history {
        height: 1fr;
        border: solid $primary;
        padding: 0 1;
    }

    .placeholder {
        color: $text-muted;
    }

    #status {
        color: $error;
        height: auto;
    }

    Screen.layout-debug Widget {
        outline: dashed $warning;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("f11", "toggle_layout_debug", "Layout debug"),
    ]

    def __init__(
        self,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the CrashRecorderApp."""
        super().__init__()
        self._settings = settings or get_settings()
        self._now = clock
        self._controller = Controller(clock=clock)
        self._save_results: Queue[SaveResult] = Queue()
        self._saver = SaveWorker(
            self._settings.records_file,
            self._save_results,
            min_interval=self._settings.save_interval,
        )
        self._shown_entries: tuple[str, ...] | None = None
        self._history_lock = asyncio.Lock()

    @property
    def controller(self) -> Controller:
        """Get the application controller."""
        return self._controller

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield Static("", id="title")
        yield Label("New report")
        yield Input(placeholder="Description...", id="description")
        yield Horizontal(
            Checkbox("Frozen", id="frozen"),
            Static("", id="frozen-elapsed", classes="elapsed"),
        )
        yield Horizontal(
            Checkbox("Busy", id="busy"),
            Static("", id="busy-elapsed", classes="elapsed"),
        )
        yield Select(
            [(activity.value.capitalize(), activity) for activity in Activity],
            prompt="Activity",
            id="activity",
        )
        yield Horizontal(
            Button("Crashed", id="crashed", variant="error"),
            Button("Killed", id="killed", variant="warning"),
            id="buttons",
        )
        yield Horizontal(
            Static("History (0)", id="history-title"),
            Button("Clear", id="clear"),
        )
        yield VerticalScroll(id="history")
        yield Static("", id="status", markup=False)
        yield Footer()

    def on_mount(self) -> None:
        """Start saving, issue the initial load and start the timers."""
        self._saver.start()
        self.run_worker(self._load_records(), name="load-records", exclusive=True)
        self.set_interval(self._settings.tick_rate, self._handle_tick)
        # Poll the saver's queue for finished writes
        self.set_interval(0.5, self._check_for_saves)

    def on_unmount(self) -> None:
        """Write any pending records before the app goes away."""
        self._saver.stop(flush=True)

    async def _load_records(self) -> None:
        """Load the records file off the event loop."""
        path = self._settings.records_file
        try:
            store = await asyncio.to_thread(RecordStore.load, path)
        except LoadError as exc:
            self._controller.data_loaded(None, exc)
        else:
            self._controller.data_loaded(store)
        await self._sync_view()

    async def _handle_tick(self) -> None:
        """Advance the clock used for elapsed durations."""
        self._controller.tick(self._now())
        await self._sync_view()

    async def _check_for_saves(self) -> None:
        """Apply finished saves reported by the saver thread."""
        changed = False
        while True:
            try:
                result = self._save_results.get_nowait()
            except Empty:
                break
            self._controller.save_finished(result)
            changed = True
            if not result.ok:
                self.notify(str(result.error), title="Save failed", severity="error")

        if changed:
            await self._sync_view()

    def _submit_save(self, store: RecordStore | None) -> None:
        """Hand a store to the saver; None means nothing to write."""
        if store is not None:
            self._saver.submit(store)

    async def on_input_changed(self, event: Input.Changed) -> None:
        """Track edits to the description."""
        if event.input.id == "description":
            self._controller.edit_description(event.value)

    async def on_checkbox_changed(self, event: Checkbox.Changed) -> None:
        """Stamp or clear the frozen and busy times."""
        if event.checkbox.id == "frozen":
            self._controller.toggle_frozen(event.value)
        elif event.checkbox.id == "busy":
            self._controller.toggle_busy(event.value)
        await self._sync_view()

    async def on_select_changed(self, event: Select.Changed) -> None:
        """Track the selected activity."""
        value = event.value
        self._controller.set_activity(value if isinstance(value, Activity) else None)

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        """Commit or clear records."""
        button_id = event.button.id
        if button_id == "crashed":
            self._submit_save(self._controller.commit(HowItWasStopped.SELF_CRASHED))
        elif button_id == "killed":
            self._submit_save(self._controller.commit(HowItWasStopped.MANUALLY_KILLED))
        elif button_id == "clear":
            self._submit_save(self._controller.clear())
        await self._sync_view()

    async def action_toggle_layout_debug(self) -> None:
        """Handle F11 - outline every widget."""
        self._controller.toggle_layout_debug()
        await self._sync_view()

    def action_quit(self) -> None:
        """Handle quit action, flushing pending saves."""
        self._saver.stop(flush=True)
        self.exit()

    async def _sync_view(self) -> None:
        """Paint the current controller state onto the widgets."""
        view = self._controller.view()

        self.screen.set_class(view.layout_debug, "layout-debug")
        self._sync_form(view)

        self.query_one("#title", Static).update(view.title)
        self.query_one("#frozen-elapsed", Static).update(view.frozen_elapsed)
        self.query_one("#busy-elapsed", Static).update(view.busy_elapsed)
        self.query_one("#history-title", Static).update(view.history_title)
        self.query_one("#clear", Button).display = view.can_clear
        self.query_one("#status", Static).update(view.status)

        await self._sync_history(view)

    def _sync_form(self, view: ViewState) -> None:
        """Reset form widgets that disagree with the draft, e.g. after a commit."""
        description = self.query_one("#description", Input)
        if description.value != view.description:
            description.value = view.description

        for checkbox_id, checked in (("#frozen", view.frozen_checked), ("#busy", view.busy_checked)):
            checkbox = self.query_one(checkbox_id, Checkbox)
            if checkbox.value != checked:
                checkbox.value = checked

        select = self.query_one("#activity", Select)
        current = select.value if isinstance(select.value, Activity) else None
        if current != view.activity:
            if view.activity is None:
                select.clear()
            else:
                select.value = view.activity

    async def _sync_history(self, view: ViewState) -> None:
        """Rebuild the history list when its entries change."""
        async with self._history_lock:
            if view.entries == self._shown_entries:
                return
            self._shown_entries = view.entries

            history = self.query_one("#history", VerticalScroll)
            await history.remove_children()
            if view.entries:
                await history.mount(
                    *(Static(line, classes="entry", markup=False) for line in view.entries)
                )
            else:
                await history.mount(Static(view.placeholder or "", classes="placeholder"))


def main() -> None:
    """Entry point for crashrec application."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.resolved_log_file)
    logger.info("Starting crashrec with records at %s", settings.records_file)
    app = CrashRecorderApp(settings)
    app.run()


if __name__ == "__main__":
    main()
