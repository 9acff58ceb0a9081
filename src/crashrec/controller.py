"""Application state and event handling for crashrec."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo

from crashrec.models import Activity, EditState, HowItWasStopped, Record, utc_now
from crashrec.saver import SaveResult
from crashrec.store import LoadError, LoadFileError, RecordStore

logger = logging.getLogger(__name__)

TITLE = "Crash report"
NO_RECORDS = "No records."

_CAUSE_TEXT = {
    HowItWasStopped.SELF_CRASHED: "crashed",
    HowItWasStopped.MANUALLY_KILLED: "killed",
}


def format_duration(delta: timedelta) -> str:
    """Format a duration as HH:MM:SS; hours do not wrap at 24."""
    seconds = int(delta.total_seconds())
    sign = "-" if seconds < 0 else ""
    hours, rem = divmod(abs(seconds), 3600)
    minutes, seconds = divmod(rem, 60)
    return f"{sign}{hours:02d}:{minutes:02d}:{seconds:02d}"


def format_time(value: datetime, tz: tzinfo | None = None) -> str:
    """Format a timestamp as a wall-clock HH:MM:SS (local time by default)."""
    return value.astimezone(tz).strftime("%H:%M:%S")


def describe_record(record: Record, tz: tzinfo | None = None) -> str:
    """Render a one-line history entry for a record."""
    parts: list[str] = []

    if record.frozen is not None:
        parts.append(f"Frozen from {format_time(record.frozen, tz)}")

    if record.busy is not None:
        busy_at = format_time(record.busy, tz)
        parts.append(f", then busy at {busy_at}" if parts else f"Busy from {busy_at}")

    cause = _CAUSE_TEXT[record.how]
    when = format_time(record.when, tz)
    if parts:
        parts.append(f", and {cause} at {when}")
    else:
        parts.append(f"{cause.capitalize()} at {when}")

    if record.what is not None:
        parts.append(f" while {record.what.value}")

    if record.description:
        parts.append(f" ({record.description})")

    return "".join(parts)


@dataclass(slots=True, frozen=True)
class ViewState:
    """Everything the UI needs to paint one frame."""

    title: str
    description: str
    frozen_checked: bool
    frozen_elapsed: str
    busy_checked: bool
    busy_elapsed: str
    activity: Activity | None
    history_title: str
    can_clear: bool
    entries: tuple[str, ...]
    placeholder: str | None
    status: str
    layout_debug: bool
    loaded: bool


class Controller:
    """
    Owns the record store and the draft record.

    Every input event maps to one method. Methods that change persisted
    state return the store to save, or None when nothing should be written.
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = utc_now,
        tz: tzinfo | None = None,
    ) -> None:
        """
        Initialize the Controller.

        Args:
            clock: Source of the current aware datetime.
            tz: Timezone for history times. Default is the local timezone.
        """
        self._clock = clock
        self._tz = tz
        self._store: RecordStore | None = None
        self._edit = EditState()
        self._last_tick: datetime | None = None
        self._layout_debug = False
        self._status = ""
        self._last_save: SaveResult | None = None

    @property
    def loaded(self) -> bool:
        """Check if the store has been loaded."""
        return self._store is not None

    @property
    def store(self) -> RecordStore | None:
        """Get the record store, None until loaded."""
        return self._store

    @property
    def edit(self) -> EditState:
        """Get the draft record."""
        return self._edit

    @property
    def layout_debug(self) -> bool:
        """Check if the layout debug overlay is on."""
        return self._layout_debug

    @property
    def status(self) -> str:
        """Get the status line text."""
        return self._status

    @property
    def last_save(self) -> SaveResult | None:
        """Get the most recent save outcome."""
        return self._last_save

    def data_loaded(self, store: RecordStore | None, error: LoadError | None = None) -> None:
        """Apply the startup load; a failed load starts with an empty store."""
        if isinstance(error, LoadFileError):
            logger.info("No readable records file, starting empty: %s", error)
            store = RecordStore()
        elif error is not None:
            logger.warning("Records file could not be parsed, starting empty: %s", error)
            store = RecordStore()
        elif store is None:
            logger.warning("Load finished without records, starting empty")
            store = RecordStore()
        self._store = store

    def tick(self, now: datetime) -> None:
        """Update the reference time used for elapsed durations."""
        self._last_tick = now

    def toggle_layout_debug(self) -> None:
        """Flip the layout debug overlay."""
        self._layout_debug = not self._layout_debug

    def edit_description(self, text: str) -> None:
        """Replace the draft description."""
        self._edit.description = text

    def toggle_frozen(self, checked: bool) -> None:
        """Stamp or clear the draft frozen time."""
        self._edit.set_frozen(checked, self._clock())

    def toggle_busy(self, checked: bool) -> None:
        """Stamp or clear the draft busy time."""
        self._edit.set_busy(checked, self._clock())

    def set_activity(self, activity: Activity | None) -> None:
        """Set what the user was doing."""
        self._edit.what = activity

    def commit(self, how: HowItWasStopped) -> RecordStore | None:
        """
        Append the draft as a record and start a fresh draft.

        Returns:
            The store to save, or None if the store is not loaded yet.
        """
        if self._store is None:
            logger.warning("Ignoring %s before records were loaded", how.value)
            return None

        record = self._edit.commit(how, self._clock())
        self._store.append(record)
        self._edit = EditState()
        logger.info("Recorded %s (%d total)", how.value, len(self._store))
        return self._store

    def clear(self) -> RecordStore | None:
        """
        Drop every record.

        Returns:
            The store to save, or None if the store is not loaded yet.
        """
        if self._store is None:
            return None

        logger.info("Clearing %d records", len(self._store))
        self._store = RecordStore()
        return self._store

    def save_finished(self, result: SaveResult) -> None:
        """Record the outcome of a save; failures show in the status line."""
        self._last_save = result
        if result.ok:
            self._status = ""
        else:
            self._status = f"Save failed: {result.error}"

    def _elapsed(self, since: datetime | None, now: datetime) -> str:
        if since is None:
            return ""
        return f" {format_duration(now - since)} ago"

    def view(self) -> ViewState:
        """Derive the render description from the current state."""
        now = self._last_tick or self._clock()
        records = self._store.records if self._store is not None else ()
        entries = tuple(describe_record(record, self._tz) for record in records)

        return ViewState(
            title=TITLE,
            description=self._edit.description,
            frozen_checked=self._edit.frozen is not None,
            frozen_elapsed=self._elapsed(self._edit.frozen, now),
            busy_checked=self._edit.busy is not None,
            busy_elapsed=self._elapsed(self._edit.busy, now),
            activity=self._edit.what,
            history_title=f"History ({len(records)})",
            can_clear=bool(records),
            entries=entries,
            placeholder=None if entries else NO_RECORDS,
            status=self._status,
            layout_debug=self._layout_debug,
            loaded=self._store is not None,
        )
