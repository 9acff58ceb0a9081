"""Data models for crashrec."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class HowItWasStopped(Enum):
    """How the interrupted program ended."""

    SELF_CRASHED = "self-crashed"
    MANUALLY_KILLED = "manually-killed"


class Activity(Enum):
    """What the user was doing when the interruption happened."""

    TYPING = "typing"
    RUNNING = "running"
    TESTING = "testing"
    DEBUGGING = "debugging"


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Format an aware datetime as an RFC 3339 string."""
    return value.astimezone(timezone.utc).isoformat()


def parse_timestamp(text: str) -> datetime:
    """
    Parse an RFC 3339 string into an aware UTC datetime.

    Raises:
        ValueError: If the text is not a timestamp with a UTC offset.
    """
    if not isinstance(text, str):
        raise ValueError(f"timestamp must be a string, got {type(text).__name__}")
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        raise ValueError(f"timestamp has no UTC offset: {text!r}")
    try:
        return parsed.astimezone(timezone.utc)
    except OverflowError as exc:
        # Offsets can push 0001-01-01 / 9999-12-31 outside the datetime range
        raise ValueError(f"timestamp out of range in UTC: {text!r}") from exc


def _parse_optional_timestamp(value: Any) -> datetime | None:
    # Unreadable optional stamps are dropped instead of failing the record
    if value is None:
        return None
    try:
        return parse_timestamp(value)
    except ValueError:
        return None


def _parse_activity(value: Any) -> Activity | None:
    try:
        return Activity(value)
    except ValueError:
        return None


@dataclass(slots=True, frozen=True)
class Record:
    """Immutable logged interruption event."""

    frozen: datetime | None = None
    busy: datetime | None = None
    description: str = ""
    how: HowItWasStopped = HowItWasStopped.SELF_CRASHED
    when: datetime = field(default_factory=utc_now)
    what: Activity | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize the record to a JSON-compatible dict."""
        return {
            "frozen": format_timestamp(self.frozen) if self.frozen else None,
            "busy": format_timestamp(self.busy) if self.busy else None,
            "description": self.description,
            "how": self.how.value,
            "when": format_timestamp(self.when),
            "what": self.what.value if self.what else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Record":
        """
        Build a record from its JSON form.

        ``frozen``, ``busy`` and ``what`` are lenient: missing or unreadable
        values become None. ``description``, ``how`` and ``when`` are required.

        Raises:
            ValueError: If a required field is missing or invalid.
        """
        if not isinstance(data, dict):
            raise ValueError(f"record must be an object, got {type(data).__name__}")

        description = data.get("description")
        if not isinstance(description, str):
            raise ValueError("record description must be a string")

        try:
            how = HowItWasStopped(data.get("how"))
        except ValueError as exc:
            raise ValueError(f"unknown record cause: {data.get('how')!r}") from exc

        if "when" not in data:
            raise ValueError("record has no 'when' timestamp")

        return cls(
            frozen=_parse_optional_timestamp(data.get("frozen")),
            busy=_parse_optional_timestamp(data.get("busy")),
            description=description,
            how=how,
            when=parse_timestamp(data["when"]),
            what=_parse_activity(data.get("what")),
        )


@dataclass(slots=True)
class EditState:
    """The draft record being filled in before it is committed."""

    frozen: datetime | None = None
    busy: datetime | None = None
    description: str = ""
    what: Activity | None = None

    def set_frozen(self, checked: bool, now: datetime) -> None:
        """Stamp or clear the frozen time."""
        if not checked:
            self.frozen = None
        elif self.frozen is None:
            self.frozen = now

    def set_busy(self, checked: bool, now: datetime) -> None:
        """Stamp or clear the busy time."""
        if not checked:
            self.busy = None
        elif self.busy is None:
            self.busy = now

    def commit(self, how: HowItWasStopped, when: datetime) -> Record:
        """Turn the draft into an immutable record."""
        return Record(
            frozen=self.frozen,
            busy=self.busy,
            description=self.description,
            how=how,
            when=when,
            what=self.what,
        )
