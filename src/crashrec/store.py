"""Record storage and JSON persistence for crashrec."""

import json
import logging
from collections.abc import Iterable, Iterator
from pathlib import Path

from crashrec.models import Record

logger = logging.getLogger(__name__)


class LoadError(Exception):
    """Raised when the records file cannot be loaded."""


class LoadFileError(LoadError):
    """The records file could not be opened or read."""


class LoadFormatError(LoadError):
    """The records file is not valid records JSON."""


class SaveError(Exception):
    """Raised when the records file cannot be saved."""


class SaveDirectoryError(SaveError):
    """The data directory could not be created."""


class SaveFileError(SaveError):
    """The records file could not be opened for writing."""


class SaveWriteError(SaveError):
    """Writing the records file failed."""


class SaveFormatError(SaveError):
    """The records could not be serialized."""


class RecordStore:
    """
    Ordered collection of committed records, oldest first.

    The whole collection is persisted as a single JSON document of the form
    ``{"records": [...]}`` and rewritten on every save.
    """

    def __init__(self, records: Iterable[Record] = ()) -> None:
        """
        Initialize the RecordStore.

        Args:
            records: Initial records in commit order.
        """
        self._records: list[Record] = list(records)

    @property
    def records(self) -> tuple[Record, ...]:
        """Get the records in commit order."""
        return tuple(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[Record]:
        return iter(self._records)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RecordStore):
            return NotImplemented
        return self._records == other._records

    def __repr__(self) -> str:
        return f"RecordStore({len(self._records)} records)"

    def append(self, record: Record) -> None:
        """Append a committed record."""
        self._records.append(record)

    def clear(self) -> None:
        """Remove every record."""
        self._records.clear()

    def snapshot(self) -> "RecordStore":
        """Return an independent copy, safe to hand to another thread."""
        return RecordStore(self._records)

    def to_json(self) -> str:
        """Serialize the store to pretty-printed JSON."""
        return json.dumps(
            {"records": [record.to_dict() for record in self._records]},
            indent=2,
        )

    @classmethod
    def from_json(cls, text: str) -> "RecordStore":
        """
        Build a store from its JSON form.

        Raises:
            LoadFormatError: If the text is not a valid records document.
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise LoadFormatError(f"invalid JSON: {exc}") from exc

        if not isinstance(data, dict) or not isinstance(data.get("records"), list):
            raise LoadFormatError("expected an object with a 'records' list")

        try:
            return cls(Record.from_dict(item) for item in data["records"])
        except ValueError as exc:
            raise LoadFormatError(f"invalid record: {exc}") from exc

    @classmethod
    def load(cls, path: Path) -> "RecordStore":
        """
        Load the store from a records file.

        A missing file raises LoadFileError like any other read failure;
        callers decide whether to start with an empty store.

        Raises:
            LoadFileError: If the file cannot be opened or read.
            LoadFormatError: If the content is not a valid records document.
        """
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise LoadFileError(f"cannot read {path}: {exc}") from exc

        store = cls.from_json(text)
        logger.debug("Loaded %d records from %s", len(store), path)
        return store

    def save(self, path: Path) -> None:
        """
        Overwrite the records file with the whole store.

        Raises:
            SaveFormatError: If serialization fails.
            SaveDirectoryError: If the parent directory cannot be created.
            SaveFileError: If the file cannot be opened for writing.
            SaveWriteError: If writing the file fails.
        """
        try:
            payload = self.to_json()
        except (TypeError, ValueError) as exc:
            raise SaveFormatError(f"cannot serialize records: {exc}") from exc

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise SaveDirectoryError(f"cannot create {path.parent}: {exc}") from exc

        try:
            handle = path.open("w", encoding="utf-8")
        except OSError as exc:
            raise SaveFileError(f"cannot open {path}: {exc}") from exc

        try:
            with handle:
                handle.write(payload)
        except OSError as exc:
            raise SaveWriteError(f"cannot write {path}: {exc}") from exc

        logger.debug("Saved %d records to %s", len(self), path)
