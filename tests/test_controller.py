"""Tests for the crashrec controller."""

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from crashrec.controller import Controller, describe_record, format_duration
from crashrec.models import Activity, HowItWasStopped, Record
from crashrec.saver import SaveResult
from crashrec.store import LoadFileError, LoadFormatError, RecordStore, SaveWriteError

START = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def controller(clock: FakeClock) -> Controller:
    ctrl = Controller(clock=clock, tz=timezone.utc)
    ctrl.data_loaded(RecordStore())
    return ctrl


def test_format_duration():
    """Test durations render as HH:MM:SS."""
    assert format_duration(timedelta(seconds=5)) == "00:00:05"
    assert format_duration(timedelta(minutes=61, seconds=2)) == "01:01:02"
    assert format_duration(timedelta(hours=26)) == "26:00:00"


def test_format_duration_negative():
    """Test negative durations keep their sign."""
    assert format_duration(timedelta(seconds=-90)) == "-00:01:30"


class TestDescribeRecord:
    """Tests for history entry text."""

    def test_plain_crash(self):
        """Test a record with no stamps reads as a crash time."""
        record = Record(when=START)
        assert describe_record(record, timezone.utc) == "Crashed at 12:00:00"

    def test_killed_with_description(self):
        """Test the description is appended in parentheses."""
        record = Record(how=HowItWasStopped.MANUALLY_KILLED, when=START, description="hung")
        assert describe_record(record, timezone.utc) == "Killed at 12:00:00 (hung)"

    def test_frozen_then_busy(self):
        """Test frozen and busy stamps chain before the cause."""
        record = Record(
            frozen=START,
            busy=START + timedelta(seconds=10),
            when=START + timedelta(seconds=20),
        )
        assert describe_record(record, timezone.utc) == (
            "Frozen from 12:00:00, then busy at 12:00:10, and crashed at 12:00:20"
        )

    def test_busy_only_with_activity(self):
        """Test busy-only records and the activity suffix."""
        record = Record(
            busy=START,
            how=HowItWasStopped.MANUALLY_KILLED,
            when=START + timedelta(minutes=1),
            what=Activity.TYPING,
        )
        assert describe_record(record, timezone.utc) == (
            "Busy from 12:00:00, and killed at 12:01:00 while typing"
        )


class TestLifecycle:
    """Tests for the load state machine."""

    def test_starts_unloaded(self, clock: FakeClock):
        """Test a new controller has no store."""
        ctrl = Controller(clock=clock)
        assert not ctrl.loaded
        assert ctrl.store is None

    def test_unloaded_view_shows_no_records(self, clock: FakeClock):
        """Test the view renders an empty history during the load window."""
        view = Controller(clock=clock).view()
        assert not view.loaded
        assert view.history_title == "History (0)"
        assert view.placeholder == "No records."
        assert not view.can_clear

    def test_loaded_store_is_kept(self, clock: FakeClock):
        """Test a successful load installs the store."""
        store = RecordStore([Record(when=START)])
        ctrl = Controller(clock=clock)
        ctrl.data_loaded(store)

        assert ctrl.loaded
        assert ctrl.store == store

    @pytest.mark.parametrize("error", [LoadFileError("missing"), LoadFormatError("bad")])
    def test_failed_load_starts_empty(self, clock: FakeClock, error):
        """Test any load failure still reaches the loaded state."""
        ctrl = Controller(clock=clock)
        ctrl.data_loaded(None, error)

        assert ctrl.loaded
        assert len(ctrl.store) == 0

    def test_load_without_store_or_error_starts_empty(
        self, clock: FakeClock, caplog: pytest.LogCaptureFixture
    ):
        """Test a load with neither store nor error is not reported as a parse failure."""
        caplog.set_level("INFO", logger="crashrec.controller")
        ctrl = Controller(clock=clock)
        ctrl.data_loaded(None)

        assert ctrl.loaded
        assert len(ctrl.store) == 0
        assert "could not be parsed" not in caplog.text
        assert "without records" in caplog.text

    def test_save_requests_before_load_are_ignored(self, clock: FakeClock):
        """Test commit and clear are no-ops without a store."""
        ctrl = Controller(clock=clock)
        assert ctrl.commit(HowItWasStopped.SELF_CRASHED) is None
        assert ctrl.clear() is None


class TestEditing:
    """Tests for draft editing events."""

    def test_tick_drives_elapsed_text(self, controller: Controller, clock: FakeClock):
        """Test elapsed durations are measured against the last tick."""
        controller.toggle_frozen(True)
        controller.tick(START + timedelta(seconds=75))

        view = controller.view()
        assert view.frozen_checked
        assert view.frozen_elapsed == " 00:01:15 ago"
        assert view.busy_elapsed == ""

    def test_toggle_frozen_stamps_clock(self, controller: Controller, clock: FakeClock):
        """Test checking frozen stamps the time of the toggle."""
        clock.advance(30)
        controller.toggle_frozen(True)
        assert controller.edit.frozen == START + timedelta(seconds=30)

    def test_toggle_frozen_off_clears(self, controller: Controller):
        """Test unchecking frozen leaves no stamp."""
        controller.toggle_frozen(True)
        controller.toggle_frozen(False)
        assert controller.edit.frozen is None
        assert not controller.view().frozen_checked

    def test_toggle_busy(self, controller: Controller, clock: FakeClock):
        """Test busy toggles independently of frozen."""
        controller.toggle_frozen(True)
        clock.advance(5)
        controller.toggle_busy(True)

        assert controller.edit.frozen == START
        assert controller.edit.busy == START + timedelta(seconds=5)

    def test_description_and_activity(self, controller: Controller):
        """Test text and activity edits land in the draft."""
        controller.edit_description("IDE froze")
        controller.set_activity(Activity.DEBUGGING)

        view = controller.view()
        assert view.description == "IDE froze"
        assert view.activity is Activity.DEBUGGING

    def test_layout_debug_toggle(self, controller: Controller):
        """Test the layout debug flag flips."""
        assert not controller.view().layout_debug
        controller.toggle_layout_debug()
        assert controller.view().layout_debug
        controller.toggle_layout_debug()
        assert not controller.layout_debug


class TestCommit:
    """Tests for committing and clearing."""

    def test_commit_appends_and_resets(self, controller: Controller, clock: FakeClock):
        """Test commit stamps cause and time, appends and starts a new draft."""
        controller.edit_description("hung")
        controller.toggle_busy(True)
        clock.advance(10)

        store = controller.commit(HowItWasStopped.MANUALLY_KILLED)

        assert store is controller.store
        (record,) = store.records
        assert record.how is HowItWasStopped.MANUALLY_KILLED
        assert record.when == START + timedelta(seconds=10)
        assert record.busy == START
        assert record.description == "hung"
        assert controller.edit.description == ""
        assert controller.edit.busy is None

    def test_commits_keep_order(self, controller: Controller, clock: FakeClock):
        """Test N commits give N records in commit order."""
        for i in range(4):
            controller.edit_description(f"entry {i}")
            clock.advance(1)
            controller.commit(HowItWasStopped.SELF_CRASHED)

        descriptions = [record.description for record in controller.store]
        assert descriptions == ["entry 0", "entry 1", "entry 2", "entry 3"]
        assert controller.view().history_title == "History (4)"

    def test_clear_empties_store(self, controller: Controller):
        """Test clear leaves an empty store to save."""
        controller.commit(HowItWasStopped.SELF_CRASHED)
        controller.commit(HowItWasStopped.MANUALLY_KILLED)

        store = controller.clear()

        assert store is not None
        assert len(store) == 0
        view = controller.view()
        assert not view.can_clear
        assert view.entries == ()

    def test_view_entries(self, controller: Controller):
        """Test committed records are rendered oldest first."""
        controller.commit(HowItWasStopped.SELF_CRASHED)
        controller.commit(HowItWasStopped.MANUALLY_KILLED)

        view = controller.view()
        assert view.can_clear
        assert view.placeholder is None
        assert view.entries == ("Crashed at 12:00:00", "Killed at 12:00:00")


class TestSaveFeedback:
    """Tests for surfacing save outcomes."""

    def test_failure_sets_status(self, controller: Controller):
        """Test a failed save is shown in the status line."""
        result = SaveResult(
            ok=False, record_count=1, finished_at=START, error=SaveWriteError("disk full")
        )
        controller.save_finished(result)

        assert controller.last_save is result
        assert controller.view().status == "Save failed: disk full"

    def test_success_clears_status(self, controller: Controller):
        """Test a later successful save clears the failure."""
        controller.save_finished(
            SaveResult(ok=False, record_count=1, finished_at=START, error=SaveWriteError("x"))
        )
        controller.save_finished(SaveResult(ok=True, record_count=1, finished_at=START))

        assert controller.status == ""


class TestScenarios:
    """End-to-end flows through controller and file."""

    def test_first_crash_from_empty_disk(self, tmp_path: Path, clock: FakeClock):
        """Test no file, fill the form, click crashed, file holds one record."""
        path = tmp_path / "records.json"
        ctrl = Controller(clock=clock, tz=timezone.utc)
        try:
            ctrl.data_loaded(RecordStore.load(path))
        except LoadFileError as exc:
            ctrl.data_loaded(None, exc)
        assert len(ctrl.store) == 0

        ctrl.edit_description("IDE froze")
        ctrl.toggle_frozen(True)
        clock.advance(42)
        ctrl.commit(HowItWasStopped.SELF_CRASHED).save(path)

        (record,) = ctrl.store.records
        assert record.description == "IDE froze"
        assert record.frozen == START
        assert record.how is HowItWasStopped.SELF_CRASHED
        assert record.when == START + timedelta(seconds=42)

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data == {
            "records": [
                {
                    "frozen": "2024-03-01T12:00:00+00:00",
                    "busy": None,
                    "description": "IDE froze",
                    "how": "self-crashed",
                    "when": "2024-03-01T12:00:42+00:00",
                    "what": None,
                }
            ]
        }

    def test_clear_existing_file(self, tmp_path: Path, clock: FakeClock):
        """Test loading two records then clearing writes an empty list."""
        path = tmp_path / "records.json"
        RecordStore([Record(when=START), Record(when=START)]).save(path)

        ctrl = Controller(clock=clock)
        ctrl.data_loaded(RecordStore.load(path))
        assert len(ctrl.store) == 2

        ctrl.clear().save(path)

        assert len(ctrl.store) == 0
        assert json.loads(path.read_text(encoding="utf-8")) == {"records": []}
