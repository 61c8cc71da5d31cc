# tests/unit/ref_watcher/test_watcher.py
# AI-Mind (C) 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""
Unit tests for ref_watcher.watcher.

Tests the FileWatcher lifecycle and event routing with a mocked
watchdog observer, plus start-up and end-to-end runs against the real
observer.
"""

import json
import shutil
import threading
import time
from unittest.mock import MagicMock

import pytest
from watchdog.observers import Observer

from ref_watcher.config import DedupPolicy, OutputMode
from ref_watcher.errors import FatalInitError
from ref_watcher.events import ChangeEvent, Operation
from ref_watcher.extractor import SourceExtractor
from ref_watcher.parsers import ParserRegistry
from ref_watcher.retry import RetryPolicy
from ref_watcher.watcher import FileWatcher


def no_sleep_extractor(config) -> SourceExtractor:
    return SourceExtractor(
        ParserRegistry(config.extensions),
        RetryPolicy(max_attempts=3, delay=0.05, sleep=lambda _: None),
    )


def deleting_observer(victim):
    """A real Observer class that removes victim just before watching it."""

    class _DeletingObserver(Observer):
        def schedule(self, event_handler, path, **kwargs):
            if path == str(victim):
                shutil.rmtree(victim)
            return super().schedule(event_handler, path, **kwargs)

    return _DeletingObserver


@pytest.fixture
def observer():
    """A mocked watchdog observer."""
    mock = MagicMock()
    mock.is_alive.return_value = False
    return mock


@pytest.fixture
def make_watcher(make_config, observer):
    """Build a FileWatcher with a mocked observer and no retry delays."""

    def _make(root, **overrides):
        timer_factory = overrides.pop("timer_factory", None)
        config = make_config(root, **overrides)
        return FileWatcher(
            config,
            extractor=no_sleep_extractor(config),
            observer_factory=lambda: observer,
            timer_factory=timer_factory,
        )

    return _make


def read_index(watcher) -> dict:
    return json.loads(watcher.config.aggregate_file.read_text())


class TestStart:
    """Tests for FileWatcher.start()."""

    def test_registers_every_directory(self, make_watcher, observer, project):
        (project / "sub" / "deeper").mkdir(parents=True)
        (project / ".git").mkdir()
        watcher = make_watcher(project)

        watcher.start()

        scheduled = [c.args[1] for c in observer.schedule.call_args_list]
        assert scheduled == [
            str(project),
            str(project / "sub"),
            str(project / "sub" / "deeper"),
        ]
        assert all(c.kwargs["recursive"] is False for c in observer.schedule.call_args_list)
        observer.start.assert_called_once()
        watcher.close()

    def test_initial_scan_indexes_existing_files(self, make_watcher, project):
        watcher = make_watcher(project)
        watcher.start()

        path = str(project / "a.go")
        assert watcher.store.get(path).functions[0].name == "Add"
        assert read_index(watcher)[path]["functions"][0] == {
            "name": "Add",
            "docs": "Add adds two ints",
            "params": ["x", "y"],
            "param_types": ["int", "int"],
            "return_types": ["int"],
        }
        watcher.close()

    def test_initial_scan_disabled(self, make_watcher, project):
        watcher = make_watcher(project, initial_scan=False)
        watcher.start()
        assert len(watcher.store) == 0
        watcher.close()

    def test_mirror_mode_replicates_tree(self, make_watcher, project, tmp_path):
        (project / "sub").mkdir()
        (project / "sub" / "b.go").write_text("package sub\n")
        watcher = make_watcher(project, output_mode=OutputMode.MIRROR)

        watcher.start()

        mirror = tmp_path / "out" / "references"
        assert (mirror / "sub").is_dir()
        assert json.loads((mirror / "a.json").read_text())[str(project / "a.go")]["package"] == "proj"
        assert json.loads((mirror / "sub" / "b.json").read_text())[str(project / "sub" / "b.go")]["package"] == "sub"
        watcher.close()

    def test_missing_root_is_fatal(self, make_watcher, tmp_path):
        watcher = make_watcher(tmp_path / "missing")
        with pytest.raises(FatalInitError):
            watcher.start()

    def test_unwatchable_root_is_fatal_and_releases(self, make_watcher, observer, project):
        observer.schedule.side_effect = OSError("inotify watch limit reached")
        watcher = make_watcher(project)

        with pytest.raises(FatalInitError):
            watcher.start()

        assert not watcher.event_log.is_open
        observer.stop.assert_called_once()

    def test_subdirectory_failure_is_not_fatal(self, make_watcher, observer, project):
        (project / "sub").mkdir()
        observer.schedule.side_effect = [MagicMock(), OSError("permission denied")]
        watcher = make_watcher(project)

        watcher.start()

        assert list(watcher.watched) == [str(project)]
        watcher.close()

    def test_observer_started_before_scheduling(self, make_watcher, observer, project):
        calls = []
        observer.start.side_effect = lambda: calls.append("start")
        observer.schedule.side_effect = lambda *a, **kw: calls.append("schedule")
        watcher = make_watcher(project, initial_scan=False)

        watcher.start()

        assert calls == ["start", "schedule"]
        watcher.close()

    def test_vanished_root_is_fatal_with_real_observer(self, make_config, project):
        config = make_config(project)
        watcher = FileWatcher(config, observer_factory=deleting_observer(project))

        with pytest.raises(FatalInitError):
            watcher.start()

        assert not watcher.event_log.is_open
        assert watcher.watched == {}

    def test_vanished_subdirectory_skipped_with_real_observer(self, make_config, project):
        (project / "sub").mkdir()
        config = make_config(project)
        watcher = FileWatcher(config, observer_factory=deleting_observer(project / "sub"))

        watcher.start()

        assert list(watcher.watched) == [str(project)]
        assert str(project / "a.go") in watcher.store
        watcher.close()


class TestHandleEvent:
    """Tests for event routing."""

    def test_write_reindexes_file(self, make_watcher, project):
        watcher = make_watcher(project)
        watcher.start()
        path = project / "a.go"
        path.write_text(path.read_text() + "\nfunc Sub(a, b int) int {\n\treturn a - b\n}\n")

        watcher.handle_event(ChangeEvent(str(path), Operation.WRITE))
        watcher.close()

        names = [f.name for f in watcher.store.get(str(path)).functions]
        assert names == ["Add", "unused", "Sub"]
        assert [f["name"] for f in read_index(watcher)[str(path)]["functions"]] == names

    def test_remove_is_ignored(self, make_watcher, project):
        watcher = make_watcher(project)
        watcher.start()
        path = str(project / "a.go")
        before = watcher.store.get(path)
        (project / "a.go").unlink()

        watcher.handle_event(ChangeEvent(path, Operation.REMOVE))
        watcher.close()

        assert watcher.store.get(path) == before
        assert watcher.event_log.path.read_text() == ""

    def test_failed_parse_keeps_stale_record(self, make_watcher, project, broken_source):
        watcher = make_watcher(project)
        watcher.start()
        path = str(project / "a.go")
        before = watcher.store.get(path)
        (project / "a.go").write_text(broken_source)

        assert watcher.index_path(path) is False
        watcher.close()

        assert watcher.store.get(path) == before

    def test_duplicate_event_logged_once(self, make_watcher, project):
        watcher = make_watcher(project, dedup_policy=DedupPolicy.IMMEDIATE)
        watcher.start()
        path = str(project / "a.go")

        watcher.handle_event(ChangeEvent(path, Operation.WRITE))
        watcher.handle_event(ChangeEvent(path, Operation.WRITE))
        watcher.close()

        lines = watcher.event_log.path.read_text().splitlines()
        assert len(lines) == 1
        assert lines[0].endswith(f", {path}, WRITE")

    def test_windowed_burst_extracts_once(self, make_watcher, project, timer_factory):
        watcher = make_watcher(
            project,
            dedup_policy=DedupPolicy.WINDOWED,
            timer_factory=timer_factory,
            initial_scan=False,
        )
        watcher.start()
        calls = []
        original = watcher.extractor.extract
        watcher.extractor.extract = lambda p: calls.append(p) or original(p)
        path = str(project / "a.go")

        for _ in range(5):
            watcher.handle_event(ChangeEvent(path, Operation.WRITE))
        timer_factory.fire_all()
        watcher.close()

        assert calls == [path]
        assert watcher.store.get(path).package == "proj"

    def test_rename_logged_not_extracted(self, make_watcher, project):
        watcher = make_watcher(project, initial_scan=False)
        watcher.start()
        path = str(project / "a.go")

        watcher.handle_event(ChangeEvent(path, Operation.RENAME))
        watcher.close()

        assert path not in watcher.store
        assert watcher.event_log.path.read_text().strip().endswith("RENAME")

    def test_non_source_file_logged_not_indexed(self, make_watcher, project):
        watcher = make_watcher(project, initial_scan=False)
        watcher.start()
        notes = project / "notes.txt"
        notes.write_text("hello")

        watcher.handle_event(ChangeEvent(str(notes), Operation.CREATE))
        watcher.close()

        assert len(watcher.store) == 0
        assert "notes.txt" in watcher.event_log.path.read_text()

    def test_new_directory_registered_and_indexed(self, make_watcher, observer, project, add_source):
        watcher = make_watcher(project)
        watcher.start()
        sub = project / "sub"
        (sub / "inner").mkdir(parents=True)
        (sub / "inner" / "c.go").write_text(add_source)

        watcher.handle_event(ChangeEvent(str(sub), Operation.CREATE, is_directory=True))
        watcher.close()

        scheduled = [c.args[1] for c in observer.schedule.call_args_list]
        assert str(sub) in scheduled
        assert str(sub / "inner") in scheduled
        assert str(sub / "inner" / "c.go") in watcher.store

    def test_new_directory_ignored_when_disabled(self, make_watcher, observer, project):
        watcher = make_watcher(project, watch_new_directories=False)
        watcher.start()
        (project / "sub").mkdir()

        watcher.handle_event(ChangeEvent(str(project / "sub"), Operation.CREATE, is_directory=True))
        watcher.close()

        assert observer.schedule.call_count == 1

    def test_removed_directory_unwatched(self, make_watcher, observer, project):
        (project / "sub" / "inner").mkdir(parents=True)
        watcher = make_watcher(project)
        watcher.start()
        sub_watch = watcher.watched[str(project / "sub")]
        inner_watch = watcher.watched[str(project / "sub" / "inner")]
        shutil.rmtree(project / "sub")

        watcher.handle_event(ChangeEvent(str(project / "sub"), Operation.REMOVE, is_directory=True))

        assert list(watcher.watched) == [str(project)]
        unscheduled = [c.args[0] for c in observer.unschedule.call_args_list]
        assert unscheduled == [sub_watch, inner_watch]
        assert watcher.event_log.path.read_text() == ""
        watcher.close()

    def test_recreated_directory_watched_again(self, make_watcher, observer, project):
        sub = project / "sub"
        sub.mkdir()
        watcher = make_watcher(project)
        watcher.start()
        shutil.rmtree(sub)
        watcher.handle_event(ChangeEvent(str(sub), Operation.REMOVE, is_directory=True))
        sub.mkdir()
        (sub / "b.go").write_text("package sub\n")

        watcher.handle_event(ChangeEvent(str(sub), Operation.CREATE, is_directory=True))
        watcher.close()

        scheduled = [c.args[1] for c in observer.schedule.call_args_list]
        assert scheduled.count(str(sub)) == 2
        assert watcher.store.get(str(sub / "b.go")).package == "sub"

    def test_late_remove_for_recreated_directory_ignored(self, make_watcher, observer, project):
        sub = project / "sub"
        sub.mkdir()
        watcher = make_watcher(project)
        watcher.start()

        watcher.handle_event(ChangeEvent(str(sub), Operation.REMOVE, is_directory=True))

        assert str(sub) in watcher.watched
        observer.unschedule.assert_not_called()
        watcher.close()

    def test_moved_directory_unwatched(self, make_watcher, observer, project):
        sub = project / "sub"
        sub.mkdir()
        watcher = make_watcher(project)
        watcher.start()
        sub.rename(project / "moved")

        watcher.handle_event(ChangeEvent(str(sub), Operation.RENAME, is_directory=True))

        assert str(sub) not in watcher.watched
        observer.unschedule.assert_called_once()
        watcher.close()

    def test_aggregate_output_inside_root_not_logged(self, make_watcher, project):
        index = project / "reference.json"
        watcher = make_watcher(project, aggregate_file=index, initial_scan=False)
        watcher.start()
        tmp = str(index) + ".tmp"

        watcher.handle_event(ChangeEvent(tmp, Operation.CREATE))
        watcher.handle_event(ChangeEvent(tmp, Operation.WRITE))
        watcher.handle_event(ChangeEvent(tmp, Operation.RENAME))
        watcher.handle_event(ChangeEvent(str(index), Operation.CREATE))
        watcher.close()

        assert watcher.event_log.path.read_text() == ""


class TestShutdown:
    """Tests for run()/stop()/close()."""

    def test_run_returns_after_stop_and_releases(self, make_watcher, observer, project):
        watcher = make_watcher(project)
        watcher.start()

        watcher.stop()
        watcher.run()

        assert watcher.stopping
        assert not watcher.event_log.is_open
        observer.stop.assert_called_once()
        assert watcher.watched == {}

    def test_close_is_idempotent(self, make_watcher, observer, project):
        watcher = make_watcher(project)
        watcher.start()
        watcher.close()
        watcher.close()
        observer.stop.assert_called_once()

    def test_run_survives_handler_errors(self, make_watcher, project):
        watcher = make_watcher(project)
        watcher.start()
        watcher.handle_event = MagicMock(side_effect=[RuntimeError("boom"), None])
        watcher.events.put(ChangeEvent("x.go", Operation.WRITE))
        watcher.events.put(ChangeEvent("y.go", Operation.WRITE))

        thread = threading.Thread(target=watcher.run)
        thread.start()
        deadline = time.time() + 5
        while watcher.handle_event.call_count < 2 and time.time() < deadline:
            time.sleep(0.01)
        watcher.stop()
        thread.join(5)

        assert watcher.handle_event.call_count == 2
        assert not thread.is_alive()

    def test_pending_debounced_events_flushed_on_close(self, make_watcher, project, timer_factory):
        watcher = make_watcher(
            project,
            dedup_policy=DedupPolicy.WINDOWED,
            timer_factory=timer_factory,
            initial_scan=False,
        )
        watcher.start()
        path = str(project / "a.go")
        watcher.handle_event(ChangeEvent(path, Operation.WRITE))

        watcher.close()

        assert path in watcher.store
        assert path in read_index(watcher)


class TestEndToEnd:
    """Runs the real watchdog observer against a temporary tree."""

    @staticmethod
    def wait_for(predicate, timeout=5.0):
        deadline = time.time() + timeout
        while time.time() < deadline:
            if predicate():
                return True
            time.sleep(0.05)
        return False

    def test_live_edit_and_new_directory(self, make_config, tmp_path, add_source):
        root = tmp_path / "proj"
        root.mkdir()
        config = make_config(root, dedup_policy=DedupPolicy.WINDOWED, debounce_ms=50)
        watcher = FileWatcher(config)
        watcher.start()
        thread = threading.Thread(target=watcher.run)
        thread.start()
        try:
            a = root / "a.go"
            a.write_text(add_source)
            assert self.wait_for(lambda: str(a) in watcher.store)
            assert watcher.store.get(str(a)).functions[0].docs == "Add adds two ints"

            sub = root / "sub"
            sub.mkdir()
            assert self.wait_for(lambda: str(sub) in watcher.watched)
            b = sub / "b.go"
            b.write_text("package sub\n\nvar Limit int\n")
            assert self.wait_for(lambda: str(b) in watcher.store)
        finally:
            watcher.stop()
            thread.join(10)

        assert not thread.is_alive()
        data = json.loads(config.aggregate_file.read_text())
        assert data[str(root / "sub" / "b.go")]["variables"] == [
            {"name": "Limit", "type": "int", "docs": ""}
        ]

    def test_deleted_and_recreated_directory(self, make_config, tmp_path):
        root = tmp_path / "proj"
        sub = root / "sub"
        sub.mkdir(parents=True)
        config = make_config(root, dedup_policy=DedupPolicy.WINDOWED, debounce_ms=50)
        watcher = FileWatcher(config)
        watcher.start()
        thread = threading.Thread(target=watcher.run)
        thread.start()
        try:
            assert str(sub) in watcher.watched
            shutil.rmtree(sub)
            assert self.wait_for(lambda: str(sub) not in watcher.watched)

            sub.mkdir()
            b = sub / "b.go"
            b.write_text("package sub\n\nvar Limit int\n")
            assert self.wait_for(lambda: str(b) in watcher.store)
            assert str(sub) in watcher.watched
        finally:
            watcher.stop()
            thread.join(10)

        assert not thread.is_alive()
