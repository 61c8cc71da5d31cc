# tests/unit/ref_watcher/conftest.py
# AI-Mind (C) 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""Shared fixtures for ref_watcher tests."""

import pytest

from ref_watcher.config import DedupPolicy, WatcherConfig


ADD_SOURCE = """package proj

import (
\t"fmt"
\tstr "strings"
)

// Add adds two ints
func Add(x, y int) int {
\treturn x + y
}

func unused() {
\tfmt.Println(str.ToUpper("x"))
}
"""

BROKEN_SOURCE = """package proj

func Add(x, y int) int {
\treturn x +
"""


class FakeTimer:
    """Stand-in for threading.Timer that only fires when told to."""

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.started = False
        self.cancelled = False
        self.fired = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def is_alive(self):
        return self.started and not self.cancelled and not self.fired

    def join(self, timeout=None):
        pass

    def fire(self):
        self.fired = True
        self.function()


class FakeTimerFactory:
    """Records every timer it builds."""

    def __init__(self):
        self.timers: list[FakeTimer] = []

    def __call__(self, interval, function):
        timer = FakeTimer(interval, function)
        self.timers.append(timer)
        return timer

    def fire_all(self):
        for timer in list(self.timers):
            if timer.is_alive():
                timer.fire()


@pytest.fixture
def timer_factory() -> FakeTimerFactory:
    return FakeTimerFactory()


@pytest.fixture
def project(tmp_path):
    """A watched root with one Go file."""
    root = tmp_path / "proj"
    root.mkdir()
    (root / "a.go").write_text(ADD_SOURCE)
    return root


@pytest.fixture
def make_config(tmp_path):
    """Build a WatcherConfig whose outputs live under tmp_path/out."""

    def _make(root, **overrides):
        out = tmp_path / "out"
        values = dict(
            root=root,
            dedup_policy=DedupPolicy.IMMEDIATE,
            aggregate_file=out / "reference.json",
            mirror_dir=out / "references",
            log_dir=out / "logs",
        )
        values.update(overrides)
        return WatcherConfig(**values)

    return _make


@pytest.fixture
def add_source() -> str:
    """Go file with one documented two-int function."""
    return ADD_SOURCE


@pytest.fixture
def broken_source() -> str:
    """Go file cut off in the middle of a function body."""
    return BROKEN_SOURCE
