# ref_watcher/watcher.py
# AI-Mind (C) 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""
Watch loop for incremental reference indexing.

Pipeline:
- watchdog emits filesystem events on its own threads; a handler turns
  them into ChangeEvents on a queue
- run() is the single consumer: it drops file removals, unwatches
  removed directories, registers new ones, records accepted events in
  the event log and hands them to the dedup/debounce filter
- accepted events are extracted on a KeyedExecutor (serial per path),
  put into the DocumentStore and materialized as JSON

Shutdown (stop() from a signal handler, or an error) leaves run(), and
close() releases everything exactly once.
"""

import logging
import os
import queue
import threading
from typing import Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver, ObservedWatch

from .config import OutputMode, WatcherConfig
from .debounce import EventFilter, TimerFactory, make_filter
from .errors import FatalInitError, MaterializationError
from .event_log import EventLog
from .events import ChangeEvent, Operation, from_watchdog
from .executor import KeyedExecutor
from .extractor import ParseFailure, SourceExtractor
from .parsers import ParserRegistry
from .store import DocumentStore
from .tree import TreeFilter, iter_files, replicate_tree, walk_directories

logger = logging.getLogger(__name__)

# How long run() blocks on the queue before re-checking the stop token
POLL_INTERVAL = 0.2


class _QueueHandler(FileSystemEventHandler):
    """Forwards watchdog events to the consumer queue."""

    def __init__(self, events: "queue.Queue[ChangeEvent]"):
        super().__init__()
        self.events = events

    def on_any_event(self, event: FileSystemEvent) -> None:
        for change in from_watchdog(event):
            self.events.put(change)


class FileWatcher:
    """Keeps a JSON reference index in sync with a directory tree.

    Usage:
        watcher = FileWatcher(config)
        watcher.start()   # raises FatalInitError
        watcher.run()     # blocks until stop(); always closes
    """

    def __init__(
        self,
        config: WatcherConfig,
        extractor: Optional[SourceExtractor] = None,
        store: Optional[DocumentStore] = None,
        event_log: Optional[EventLog] = None,
        observer_factory: Callable[[], BaseObserver] = Observer,
        timer_factory: Optional[TimerFactory] = None,
    ):
        """Initialize the watcher; no resources are acquired until start().

        Args:
            config: Watcher configuration.
            extractor: Source extractor (built from config when None).
            store: Document store (built from config when None).
            event_log: Event log (built from config when None).
            observer_factory: Builds the watchdog observer.
            timer_factory: Timer factory for the windowed debounce filter.
        """
        self.config = config
        self.root = os.path.normpath(str(config.root))
        self.extractor = extractor or SourceExtractor(
            ParserRegistry(config.extensions), config.retry.policy()
        )
        self.store = store or DocumentStore(
            root=config.root,
            mode=config.output_mode,
            aggregate_file=config.aggregate_file,
            mirror_dir=config.mirror_dir,
        )
        self.event_log = event_log or EventLog(config.log_dir)
        self.tree_filter = TreeFilter(config.exclude_dirs, config.output_dirs())
        self.output_files = {os.path.abspath(str(p)) for p in config.output_files()}
        self.events: "queue.Queue[ChangeEvent]" = queue.Queue()
        self.watched: dict[str, ObservedWatch] = {}
        self.executor = KeyedExecutor(max_workers=config.workers)
        self.filter: EventFilter = make_filter(
            config.dedup_policy, self._dispatch, config.debounce_seconds, timer_factory
        )
        self._handler = _QueueHandler(self.events)
        self._observer_factory = observer_factory
        self._observer: Optional[BaseObserver] = None
        self._stop = threading.Event()
        self._close_lock = threading.Lock()
        self._closed = False

    # -- lifecycle --------------------------------------------------------

    def start(self) -> None:
        """Acquire resources, register watches and run the initial scan.

        Raises:
            FatalInitError: The root is not a directory, the event log
                cannot be opened, or the root cannot be watched. Anything
                acquired before the failure is released.
        """
        if not os.path.isdir(self.root):
            raise FatalInitError(f"Not a directory: {self.root}")
        try:
            self.event_log.open()
            directories = walk_directories(self.root, self.tree_filter)
            if self.config.output_mode == OutputMode.MIRROR:
                replicate_tree(self.root, directories, self.config.mirror_dir)

            # started first so schedule() adds each OS watch and raises per directory
            self._observer = self._observer_factory()
            self._observer.start()
            try:
                self._register(self.root)
            except OSError as e:
                raise FatalInitError(f"Failed to watch directory {self.root}: {e}") from e
            for directory in directories[1:]:
                self._try_register(directory)
            logger.info(f"Watching {len(self.watched)} directories under {self.root}")

            if self.config.initial_scan:
                self._initial_scan(directories)
        except BaseException:
            self.close()
            raise

    def run(self) -> None:
        """Consume events until stop() is called, then close()."""
        try:
            while not self._stop.is_set():
                try:
                    event = self.events.get(timeout=POLL_INTERVAL)
                except queue.Empty:
                    continue
                try:
                    self.handle_event(event)
                except Exception:
                    logger.exception(f"Error handling {event.operation.value} {event.path}")
        finally:
            dropped = self.events.qsize()
            if dropped:
                logger.info(f"Discarding {dropped} events received during shutdown")
            self.close()

    def stop(self) -> None:
        """Ask run() to return. Safe from signal handlers and other threads."""
        self._stop.set()

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    def close(self) -> None:
        """Release everything, once.

        Order: stop the observer, flush pending debounced events, wait for
        extractions, write the index, close the event log.
        """
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        self._stop.set()

        if self._observer is not None:
            try:
                self._observer.stop()
                if self._observer.is_alive():
                    self._observer.join()
            except Exception:
                logger.exception("Error stopping observer")
            self.watched.clear()

        self.filter.close()
        self.executor.shutdown(wait=True)
        if len(self.store):
            self._materialize(None)
        self.event_log.close()
        logger.info("File watcher stopped")

    # -- events -----------------------------------------------------------

    def handle_event(self, event: ChangeEvent) -> None:
        """Route one event (called on the consumer thread)."""
        if event.is_directory:
            if event.operation in (Operation.REMOVE, Operation.RENAME):
                # a late delete for a path that was already recreated is stale
                if not os.path.isdir(event.path):
                    self._unregister_tree(event.path)
            elif event.operation == Operation.CREATE and self.config.watch_new_directories:
                self._register_new_tree(event.path)
            return

        if event.operation == Operation.REMOVE:
            return

        if os.path.abspath(event.path) in self.output_files:
            return

        if event.operation in (Operation.CREATE, Operation.WRITE):
            if self.filter.accept(event):
                self.event_log.record(event)
            return

        logger.debug(f"Ignoring {event.operation.value} {event.path}")
        self.event_log.record(event)

    def _dispatch(self, event: ChangeEvent) -> None:
        """Filter callback: queue extraction for indexable files."""
        if self.extractor.handles(event.path):
            self.executor.submit(event.path, lambda: self.index_path(event.path))

    def index_path(self, path: str) -> bool:
        """Extract path, store the record and write the index.

        Returns:
            True if the store was updated. On ParseFailure the previous
            record (if any) is kept.
        """
        result = self.extractor.extract(path)
        if isinstance(result, ParseFailure):
            logger.warning(f"Error parsing file {result}")
            return False
        self.store.put(path, result)
        self._materialize(path)
        logger.debug(f"Indexed {path}")
        return True

    def _materialize(self, path: Optional[str]) -> None:
        try:
            self.store.materialize(path)
        except MaterializationError as e:
            logger.error(str(e))

    # -- registration -----------------------------------------------------

    def _register(self, directory: str) -> bool:
        if directory in self.watched:
            return False
        self.watched[directory] = self._observer.schedule(
            self._handler, directory, recursive=False
        )
        return True

    def _try_register(self, directory: str) -> bool:
        try:
            return self._register(directory)
        except OSError as e:
            logger.warning(f"Error watching {directory}: {e}")
            return False

    def _unregister_tree(self, path: str) -> None:
        """Drop the watches on path and below after it was removed or moved.

        Records for files under path are kept.
        """
        prefix = path + os.sep
        stale = [d for d in self.watched if d == path or d.startswith(prefix)]
        for directory in stale:
            watch = self.watched.pop(directory)
            try:
                self._observer.unschedule(watch)
            except Exception as e:
                logger.warning(f"Error unwatching {directory}: {e}")
        if stale:
            logger.info(f"Unregistered {len(stale)} directories under {path}")

    def _register_new_tree(self, path: str) -> None:
        """Watch a directory created after startup and index its files."""
        # a create for a watched path means the old watch lost its REMOVE
        self._unregister_tree(path)
        if self.tree_filter.is_excluded(path) or not os.path.isdir(path):
            return
        directories = walk_directories(path, self.tree_filter)
        added = [d for d in directories if self._try_register(d)]
        if not added:
            return
        logger.info(f"Registered {len(added)} new directories under {path}")
        if self.config.output_mode == OutputMode.MIRROR:
            replicate_tree(self.root, added, self.config.mirror_dir)
        # files written before the watch existed produce no events
        for file_path in iter_files(added, self.config.extensions):
            if self.extractor.handles(file_path):
                self.executor.submit(file_path, lambda p=file_path: self.index_path(p))

    def _initial_scan(self, directories: list[str]) -> None:
        indexed = failed = 0
        for path in iter_files(directories, self.config.extensions):
            if not self.extractor.handles(path):
                continue
            result = self.extractor.extract(path)
            if isinstance(result, ParseFailure):
                logger.warning(f"Error parsing file {result}")
                failed += 1
                continue
            self.store.put(path, result)
            indexed += 1
        self._materialize(None)
        logger.info(f"Initial scan complete: {indexed} files indexed, {failed} failed")
