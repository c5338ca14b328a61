"""Change watching for Stitch.

The watcher never builds anything itself. Filesystem events are turned into
paths on a queue; the rebuild loop, running on the single build thread,
coalesces them into RebuildRequest values and hands those to the builder.

Key classes:
- RebuildRequest: Set of paths changed since the last processed request.
- ChangeWatcher: watchdog observer feeding the path queue.
- RebuildLoop: Build thread consuming requests with start/stop/build_once.
"""

from __future__ import annotations

import os
import queue
import threading
import time
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .build import BuildReport, SiteBuilder
from .errors import StitchError, WatchError
from .logging import get_logger
from .utils import is_within

logger = get_logger("watcher")

RELEVANT_EVENTS = frozenset({"created", "modified", "deleted", "moved"})


@dataclass(frozen=True)
class RebuildRequest:
    """Paths that changed since the last completed build."""

    paths: frozenset[Path]

    def __len__(self) -> int:
        return len(self.paths)


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, watcher: ChangeWatcher):
        super().__init__()
        self.watcher = watcher

    def on_any_event(self, event):
        if event.event_type not in RELEVANT_EVENTS:
            return
        # A directory's own mtime changes whenever a child changes.
        if event.is_directory and event.event_type == "modified":
            return
        self.watcher.enqueue(Path(os.fsdecode(event.src_path)))
        dest = getattr(event, "dest_path", None)
        if dest:
            self.watcher.enqueue(Path(os.fsdecode(dest)))


class ChangeWatcher:
    """Watches a source root and queues changed paths.

    Attributes:
        root: Directory watched recursively.
        debounce_seconds: Quiet period that closes a coalescing window.
        max_batch_seconds: Upper bound on one coalescing window.
        excluded: Directories whose events are dropped (the output tree).
    """

    def __init__(
        self,
        root: Path,
        debounce_seconds: float = 0.1,
        excluded: Iterable[Path] = (),
        max_batch_seconds: float = 2.0,
    ):
        self.root = Path(root)
        self.debounce_seconds = debounce_seconds
        self.max_batch_seconds = max_batch_seconds
        self.excluded = [Path(p) for p in excluded]
        self._queue: queue.Queue[Path] = queue.Queue()
        self._observer: Observer | None = None

    def start(self) -> None:
        """Start the filesystem observer.

        Raises:
            WatchError: If the platform watcher cannot be set up.
        """
        observer = Observer()
        try:
            observer.schedule(_ChangeHandler(self), str(self.root), recursive=True)
            observer.start()
        except OSError as exc:
            raise WatchError(f"Cannot watch {self.root}: {exc}") from exc
        self._observer = observer
        logger.info("Watching %s for changes", self.root)

    def stop(self) -> None:
        if self._observer:
            self._observer.stop()
            self._observer.join()
            self._observer = None

    @property
    def is_alive(self) -> bool:
        return self._observer is not None and self._observer.is_alive()

    def enqueue(self, path: Path) -> None:
        """Queue a changed path unless it belongs to an excluded tree."""
        if any(is_within(path, excluded) for excluded in self.excluded):
            return
        if is_within(path, self.root) and ".git" in path.relative_to(self.root).parts:
            return
        self._queue.put(path)

    def next_request(self, timeout: float | None = None) -> RebuildRequest | None:
        """Wait for changes and coalesce them into one request.

        Blocks for the first path, then keeps absorbing paths until no new
        one arrives within ``debounce_seconds`` (or ``max_batch_seconds``
        have passed). Duplicate paths collapse.

        Args:
            timeout: Seconds to wait for the first path; None waits forever.

        Returns:
            RebuildRequest, or None if nothing arrived before ``timeout``.
        """
        try:
            first = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        paths = {first}
        deadline = time.monotonic() + self.max_batch_seconds
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            try:
                paths.add(self._queue.get(timeout=min(self.debounce_seconds, remaining)))
            except queue.Empty:
                break
        return RebuildRequest(frozenset(paths))


class RebuildLoop:
    """Runs rebuilds on a single thread as change requests arrive.

    Events arriving while a rebuild runs stay queued and form the next
    request, so builds never overlap.

    Attributes:
        builder: The site builder; the only writer of the output tree.
        watcher: Source of change requests.
        poll_interval: Seconds between stop/health checks while idle.
        error: WatchError that ended the loop, if any.
    """

    def __init__(self, builder: SiteBuilder, watcher: ChangeWatcher, poll_interval: float = 0.5):
        self.builder = builder
        self.watcher = watcher
        self.poll_interval = poll_interval
        self.error: WatchError | None = None
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @classmethod
    def for_builder(cls, builder: SiteBuilder) -> RebuildLoop:
        """Create a loop watching the builder's source root."""
        debounce = float(builder.config.get("debounce_ms", 100)) / 1000
        watcher = ChangeWatcher(
            builder.source_root,
            debounce_seconds=debounce,
            excluded=[builder.output_dir],
        )
        return cls(builder, watcher)

    def build_once(self) -> BuildReport:
        """Run a full build on the caller's thread."""
        report = self.builder.full_build()
        logger.info(report.summary())
        return report

    def start(self) -> None:
        """Start watching and processing rebuild requests in the background.

        Raises:
            WatchError: If the watcher cannot start.
        """
        self._stop.clear()
        self.error = None
        self.watcher.start()
        self._thread = threading.Thread(target=self.run, name="stitch-build", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        self.watcher.stop()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join()
        self._thread = None

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the loop ends; returns True if it has ended."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run(self) -> None:
        """Consume requests until stopped or the watcher dies."""
        while not self._stop.is_set():
            if not self.watcher.is_alive and not self._stop.is_set():
                self.error = WatchError("Filesystem observer stopped unexpectedly")
                logger.error("%s; watch mode ended", self.error)
                return
            request = self.watcher.next_request(timeout=self.poll_interval)
            if request is None:
                continue
            self.process(request)

    def process(self, request: RebuildRequest) -> BuildReport | None:
        """Hand one request to the builder and log the outcome."""
        logger.info("Change detected in %d path(s); rebuilding", len(request))
        try:
            report = self.builder.rebuild(request.paths)
        except StitchError as exc:
            logger.error("Rebuild failed: %s", exc)
            return None
        except Exception:
            # The build thread must outlive any single rebuild.
            logger.exception("Rebuild crashed; waiting for the next change")
            return None
        logger.info(report.summary())
        return report
