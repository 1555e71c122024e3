"""
Watchdog-backed change notifications for ignore files

Provides the change-watch primitive consumed by ExclusionCache: watch one
file path, report changed/created/deleted events, dispose the watch.
Callbacks run on the watchdog observer thread or the service's re-arm
thread; consumers must hand events over to their own thread or event loop.

Nothing is watched recursively. A handle watches the ignore file's
directory when it exists, plus the nearest existing directory above it so
that the directory being created, deleted or renamed is noticed and the
watches are re-armed.
"""

import os
import threading
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol, Set, Union

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .errors import WatchRegistrationError
from .utils import get_logger

logger = get_logger(__name__)

# Attempts at re-arming when directories change again mid-way
MAX_ARM_ATTEMPTS = 3


class ChangeKind(str, Enum):
    """Kind of change reported for a watched file"""
    CHANGED = "changed"
    CREATED = "created"
    DELETED = "deleted"


ChangeCallback = Callable[[ChangeKind], None]


class WatchHandle(Protocol):
    """Registration returned by a watch service"""

    def dispose(self) -> None:
        ...


class WatchService(Protocol):
    """Change-watch primitive"""

    def watch(self, path: Path, callback: ChangeCallback) -> WatchHandle:
        """Watch exactly one file path; raise WatchRegistrationError on failure"""
        ...


def _event_path(raw: Union[str, bytes]) -> Path:
    # Watched directories are already resolved, so event paths are too
    return Path(os.fsdecode(raw))


def watch_layout(target: Path) -> List[Path]:
    """
    Directories to watch, non-recursively, for one target file

    Args:
        target: Resolved path of the watched file

    Returns:
        The file's directory if it exists, followed by the nearest existing
        directory above it
    """
    directories = []
    if target.parent.is_dir():
        directories.append(target.parent)
    anchor = target.parent.parent
    while not anchor.is_dir() and anchor.parent != anchor:
        anchor = anchor.parent
    directories.append(anchor)
    return directories


class IgnoreFileHandler(FileSystemEventHandler):
    """
    Translates watchdog events for one file into ChangeKind callbacks
    """

    def __init__(self, target: Path, callback: ChangeCallback,
                 on_layout_change: Optional[Callable[[bool], None]] = None):
        """
        Initialize the handler

        Args:
            target: Resolved path of the watched file
            callback: Called with the ChangeKind of each relevant event
            on_layout_change: Called when the file's directory or one of its
                ancestors appears (False) or disappears (True)
        """
        super().__init__()
        self.target = target
        self.callback = callback
        self.on_layout_change = on_layout_change

    def _is_target(self, raw: Union[str, bytes]) -> bool:
        return _event_path(raw) == self.target

    def _is_container(self, raw: Union[str, bytes]) -> bool:
        return _event_path(raw) in self.target.parents

    def _emit(self, kind: ChangeKind):
        logger.debug(f"Ignore file {kind.value}: {self.target}")
        try:
            self.callback(kind)
        except Exception as e:
            # Keep the observer thread alive for the other watches
            logger.error(f"Change callback failed for {self.target}: {e}", exc_info=True)

    def _layout_changed(self, removed: bool):
        if self.on_layout_change is not None:
            self.on_layout_change(removed)

    def on_created(self, event: FileSystemEvent):
        if event.is_directory:
            if self._is_container(event.src_path):
                self._layout_changed(removed=False)
        elif self._is_target(event.src_path):
            self._emit(ChangeKind.CREATED)

    def on_modified(self, event: FileSystemEvent):
        if not event.is_directory and self._is_target(event.src_path):
            self._emit(ChangeKind.CHANGED)

    def on_deleted(self, event: FileSystemEvent):
        if event.is_directory:
            # Removing the containing directory removes the ignore file
            if self._is_container(event.src_path):
                self._emit(ChangeKind.DELETED)
                self._layout_changed(removed=True)
        elif self._is_target(event.src_path):
            self._emit(ChangeKind.DELETED)

    def on_moved(self, event: FileSystemEvent):
        dest = getattr(event, 'dest_path', None)
        if event.is_directory:
            if self._is_container(event.src_path):
                self._emit(ChangeKind.DELETED)
                self._layout_changed(removed=True)
            elif dest and self._is_container(dest):
                self._layout_changed(removed=False)
            return

        if self._is_target(event.src_path):
            self._emit(ChangeKind.DELETED)
        elif dest and self._is_target(dest):
            # Editors often save by writing a temp file and renaming it over
            self._emit(ChangeKind.CREATED)


class WatchdogWatchHandle:
    """Handle for the watchdog watches serving one file"""

    def __init__(self, service: 'WatchdogWatchService', path: Path,
                 callback: ChangeCallback):
        self._service = service
        self.path = path
        self.handler = IgnoreFileHandler(
            path, callback,
            on_layout_change=lambda removed: service._request_rearm(self, removed),
        )
        # Watched directory -> scheduled watchdog watch
        self.watches: Dict[str, object] = {}
        self.disposed = False

    @property
    def watched_dirs(self) -> List[str]:
        return list(self.watches)

    def dispose(self) -> None:
        if self.disposed:
            return
        self.disposed = True
        self._service._release(self)


class WatchdogWatchService:
    """
    Watch service sharing one watchdog observer across all watched files
    """

    def __init__(self, observer_factory: Callable[[], Observer] = Observer):
        """
        Initialize the watch service

        Args:
            observer_factory: Creates the observer (overridable for polling
                observers on filesystems without native events)
        """
        self._observer_factory = observer_factory
        self._observer: Optional[Observer] = None
        self._handles: Set[WatchdogWatchHandle] = set()
        self._lock = threading.Lock()
        # Re-arming runs here, never on the observer thread, so the observer
        # lock is always taken after ours
        self._rearm_executor = ThreadPoolExecutor(max_workers=1,
                                                  thread_name_prefix='ignore-rearm')
        self._closed = False

    def _ensure_observer(self) -> Observer:
        if self._observer is None:
            self._observer = self._observer_factory()
            self._observer.daemon = True
            self._observer.start()
            logger.info("Watchdog observer started")
        return self._observer

    def watch(self, path: Path, callback: ChangeCallback) -> WatchdogWatchHandle:
        """
        Watch one file for changes

        The file and its directory need not exist yet; they are picked up
        when they are created.

        Args:
            path: File to watch
            callback: Called with a ChangeKind for each change

        Returns:
            Handle whose dispose() stops the watch
        """
        target = Path(path).resolve()
        handle = WatchdogWatchHandle(self, target, callback)

        with self._lock:
            if self._closed:
                raise WatchRegistrationError(target, "watch service is closed")
            self._handles.add(handle)
            try:
                self._arm(handle, reset=False)
            except (OSError, RuntimeError) as e:
                self._handles.discard(handle)
                self._unschedule_all(handle)
                raise WatchRegistrationError(target, str(e)) from e

        logger.info(f"Watching {target} via {', '.join(handle.watched_dirs)}")
        return handle

    def _arm(self, handle: WatchdogWatchHandle, reset: bool) -> bool:
        """
        Bring a handle's watches in line with the directories that exist now

        Must be called with self._lock held.

        Returns:
            True if the file's own directory was newly scheduled
        """
        if reset:
            # A deleted directory leaves a dead watch behind; start over
            self._unschedule_all(handle)

        observer = self._ensure_observer()
        file_dir = str(handle.path.parent)
        had_file_dir = file_dir in handle.watches
        wanted = [str(d) for d in watch_layout(handle.path)]

        for directory in wanted:
            if directory not in handle.watches:
                handle.watches[directory] = observer.schedule(
                    handle.handler, directory, recursive=False
                )
        for directory in list(handle.watches):
            if directory not in wanted:
                self._unschedule(handle, handle.watches.pop(directory))

        return not had_file_dir and file_dir in handle.watches

    def _request_rearm(self, handle: WatchdogWatchHandle, removed: bool):
        """Layout change callback; runs on the observer thread"""
        if self._closed or handle.disposed:
            return
        try:
            self._rearm_executor.submit(self._rearm, handle, removed)
        except RuntimeError:
            logger.debug(f"Watch service shutting down; not re-arming {handle.path}")

    def _rearm(self, handle: WatchdogWatchHandle, removed: bool):
        for attempt in range(1, MAX_ARM_ATTEMPTS + 1):
            with self._lock:
                if self._closed or handle.disposed:
                    return
                try:
                    newly_watched = self._arm(handle, reset=removed)
                except OSError as e:
                    # The directory vanished between the check and the schedule
                    logger.debug(f"Re-arming {handle.path} failed (attempt {attempt}): {e}")
                    removed = True
                    continue
                except Exception as e:
                    # Executor futures are never awaited; log instead of losing it
                    logger.error(f"Re-arming {handle.path} failed: {e}", exc_info=True)
                    return
            logger.debug(f"Re-armed {handle.path} via {', '.join(handle.watched_dirs)}")
            # The file may have been written before its directory was watched
            if newly_watched and handle.path.is_file():
                handle.handler._emit(ChangeKind.CREATED)
            return
        logger.warning(f"Gave up re-arming watch for {handle.path}; "
                       f"changes will not be seen until it is refreshed")

    def _unschedule(self, handle: WatchdogWatchHandle, watch):
        if self._observer is None:
            return
        # watchdog shares one watch between schedules of the same directory
        shared = any(
            watch in other.watches.values()
            for other in self._handles if other is not handle
        )
        try:
            if shared:
                self._observer.remove_handler_for_watch(handle.handler, watch)
            else:
                self._observer.unschedule(watch)
        except KeyError:
            logger.debug(f"Watch already removed for {handle.path}")

    def _unschedule_all(self, handle: WatchdogWatchHandle):
        for watch in list(handle.watches.values()):
            self._unschedule(handle, watch)
        handle.watches.clear()

    def _release(self, handle: WatchdogWatchHandle):
        with self._lock:
            self._handles.discard(handle)
            self._unschedule_all(handle)
        logger.debug(f"Stopped watching {handle.path}")

    @property
    def watch_count(self) -> int:
        with self._lock:
            return len(self._handles)

    def is_running(self) -> bool:
        return self._observer is not None and self._observer.is_alive()

    def close(self):
        """Dispose every watch and stop the observer"""
        with self._lock:
            self._closed = True
            handles = list(self._handles)
        for handle in handles:
            handle.dispose()
        self._rearm_executor.shutdown(wait=True)

        with self._lock:
            observer, self._observer = self._observer, None
        if observer is not None:
            observer.stop()
            observer.join(timeout=5)
            logger.info("Watchdog observer stopped")
