"""
Per-workspace cache of ignore file pattern sets with live invalidation
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from .constants import IGNORE_FILE_PATH, NO_WORKSPACE_KEY
from .errors import WatchRegistrationError
from .file_loader import EMPTY_PATTERN_SET, IgnoreFileLoader, PatternSet
from .watcher import ChangeKind, WatchHandle, WatchService
from .workspace import WorkspaceRoot
from .utils import get_logger, log_with_context

logger = get_logger(__name__)


def cache_key(root: Optional[WorkspaceRoot]) -> str:
    """Stable cache key for a workspace root"""
    return root.uri if root is not None else NO_WORKSPACE_KEY


@dataclass
class CacheEntry:
    """Published pattern set for one workspace root"""
    root: Optional[WorkspaceRoot]
    patterns: PatternSet


class ExclusionCache:
    """
    Memoizes one pattern set per workspace root and keeps it fresh

    Watch callbacks may fire on any thread. They only enqueue events; a
    single worker task on the owning event loop applies them, so every
    published pattern set is replaced by one reference swap.
    """

    def __init__(self, loader: IgnoreFileLoader,
                 watch_service: Optional[WatchService] = None,
                 ignore_path: str = IGNORE_FILE_PATH):
        """
        Initialize cache

        Args:
            loader: Loader used for initial loads and reloads
            watch_service: Change-watch primitive (None disables live invalidation)
            ignore_path: Ignore file location relative to each workspace root
        """
        self.loader = loader
        self.watch_service = watch_service
        self.ignore_path = ignore_path

        self._entries: Dict[str, CacheEntry] = {}
        self._watchers: Dict[str, WatchHandle] = {}
        self._roots: Dict[str, WorkspaceRoot] = {}
        self._watch_failed: Dict[str, WorkspaceRoot] = {}
        self._inflight: Dict[str, asyncio.Task] = {}

        # Bumped by clear(); reloads started in an older epoch don't publish
        self._epoch = 0

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._events: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None

    def ignore_file_for(self, root: WorkspaceRoot) -> Path:
        """Path of the ignore file belonging to a workspace root"""
        return root.path.joinpath(*self.ignore_path.split('/'))

    async def get_or_load(self, root: Optional[WorkspaceRoot]) -> PatternSet:
        """
        Get the pattern set for a workspace root, loading it on first use

        Args:
            root: Workspace root, or None for paths outside any workspace

        Returns:
            The currently published pattern set
        """
        key = cache_key(root)
        entry = self._entries.get(key)
        if entry is not None:
            return entry.patterns

        if root is None:
            self._entries[key] = CacheEntry(root=None, patterns=EMPTY_PATTERN_SET)
            return EMPTY_PATTERN_SET

        self._ensure_worker()

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._initial_load(key, root))
            self._inflight[key] = task
            task.add_done_callback(lambda t, k=key: self._forget_inflight(k, t))

        # Awaiters share the load; cancelling one caller mustn't cancel it
        return await asyncio.shield(task)

    def _forget_inflight(self, key: str, task: asyncio.Task):
        if self._inflight.get(key) is task:
            del self._inflight[key]

    def _is_current_load(self, key: str) -> bool:
        return self._inflight.get(key) is asyncio.current_task()

    async def _initial_load(self, key: str, root: WorkspaceRoot) -> PatternSet:
        # Watch before reading so a change during the read is not missed
        if self._is_current_load(key):
            self._register_watcher(key, root)
        patterns = await self.loader.load(self.ignore_file_for(root))

        if not self._is_current_load(key):
            logger.debug(f"Discarding load for {key}; entry was evicted meanwhile")
            return patterns

        # A reload that finished first saw a newer file; keep it
        entry = self._entries.setdefault(key, CacheEntry(root=root, patterns=patterns))
        return entry.patterns

    def _register_watcher(self, key: str, root: WorkspaceRoot):
        self._roots[key] = root
        if self.watch_service is None or key in self._watchers:
            return

        ignore_file = self.ignore_file_for(root)
        try:
            handle = self.watch_service.watch(
                ignore_file, lambda kind, k=key: self._on_change(k, kind)
            )
        except WatchRegistrationError as e:
            logger.warning(f"{e}; serving cached patterns without live updates")
            self._watch_failed[key] = root
            return

        self._watchers[key] = handle
        self._watch_failed.pop(key, None)

    def _on_change(self, key: str, kind: ChangeKind):
        """Watch callback; safe to call from any thread"""
        loop, events = self._loop, self._events
        if loop is None or events is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(events.put_nowait, (key, kind))

    def _ensure_worker(self):
        loop = asyncio.get_running_loop()
        if self._loop is not loop:
            # First use, or the previous loop is gone
            self._loop = loop
            self._events = asyncio.Queue()
            self._worker = None
        if self._worker is None or self._worker.done():
            self._worker = loop.create_task(self._run_worker())

    async def _run_worker(self):
        events = self._events
        while True:
            event = await events.get()
            try:
                await self.apply_event(*event)
            except Exception as e:
                logger.error(f"Failed to apply ignore file event {event}: {e}", exc_info=True)
            finally:
                events.task_done()

    async def apply_event(self, key: str, kind: ChangeKind):
        """
        Apply one change notification to the cache

        Args:
            key: Cache key of the affected workspace root
            kind: What happened to the ignore file
        """
        if key not in self._watchers:
            logger.debug(f"Dropping {kind.value} event for unwatched key {key}")
            return

        root = self._roots.get(key)
        if root is None:
            return

        epoch = self._epoch
        if kind is ChangeKind.DELETED:
            patterns = EMPTY_PATTERN_SET
        else:
            patterns = await self.loader.load(self.ignore_file_for(root))

        if epoch != self._epoch or key not in self._watchers:
            return

        self._entries[key] = CacheEntry(root=root, patterns=patterns)
        log_with_context(
            logger, logging.INFO,
            f"Ignore file {kind.value} for {key}: {len(patterns)} patterns",
            workspace=key, change=kind.value, patterns=len(patterns),
        )

    async def flush(self):
        """Wait until every queued change notification has been applied"""
        if self._events is None:
            return
        self._ensure_worker()
        # Let puts scheduled with call_soon_threadsafe reach the queue first
        await asyncio.sleep(0)
        await self._events.join()

    async def refresh(self, root: WorkspaceRoot) -> PatternSet:
        """
        Reload a workspace root's ignore file now

        Also retries a watcher registration that failed earlier.

        Args:
            root: Workspace root to reload

        Returns:
            The newly published pattern set
        """
        key = cache_key(root)
        self._ensure_worker()
        self._register_watcher(key, root)
        epoch = self._epoch
        patterns = await self.loader.load(self.ignore_file_for(root))
        if epoch == self._epoch:
            self._entries[key] = CacheEntry(root=root, patterns=patterns)
        return patterns

    def retry_failed_watchers(self) -> int:
        """
        Try again to register watchers whose registration failed

        Returns:
            Number of watchers registered by this call
        """
        registered = 0
        for key, root in list(self._watch_failed.items()):
            self._register_watcher(key, root)
            if key in self._watchers:
                registered += 1
        return registered

    def evict(self, root: Optional[WorkspaceRoot]):
        """
        Drop one workspace root's entry and release its watcher

        Args:
            root: Workspace root that was closed
        """
        key = cache_key(root)
        self._entries.pop(key, None)
        self._roots.pop(key, None)
        self._watch_failed.pop(key, None)
        # A running initial load notices it was forgotten and won't publish
        self._inflight.pop(key, None)
        handle = self._watchers.pop(key, None)
        if handle is not None:
            handle.dispose()
        logger.debug(f"Evicted {key}")

    def clear(self):
        """Drop all entries and dispose every registered watcher"""
        self._epoch += 1
        for handle in self._watchers.values():
            handle.dispose()
        self._watchers.clear()
        self._roots.clear()
        self._watch_failed.clear()
        self._entries.clear()
        self._inflight.clear()

        if self._events is not None:
            while not self._events.empty():
                self._events.get_nowait()
                self._events.task_done()
        logger.debug("Exclusion cache cleared")

    async def aclose(self):
        """Clear the cache and stop the worker task"""
        self.clear()
        worker, self._worker = self._worker, None
        if worker is not None and not worker.done():
            worker.cancel()
            try:
                await worker
            except asyncio.CancelledError:
                pass

    def keys(self) -> List[str]:
        return list(self._entries)

    def has_watcher(self, root: Optional[WorkspaceRoot]) -> bool:
        return cache_key(root) in self._watchers

    def __contains__(self, root: Optional[WorkspaceRoot]) -> bool:
        return cache_key(root) in self._entries

    def __len__(self) -> int:
        return len(self._entries)
