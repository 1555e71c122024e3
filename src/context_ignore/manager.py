"""
Main API: one session object owning the whole exclusion engine
"""

import asyncio
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .cache import ExclusionCache
from .file_loader import IgnoreFileLoader, LocalResourceReader, PatternSet, ResourceReader
from .glob_builder import build_exclude_glob
from .provider import ContextFeature, ContextFiltersProvider, IgnoredResult, Notifier, PathLike
from .settings import ContextIgnoreSettings
from .watcher import WatchdogWatchService, WatchService
from .workspace import BulkFileSearch, LocalFileSearch, WorkspaceResolver, WorkspaceRoot
from .utils import get_logger

logger = get_logger(__name__)


class Disposable:
    """Handle whose dispose() undoes a registration"""

    def __init__(self, callback):
        self._callback = callback

    def dispose(self):
        callback, self._callback = self._callback, None
        if callback is not None:
            callback()


class ContextIgnoreManager:
    """
    Main API for context exclusion with hot reloading

    Owns the cache, watchers, provider and search for one session; use
    as an async context manager or call aclose() when done.
    """

    def __init__(self,
                 roots: Iterable[Union[WorkspaceRoot, str, Path]] = (),
                 settings: Optional[ContextIgnoreSettings] = None,
                 reader: Optional[ResourceReader] = None,
                 watch_service: Optional[WatchService] = None,
                 search: Optional[BulkFileSearch] = None,
                 auto_initialize: bool = True):
        """
        Initialize the manager

        Args:
            roots: Workspace roots (WorkspaceRoot objects or paths)
            settings: Session settings (defaults to ContextIgnoreSettings.from_env())
            reader: Readable-resource primitive (defaults to the local disk)
            watch_service: Change-watch primitive (defaults to watchdog when
                settings.watch is true)
            search: Bulk file-search primitive (defaults to a local walk)
            auto_initialize: Initialize the provider right away
        """
        self.settings = settings if settings is not None else ContextIgnoreSettings.from_env()

        if reader is None:
            reader = LocalResourceReader(
                max_file_size=self.settings.max_file_size,
                timeout=self.settings.read_timeout,
            )

        self._owns_watch_service = False
        if watch_service is None and self.settings.watch:
            watch_service = WatchdogWatchService()
            self._owns_watch_service = True
        self.watch_service = watch_service

        self.resolver = WorkspaceResolver(self._as_root(r) for r in roots)
        self.loader = IgnoreFileLoader(reader)
        self.cache = ExclusionCache(
            self.loader,
            watch_service=watch_service,
            ignore_path=self.settings.ignore_path,
        )
        self.provider = ContextFiltersProvider()
        self.search = search if search is not None else LocalFileSearch()
        self._registration: Optional[Disposable] = None

        if auto_initialize:
            self.initialize()

    @staticmethod
    def _as_root(root: Union[WorkspaceRoot, str, Path]) -> WorkspaceRoot:
        return root if isinstance(root, WorkspaceRoot) else WorkspaceRoot.from_path(root)

    @property
    def roots(self) -> List[WorkspaceRoot]:
        return self.resolver.roots

    def add_root(self, root: Union[WorkspaceRoot, str, Path]) -> WorkspaceRoot:
        root = self._as_root(root)
        self.resolver.add_root(root)
        return root

    async def close_root(self, root: Union[WorkspaceRoot, str, Path]):
        """Forget a workspace root and release its cache entry and watcher"""
        root = self._as_root(root)
        self.resolver.remove_root(root)
        self.cache.evict(root)

    # ExcludePatternGetter

    async def get_pattern_set(self, root: Optional[WorkspaceRoot]) -> PatternSet:
        return await self.cache.get_or_load(root)

    def get_workspace_root(self, path: PathLike) -> Optional[WorkspaceRoot]:
        return self.resolver.resolve_root(path)

    def initialize(self) -> Disposable:
        """
        Wire the provider to this manager's cache

        Returns:
            Disposable that clears the cache and resets the provider
        """
        if self._registration is None:
            self.provider.initialize(self)

            def teardown():
                self.clear_cache()
                self.provider.reset()
                self._registration = None

            self._registration = Disposable(teardown)
        return self._registration

    async def get_exclude_glob(self, root: Optional[WorkspaceRoot]) -> str:
        """
        Exclude glob built from a root's ignore file

        Args:
            root: Workspace root, or None

        Returns:
            Brace-grouped glob, a single pattern, or ""
        """
        patterns = await self.cache.get_or_load(root)
        return build_exclude_glob(patterns)

    async def get_search_exclude_glob(self, root: Optional[WorkspaceRoot]) -> str:
        """
        Exclude glob for bulk search: ignore file patterns plus editor excludes
        and the always-excluded patterns
        """
        patterns = await self.cache.get_or_load(root)
        extras = self.settings.editor_excludes() + list(self.settings.always_exclude)
        return build_exclude_glob(patterns, extras)

    async def is_excluded(self, path: PathLike) -> IgnoredResult:
        return await self.provider.is_excluded(path)

    async def is_excluded_with_notification(self, path: PathLike,
                                            feature: ContextFeature,
                                            notify: Notifier) -> IgnoredResult:
        return await self.provider.is_excluded_with_notification(path, feature, notify)

    async def find_workspace_files(self) -> List[Path]:
        """
        List files across all roots, respecting ignore files and editor excludes

        Returns:
            Absolute paths, grouped by root in root order
        """
        loop = asyncio.get_running_loop()
        files: List[Path] = []
        for root in self.roots:
            exclude_glob = await self.get_search_exclude_glob(root)
            found = await loop.run_in_executor(None, self.search.find_files, root, exclude_glob)
            files.extend(found)
        return files

    async def refresh(self, root: Union[WorkspaceRoot, str, Path]) -> PatternSet:
        """Reload one root's ignore file now"""
        return await self.cache.refresh(self._as_root(root))

    def clear_cache(self):
        """Drop cached pattern sets and dispose all watchers"""
        self.cache.clear()
        self.provider.rule_engine.clear_cache()

    async def aclose(self):
        """Tear down the session"""
        if self._registration is not None:
            self._registration.dispose()
        await self.cache.aclose()
        if self._owns_watch_service and isinstance(self.watch_service, WatchdogWatchService):
            self.watch_service.close()
        logger.debug("Context ignore manager closed")

    async def __aenter__(self) -> 'ContextIgnoreManager':
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
