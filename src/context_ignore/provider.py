"""
Context filters provider: decides whether a single path may be used as context
"""

from enum import Enum
from pathlib import PurePath
from typing import Awaitable, Callable, Optional, Protocol, Union

from .file_loader import PatternSet
from .glob_builder import enabled_patterns
from .rule_engine import IgnoreRuleEngine
from .workspace import WorkspaceRoot
from .utils import get_logger

logger = get_logger(__name__)

PathLike = Union[str, PurePath]


class IgnoredResult(str, Enum):
    """Outcome of an exclusion query

    Only NOT_IGNORED is falsy, so results can be used directly in
    conditions.
    """
    NOT_IGNORED = "not-ignored"
    IGNORED_LOCAL = "local-ignore-file"
    IGNORED_REMOTE = "remote-policy"

    def __bool__(self) -> bool:
        return self is not IgnoredResult.NOT_IGNORED


class ContextFeature(str, Enum):
    """Feature that asked for a path, passed on to notifications"""
    CHAT = "chat"
    EDIT = "edit"
    COMMAND = "command"
    AUTOCOMPLETE = "autocomplete"
    MENTION = "mention"


Notifier = Callable[[ContextFeature, IgnoredResult], None]


class ExcludePatternGetter(Protocol):
    """Source of pattern sets and root resolution for the provider"""

    def get_pattern_set(self, root: Optional[WorkspaceRoot]) -> Awaitable[PatternSet]:
        ...

    def get_workspace_root(self, path: PathLike) -> Optional[WorkspaceRoot]:
        ...


class ContextFiltersProvider:
    """
    Answers per-path exclusion queries against cached pattern sets

    Until initialize() is called every path is allowed: nothing is
    silently withheld from context before setup completes.
    """

    def __init__(self, rule_engine: Optional[IgnoreRuleEngine] = None):
        self.rule_engine = rule_engine if rule_engine is not None else IgnoreRuleEngine()
        self._getter: Optional[ExcludePatternGetter] = None

    @property
    def initialized(self) -> bool:
        return self._getter is not None

    def initialize(self, getter: ExcludePatternGetter):
        """
        Install the exclude pattern getter

        Args:
            getter: Supplies pattern sets and workspace roots
        """
        self._getter = getter
        logger.debug("Context filters provider initialized")

    def reset(self):
        """Return to the uninitialized, allow-everything state"""
        self._getter = None
        self.rule_engine.clear_cache()

    async def is_excluded(self, path: PathLike) -> IgnoredResult:
        """
        Check whether a path is excluded from context

        Args:
            path: Absolute path, or a path relative to its workspace root

        Returns:
            IGNORED_LOCAL when a local ignore file pattern matches,
            NOT_IGNORED otherwise (including on any internal error)
        """
        getter = self._getter
        if getter is None:
            return IgnoredResult.NOT_IGNORED

        try:
            root = getter.get_workspace_root(path)
            if root is None:
                return IgnoredResult.NOT_IGNORED

            relative = root.relative_posix(path)
            if relative is None:
                return IgnoredResult.NOT_IGNORED

            patterns = await getter.get_pattern_set(root)
            rules = self.rule_engine.compile_rules(enabled_patterns(patterns))
            if not rules:
                return IgnoredResult.NOT_IGNORED

            result = self.rule_engine.match_path(relative, rules)
        except Exception as e:
            logger.warning(f"Exclusion check failed for {path}: {e}; allowing", exc_info=True)
            return IgnoredResult.NOT_IGNORED

        if result.should_ignore:
            logger.trace(f"{relative} excluded by '{result.matched_pattern}' ({root.path})")
            return IgnoredResult.IGNORED_LOCAL
        return IgnoredResult.NOT_IGNORED

    async def is_excluded_with_notification(self, path: PathLike,
                                            feature: ContextFeature,
                                            notify: Notifier) -> IgnoredResult:
        """
        Check a path and report a positive result to the caller's notifier

        Args:
            path: Path to check
            feature: Feature asking for the path
            notify: Called with (feature, result) when the path is excluded

        Returns:
            The exclusion result
        """
        result = await self.is_excluded(path)
        if result:
            notify(feature, result)
        return result
