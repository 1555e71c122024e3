"""
Context exclusion engine

Decides, for any path in a workspace, whether its content may be sent to
an AI context pipeline:
- Parses the workspace ignore file (.sourcegraph/ignore) into glob patterns
- Answers per-path exclusion queries against cached, compiled patterns
- Builds brace-grouped exclude globs for bulk file search
- Hot reloads when the ignore file changes on disk
"""

from .constants import IGNORE_FILE_PATH, NO_WORKSPACE_KEY
from .errors import ContextIgnoreError, SettingsError, WatchRegistrationError
from .normalizer import normalize_line, normalize_lines
from .file_loader import (
    EMPTY_PATTERN_SET,
    IgnoreFileLoader,
    LocalResourceReader,
    PatternSet,
    parse_ignore_content,
)
from .glob_builder import (
    build_exclude_glob,
    enabled_patterns,
    parse_exclude_pattern_string,
    split_exclude_glob,
)
from .cache import ExclusionCache
from .provider import ContextFeature, ContextFiltersProvider, IgnoredResult
from .settings import ContextIgnoreSettings
from .watcher import ChangeKind, WatchdogWatchService
from .workspace import LocalFileSearch, WorkspaceResolver, WorkspaceRoot
from .manager import ContextIgnoreManager, Disposable

__version__ = "0.1.0"

__all__ = [
    'IGNORE_FILE_PATH',
    'NO_WORKSPACE_KEY',
    'ContextIgnoreError',
    'SettingsError',
    'WatchRegistrationError',
    'normalize_line',
    'normalize_lines',
    'EMPTY_PATTERN_SET',
    'IgnoreFileLoader',
    'LocalResourceReader',
    'PatternSet',
    'parse_ignore_content',
    'build_exclude_glob',
    'enabled_patterns',
    'parse_exclude_pattern_string',
    'split_exclude_glob',
    'ExclusionCache',
    'ContextFeature',
    'ContextFiltersProvider',
    'IgnoredResult',
    'ContextIgnoreSettings',
    'ChangeKind',
    'WatchdogWatchService',
    'LocalFileSearch',
    'WorkspaceResolver',
    'WorkspaceRoot',
    'ContextIgnoreManager',
    'Disposable',
]
