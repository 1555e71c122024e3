"""
Configuration for the context exclusion engine.

Settings can be built directly, from editor-style dictionaries, or from
environment variable overrides.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .constants import (
    ALWAYS_EXCLUDED,
    DEFAULT_READ_TIMEOUT,
    IGNORE_FILE_PATH,
    MAX_IGNORE_FILE_SIZE,
)
from .errors import SettingsError
from .utils import get_logger

logger = get_logger(__name__)

_FALSE_VALUES = ('false', '0', 'no', 'off')


@dataclass
class ContextIgnoreSettings:
    """Settings for one ContextIgnoreManager session

    Attributes:
        ignore_path: Ignore file location relative to each workspace root
        files_exclude: Editor-level file excludes (pattern -> enabled)
        search_exclude: Editor-level search excludes (pattern -> enabled)
        always_exclude: Patterns always appended to bulk search excludes
        watch: Register filesystem watchers for live invalidation
        max_file_size: Ignore files larger than this are treated as unreadable
        read_timeout: Seconds before an ignore file read is abandoned
            (None disables the timeout)
    """
    ignore_path: str = IGNORE_FILE_PATH
    files_exclude: Dict[str, bool] = field(default_factory=dict)
    search_exclude: Dict[str, bool] = field(default_factory=dict)
    always_exclude: List[str] = field(default_factory=lambda: list(ALWAYS_EXCLUDED))
    watch: bool = True
    max_file_size: int = MAX_IGNORE_FILE_SIZE
    read_timeout: Optional[float] = DEFAULT_READ_TIMEOUT

    def __post_init__(self):
        """Validate configuration"""
        if not self.ignore_path or self.ignore_path.startswith('/'):
            raise SettingsError(
                f"ignore_path must be relative to the workspace root, got {self.ignore_path!r}"
            )
        if self.max_file_size <= 0:
            raise SettingsError(f"max_file_size must be positive, got {self.max_file_size}")
        if self.read_timeout is not None and self.read_timeout <= 0:
            raise SettingsError(f"read_timeout must be positive, got {self.read_timeout}")

    def editor_excludes(self) -> List[str]:
        """Enabled files.exclude entries followed by enabled search.exclude entries"""
        patterns = [p for p, enabled in self.files_exclude.items() if enabled]
        patterns.extend(p for p, enabled in self.search_exclude.items() if enabled)
        return patterns

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'ContextIgnoreSettings':
        """
        Build settings from a dictionary

        Accepts both attribute names and the editor's dotted keys
        ("files.exclude", "search.exclude").

        Args:
            data: Settings dictionary

        Returns:
            ContextIgnoreSettings instance
        """
        kwargs: Dict[str, Any] = {}
        aliases = {
            'files.exclude': 'files_exclude',
            'search.exclude': 'search_exclude',
        }
        known = set(cls.__dataclass_fields__)
        for key, value in data.items():
            name = aliases.get(key, key)
            if name not in known:
                logger.warning(f"Ignoring unknown setting: {key}")
                continue
            kwargs[name] = value
        for name in ('files_exclude', 'search_exclude'):
            if name in kwargs:
                kwargs[name] = {str(k): bool(v) for k, v in (kwargs[name] or {}).items()}
        return cls(**kwargs)

    @classmethod
    def from_env(cls, **overrides: Any) -> 'ContextIgnoreSettings':
        """
        Build settings with environment variable overrides

        Environment variables:
            CONTEXT_IGNORE_WATCH: "false"/"0"/"no"/"off" disables watchers
            CONTEXT_IGNORE_MAX_FILE_SIZE: Maximum ignore file size in bytes
            CONTEXT_IGNORE_READ_TIMEOUT: Read timeout in seconds, "none" disables

        Args:
            **overrides: Explicit values that win over the environment

        Returns:
            ContextIgnoreSettings instance
        """
        kwargs: Dict[str, Any] = {}

        watch = os.environ.get('CONTEXT_IGNORE_WATCH')
        if watch is not None:
            kwargs['watch'] = watch.strip().lower() not in _FALSE_VALUES

        max_size = os.environ.get('CONTEXT_IGNORE_MAX_FILE_SIZE')
        if max_size:
            try:
                kwargs['max_file_size'] = int(max_size)
            except ValueError:
                raise SettingsError(
                    f"CONTEXT_IGNORE_MAX_FILE_SIZE must be an integer, got {max_size!r}"
                ) from None

        timeout = os.environ.get('CONTEXT_IGNORE_READ_TIMEOUT')
        if timeout:
            if timeout.strip().lower() == 'none':
                kwargs['read_timeout'] = None
            else:
                try:
                    kwargs['read_timeout'] = float(timeout)
                except ValueError:
                    raise SettingsError(
                        f"CONTEXT_IGNORE_READ_TIMEOUT must be a number, got {timeout!r}"
                    ) from None

        kwargs.update(overrides)
        return cls(**kwargs)
