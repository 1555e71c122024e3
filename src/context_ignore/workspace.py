"""
Workspace roots, root resolution and bulk file search
"""

import os
import threading
from dataclasses import dataclass, field
from pathlib import Path, PurePath
from typing import Iterable, List, Optional, Protocol, Union

import pathspec

from .constants import PATTERN_STYLE
from .glob_builder import split_exclude_glob
from .utils import get_logger

logger = get_logger(__name__)

PathLike = Union[str, PurePath]


def _absolute_forms(path: Path):
    """Lexically normalized form first, then the symlink-resolved one"""
    normalized = Path(os.path.normpath(path))
    yield normalized
    resolved = path.resolve()
    if resolved != normalized:
        yield resolved


@dataclass(frozen=True)
class WorkspaceRoot:
    """One root folder of the open workspace"""
    path: Path
    name: str = field(default='', compare=False)

    def __post_init__(self):
        # Cache keys and relative paths need one absolute, resolved form
        resolved = Path(self.path).expanduser().resolve()
        object.__setattr__(self, 'path', resolved)
        if not self.name:
            object.__setattr__(self, 'name', resolved.name)

    @classmethod
    def from_path(cls, path: PathLike, name: Optional[str] = None) -> 'WorkspaceRoot':
        return cls(path=Path(path), name=name or '')

    @property
    def uri(self) -> str:
        """Canonical URI string, used as the cache key"""
        return self.path.as_uri()

    def relative_posix(self, path: PathLike) -> Optional[str]:
        """
        Path relative to this root in "/"-separated form

        Args:
            path: Absolute path, or a path relative to this root

        Returns:
            Relative path, or None if the path lies outside the root
        """
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.path / candidate
        for absolute in _absolute_forms(candidate):
            try:
                relative = absolute.relative_to(self.path)
            except ValueError:
                continue
            posix = relative.as_posix()
            return None if posix in ('.', '') else posix
        return None


class WorkspaceResolver:
    """
    Maps paths to the workspace root that owns them
    """

    def __init__(self, roots: Iterable[WorkspaceRoot] = ()):
        self._roots: List[WorkspaceRoot] = []
        self._lock = threading.Lock()
        for root in roots:
            self.add_root(root)

    @property
    def roots(self) -> List[WorkspaceRoot]:
        with self._lock:
            return list(self._roots)

    def add_root(self, root: WorkspaceRoot):
        with self._lock:
            if root not in self._roots:
                self._roots.append(root)
                logger.debug(f"Added workspace root {root.path}")

    def remove_root(self, root: WorkspaceRoot) -> bool:
        with self._lock:
            if root in self._roots:
                self._roots.remove(root)
                logger.debug(f"Removed workspace root {root.path}")
                return True
            return False

    def resolve_root(self, path: PathLike) -> Optional[WorkspaceRoot]:
        """
        Find the workspace root owning a path

        Relative paths are resolved against the first root. With nested
        roots the deepest containing root wins.

        Args:
            path: Absolute or root-relative path

        Returns:
            Owning root, or None if the path is outside every root
        """
        roots = self.roots
        if not roots:
            return None

        candidate = Path(path)
        if not candidate.is_absolute():
            return roots[0]

        for absolute in _absolute_forms(candidate):
            best: Optional[WorkspaceRoot] = None
            for root in roots:
                if absolute == root.path or root.path in absolute.parents:
                    if best is None or len(root.path.parts) > len(best.path.parts):
                        best = root
            if best is not None:
                return best
        return None


class BulkFileSearch(Protocol):
    """Bulk file-search primitive accepting an exclude glob"""

    def find_files(self, root: WorkspaceRoot, exclude_glob: str) -> List[Path]:
        ...


class LocalFileSearch:
    """
    Walks a workspace root on disk, skipping paths matched by an exclude glob
    """

    def __init__(self, follow_symlinks: bool = False):
        self.follow_symlinks = follow_symlinks

    def _compile(self, exclude_glob: str) -> Optional[pathspec.PathSpec]:
        patterns = split_exclude_glob(exclude_glob)
        if not patterns:
            return None
        valid = []
        for pattern in patterns:
            try:
                pathspec.PathSpec.from_lines(PATTERN_STYLE, [pattern])
            except Exception as e:
                logger.warning(f"Skipping invalid exclude pattern '{pattern}': {e}")
                continue
            valid.append(pattern)
        return pathspec.PathSpec.from_lines(PATTERN_STYLE, valid) if valid else None

    def find_files(self, root: WorkspaceRoot, exclude_glob: str) -> List[Path]:
        """
        List files under a root that no exclude pattern matches

        Excluded directories are pruned rather than descended into.

        Args:
            root: Workspace root to walk
            exclude_glob: Glob from build_exclude_glob()

        Returns:
            Absolute paths of included files, sorted
        """
        spec = self._compile(exclude_glob)
        results: List[Path] = []

        for dirpath, dirnames, filenames in os.walk(root.path, followlinks=self.follow_symlinks):
            current = Path(dirpath)
            rel_dir = current.relative_to(root.path).as_posix()
            prefix = '' if rel_dir == '.' else rel_dir + '/'

            if spec is not None:
                # Trailing slash lets directory-only patterns match
                dirnames[:] = [
                    d for d in dirnames
                    if not spec.match_file(prefix + d + '/')
                ]

            for filename in filenames:
                rel = prefix + filename
                if spec is not None and spec.match_file(rel):
                    continue
                results.append(current / filename)

        results.sort()
        logger.debug(f"Found {len(results)} files under {root.path}")
        return results
