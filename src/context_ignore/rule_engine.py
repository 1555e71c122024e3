"""
Rule engine for pattern compilation and matching
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

import pathspec

from .constants import PATTERN_STYLE
from .utils import get_logger

logger = get_logger(__name__)


@dataclass
class MatchResult:
    """Result of matching a path against compiled rules"""
    should_ignore: bool
    matched_pattern: Optional[str] = None


@dataclass(frozen=True)
class CompiledRules:
    """Deny patterns compiled for repeated matching"""
    patterns: Tuple[str, ...]
    specs: Tuple[pathspec.PathSpec, ...]

    def __len__(self) -> int:
        return len(self.specs)


EMPTY_RULES = CompiledRules(patterns=(), specs=())


class IgnoreRuleEngine:
    """
    Compiles deny patterns with pathspec and matches relative paths

    Compiled rules are memoized by their pattern tuple, so a pattern set
    is compiled once and reused until it is replaced.
    """

    def __init__(self, max_cached: int = 64):
        """
        Initialize the engine

        Args:
            max_cached: Number of compiled rule sets kept
        """
        self.max_cached = max_cached
        self._compiled_cache: Dict[Tuple[str, ...], CompiledRules] = {}

    def validate_pattern(self, pattern: str) -> Tuple[bool, Optional[str]]:
        """
        Validate a single pattern

        Args:
            pattern: Pattern to validate

        Returns:
            Tuple of (is_valid, error_message)
        """
        try:
            pathspec.PathSpec.from_lines(PATTERN_STYLE, [pattern])
            return True, None
        except Exception as e:
            return False, str(e)

    def compile_rules(self, patterns: Iterable[str]) -> CompiledRules:
        """
        Compile deny patterns, skipping the ones pathspec rejects

        Args:
            patterns: Normalized glob patterns

        Returns:
            CompiledRules for match_path()
        """
        key = tuple(patterns)
        if not key:
            return EMPTY_RULES

        cached = self._compiled_cache.get(key)
        if cached is not None:
            return cached

        kept: List[str] = []
        specs: List[pathspec.PathSpec] = []
        for pattern in key:
            try:
                spec = pathspec.PathSpec.from_lines(PATTERN_STYLE, [pattern])
            except Exception as e:
                logger.warning(f"Skipping invalid pattern '{pattern}': {e}")
                continue
            kept.append(pattern)
            specs.append(spec)

        compiled = CompiledRules(patterns=tuple(kept), specs=tuple(specs))

        if len(self._compiled_cache) >= self.max_cached:
            # Drop the oldest entry
            self._compiled_cache.pop(next(iter(self._compiled_cache)))
        self._compiled_cache[key] = compiled

        logger.debug(f"Compiled {len(kept)} of {len(key)} patterns")
        return compiled

    def match_path(self, relative_path: str, rules: CompiledRules) -> MatchResult:
        """
        Match a root-relative POSIX path; the first matching pattern wins

        Args:
            relative_path: Path relative to the workspace root, "/"-separated
            rules: Compiled rules

        Returns:
            MatchResult with the matching pattern, if any
        """
        for pattern, spec in zip(rules.patterns, rules.specs):
            if spec.match_file(relative_path):
                return MatchResult(should_ignore=True, matched_pattern=pattern)
        return MatchResult(should_ignore=False)

    def clear_cache(self):
        """Clear the compiled pattern cache"""
        self._compiled_cache.clear()
