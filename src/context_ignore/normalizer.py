"""
Normalization of raw ignore file lines into glob patterns

The ignore file syntax looks like gitignore but is deliberately simpler:
negations are dropped, commas are read as dots, and every pattern that is
not anchored to the root matches at any depth.
"""

from typing import Iterable, Iterator, Optional

ANY_DEPTH_PREFIX = '**/'


def _strip_comment(line: str) -> str:
    """Remove the first unescaped '#' and everything after it"""
    index = line.find('#')
    while index > 0 and line[index - 1] == '\\':
        index = line.find('#', index + 1)
    if index == -1:
        return line
    return line[:index]


def normalize_line(line: str) -> Optional[str]:
    """
    Convert one ignore file line into a normalized glob pattern

    Args:
        line: Raw line text, possibly with comments and whitespace

    Returns:
        The normalized pattern, or None if the line contributes nothing
    """
    stripped = line.strip()

    # Negation can't un-exclude anything once an earlier pattern matched
    if stripped.startswith('!'):
        return None

    pattern = _strip_comment(stripped).strip()
    if not pattern:
        return None

    # "*,js" is a common typo for "*.js"
    if ',' in pattern:
        pattern = pattern.replace(',', '.')

    # Directory markers become plain segment patterns
    if pattern.endswith('/'):
        pattern = pattern.rstrip('/')
        if not pattern:
            return None

    if not pattern.startswith('/') and not pattern.startswith(ANY_DEPTH_PREFIX):
        pattern = ANY_DEPTH_PREFIX + pattern

    return pattern


def normalize_lines(lines: Iterable[str]) -> Iterator[str]:
    """Yield the normalized pattern of every line that has one"""
    for line in lines:
        pattern = normalize_line(line)
        if pattern is not None:
            yield pattern
