"""
Formatting of pattern sets into brace-grouped exclude globs for bulk search
"""

from typing import Iterable, List, Mapping, Optional


def enabled_patterns(patterns: Optional[Mapping[str, bool]]) -> List[str]:
    """Keys of a pattern mapping whose flag is True, in insertion order"""
    if not patterns:
        return []
    return [pattern for pattern, enabled in patterns.items() if enabled is True]


def build_exclude_glob(patterns: Optional[Mapping[str, bool]],
                       extra_patterns: Iterable[str] = ()) -> str:
    """
    Combine enabled patterns into one glob expression

    Patterns are inserted as-is. A pattern that itself contains braces or
    commas (e.g. "**/*.{js.ts}") produces nested braces; the bulk search
    primitive is expected to cope with them.

    Args:
        patterns: Pattern set (only enabled entries are used)
        extra_patterns: Already formatted patterns appended after the set,
            such as editor-level excludes

    Returns:
        "" for no patterns, the pattern itself for one, "{p1,...,pn}" otherwise
    """
    combined = enabled_patterns(patterns)
    combined.extend(extra_patterns)

    if not combined:
        return ''
    if len(combined) == 1:
        return combined[0]
    return '{' + ','.join(combined) + '}'


def parse_exclude_pattern_string(glob: str) -> List[str]:
    """
    Split a brace-grouped exclude glob back into its patterns

    Strings without both the opening and closing brace are treated as
    malformed and yield no patterns. Empty entries are dropped.

    Args:
        glob: Exclude glob such as "{node_modules,*.log}"

    Returns:
        List of patterns
    """
    if not glob or not glob.startswith('{') or not glob.endswith('}'):
        return []
    content = glob[1:-1]
    return [part.strip() for part in content.split(',') if part.strip()]


def split_exclude_glob(glob: str) -> List[str]:
    """
    Patterns of any exclude glob produced by build_exclude_glob

    Unlike parse_exclude_pattern_string, an unwrapped single pattern is
    accepted and returned as the only element, and commas inside nested
    braces ("{a,*.{js,ts}}") don't split the inner group.
    """
    glob = (glob or '').strip()
    if not glob:
        return []
    if not (glob.startswith('{') and glob.endswith('}')):
        return [glob]

    parts: List[str] = []
    depth = 0
    current: List[str] = []
    for char in glob[1:-1]:
        if char == ',' and depth == 0:
            parts.append(''.join(current))
            current = []
            continue
        if char == '{':
            depth += 1
        elif char == '}' and depth > 0:
            depth -= 1
        current.append(char)
    parts.append(''.join(current))
    return [part.strip() for part in parts if part.strip()]
