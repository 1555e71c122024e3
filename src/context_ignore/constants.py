"""
Central configuration for ignore file processing
"""

# Single source of truth for the ignore file location, relative to a
# workspace root. One level of nesting, no per-directory overrides.
IGNORE_DIRNAME = ".sourcegraph"
IGNORE_FILENAME = "ignore"
IGNORE_FILE_PATH = f"{IGNORE_DIRNAME}/{IGNORE_FILENAME}"

# Cache key used when a path belongs to no workspace root
NO_WORKSPACE_KEY = "no-workspace"

# Patterns always excluded from bulk file search, regardless of ignore files.
# Editor config directories would otherwise show up in @-mentions.
ALWAYS_EXCLUDED = [
    "**/.vscode/**",
]

# Limits for security and performance
MAX_IGNORE_FILE_SIZE = 1024 * 1024  # 1MB
DEFAULT_READ_TIMEOUT = 5.0  # seconds

# pathspec pattern factory used for every compiled rule set
PATTERN_STYLE = "gitwildmatch"
