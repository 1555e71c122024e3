"""
Exceptions raised by context-ignore.

Most failures inside the engine are recovered locally and never reach
callers; these exist for the seams where a collaborator needs to tell
the engine that something could not be set up.
"""


class ContextIgnoreError(Exception):
    """Base class for context-ignore errors"""


class WatchRegistrationError(ContextIgnoreError):
    """Raised by a watch service that cannot watch the requested path"""

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot watch {path}: {reason}")


class SettingsError(ContextIgnoreError, ValueError):
    """Raised for invalid configuration values"""
