"""
File loader for reading ignore files into pattern sets
"""

import asyncio
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Protocol, Union

from .constants import DEFAULT_READ_TIMEOUT, MAX_IGNORE_FILE_SIZE
from .normalizer import normalize_lines
from .utils import get_logger

logger = get_logger(__name__)

# Read-only mapping of normalized pattern -> enabled flag. A published set is
# never mutated; reloads build a new one.
PatternSet = Mapping[str, bool]

EMPTY_PATTERN_SET: PatternSet = MappingProxyType({})


class ResourceReader(Protocol):
    """Readable-resource primitive"""

    async def read(self, path: Path) -> bytes:
        """Return the resource bytes, raising FileNotFoundError or OSError"""
        ...


class FileTooLargeError(OSError):
    """Raised by LocalResourceReader for files over the size limit"""


class LocalResourceReader:
    """
    Reads resources from the local filesystem without blocking the event loop
    """

    def __init__(self, max_file_size: int = MAX_IGNORE_FILE_SIZE,
                 timeout: Optional[float] = DEFAULT_READ_TIMEOUT):
        """
        Initialize reader

        Args:
            max_file_size: Files larger than this raise FileTooLargeError
            timeout: Seconds before a read is abandoned (None = no limit)
        """
        self.max_file_size = max_file_size
        self.timeout = timeout

    def _read_sync(self, path: Path) -> bytes:
        size = path.stat().st_size
        if size > self.max_file_size:
            raise FileTooLargeError(
                f"File too large: {size} bytes (max: {self.max_file_size})"
            )
        return path.read_bytes()

    async def read(self, path: Path) -> bytes:
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(None, self._read_sync, Path(path))
        if self.timeout is None:
            return await future
        return await asyncio.wait_for(future, self.timeout)


def parse_ignore_content(content: str) -> PatternSet:
    """
    Parse ignore file text into a pattern set

    Args:
        content: Full ignore file text

    Returns:
        Read-only mapping of normalized patterns to True
    """
    patterns: Dict[str, bool] = {}
    for pattern in normalize_lines(content.split('\n')):
        # Re-inserting an existing key keeps its original position
        patterns.setdefault(pattern, True)
    return MappingProxyType(patterns)


class IgnoreFileLoader:
    """
    Loads ignore files through a ResourceReader, failing open on any error
    """

    def __init__(self, reader: Optional[ResourceReader] = None):
        """
        Initialize loader

        Args:
            reader: Resource reader (defaults to LocalResourceReader)
        """
        self.reader = reader if reader is not None else LocalResourceReader()

    async def load(self, path: Union[str, Path]) -> PatternSet:
        """
        Load an ignore file

        A missing or unreadable file yields an empty pattern set: absence of
        an ignore file means nothing is excluded.

        Args:
            path: Path to the ignore file

        Returns:
            Pattern set for the file
        """
        path = Path(path)
        try:
            data = await self.reader.read(path)
        except FileNotFoundError:
            logger.debug(f"No ignore file at {path}")
            return EMPTY_PATTERN_SET
        except asyncio.TimeoutError:
            logger.warning(f"Timed out reading ignore file {path}; treating as empty")
            return EMPTY_PATTERN_SET
        except OSError as e:
            logger.warning(f"Cannot read ignore file {path}: {e}; treating as empty")
            return EMPTY_PATTERN_SET
        except Exception as e:
            # Injected readers may fail in their own ways; still fail open
            logger.warning(f"Reader failed for ignore file {path}: {e}; treating as empty",
                           exc_info=True)
            return EMPTY_PATTERN_SET

        content = data.decode('utf-8', errors='replace')
        patterns = parse_ignore_content(content)
        logger.debug(f"Loaded {len(patterns)} patterns from {path}")
        return patterns
