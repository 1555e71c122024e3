"""
Shared fixtures and fakes for context-ignore tests
"""

import asyncio
import sys
from pathlib import Path
from typing import Dict, List, Optional, Union

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from context_ignore.constants import IGNORE_FILE_PATH
from context_ignore.errors import WatchRegistrationError
from context_ignore.watcher import ChangeKind
from context_ignore.workspace import WorkspaceRoot


class FakeReader:
    """In-memory resource reader that records every read"""

    def __init__(self):
        self.files: Dict[Path, Union[bytes, Exception]] = {}
        self.reads: List[Path] = []
        self.gate: Optional[asyncio.Event] = None

    def set_ignore_file(self, root: WorkspaceRoot, content: Union[str, Exception]):
        path = root.path.joinpath(*IGNORE_FILE_PATH.split('/'))
        self.files[path] = content.encode('utf-8') if isinstance(content, str) else content

    async def read(self, path: Path) -> bytes:
        self.reads.append(Path(path))
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)
        value = self.files.get(Path(path))
        if value is None:
            raise FileNotFoundError(str(path))
        if isinstance(value, Exception):
            raise value
        return value


class FakeHandle:
    def __init__(self, path: Path, callback):
        self.path = path
        self.callback = callback
        self.disposed = False

    def dispose(self):
        self.disposed = True


class FakeWatchService:
    """Watch service whose events are fired by the test"""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.handles: List[FakeHandle] = []

    def watch(self, path: Path, callback) -> FakeHandle:
        if self.fail:
            raise WatchRegistrationError(path, "watch limit reached")
        handle = FakeHandle(Path(path), callback)
        self.handles.append(handle)
        return handle

    @property
    def active(self) -> List[FakeHandle]:
        return [h for h in self.handles if not h.disposed]

    def fire(self, kind: ChangeKind):
        for handle in self.active:
            handle.callback(kind)


@pytest.fixture
def reader():
    return FakeReader()


@pytest.fixture
def watch_service():
    return FakeWatchService()


@pytest.fixture
def root(tmp_path):
    return WorkspaceRoot.from_path(tmp_path)


@pytest.fixture
def write_ignore(tmp_path):
    """Write the workspace ignore file under tmp_path"""
    def _write(content: str, base: Optional[Path] = None) -> Path:
        path = (base or tmp_path).joinpath(*IGNORE_FILE_PATH.split('/'))
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding='utf-8')
        return path
    return _write
