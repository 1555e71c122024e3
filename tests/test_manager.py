#!/usr/bin/env python3
"""
Tests for the ContextIgnoreManager session API
"""

import asyncio
import shutil

import pytest
import pytest_asyncio

from conftest import FakeWatchService
from context_ignore.manager import ContextIgnoreManager, Disposable
from context_ignore.provider import IgnoredResult
from context_ignore.settings import ContextIgnoreSettings
from context_ignore.watcher import ChangeKind


@pytest_asyncio.fixture
async def manager(tmp_path):
    manager = ContextIgnoreManager([tmp_path], settings=ContextIgnoreSettings(watch=False))
    yield manager
    await manager.aclose()


def test_disposable_runs_once():
    calls = []
    disposable = Disposable(lambda: calls.append(1))
    disposable.dispose()
    disposable.dispose()
    assert calls == [1]


@pytest.mark.asyncio
async def test_exclude_glob_scenarios(manager, write_ignore):
    root = manager.roots[0]
    write_ignore("node_modules\n*.log\ndist/")
    assert await manager.get_exclude_glob(root) == "{**/node_modules,**/*.log,**/dist}"


@pytest.mark.asyncio
async def test_empty_ignore_file_glob(manager, write_ignore):
    write_ignore("")
    assert await manager.get_exclude_glob(manager.roots[0]) == ""


@pytest.mark.asyncio
async def test_no_workspace_glob(manager):
    assert await manager.get_exclude_glob(None) == ""


@pytest.mark.asyncio
async def test_search_glob_adds_editor_and_builtin_excludes(tmp_path, write_ignore):
    write_ignore("node_modules\n")
    settings = ContextIgnoreSettings(
        watch=False,
        files_exclude={"**/*.tmp": True, "**/keep": False},
    )
    async with ContextIgnoreManager([tmp_path], settings=settings) as manager:
        glob = await manager.get_search_exclude_glob(manager.roots[0])

    assert glob == "{**/node_modules,**/*.tmp,**/.vscode/**}"


@pytest.mark.asyncio
async def test_search_glob_without_ignore_file(manager):
    assert await manager.get_search_exclude_glob(manager.roots[0]) == "**/.vscode/**"


@pytest.mark.asyncio
async def test_is_excluded(manager, tmp_path, write_ignore):
    write_ignore("*.log\n")
    assert await manager.is_excluded(tmp_path / "app.log") is IgnoredResult.IGNORED_LOCAL
    assert await manager.is_excluded(tmp_path / "app.py") is IgnoredResult.NOT_IGNORED


@pytest.mark.asyncio
async def test_unreadable_ignore_file_fails_open(tmp_path, write_ignore):
    write_ignore("*.log\n" * 100)
    settings = ContextIgnoreSettings(watch=False, max_file_size=10)
    async with ContextIgnoreManager([tmp_path], settings=settings) as manager:
        assert await manager.is_excluded(tmp_path / "app.log") is IgnoredResult.NOT_IGNORED


@pytest.mark.asyncio
async def test_find_workspace_files(manager, tmp_path, write_ignore):
    write_ignore("node_modules\n*.log\n")
    for rel in ("src/main.py", "src/app.log", "node_modules/x/index.js", ".vscode/settings.json"):
        path = tmp_path / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("x")

    files = await manager.find_workspace_files()
    listing = [p.relative_to(manager.roots[0].path).as_posix() for p in files]

    assert listing == [".sourcegraph/ignore", "src/main.py"]


@pytest.mark.asyncio
async def test_dispose_clears_and_uninitializes(manager, tmp_path, write_ignore):
    write_ignore("*.log\n")
    registration = manager.initialize()
    assert manager.initialize() is registration
    assert await manager.is_excluded(tmp_path / "a.log")
    assert len(manager.cache) == 1

    registration.dispose()

    assert len(manager.cache) == 0
    assert not manager.provider.initialized
    assert await manager.is_excluded(tmp_path / "a.log") is IgnoredResult.NOT_IGNORED


@pytest.mark.asyncio
async def test_multiple_roots(tmp_path, write_ignore):
    first, second = tmp_path / "a", tmp_path / "b"
    write_ignore("*.log\n", base=first)
    write_ignore("*.tmp\n", base=second)
    settings = ContextIgnoreSettings(watch=False)

    async with ContextIgnoreManager([first, second], settings=settings) as manager:
        assert await manager.is_excluded(first / "x.log")
        assert not await manager.is_excluded(first / "x.tmp")
        assert await manager.is_excluded(second / "x.tmp")
        assert not await manager.is_excluded(second / "x.log")


@pytest.mark.asyncio
async def test_close_root_evicts(manager, tmp_path, write_ignore):
    write_ignore("*.log\n")
    root = manager.roots[0]
    await manager.get_pattern_set(root)

    await manager.close_root(root)

    assert manager.roots == []
    assert root not in manager.cache
    assert await manager.is_excluded(tmp_path / "a.log") is IgnoredResult.NOT_IGNORED


@pytest.mark.asyncio
async def test_watch_event_reloads(tmp_path, write_ignore):
    watch_service = FakeWatchService()
    async with ContextIgnoreManager([tmp_path], watch_service=watch_service) as manager:
        root = manager.roots[0]
        assert await manager.get_exclude_glob(root) == ""

        write_ignore("secrets\n")
        watch_service.fire(ChangeKind.CREATED)
        await manager.cache.flush()

        assert await manager.get_exclude_glob(root) == "**/secrets"
        assert await manager.is_excluded(tmp_path / "secrets" / "key.pem")

    assert watch_service.active == []


@pytest.mark.asyncio
async def test_refresh(manager, write_ignore):
    root = manager.roots[0]
    write_ignore("a\n")
    await manager.get_pattern_set(root)

    write_ignore("b\n")
    patterns = await manager.refresh(root.path)

    assert list(patterns) == ["**/b"]


class BrokenReader:
    """Reader whose host filesystem has gone away"""

    async def read(self, path):
        raise RuntimeError("filesystem provider disposed")


@pytest.mark.asyncio
async def test_broken_reader_fails_open(tmp_path, write_ignore):
    write_ignore("*.log\n")
    settings = ContextIgnoreSettings(watch=False)
    async with ContextIgnoreManager([tmp_path], settings=settings, reader=BrokenReader()) as manager:
        assert await manager.get_exclude_glob(manager.roots[0]) == ""
        assert await manager.is_excluded(tmp_path / "app.log") is IgnoredResult.NOT_IGNORED


async def wait_for_glob(manager, root, expected, timeout=5.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        await manager.cache.flush()
        if await manager.get_exclude_glob(root) == expected:
            return True
        await asyncio.sleep(0.05)
    return False


@pytest.mark.asyncio
async def test_ignore_directory_recreated_is_watched(tmp_path, write_ignore):
    write_ignore("a\n")
    settings = ContextIgnoreSettings(watch=True)
    async with ContextIgnoreManager([tmp_path], settings=settings) as manager:
        root = manager.roots[0]
        assert await manager.get_exclude_glob(root) == "**/a"

        shutil.rmtree(tmp_path / ".sourcegraph")
        assert await wait_for_glob(manager, root, "")

        write_ignore("b\n")
        assert await wait_for_glob(manager, root, "**/b")

        write_ignore("c\n")
        assert await wait_for_glob(manager, root, "**/c")
