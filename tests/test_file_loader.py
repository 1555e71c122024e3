#!/usr/bin/env python3
"""
Tests for loading ignore files into pattern sets
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from context_ignore.file_loader import (
    EMPTY_PATTERN_SET,
    FileTooLargeError,
    IgnoreFileLoader,
    LocalResourceReader,
    parse_ignore_content,
)


def test_parse_comments_blanks_and_trailing_comment():
    patterns = parse_ignore_content("# c\nnode_modules\n\n*.log # trailing\n")
    assert dict(patterns) == {"**/node_modules": True, "**/*.log": True}


def test_parse_drops_negation():
    patterns = parse_ignore_content("*.log\n!important.log\nnode_modules")
    assert dict(patterns) == {"**/*.log": True, "**/node_modules": True}


def test_parse_collapses_duplicates():
    patterns = parse_ignore_content("dist\ndist/\n**/dist\n")
    assert list(patterns) == ["**/dist"]


def test_parse_empty_content():
    assert len(parse_ignore_content("")) == 0


def test_pattern_set_is_read_only():
    patterns = parse_ignore_content("node_modules")
    with pytest.raises(TypeError):
        patterns["**/other"] = True


@pytest.mark.asyncio
async def test_load_from_disk(tmp_path, write_ignore):
    path = write_ignore("node_modules\n*.log\ndist/\n")
    loader = IgnoreFileLoader()

    patterns = await loader.load(path)

    assert list(patterns) == ["**/node_modules", "**/*.log", "**/dist"]


@pytest.mark.asyncio
async def test_missing_file_is_empty(tmp_path):
    loader = IgnoreFileLoader()
    patterns = await loader.load(tmp_path / ".sourcegraph" / "ignore")
    assert patterns is EMPTY_PATTERN_SET


@pytest.mark.asyncio
async def test_read_error_is_empty():
    reader = AsyncMock()
    reader.read.side_effect = PermissionError("denied")
    loader = IgnoreFileLoader(reader)

    patterns = await loader.load("/workspace/.sourcegraph/ignore")

    assert patterns is EMPTY_PATTERN_SET
    reader.read.assert_awaited_once()


@pytest.mark.asyncio
async def test_read_timeout_is_empty():
    reader = AsyncMock()
    reader.read.side_effect = asyncio.TimeoutError()
    loader = IgnoreFileLoader(reader)

    assert await loader.load("/workspace/.sourcegraph/ignore") is EMPTY_PATTERN_SET


@pytest.mark.asyncio
async def test_unexpected_reader_error_is_empty(caplog):
    reader = AsyncMock()
    reader.read.side_effect = RuntimeError("host fs provider disposed")
    loader = IgnoreFileLoader(reader)

    patterns = await loader.load("/workspace/.sourcegraph/ignore")

    assert patterns is EMPTY_PATTERN_SET
    assert "host fs provider disposed" in caplog.text


@pytest.mark.asyncio
async def test_oversized_file_is_empty(tmp_path, write_ignore):
    path = write_ignore("node_modules\n" * 10)
    loader = IgnoreFileLoader(LocalResourceReader(max_file_size=16))

    assert await loader.load(path) is EMPTY_PATTERN_SET


@pytest.mark.asyncio
async def test_reader_raises_file_too_large(tmp_path, write_ignore):
    path = write_ignore("x" * 64)
    reader = LocalResourceReader(max_file_size=8, timeout=None)

    with pytest.raises(FileTooLargeError):
        await reader.read(path)


@pytest.mark.asyncio
async def test_invalid_utf8_is_replaced():
    reader = AsyncMock()
    reader.read.return_value = b"node_modules\n\xff\xfe.log\n"
    loader = IgnoreFileLoader(reader)

    patterns = await loader.load("/workspace/.sourcegraph/ignore")

    assert "**/node_modules" in patterns
    assert len(patterns) == 2


@pytest.mark.asyncio
async def test_each_load_returns_new_set(tmp_path, write_ignore):
    path = write_ignore("a\n")
    loader = IgnoreFileLoader()

    first = await loader.load(path)
    write_ignore("b\n")
    second = await loader.load(path)

    assert dict(first) == {"**/a": True}
    assert dict(second) == {"**/b": True}
