#!/usr/bin/env python3
"""
Tests for exclude glob building and parsing
"""

from context_ignore.file_loader import parse_ignore_content
from context_ignore.glob_builder import (
    build_exclude_glob,
    enabled_patterns,
    parse_exclude_pattern_string,
    split_exclude_glob,
)


def test_empty_pattern_set():
    assert build_exclude_glob({}) == ""
    assert build_exclude_glob(None) == ""
    assert build_exclude_glob(parse_ignore_content("")) == ""


def test_single_pattern_unwrapped():
    assert build_exclude_glob({"**/node_modules": True}) == "**/node_modules"


def test_multiple_patterns_brace_grouped_in_order():
    patterns = parse_ignore_content("node_modules\n*.log\ndist/")
    assert build_exclude_glob(patterns) == "{**/node_modules,**/*.log,**/dist}"


def test_disabled_patterns_skipped():
    patterns = {"**/a": True, "**/b": False, "**/c": True}
    assert enabled_patterns(patterns) == ["**/a", "**/c"]
    assert build_exclude_glob(patterns) == "{**/a,**/c}"
    assert build_exclude_glob({"**/b": False}) == ""


def test_extra_patterns_appended():
    glob = build_exclude_glob({"**/node_modules": True}, ["**/.vscode/**"])
    assert glob == "{**/node_modules,**/.vscode/**}"
    assert build_exclude_glob({}, ["**/.vscode/**"]) == "**/.vscode/**"


def test_nested_braces_passed_through():
    patterns = parse_ignore_content("*.{js,ts}\n**/*.log")
    assert build_exclude_glob(patterns) == "{**/*.{js.ts},**/*.log}"


def test_parse_exclude_pattern_string():
    assert parse_exclude_pattern_string("{node_modules,*.log}") == ["node_modules", "*.log"]
    assert parse_exclude_pattern_string("{ a , ,b,}") == ["a", "b"]


def test_parse_rejects_unbraced_input():
    assert parse_exclude_pattern_string("node_modules") == []
    assert parse_exclude_pattern_string("{node_modules") == []
    assert parse_exclude_pattern_string("node_modules}") == []
    assert parse_exclude_pattern_string("") == []


def test_split_accepts_single_pattern():
    assert split_exclude_glob("**/node_modules") == ["**/node_modules"]
    assert split_exclude_glob("") == []


def test_split_respects_nested_braces():
    glob = "{**/node_modules,**/*.{js,ts},**/.vscode/**}"
    assert split_exclude_glob(glob) == ["**/node_modules", "**/*.{js,ts}", "**/.vscode/**"]


def test_split_reverses_build():
    patterns = ["**/a", "/b", "**/c/**"]
    glob = build_exclude_glob({p: True for p in patterns})
    assert split_exclude_glob(glob) == patterns
    assert parse_exclude_pattern_string(glob) == patterns
