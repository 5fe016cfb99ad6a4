from __future__ import annotations

from pathlib import Path

import pytest

from todosync.extractor import (
    ExtractionError,
    build_pattern,
    context_window,
    extract_annotations,
    iter_source_files,
    normalize_prefixes,
    read_lines,
    scan_file,
)
from todosync.keys import encode_key

PREFIXES = ["TODO", "FIXME"]


def test_single_annotation():
    lines = ["x = 1", "# TODO: fix this", "y = 2"]
    [ann] = extract_annotations(lines, "a.py", PREFIXES)
    assert (ann.type, ann.content, ann.file, ann.line) == ("TODO", "fix this", "a.py", 2)
    assert ann.key == encode_key("a.py", 2)
    assert ann.context == tuple(lines)


def test_multiple_annotations_on_one_line_split_at_next_prefix():
    anns = extract_annotations(["# TODO: first FIXME: second"], "a.py", PREFIXES)
    assert [(a.type, a.content) for a in anns] == [("TODO", "first"), ("FIXME", "second")]
    assert anns[0].key == anns[1].key


def test_order_is_top_to_bottom_left_to_right():
    lines = ["# FIXME: one", "", "# TODO: two FIXME: three"]
    anns = extract_annotations(lines, "a.py", PREFIXES)
    assert [a.content for a in anns] == ["one", "two", "three"]
    assert [a.line for a in anns] == [1, 3, 3]


def test_empty_content_is_kept():
    [ann] = extract_annotations(["# TODO:"], "a.py", PREFIXES)
    assert ann.content == ""


def test_unlisted_prefix_ignored():
    assert extract_annotations(["# NOTE: hi", "# TODOS: later"], "a.py", ["TODO"]) == []


def test_longer_prefix_wins():
    [ann] = extract_annotations(["# TODOS: later"], "a.py", ["TODO", "TODOS"])
    assert ann.type == "TODOS"


def test_context_window_is_clipped():
    lines = [f"line {i}" for i in range(20)]
    assert context_window(lines, 9) == tuple(lines[4:15])
    assert context_window(lines, 0) == tuple(lines[0:6])
    assert context_window(lines, 19) == tuple(lines[14:20])


def test_extraction_is_repeatable():
    lines = ["# TODO: a", "# FIXME: b"]
    assert extract_annotations(lines, "f", PREFIXES) == extract_annotations(lines, "f", PREFIXES)


def test_normalize_prefixes_strips_colons_and_duplicates():
    assert normalize_prefixes(["TODO:", "TODO", " FIXME "]) == ["TODO", "FIXME"]


def test_build_pattern_requires_a_prefix():
    with pytest.raises(ValueError):
        build_pattern([":"])


def test_iter_source_files_sorted_filtered_and_excluded(source_tree):
    root = source_tree(
        {
            "b.py": "",
            "a.py": "",
            "notes.txt": "",
            "pkg/c.py": "",
            "node_modules/dep.py": "",
        }
    )
    files = list(iter_source_files(root, [".py"], ["node_modules"]))
    assert [p.relative_to(root).as_posix() for p in files] == ["a.py", "b.py", "pkg/c.py"]


def test_iter_source_files_missing_root_is_fatal(tmp_path: Path):
    with pytest.raises(ExtractionError):
        list(iter_source_files(tmp_path / "missing", on_error=lambda err: None))


def test_read_lines_handles_crlf_and_trailing_newline(tmp_path: Path):
    path = tmp_path / "win.py"
    path.write_bytes(b"a\r\n# TODO: b\r\n")
    assert read_lines(path) == ["a", "# TODO: b"]


def test_read_lines_missing_file(tmp_path: Path):
    with pytest.raises(ExtractionError) as exc:
        read_lines(tmp_path / "gone.py")
    assert exc.value.path.endswith("gone.py")


def test_scan_file_uses_relative_posix_identifier(source_tree):
    root = source_tree({"pkg/mod.py": "x = 1\n# FIXME: broken\n"})
    [ann] = scan_file(root / "pkg" / "mod.py", root, PREFIXES)
    assert ann.file == "pkg/mod.py"
    assert ann.line == 2
