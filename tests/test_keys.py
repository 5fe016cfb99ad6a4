from __future__ import annotations

import base64

import pytest

from todosync.keys import (
    KEY_MARKER,
    KeyDecodeError,
    content_key,
    decode_key,
    derive_key,
    embed_key,
    encode_key,
    key_file,
    parse_key,
)


def test_encode_key_is_base64_of_file_and_line():
    expected = base64.b64encode(b"src/app.py:12").decode("ascii")
    assert encode_key("src/app.py", 12) == expected


def test_decode_key_recovers_position():
    assert decode_key(encode_key("pkg/mod.py", 7)) == ("pkg/mod.py", 7)


def test_decode_key_file_containing_colon():
    assert decode_key(encode_key("C:/work/a.py", 3)) == ("C:/work/a.py", 3)


@pytest.mark.parametrize("bad", ["not base64!", base64.b64encode(b"no-line").decode()])
def test_decode_key_rejects_malformed(bad):
    with pytest.raises(KeyDecodeError):
        decode_key(bad)


def test_parse_key_reads_marker_block():
    body = f"Some text\n\n{embed_key('abc123==')}\n"
    assert parse_key(body) == "abc123=="


def test_parse_key_without_marker_is_empty():
    assert parse_key("Plain issue written by a human") == ""
    assert parse_key("") == ""
    assert parse_key(None) == ""


def test_parse_key_marker_without_key_line_is_empty():
    assert parse_key(f"text\n{KEY_MARKER}\nsomething else") == ""
    assert parse_key(f"text\n{KEY_MARKER}") == ""


def test_parse_key_last_marker_wins():
    body = "\n".join(["```", embed_key("quoted"), "```", "", embed_key("real")])
    assert parse_key(body) == "real"


def test_parse_key_tolerates_crlf_bodies():
    body = f"intro\r\n{KEY_MARKER}\r\nKey: k1\r\n"
    assert parse_key(body) == "k1"


def test_content_key_ignores_line_but_tracks_text():
    first = derive_key("content", type_="TODO", content="fix", file="a.py", line=3)
    moved = derive_key("content", type_="TODO", content="fix", file="a.py", line=40)
    edited = derive_key("content", type_="TODO", content="fix it", file="a.py", line=3)
    assert first == moved
    assert first != edited


def test_key_file_for_both_strategies():
    assert key_file(encode_key("dir/x.py", 5)) == "dir/x.py"
    assert key_file(content_key("TODO", "x", "dir/y.py")) == "dir/y.py"
    assert key_file("%%%") is None


def test_derive_key_unknown_strategy():
    with pytest.raises(ValueError):
        derive_key("random", type_="TODO", content="", file="a", line=1)
