"""Annotation identity keys and the issue-body key marker.

A key links an annotation to the tracker issue created for it. The default
key is the base64 encoding of ``"<file>:<line>"``: stable across runs as
long as the annotation stays on the same line, reversible, and opaque to
readers of the issue.

The key travels inside the issue body as a two-line marker::

    === DO NOT REMOVE ===
    Key: <key>

``parse_key`` recovers it when issues are fetched again. Bodies without the
marker yield an empty key and are left alone by the reconciler.
"""

from __future__ import annotations

import base64
import binascii
import hashlib

KEY_MARKER = "=== DO NOT REMOVE ==="
KEY_PREFIX = "Key: "

KEY_STRATEGIES = ("position", "content")


class KeyDecodeError(ValueError):
    pass


def encode_key(file: str, line: int) -> str:
    raw = f"{file}:{line}".encode("utf-8")
    return base64.b64encode(raw).decode("ascii")


def decode_key(key: str) -> tuple[str, int]:
    """Return the ``(file, line)`` pair a position key was built from."""
    try:
        raw = base64.b64decode(key.encode("ascii"), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeError, ValueError) as exc:
        raise KeyDecodeError(f"Malformed key: {key!r}") from exc
    file, sep, line_text = raw.rpartition(":")
    if not sep or not file or not line_text.isdigit():
        raise KeyDecodeError(f"Key does not encode file:line: {key!r}")
    return file, int(line_text)


def content_key(type_: str, content: str, file: str) -> str:
    """Line-independent key: base64 of ``"<file>#<digest>"``.

    The digest covers type, content and file, so moving the annotation
    within its file keeps the key while editing its text changes it.
    """
    # Unit separator keeps ("a", "bc") and ("ab", "c") apart.
    digest = hashlib.sha256("\x1f".join([type_, content, file]).encode("utf-8")).hexdigest()
    raw = f"{file}#{digest[:16]}".encode("utf-8")
    return base64.b64encode(raw).decode("ascii")


def key_file(key: str) -> str | None:
    """Return the file a key refers to, for either strategy, or None."""
    try:
        raw = base64.b64decode(key.encode("ascii"), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeError, ValueError):
        return None
    for sep in (":", "#"):
        file, found, tail = raw.rpartition(sep)
        if found and file and tail and (tail.isdigit() or sep == "#"):
            return file
    return None


def derive_key(strategy: str, *, type_: str, content: str, file: str, line: int) -> str:
    if strategy == "position":
        return encode_key(file, line)
    if strategy == "content":
        return content_key(type_, content, file)
    raise ValueError(f"Unknown key strategy: {strategy!r}")


def embed_key(key: str) -> str:
    return f"{KEY_MARKER}\n{KEY_PREFIX}{key}"


def parse_key(body: str | None) -> str:
    if not body:
        return ""
    lines = body.splitlines()
    # Last marker wins: quoted source context above it may contain one too.
    for idx in range(len(lines) - 2, -1, -1):
        if lines[idx].strip() != KEY_MARKER:
            continue
        following = lines[idx + 1]
        if following.startswith(KEY_PREFIX):
            return following[len(KEY_PREFIX):].strip()
    return ""


__all__ = [
    "KEY_MARKER",
    "KEY_PREFIX",
    "KEY_STRATEGIES",
    "KeyDecodeError",
    "encode_key",
    "decode_key",
    "content_key",
    "key_file",
    "derive_key",
    "embed_key",
    "parse_key",
]
