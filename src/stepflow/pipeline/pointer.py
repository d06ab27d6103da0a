"""JSON pointer (RFC 6901) resolution over plain JSON documents.

Step configs address fields as slash-delimited paths such as ``value`` or
``user/name``; :func:`to_pointer` turns those into pointers.
"""

from __future__ import annotations

from typing import Any

_MISSING = object()


def to_pointer(field: str) -> str:
    """Convert a field path to a JSON pointer.

    An empty field addresses the whole document.
    """
    if not field:
        return ""
    return field if field.startswith("/") else f"/{field}"


def _tokens(pointer: str) -> list[str]:
    if pointer == "":
        return []
    if not pointer.startswith("/"):
        msg = f"Invalid JSON pointer: {pointer!r}"
        raise ValueError(msg)
    return [t.replace("~1", "/").replace("~0", "~") for t in pointer[1:].split("/")]


def _child(node: Any, token: str) -> Any:
    if isinstance(node, dict):
        return node.get(token, _MISSING)
    if isinstance(node, list):
        if not (token.isascii() and token.isdigit()) or (len(token) > 1 and token.startswith("0")):
            return _MISSING
        index = int(token)
        return node[index] if index < len(node) else _MISSING
    return _MISSING


def resolve(document: Any, pointer: str, default: Any = None) -> Any:
    """Return the value at ``pointer``, or ``default`` when absent."""
    node = document
    for token in _tokens(pointer):
        node = _child(node, token)
        if node is _MISSING:
            return default
    return node


def exists(document: Any, pointer: str) -> bool:
    """Whether ``pointer`` addresses an existing value."""
    return resolve(document, pointer, _MISSING) is not _MISSING


def assign(document: Any, pointer: str, value: Any) -> bool:
    """Replace the existing value at ``pointer`` in place.

    Only existing locations are written; nothing is created.

    Returns:
        True if the value was replaced.
    """
    tokens = _tokens(pointer)
    if not tokens:
        return False
    parent = document
    for token in tokens[:-1]:
        parent = _child(parent, token)
        if parent is _MISSING:
            return False
    if _child(parent, tokens[-1]) is _MISSING:
        return False
    if isinstance(parent, list):
        parent[int(tokens[-1])] = value
    else:
        parent[tokens[-1]] = value
    return True
