"""Position-independent content hashes for syntax nodes.

The canonical form of a node lists its dataclass fields in declaration order
and leaves out every positional field, so identical code at a different
offset, line or column hashes the same.

Both the canonical form and its JSON text are built with an explicit stack:
a long operator chain nests one node per operand, far deeper than Python's
recursion limit.
"""

from __future__ import annotations

import base64
import dataclasses
import hashlib
import json
from enum import Enum
from typing import Any, List, Tuple

from .models import SyntaxNode

POSITIONAL_FIELDS = frozenset({"start", "end", "loc", "range"})

# stack item tags for canonical_string
_EMIT = 0
_VALUE = 1


def _is_record(value: Any) -> bool:
    return dataclasses.is_dataclass(value) and not isinstance(value, type)


def _record_fields(value: Any) -> List[str]:
    return [f.name for f in dataclasses.fields(value) if f.name not in POSITIONAL_FIELDS]


def canonical_form(value: Any) -> Any:
    """Convert *value* into plain JSON data without positional fields."""
    root: List[Any] = [None]
    stack: List[Tuple[Any, Any, Any]] = [(value, root, 0)]
    while stack:
        item, parent, slot = stack.pop()
        if _is_record(item):
            form = {}
            parent[slot] = form
            for name in _record_fields(item):
                # reserve the key so the dict keeps declaration order
                form[name] = None
                stack.append((getattr(item, name), form, name))
        elif isinstance(item, Enum):
            parent[slot] = item.value
        elif isinstance(item, (list, tuple)):
            items: List[Any] = [None] * len(item)
            parent[slot] = items
            stack.extend((child, items, i) for i, child in enumerate(item))
        else:
            parent[slot] = item
    return root[0]


def canonical_string(value: Any) -> str:
    """Compact JSON text of :func:`canonical_form`, written without recursion."""
    out: List[str] = []
    stack: List[Tuple[int, Any]] = [(_VALUE, value)]
    while stack:
        tag, item = stack.pop()
        if tag == _EMIT:
            out.append(item)
        elif _is_record(item):
            names = _record_fields(item)
            stack.append((_EMIT, "}"))
            for i in range(len(names) - 1, -1, -1):
                stack.append((_VALUE, getattr(item, names[i])))
                stack.append((_EMIT, ("," if i else "") + json.dumps(names[i]) + ":"))
            stack.append((_EMIT, "{"))
        elif isinstance(item, Enum):
            out.append(json.dumps(item.value, ensure_ascii=False))
        elif isinstance(item, (list, tuple)):
            stack.append((_EMIT, "]"))
            for i in range(len(item) - 1, -1, -1):
                stack.append((_VALUE, item[i]))
                if i:
                    stack.append((_EMIT, ","))
            stack.append((_EMIT, "["))
        else:
            out.append(json.dumps(item, ensure_ascii=False))
    return "".join(out)


def digest(text: str) -> str:
    """SHA-256 of *text* as URL-safe base64 without padding."""
    raw = hashlib.sha256(text.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def fingerprint(node: SyntaxNode) -> str:
    return digest(canonical_string(node))
