"""JSON conversion between API style (lowerCamel keys) and struct style keys."""

from __future__ import annotations

import copy
import dataclasses
import datetime
import enum
import json
import re
from typing import Any, Callable, Mapping

_UNMAPPED_KEYS = ("dockerlabels", "options")

_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def json_key_for_api(s: str) -> str:
    """Lower the first letter of a key."""
    return s[:1].lower() + s[1:]


def json_key_for_struct(s: str) -> str:
    """Upper the first letter of a key."""
    return s[:1].upper() + s[1:]


def walk_map(m: dict[str, Any], fn: Callable[[str], str] | None) -> None:
    """Rename keys in place, dropping nulls and empty lists.

    Keys below ``dockerLabels`` and ``options`` are left as they are.
    """
    for key, value in list(m.items()):
        del m[key]
        new_key = fn(key) if fn is not None else key
        if value is not None:
            m[new_key] = value
        if isinstance(value, dict):
            walk_map(value, None if key.lower() in _UNMAPPED_KEYS else fn)
        elif isinstance(value, list):
            if value:
                _walk_list(value, fn)
            else:
                m.pop(new_key, None)


def _walk_list(a: list[Any], fn: Callable[[str], str] | None) -> None:
    for value in a:
        if isinstance(value, dict):
            walk_map(value, fn)
        elif isinstance(value, list):
            _walk_list(value, fn)


_SEGMENT = re.compile(
    r'\.([A-Za-z_][A-Za-z0-9_]*)|\."((?:[^"\\]|\\.)*)"|\.?\["((?:[^"\\]|\\.)*)"\]'
)


def _split_top(text: str, sep: str) -> list[str]:
    parts: list[str] = []
    depth = 0
    in_string = False
    escaped = False
    current: list[str] = []
    for ch in text:
        if in_string:
            current.append(ch)
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in "([":
            depth += 1
        elif ch in ")]":
            depth -= 1
            if depth < 0:
                raise ValueError(f"unbalanced brackets in query: {text}")
        elif ch == sep and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(ch)
    if depth or in_string:
        raise ValueError(f"unterminated query: {text}")
    parts.append("".join(current))
    return parts


def _parse_path(text: str) -> tuple[str, ...]:
    text = text.strip()
    if text == ".":
        return ()
    if not text.startswith("."):
        raise ValueError(f"unsupported query: {text!r}")
    keys: list[str] = []
    pos = 0
    while pos < len(text):
        m = _SEGMENT.match(text, pos)
        if not m:
            raise ValueError(f"unsupported query: {text!r}")
        if m.group(1) is not None:
            keys.append(m.group(1))
        else:
            raw = m.group(2) if m.group(2) is not None else m.group(3)
            keys.append(json.loads(f'"{raw}"'))
        pos = m.end()
    return tuple(keys)


def _get_path(value: Any, path: tuple[str, ...]) -> Any:
    for key in path:
        if value is None:
            return None
        if not isinstance(value, dict):
            raise ValueError(f"cannot index {type(value).__name__} with {key!r}")
        value = value.get(key)
    return value


def _delete_paths(value: Any, paths: list[tuple[str, ...]]) -> Any:
    result = copy.deepcopy(value)
    for path in paths:
        if not path:
            return None
        parent = _get_path(result, path[:-1])
        if parent is None:
            continue
        if not isinstance(parent, dict):
            raise ValueError(f"cannot delete field {path[-1]!r} of {type(parent).__name__}")
        parent.pop(path[-1], None)
    return result


def _compile_stage(stage: str) -> Callable[[Any], Any]:
    stage = stage.strip()
    if stage.startswith("del(") and stage.endswith(")"):
        paths = [_parse_path(p) for p in _split_top(stage[4:-1], ",")]
        return lambda v: _delete_paths(v, paths)
    path = _parse_path(stage)
    return lambda v: _get_path(v, path)


def jq_filter(m: dict[str, Any], query: str) -> dict[str, Any]:
    """Apply a jq-style query (paths, ``del(...)`` and pipes) to an object.

    The query must produce an object.
    """
    stages = [_compile_stage(s) for s in _split_top(query, "|")]
    value: Any = m
    for stage in stages:
        value = stage(value)
    if not isinstance(value, dict):
        raise ValueError(f"query result is not an object: {value!r}")
    return value


def _default(o: Any) -> Any:
    if dataclasses.is_dataclass(o) and not isinstance(o, type):
        return dataclasses.asdict(o)
    if isinstance(o, enum.Enum):
        return o.value
    if isinstance(o, (datetime.datetime, datetime.date)):
        return o.isoformat()
    if isinstance(o, (set, frozenset, tuple)):
        return list(o)
    raise TypeError(f"object of type {type(o).__name__} is not JSON serializable")


def _to_mapping(v: Any) -> dict[str, Any]:
    data = json.loads(json.dumps(v, default=_default))
    if not isinstance(data, dict):
        raise TypeError(f"value must serialize to a JSON object, not {type(data).__name__}")
    return data


def _dumps(m: Mapping[str, Any]) -> str:
    text = json.dumps(m, indent=2, sort_keys=True, ensure_ascii=False)
    for ch, escaped in _ESCAPES.items():
        text = text.replace(ch, escaped)
    return text


def marshal_json_for_api(v: Any, *queries: str) -> str | None:
    """Serialize a value as indented API-style JSON, applying each query in turn."""
    if v is None:
        return None
    m = _to_mapping(v)
    walk_map(m, json_key_for_api)
    for query in queries:
        m = jq_filter(m, query)
    return _dumps(m) + "\n"


def output_json_for_api(stream: Any, v: Any) -> None:
    """Write a value as API-style JSON to a text stream."""
    text = marshal_json_for_api(v)
    if text is not None:
        stream.write(text)


def unmarshal_json_for_struct(src: str | bytes) -> dict[str, Any]:
    """Parse API-style JSON into a mapping with struct-style keys."""
    m = json.loads(src)
    if not isinstance(m, dict):
        raise ValueError("JSON document must be an object")
    walk_map(m, json_key_for_struct)
    return m