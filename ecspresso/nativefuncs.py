"""Native functions offered to definition templates."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Callable


@dataclass(frozen=True)
class NativeFunction:
    """A named function with declared parameter names."""

    name: str
    params: tuple[str, ...]
    func: Callable[..., Any]

    def __call__(self, *args: Any) -> Any:
        if len(args) != len(self.params):
            raise TypeError(
                f"{self.name}: expected {len(self.params)} arguments, got {len(args)}"
            )
        return self.func(*args)


def _env(name: Any, default: Any) -> Any:
    if not isinstance(name, str):
        raise TypeError("env: name must be a string")
    value = os.environ.get(name, "")
    return value if value else default


def _must_env(name: Any) -> str:
    if not isinstance(name, str):
        raise TypeError("must_env: name must be a string")
    try:
        return os.environ[name]
    except KeyError:
        raise ValueError(f"must_env: {name} is not set") from None


def default_native_funcs() -> list[NativeFunction]:
    """Return the ``env`` and ``must_env`` functions."""
    return [
        NativeFunction("env", ("name", "default"), _env),
        NativeFunction("must_env", ("name",), _must_env),
    ]