"""Verification reporting, result caching and helpers for checking definitions."""

from __future__ import annotations

import json
import re
import sys
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping
from urllib.parse import unquote_plus

from .util import parse_arn

ECR_IMAGE_URL_RE = re.compile(r"^([0-9]+)\.dkr\.ecr\.([0-9a-zA-Z-]+)\.amazonaws\.com/.*")

_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")

_GREEN = "\x1b[32m"
_RED = "\x1b[31m"
_CYAN = "\x1b[36m"
_RESET = "\x1b[0m"


class SkipVerify(Exception):
    """A check that was deliberately not performed."""


class VerifyCache:
    """Remembers the outcome of each named check so it runs only once."""

    def __init__(self) -> None:
        self._results: dict[str, Exception | None] = {}

    def do(self, name: str, fn: Callable[[], Any]) -> tuple[Exception | None, bool]:
        """Run ``fn`` unless ``name`` was seen before.

        Return the error it raised (or None) and whether the result came from the cache.
        """
        if name in self._results:
            return self._results[name], True
        error = _run(fn)
        self._results[name] = error
        return error, False


def _run(fn: Callable[[], Any]) -> Exception | None:
    try:
        fn()
    except Exception as err:
        return err
    return None


@dataclass
class _VerifyState:
    cache: VerifyCache | None = None
    level: int = 0
    nothing: dict = field(default_factory=dict)


_state = _VerifyState()


def init_verify_state(cache: bool) -> None:
    """Reset the nesting level and start with a fresh cache, or with none."""
    _state.cache = VerifyCache() if cache else None
    _state.level = 0


def _paint(code: str, text: str) -> str:
    isatty = getattr(sys.stdout, "isatty", None)
    if isatty is not None and isatty():
        return code + text + _RESET
    return text


def verify_resource(name: str, fn: Callable[[], Any]) -> None:
    """Run a named check and print its outcome, indented by nesting depth.

    A :class:`SkipVerify` raised by ``fn`` is reported and swallowed; any other
    error is reported and raised again as a RuntimeError.
    """
    _state.level += 1
    try:
        indent = "  " * _state.level

        def emit(text: str) -> None:
            print(indent + text)

        emit(name)
        if _state.cache is None:
            error, hit = _run(fn), False
        else:
            error, hit = _state.cache.do(name, fn)
        cached = _paint(_CYAN, "(cached)") if hit else ""
        if error is None:
            emit(f"--> [{_paint(_GREEN, 'OK')}]{cached}")
            return
        if isinstance(error, SkipVerify):
            emit(f"--> [{_paint(_CYAN, 'SKIP')}]{cached} {_paint(_CYAN, str(error))}")
            return
        emit(f"--> [{_paint(_RED, 'NG')}]{cached} {_paint(_RED, str(error))}")
        raise RuntimeError(f"verify {name} failed: {error}") from error
    finally:
        _state.level -= 1


def normalize_platform(
    platform: Mapping[str, Any] | None, is_fargate: bool
) -> tuple[str, str]:
    """Return the (architecture, os) an image must provide.

    Fargate defaults to amd64/linux; without Fargate and without a runtime
    platform both are empty because nothing can be determined.
    """
    arch, os_name = ("amd64", "linux") if is_fargate else ("", "")
    if platform is None:
        return arch, os_name
    arch = "arm64" if platform.get("cpuArchitecture") == "ARM64" else "amd64"
    family = platform.get("operatingSystemFamily") or ""
    os_name = "linux" if family in ("", "LINUX") else "windows"
    return arch, os_name


def extract_role_name(role_arn: str) -> str:
    """Return the role name of an IAM role ARN, dropping any path."""
    try:
        arn = parse_arn(role_arn)
    except ValueError as err:
        raise ValueError(f"failed to parse role arn:{role_arn} {err}") from err
    if arn.service != "iam" or not arn.resource.startswith("role/"):
        raise ValueError("not a valid role arn")
    return arn.resource.rsplit("/", 1)[-1]


def parse_iam_policy_document(s: str) -> dict[str, Any]:
    """Decode a URL-encoded IAM policy document."""
    if _BAD_ESCAPE.search(s):
        raise ValueError(f"invalid URL escape in policy document: {s!r}")
    doc = json.loads(unquote_plus(s))
    if not isinstance(doc, dict):
        raise ValueError("policy document must be a JSON object")
    return doc


def is_ecr_image(image: str) -> bool:
    """Tell whether an image is hosted in a private ECR registry."""
    return ECR_IMAGE_URL_RE.match(image) is not None