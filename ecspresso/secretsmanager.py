"""Template functions that resolve Secrets Manager secret ARNs."""

from __future__ import annotations

import threading
from typing import Any, Callable

from .nativefuncs import NativeFunction


class SecretsManagerLookup:
    """Resolve secret ids to ARNs through a client offering ``describe_secret``.

    Results are cached per id.
    """

    def __init__(self, client: Any) -> None:
        self._client = client
        self._cache: dict[str, str] = {}
        self._lock = threading.Lock()

    def resolve_arn(self, secret_id: str) -> str:
        """Return the full ARN of a secret."""
        with self._lock:
            cached = self._cache.get(secret_id)
        if cached is not None:
            return cached
        try:
            res = self._client.describe_secret(SecretId=secret_id)
        except Exception as err:
            raise RuntimeError(f"failed to describe secret: {err}") from err
        arn = res.get("ARN") or ""
        with self._lock:
            self._cache[secret_id] = arn
        return arn

    def func_map(self) -> dict[str, Callable[[str], str]]:
        """Return template functions keyed by name."""
        return {"secretsmanager_arn": self.resolve_arn}

    def native_funcs(self) -> list[NativeFunction]:
        """Return the native functions for definition templates."""

        def secretsmanager_arn(secret_id: Any) -> str:
            if not isinstance(secret_id, str):
                raise TypeError("secretsmanager_arn: id must be string")
            return self.resolve_arn(secret_id)

        return [NativeFunction("secretsmanager_arn", ("id",), secretsmanager_arn)]