"""Checks that secrets, parameters and environment files of a task definition exist."""

from __future__ import annotations

import json
from dataclasses import dataclass
from functools import cached_property
from typing import Any, Mapping

from .util import parse_arn
from .verify import SkipVerify

_SECRETS_MANAGER_PREFIX = "arn:aws:secretsmanager:"
_SSM_PREFIX = "arn:aws:ssm:"


@dataclass
class VerifyOption:
    """Options for verification."""

    get_secrets: bool = True
    put_logs: bool = True
    cache: bool = True


def _region_of(config: Any) -> str | None:
    return getattr(config, "region_name", None)


class Verifier:
    """Runs existence checks with the credentials a task would run with.

    ``exec_config`` and ``app_config`` are session-like objects offering
    ``client(service_name, region_name=None)`` and ``region_name``. Secrets,
    parameters, logs and registries are checked with ``exec_config``; S3 with
    ``app_config``.
    """

    def __init__(self, exec_config: Any, app_config: Any, opt: VerifyOption) -> None:
        self.exec_config = exec_config
        self.app_config = app_config
        self.opt = opt
        self._assumed = exec_config is not app_config
        self._ecr: dict[str | None, Any] = {}

    def is_assumed(self) -> bool:
        """Tell whether checks run with an assumed execution role."""
        return self._assumed

    @cached_property
    def cwl(self) -> Any:
        """The CloudWatch Logs client."""
        return self.exec_config.client("logs")

    @cached_property
    def ssm(self) -> Any:
        """The Systems Manager client."""
        return self.exec_config.client("ssm")

    @cached_property
    def secretsmanager(self) -> Any:
        """The Secrets Manager client."""
        return self.exec_config.client("secretsmanager")

    @cached_property
    def s3(self) -> Any:
        """The S3 client."""
        return self.app_config.client("s3")

    def ecr_client(self, region: str | None) -> Any:
        """Return an ECR client for a region, creating it once."""
        client = self._ecr.get(region)
        if client is None:
            if region == _region_of(self.exec_config):
                client = self.exec_config.client("ecr")
            else:
                client = self.exec_config.client("ecr", region_name=region)
            self._ecr[region] = client
        return client

    def exists_secret_value(self, value_from: str) -> None:
        """Check that a secret or parameter named by ``valueFrom`` can be read."""
        if not self.opt.get_secrets:
            raise SkipVerify(f"get a secret value for {value_from}")

        if value_from.startswith(_SECRETS_MANAGER_PREFIX):
            self._exists_secrets_manager_value(value_from)
            return

        if value_from.startswith(_SSM_PREFIX):
            last = value_from.split(":")[-1]
            name = last[len("parameter"):] if last.startswith("parameter") else last
        else:
            name = value_from
        try:
            out = self.ssm.get_parameters(Names=[name], WithDecryption=True)
        except Exception as err:
            raise RuntimeError(f"failed to get ssm parameters {name}: {err}") from err
        if not out.get("Parameters") or out.get("InvalidParameters"):
            raise LookupError(f"ssm parameter {name} is not found")

    def _exists_secrets_manager_value(self, value_from: str) -> None:
        # extra fields after the secret id select a JSON key, stage or version
        parts = value_from.split(":")
        if len(parts) < 7:
            raise ValueError("invalid arn format")
        secret_arn = ":".join(parts[:7])
        try:
            res = self.secretsmanager.get_secret_value(SecretId=secret_arn)
        except Exception as err:
            raise RuntimeError(
                f"failed to get secret value from {value_from} secret id {secret_arn}: {err}"
            ) from err
        if len(parts) < 8:
            return
        key = parts[7]
        if not key:
            return
        try:
            doc = json.loads(res.get("SecretString") or "")
        except ValueError as err:
            raise ValueError(
                f"failed to parse secret string from {value_from} secret id {secret_arn}: {err}"
            ) from err
        if not isinstance(doc, dict):
            raise ValueError(
                f"failed to parse secret string from {value_from} secret id {secret_arn}:"
                " not a JSON object"
            )
        if key not in doc:
            raise LookupError(
                f"failed to find key {key} on secret json value from {value_from}"
                f" secret id {secret_arn}"
            )

    def exists_environment_file(self, env_file: Mapping[str, Any]) -> None:
        """Check that an S3 environment file exists."""
        file_type = env_file.get("type") or ""
        if file_type != "s3":
            raise SkipVerify(f"unsupported environment file type: {file_type}")
        s3arn = env_file.get("value") or ""
        try:
            arn = parse_arn(s3arn)
        except ValueError as err:
            raise ValueError(f"failed to parse s3 arn {s3arn}: {err}") from err
        if arn.service != "s3":
            raise ValueError(f"invalid s3 arn {s3arn}")
        bucket, sep, key = arn.resource.partition("/")
        if not sep:
            raise ValueError(f"invalid s3 arn {s3arn}")
        try:
            self.s3.head_object(Bucket=bucket, Key=key)
        except Exception as err:
            raise RuntimeError(f"failed to head s3 object {s3arn}: {err}") from err


def new_verifier(exec_config: Any, app_config: Any, opt: VerifyOption) -> Verifier:
    """Create a verifier; it counts as assumed when the two configs differ."""
    return Verifier(exec_config, app_config, opt)