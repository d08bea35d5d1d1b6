"""Helpers for ARNs, resource tags and volume configurations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping

_LONG_ARN_RESOURCES = ("container-instance", "service", "task")

_EBS_VOLUME_FIELDS = (
    "roleArn",
    "encrypted",
    "filesystemType",
    "iops",
    "kmsKeyId",
    "sizeInGiB",
    "snapshotId",
    "throughput",
    "volumeType",
)


@dataclass(frozen=True)
class Arn:
    """The parts of an Amazon Resource Name."""

    partition: str
    service: str
    region: str
    account_id: str
    resource: str


@dataclass(frozen=True)
class Tag:
    """A resource tag."""

    key: str | None = None
    value: str | None = None


def parse_arn(s: str) -> Arn:
    """Split an ARN into its sections; raise ValueError if it is malformed."""
    if not s.startswith("arn:"):
        raise ValueError("arn: invalid prefix")
    sections = s.split(":", 5)
    if len(sections) != 6:
        raise ValueError("arn: not enough sections")
    _, partition, service, region, account_id, resource = sections
    if not partition:
        raise ValueError("arn: invalid partition")
    if not service:
        raise ValueError("arn: invalid service")
    if not resource:
        raise ValueError("arn: invalid resource")
    return Arn(partition, service, region, account_id, resource)


def arn_to_name(s: str) -> str:
    """Return the part of an ARN after its last slash."""
    return s.rsplit("/", 1)[-1]


def is_long_arn_format(a: str) -> bool:
    """Tell whether an ECS ARN uses the long format that includes the cluster name."""
    parts = parse_arn(a).resource.split("/")
    if parts[0] in _LONG_ARN_RESOURCES:
        return len(parts) >= 3
    return False


def parse_tags(s: str) -> list[Tag]:
    """Parse tags written as ``Key=Value,Key2=Value2``."""
    tags: list[Tag] = []
    if not s:
        return tags
    for item in s.split(","):
        if not item:
            continue
        key, sep, value = item.partition("=")
        if not sep:
            raise ValueError(f"invalid tag format. Key=Value is required: {item}")
        if not key:
            raise ValueError("tag Key is required")
        tags.append(Tag(key=key, value=value))
    return tags


def map2str(m: Mapping[str, str]) -> str:
    """Render a mapping as ``k=v`` pairs sorted by key and joined by commas."""
    return ",".join(f"{key}={m[key]}" for key in sorted(m))


def compare_tags(
    old_tags: Iterable[Tag], new_tags: Iterable[Tag]
) -> tuple[list[Tag], list[Tag], list[Tag]]:
    """Return the tags that were added, updated and deleted between two tag sets."""
    old_map = {t.key or "": t.value or "" for t in old_tags}
    new_map = {t.key or "": t.value or "" for t in new_tags}

    added: list[Tag] = []
    updated: list[Tag] = []
    deleted: list[Tag] = []
    for key, value in old_map.items():
        if key in new_map:
            new_value = new_map.pop(key)
            if value != new_value:
                updated.append(Tag(key=key, value=new_value))
        else:
            deleted.append(Tag(key=key, value=value))
    added.extend(Tag(key=key, value=value) for key, value in new_map.items())
    return added, updated, deleted


def service_volume_configurations_to_task(
    vcs: Iterable[Mapping[str, Any]] | None, delete_on_termination: bool | None
) -> list[dict[str, Any]]:
    """Turn service volume configurations into task volume configurations.

    Only managed EBS volumes are carried over; tag specifications that propagate
    from the service are dropped because a standalone task cannot use them.
    """
    result: list[dict[str, Any]] = []
    for vc in vcs or ():
        ebs = vc.get("managedEBSVolume")
        if ebs is None:
            continue
        volume = {key: ebs[key] for key in _EBS_VOLUME_FIELDS if ebs.get(key) is not None}
        volume["tagSpecifications"] = [
            spec
            for spec in ebs.get("tagSpecifications") or ()
            if spec.get("propagateTags") != "SERVICE"
        ]
        volume["terminationPolicy"] = {"deleteOnTermination": delete_on_termination}
        entry: dict[str, Any] = {}
        if vc.get("name") is not None:
            entry["name"] = vc["name"]
        entry["managedEBSVolume"] = volume
        result.append(entry)
    return result