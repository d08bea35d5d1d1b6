"""One-line text renderings of deployments, task sets, events and policies."""

from __future__ import annotations

import datetime
from typing import Any, Mapping

from .util import arn_to_name

EVENT_TIME_FORMAT = "%Y/%m/%d %H:%M:%S"


def _local(t: datetime.datetime) -> datetime.datetime:
    return t.astimezone() if t.tzinfo is not None else t


def format_deployment(dp: Mapping[str, Any]) -> str:
    """Render a service deployment."""
    return (
        f"{dp.get('status') or '':>8} {arn_to_name(dp.get('taskDefinition') or '')}"
        f" desired:{dp.get('desiredCount', 0)} pending:{dp.get('pendingCount', 0)}"
        f" running:{dp.get('runningCount', 0)}"
        f" {dp.get('rolloutState') or ''}({dp.get('rolloutStateReason') or ''})"
    )


def format_task_set(ts: Mapping[str, Any]) -> str:
    """Render a task set."""
    return (
        f"{ts.get('status') or '':>8} {arn_to_name(ts.get('taskDefinition') or '')}"
        f" desired:{ts.get('computedDesiredCount', 0)} pending:{ts.get('pendingCount', 0)}"
        f" running:{ts.get('runningCount', 0)} {ts.get('stabilityStatus') or ''}"
    )


def format_event(e: Mapping[str, Any]) -> str:
    """Render a service event with its local creation time."""
    return f"{_local(e['createdAt']).strftime(EVENT_TIME_FORMAT)} {e['message']}"


def format_log_event(e: Mapping[str, Any]) -> str:
    """Render a log event whose timestamp is in milliseconds."""
    ms = int(e["timestamp"])
    seconds = ms // 1000 if ms >= 0 else -((-ms) // 1000)
    t = datetime.datetime.fromtimestamp(seconds)
    return f"{t.strftime(EVENT_TIME_FORMAT)} {e['message']}"


def format_scaling_policy(p: Mapping[str, Any]) -> str:
    """Render an auto-scaling policy."""
    return f"  Policy name:{p['policyName']} type:{p.get('policyType') or ''}"