"""Shared helpers for AWS inventory fetchers and classifiers."""
from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Iterable, Iterator, Optional, Sequence, TypeVar

from botocore.client import BaseClient
from botocore.exceptions import OperationNotPageableError

from .concurrency import CancelToken

T = TypeVar("T")

_TRANSITION_REASON_RE = re.compile(r"\(([^)]+)\)")
_TRANSITION_DATE_RE = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2}) (\d{2}):(\d{2}):(\d{2}) ([A-Za-z]{3,5})$"
)


def safe_paginate(
    client: BaseClient,
    method_name: str,
    result_key: str,
    *,
    cancel: Optional[CancelToken] = None,
    **kwargs,
) -> Iterator[dict]:
    """Iterate through paginated boto3 results while handling pagination gaps.

    When ``cancel`` is given it is checked before the first request and after
    every page, raising :class:`~aws_doctor.errors.WorkflowCancelled`.
    """

    if cancel is not None:
        cancel.raise_if_cancelled()

    try:
        paginator = client.get_paginator(method_name)
    except OperationNotPageableError:
        response = getattr(client, method_name)(**kwargs)
        if cancel is not None:
            cancel.raise_if_cancelled()
        for item in response.get(result_key, []):
            yield item
        return

    for page in paginator.paginate(**kwargs):
        if cancel is not None:
            cancel.raise_if_cancelled()
        for item in page.get(result_key, []):
            yield item


def batch_iterable(items: Sequence[T], size: int) -> Iterable[Sequence[T]]:
    """Yield slices of *items* with at most ``size`` members."""

    for i in range(0, len(items), size):
        yield items[i : i + size]


def parse_transition_date(reason: Optional[str]) -> Optional[datetime]:
    """Return the timestamp embedded in an EC2 state-transition reason.

    The reason looks like ``User initiated (2024-01-31 17:02:11 GMT)``. Only the
    first parenthesised group is considered and the zone abbreviation is read
    as UTC. ``None`` is returned when there is no group or it is malformed.
    """

    if not reason:
        return None
    match = _TRANSITION_REASON_RE.search(reason)
    if not match:
        return None
    date_match = _TRANSITION_DATE_RE.match(match.group(1).strip())
    if not date_match:
        return None
    try:
        return datetime(*(int(part) for part in date_match.groups()[:6]), tzinfo=timezone.utc)
    except ValueError:
        return None


def parse_rfc3339(value: Optional[str]) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp such as ``2024-01-31T17:02:11.000Z``.

    Timestamps without an offset are read as UTC. Returns ``None`` when the
    value is empty or malformed.
    """

    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    return ensure_utc(parsed)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime, reading naive values as UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def whole_days(delta: timedelta) -> int:
    """Whole days in ``delta``, truncated towards zero."""

    return int(delta.total_seconds() / 86400)


def format_rfc3339(value: datetime) -> str:
    return ensure_utc(value).strftime("%Y-%m-%dT%H:%M:%SZ")


__all__ = [
    "batch_iterable",
    "ensure_utc",
    "format_rfc3339",
    "parse_rfc3339",
    "parse_transition_date",
    "safe_paginate",
    "utc_now",
    "whole_days",
]
