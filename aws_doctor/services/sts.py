"""Caller identity lookup through AWS STS."""
from __future__ import annotations

from ..clients import AwsClients
from ..concurrency import CancelToken
from . import register_inventory


@register_inventory("caller_identity")
def fetch_account_id(clients: AwsClients, cancel: CancelToken) -> str:
    """Return the account ID of the credentials in use."""

    cancel.raise_if_cancelled()
    return clients.sts.get_caller_identity()["Account"]


__all__ = ["fetch_account_id"]
