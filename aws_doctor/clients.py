"""boto3 client bundle shared by every fetcher of a run."""
from __future__ import annotations

from dataclasses import dataclass

import boto3
from botocore.client import BaseClient
from botocore.config import Config

# Standard retry mode backs off on throttling; fetchers never retry on their own.
CLIENT_CONFIG = Config(retries={"mode": "standard", "max_attempts": 5})

# Cost Explorer is served from a single endpoint.
COST_EXPLORER_REGION = "us-east-1"


@dataclass(frozen=True)
class AwsClients:
    """Low-level clients for the services the tool reads from.

    boto3 sessions are not thread safe, so the clients are built once on the
    calling thread and then shared with worker threads, which is safe.
    """

    ec2: BaseClient
    elbv2: BaseClient
    route53: BaseClient
    sts: BaseClient
    ce: BaseClient

    @classmethod
    def from_session(cls, session: boto3.session.Session) -> "AwsClients":
        return cls(
            ec2=session.client("ec2", config=CLIENT_CONFIG),
            elbv2=session.client("elbv2", config=CLIENT_CONFIG),
            route53=session.client("route53", config=CLIENT_CONFIG),
            sts=session.client("sts", config=CLIENT_CONFIG),
            ce=session.client("ce", region_name=COST_EXPLORER_REGION, config=CLIENT_CONFIG),
        )


__all__ = ["AwsClients", "CLIENT_CONFIG", "COST_EXPLORER_REGION"]
