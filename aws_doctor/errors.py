"""Exception types raised by aws_doctor and helpers for AWS error codes."""
from __future__ import annotations

from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

ACCESS_DENIED_CODES = frozenset(
    {
        "AccessDenied",
        "AccessDeniedException",
        "UnauthorizedOperation",
        "AuthFailure",
        "UnrecognizedClientException",
        "InvalidClientTokenId",
        "ExpiredToken",
        "ExpiredTokenException",
    }
)


class AwsDoctorError(Exception):
    """Base class for errors raised by the tool itself."""


class WorkflowCancelled(AwsDoctorError):
    """The cancellation handle was triggered before the work finished."""


class MissingResourceError(AwsDoctorError):
    """A resource referenced by another resource could not be found."""

    def __init__(self, resource_type: str, resource_id: str) -> None:
        super().__init__(f"{resource_type} '{resource_id}' was not found")
        self.resource_type = resource_type
        self.resource_id = resource_id


def get_error_code(exc: BaseException) -> str:
    """Return the AWS error code carried by ``exc`` or an empty string."""

    if isinstance(exc, ClientError):
        return exc.response.get("Error", {}).get("Code", "")
    return ""


def is_access_denied(exc: BaseException) -> bool:
    return get_error_code(exc) in ACCESS_DENIED_CODES


def describe_error(exc: BaseException) -> str:
    """Return a one-line, user facing description of ``exc``."""

    if isinstance(exc, NoCredentialsError):
        return "No AWS credentials found. Configure a profile or pass --profile."
    if isinstance(exc, ClientError) and is_access_denied(exc):
        operation = getattr(exc, "operation_name", None) or "the request"
        return (
            f"Access denied while calling {operation} ({get_error_code(exc)}). "
            "Check that the credentials allow read access to EC2, ELB, Route 53, "
            "STS and Cost Explorer."
        )
    if isinstance(exc, (BotoCoreError, ClientError, AwsDoctorError)):
        return str(exc)
    return f"{type(exc).__name__}: {exc}"


__all__ = [
    "ACCESS_DENIED_CODES",
    "AwsDoctorError",
    "MissingResourceError",
    "WorkflowCancelled",
    "describe_error",
    "get_error_code",
    "is_access_denied",
]
