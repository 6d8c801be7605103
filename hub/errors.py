"""
Action Hub error taxonomy.

Plugins may raise anything; the dispatcher is the single place that turns
these into a well-formed ActionResponse:
- ValidationError: missing/malformed caller input (4xx)
- AuthorizationError: token decrypt failure, provider rejection (reset)
- DestinationError: the downstream vendor call failed
- InternalError: misconfiguration or unexpected plugin fault
"""
from __future__ import annotations
from dataclasses import dataclass


@dataclass(frozen=True)
class HttpError:
    code: int
    status: str
    description: str


HTTP_ERROR: dict[str, HttpError] = {
    "bad_request": HttpError(400, "BAD_REQUEST", "Invalid request."),
    "unauthenticated": HttpError(401, "UNAUTHENTICATED", "Authorization failed."),
    "forbidden": HttpError(403, "PERMISSION_DENIED", "Permission denied."),
    "not_found": HttpError(404, "NOT_FOUND", "Not found."),
    "internal": HttpError(500, "INTERNAL", "Internal server error."),
    "bad_gateway": HttpError(502, "BAD_GATEWAY", "Destination request failed."),
}


class HubError(Exception):
    """Base class for errors the dispatcher knows how to report."""
    kind: str = "internal"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class ValidationError(HubError):
    """Caller input is missing or malformed. Reported, never thrown past the hub."""
    kind = "bad_request"

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class AuthorizationError(HubError):
    """The continuation token or provider credentials are unusable."""
    kind = "unauthenticated"


class DestinationError(HubError):
    """A vendor call failed. `status_code` is the vendor's HTTP status, if any."""
    kind = "bad_gateway"

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class InternalError(HubError):
    kind = "internal"


class ActionNotFound(HubError):
    kind = "not_found"

    def __init__(self, name: str):
        super().__init__(f"No action registered with name '{name}'")
        self.name = name


class StreamAborted(Exception):
    """The caller went away while its payload was still being read."""
