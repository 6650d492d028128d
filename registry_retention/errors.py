"""Error types for the registry retention tool."""

from typing import Optional

import httpx


DELETE_REMEDIATION = (
    "The registry is not configured to allow manifest deletion. "
    "Stop the registry, add the following to its config.yml:\n"
    "  storage:\n"
    "    delete:\n"
    "      enabled: true\n"
    "then restart it and run the cleanup again."
)


class RegistryError(Exception):
    """Base class for registry client errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: str = "",
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body
        self.cause = cause

    def __str__(self) -> str:
        text = self.message
        if self.status_code is not None:
            text = f"{text} (status {self.status_code})"
        if self.body:
            text = f"{text}: {self.body}"
        if self.cause:
            text = f"{text}: {self.cause}"
        return text


class NotFoundError(RegistryError):
    """Repository, tag or manifest does not exist."""

    def __init__(self, what: str, body: str = ""):
        super().__init__(f"{what} not found", 404, body)


class UnauthorizedError(RegistryError):
    """Credentials were missing or rejected."""

    def __init__(self, what: str, body: str = ""):
        super().__init__(f"unauthorized: {what}", 401, body)


class ForbiddenError(RegistryError):
    """Credentials were accepted but lack permission."""

    def __init__(self, what: str, body: str = ""):
        super().__init__(f"forbidden: {what}", 403, body)


class DeleteUnsupportedError(RegistryError):
    """Registry storage does not allow manifest deletion (HTTP 405).

    Every delete against the same registry fails the same way until the
    registry is reconfigured, see ``remediation``.
    """

    def __init__(self, what: str, body: str = ""):
        super().__init__(f"delete unsupported by registry: {what}", 405, body)
        self.remediation = DELETE_REMEDIATION


class UnexpectedStatusError(RegistryError):
    """Any other non-success status."""

    def __init__(self, what: str, status_code: int, body: str = ""):
        super().__init__(f"unexpected response for {what}", status_code, body)


class TransportError(RegistryError):
    """Request never produced a response (connection failure, timeout)."""

    def __init__(self, what: str, cause: Exception):
        super().__init__(f"request failed for {what}", cause=cause)


class DigestNotFoundError(RegistryError):
    """HEAD on a manifest succeeded without a Docker-Content-Digest header."""

    def __init__(self, what: str):
        super().__init__(f"digest not found for {what}", 200)


class ResponseDecodeError(RegistryError):
    """A successful response carried a body that is not the expected JSON."""

    def __init__(self, what: str, cause: Exception):
        super().__init__(f"cannot decode response for {what}", 200, cause=cause)


class InvalidTimestampError(ValueError):
    """Failed to parse a creation timestamp."""

    def __init__(self, message: str):
        super().__init__(f"invalid timestamp: {message}")


def classify_response(
    response: httpx.Response, what: str, deleting: bool = False
) -> RegistryError:
    """Map a non-success response onto the error taxonomy.

    Args:
        response: The registry response.
        what: Human readable description of the request target.
        deleting: True for manifest deletes, where 405 has its own meaning.

    Returns:
        The error to raise; the response body is preserved for diagnostics.
    """
    status = response.status_code
    body = response.text
    if status == 404:
        return NotFoundError(what, body)
    if status == 401:
        return UnauthorizedError(what, body)
    if status == 403:
        return ForbiddenError(what, body)
    if status == 405 and deleting:
        return DeleteUnsupportedError(what, body)
    return UnexpectedStatusError(what, status, body)
