"""Custom exceptions for the upload client."""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from docupload.models.upload import ErrorBody


class UploadError(Exception):
    """Base exception for upload failures.

    The orchestrator fills in ``session_id``, ``parts_sent`` and
    ``failed_state`` before re-raising, so callers can find the remote
    session left behind by a mid-sequence failure.
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.session_id: Optional[str] = None
        self.parts_sent: int = 0
        self.failed_state: Optional[str] = None


class TransportFailure(UploadError):
    """Exception raised when no response was obtained from the remote side."""
    pass


class RemoteRejected(UploadError):
    """Exception raised when the remote side answered with an error status."""

    def __init__(
        self,
        status_code: int,
        error: Optional["ErrorBody"] = None,
        body: str = "",
    ):
        self.status_code = status_code
        self.error = error
        self.body = body
        detail = error.message if error is not None and error.message else body
        super().__init__(f"Remote rejected request with status {status_code}: {detail}")

    @property
    def code(self) -> Optional[str]:
        """Machine-readable error code from the error body, if any."""
        return self.error.code if self.error is not None else None


class MalformedResponse(UploadError):
    """Exception raised when a response body does not have the expected shape."""

    def __init__(self, message: str, body: str = ""):
        super().__init__(message)
        self.body = body


class LocalIoFailure(UploadError):
    """Exception raised when reading from the chunk source fails."""
    pass


class ConfigurationInvalid(UploadError):
    """Exception raised for upload requests that can never succeed."""
    pass


class MalformedContentType(ConfigurationInvalid):
    """Exception raised when a MIME string cannot be used as a part header."""
    pass
