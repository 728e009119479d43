"""HTTP gateway to the remote file upload endpoints."""

import logging
import re
from typing import Any, Optional, Protocol

import httpx
from pydantic import ValidationError

from docupload.core.config import settings
from docupload.exceptions import (
    MalformedContentType,
    MalformedResponse,
    RemoteRejected,
    TransportFailure,
)
from docupload.models.upload import ContentPart, ErrorBody, SessionHandle, UploadSessionMetadata

logger = logging.getLogger(__name__)

# type "/" subtype, optionally followed by parameters
_TOKEN = r"[!#$%&'*+.^_`|~0-9A-Za-z-]+"
_CONTENT_TYPE_PATTERN = re.compile(rf"^{_TOKEN}/{_TOKEN}(\s*;.*)?$")


class RemoteUploadGateway(Protocol):
    """Remote operations the orchestrator drives, in call order."""

    async def open_session(self, metadata: UploadSessionMetadata) -> SessionHandle:
        ...

    async def send_content(self, part: ContentPart) -> Optional[SessionHandle]:
        ...

    async def finalize_session(self, session_id: str) -> SessionHandle:
        ...


def validate_content_type(content_type: str) -> str:
    """Check that a MIME string can be sent as a part's Content-Type header.

    Raises:
        MalformedContentType: If the string is not ``type/subtype[; params]``
            or contains characters a header cannot carry
    """
    if "\r" in content_type or "\n" in content_type or not _CONTENT_TYPE_PATTERN.match(content_type):
        raise MalformedContentType(f"Invalid content type: {content_type!r}")
    try:
        content_type.encode("latin-1")
    except UnicodeEncodeError as e:
        raise MalformedContentType(f"Content type is not header-encodable: {content_type!r}") from e
    return content_type


class HttpUploadGateway:
    """Gateway backed by an httpx async client.

    Use as an async context manager, or call :meth:`aclose` when done. A
    client passed in by the caller is borrowed: it is left open and its
    default headers are not changed.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        api_version: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")

        self._headers = {"Notion-Version": api_version or settings.API_VERSION}
        bearer = token if token is not None else settings.API_TOKEN
        if bearer:
            self._headers["Authorization"] = f"Bearer {bearer}"

        if client is None:
            self._client = httpx.AsyncClient(
                timeout=timeout if timeout is not None else settings.REQUEST_TIMEOUT,
            )
            self._owns_client = True
        else:
            self._client = client
            self._owns_client = False

    async def __aenter__(self) -> "HttpUploadGateway":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def open_session(self, metadata: UploadSessionMetadata) -> SessionHandle:
        """Create a file upload session.

        Args:
            metadata: Filename, MIME type, declared length and mode

        Returns:
            The new session as returned by the remote side
        """
        response = await self._post("/file_uploads", json=metadata.to_request_body())
        return self._parse_session(response)

    async def send_content(self, part: ContentPart) -> Optional[SessionHandle]:
        """Send one body of content to a session as a multipart form.

        The form has a binary ``file`` field and, for multi-part sessions, a
        ``part_number`` text field.

        Returns:
            The session echoed by the remote side, or None for an empty body
        """
        validate_content_type(part.content_type)

        files = {"file": (part.filename, part.data, part.content_type)}
        data = None
        if part.part_number is not None:
            data = {"part_number": str(part.part_number)}

        response = await self._post(
            f"/file_uploads/{part.session_id}/send", files=files, data=data
        )
        if not response.content.strip():
            return None
        return self._parse_session(response)

    async def finalize_session(self, session_id: str) -> SessionHandle:
        """Complete a multi-part session after all parts were sent."""
        response = await self._post(f"/file_uploads/{session_id}/complete")
        return self._parse_session(response)

    async def _post(self, path: str, **kwargs: Any) -> httpx.Response:
        url = f"{self.base_url}{path}"
        try:
            response = await self._client.post(url, headers=self._headers, **kwargs)
        except httpx.RequestError as e:
            logger.error(
                "Upload request failed before a response was received",
                extra={"url": url, "error": str(e), "error_type": type(e).__name__},
            )
            raise TransportFailure(f"Request to {url} failed: {e}") from e

        if not response.is_success:
            error = _parse_error_body(response)
            logger.warning(
                "Upload request rejected",
                extra={
                    "url": url,
                    "status_code": response.status_code,
                    "error_code": error.code if error else None,
                },
            )
            raise RemoteRejected(response.status_code, error=error, body=response.text)

        logger.debug(
            "Upload request succeeded",
            extra={"url": url, "status_code": response.status_code},
        )
        return response

    @staticmethod
    def _parse_session(response: httpx.Response) -> SessionHandle:
        try:
            return SessionHandle.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise MalformedResponse(
                f"Unexpected file upload response from {response.request.url}: {e}",
                body=response.text,
            ) from e


def _parse_error_body(response: httpx.Response) -> Optional[ErrorBody]:
    try:
        payload = response.json()
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    try:
        return ErrorBody.model_validate(payload)
    except ValidationError:
        return None
