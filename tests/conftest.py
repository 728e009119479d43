"""Pytest configuration and shared fixtures."""

from unittest.mock import AsyncMock

import pytest

from docupload.models.upload import SessionHandle, SessionStatus
from docupload.upload.orchestrator import UploadOrchestrator
from docupload.upload.request_builder import MULTIPART_THRESHOLD

MiB = 1024 * 1024


@pytest.fixture
def pending_session():
    """Session as returned by the create endpoint."""
    return SessionHandle(
        id="upload-123",
        status=SessionStatus.PENDING,
        filename="report.pdf",
        content_type="application/pdf",
        upload_url="https://api.example.com/v1/file_uploads/upload-123/send",
    )


@pytest.fixture
def uploaded_session():
    """Session as returned once content was sent or the upload completed."""
    return SessionHandle(
        id="upload-123",
        status=SessionStatus.COMPLETE,
        filename="report.pdf",
        content_type="application/pdf",
    )


@pytest.fixture
def gateway(pending_session, uploaded_session):
    """Mock gateway that accepts every call."""
    mock = AsyncMock()
    mock.open_session.return_value = pending_session
    mock.send_content.return_value = None
    mock.finalize_session.return_value = uploaded_session
    return mock


@pytest.fixture
def orchestrator(gateway):
    """Orchestrator wired to the mock gateway with the standard threshold."""
    return UploadOrchestrator(gateway, multipart_threshold=MULTIPART_THRESHOLD)


def call_names(mock):
    """Names of the gateway methods called, in call order."""
    return [name for name, _args, _kwargs in mock.mock_calls]


def sent_parts(mock):
    """ContentPart objects passed to send_content, in call order."""
    return [c.args[0] for c in mock.send_content.call_args_list]
