"""Tests for upload mode selection and session metadata."""

import pytest

from conftest import MiB
from docupload.exceptions import ConfigurationInvalid
from docupload.models.upload import ChunkSourceConfig, UploadMode
from docupload.upload.request_builder import (
    MULTIPART_THRESHOLD,
    build_session_metadata,
    select_upload_mode,
)


def test_threshold_is_20_mib():
    assert MULTIPART_THRESHOLD == 20 * MiB


@pytest.mark.parametrize(
    "total_size,expected",
    [
        (0, UploadMode.SINGLE_PART),
        (1024, UploadMode.SINGLE_PART),
        (20 * MiB - 1, UploadMode.SINGLE_PART),
        (20 * MiB, UploadMode.MULTI_PART),
        (500 * MiB, UploadMode.MULTI_PART),
        (None, UploadMode.MULTI_PART),
    ],
)
def test_automatic_mode_selection(total_size, expected):
    """Test the size threshold and the unknown-size rule."""
    assert select_upload_mode(total_size) == expected


def test_explicit_mode_is_used_verbatim():
    """Test that an explicit mode overrides the size policy."""
    assert select_upload_mode(10, mode=UploadMode.MULTI_PART) == UploadMode.MULTI_PART
    assert select_upload_mode(100 * MiB, mode=UploadMode.SINGLE_PART) == UploadMode.SINGLE_PART


def test_explicit_mode_accepts_wire_value():
    assert select_upload_mode(None, mode="multi_part") == UploadMode.MULTI_PART


def test_single_part_with_unknown_size_is_rejected():
    """Test the fail-fast rule for single_part without a size."""
    with pytest.raises(ConfigurationInvalid, match="known size"):
        select_upload_mode(None, mode=UploadMode.SINGLE_PART)


@pytest.mark.parametrize("mode", ["single-part", "chunked", ""])
def test_unknown_mode_string_is_rejected(mode):
    with pytest.raises(ConfigurationInvalid, match="Unknown upload mode"):
        select_upload_mode(1024, mode=mode)


def test_custom_threshold():
    assert select_upload_mode(1000, threshold=1000) == UploadMode.MULTI_PART
    assert select_upload_mode(999, threshold=1000) == UploadMode.SINGLE_PART


def test_build_metadata_for_known_size():
    """Test metadata for a small known-size file."""
    config = ChunkSourceConfig.for_known_size("example.jpg", "image/jpeg", 1024)

    metadata = build_session_metadata(config)

    assert metadata.filename == "example.jpg"
    assert metadata.content_type == "image/jpeg"
    assert metadata.content_length == 1024
    assert metadata.mode == UploadMode.SINGLE_PART


def test_build_metadata_for_unknown_size():
    """Test that unknown sizes declare zero length and multi_part."""
    config = ChunkSourceConfig.for_unknown_size("stream.json", "application/json")

    metadata = build_session_metadata(config)

    assert metadata.content_length == 0
    assert metadata.mode == UploadMode.MULTI_PART


def test_build_metadata_keeps_declared_size_for_multi_part():
    config = ChunkSourceConfig.for_known_size("video.mp4", "video/mp4", 30 * MiB)

    metadata = build_session_metadata(config)

    assert metadata.content_length == 30 * MiB
    assert metadata.mode == UploadMode.MULTI_PART
