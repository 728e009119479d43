"""Mode selection and session metadata construction."""

import logging
from typing import Optional

from docupload.exceptions import ConfigurationInvalid
from docupload.models.upload import ChunkSourceConfig, UploadMode, UploadSessionMetadata

logger = logging.getLogger(__name__)

# Known sizes at or above this go through multi_part
MULTIPART_THRESHOLD = 20 * 1024 * 1024


def select_upload_mode(
    total_size: Optional[int],
    mode: Optional[UploadMode] = None,
    threshold: int = MULTIPART_THRESHOLD,
) -> UploadMode:
    """Pick the transfer mode for a source.

    Args:
        total_size: Declared length in bytes, or None when unknown
        mode: Explicit mode requested by the caller, or None for automatic
        threshold: Size in bytes from which automatic selection uses multi_part

    Returns:
        The mode to open the session with

    Raises:
        ConfigurationInvalid: If the mode is unknown, or single_part is
            requested for an unknown size
    """
    if mode is not None:
        try:
            mode = UploadMode(mode)
        except ValueError as e:
            raise ConfigurationInvalid(f"Unknown upload mode: {mode!r}") from e
        if mode is UploadMode.SINGLE_PART and total_size is None:
            raise ConfigurationInvalid(
                "single_part uploads require a known size; "
                "use multi_part or automatic selection for unknown-size sources"
            )
        return mode

    if total_size is None:
        return UploadMode.MULTI_PART
    if total_size >= threshold:
        return UploadMode.MULTI_PART
    return UploadMode.SINGLE_PART


def build_session_metadata(
    config: ChunkSourceConfig,
    mode: Optional[UploadMode] = None,
    threshold: int = MULTIPART_THRESHOLD,
) -> UploadSessionMetadata:
    """Build the metadata used to open an upload session.

    The declared length is taken from the config as is (0 when unknown) and
    is never checked against the bytes actually sent.
    """
    resolved = select_upload_mode(config.total_size, mode=mode, threshold=threshold)

    logger.debug(
        "Resolved upload mode",
        extra={
            "upload_filename": config.filename,
            "total_size": config.total_size,
            "requested_mode": mode.value if isinstance(mode, UploadMode) else mode,
            "mode": resolved.value,
        },
    )

    return UploadSessionMetadata(
        filename=config.filename,
        content_type=config.content_type,
        content_length=config.total_size or 0,
        mode=resolved,
    )
