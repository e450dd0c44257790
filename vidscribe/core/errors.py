"""
Pipeline error taxonomy.

Every fatal error carries the stage that failed so the API can tell the
operator which external dependency to look at (yt-dlp, Gemini files,
the Gemini model, or the response itself). Per-frame capture failures are
also represented here but are recovered locally by the frame engine.
"""

from typing import Any, Optional


class PipelineError(Exception):
    """Base class for errors raised by the content pipeline."""

    stage: str = "pipeline"
    status_code: int = 500

    def __init__(self, message: str, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


# ---------------------------------------------------------------------------
# Configuration (missing binaries / libraries)
# ---------------------------------------------------------------------------

class ConfigurationError(PipelineError):
    """A required external tool is not installed or not configured."""
    stage = "configuration"
    status_code = 500


class DownloaderUnavailableError(ConfigurationError):
    """yt-dlp cannot be loaded."""
    pass


class FrameCaptureUnavailableError(ConfigurationError):
    """ffmpeg cannot be found."""
    pass


# ---------------------------------------------------------------------------
# Acquisition
# ---------------------------------------------------------------------------

class DownloadError(PipelineError):
    """The downloader failed and left no output file."""
    stage = "download"
    status_code = 502


class EmptyDownloadError(DownloadError):
    """The downloader claimed success but produced no file."""
    pass


# ---------------------------------------------------------------------------
# Remote file registry
# ---------------------------------------------------------------------------

class RegistrationError(PipelineError):
    """A video could not be registered with the remote file store."""
    stage = "remote-registration"
    status_code = 502


class RemoteStoreError(RegistrationError):
    """A call to the remote file store failed."""
    pass


class RemoteProcessingFailedError(RegistrationError):
    """The remote store reported FAILED while processing the upload."""
    pass


class RemoteProcessingTimeoutError(RegistrationError):
    """The upload did not become ACTIVE within the polling budget."""
    status_code = 504


class RegistrationCancelledError(RegistrationError):
    """The caller aborted the wait for an ACTIVE handle."""
    status_code = 499


class RemoteFileNotFoundError(RegistrationError):
    """The named remote file no longer exists (expired or deleted)."""
    status_code = 404

    def __init__(self, message: str, details: Optional[Any] = None) -> None:
        super().__init__(message, details)
        self.needs_redownload = True


class RemoteFileNotReadyError(RegistrationError):
    """The named remote file exists but is not ACTIVE."""
    status_code = 409


# ---------------------------------------------------------------------------
# Generation / parsing
# ---------------------------------------------------------------------------

class GenerationError(PipelineError):
    """The generative model call failed."""
    stage = "generation"
    status_code = 502


class ResponseParseError(PipelineError):
    """The model answered, but not with a complete JSON artifact."""
    stage = "parsing"
    status_code = 502

    def __init__(self, message: str, raw_text: str = "") -> None:
        super().__init__(message, details={"raw_response": raw_text[:2000]})
        self.raw_text = raw_text


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

class FrameCaptureError(PipelineError):
    """A single frame could not be captured. Never aborts a request."""
    stage = "extraction"
    status_code = 500


# ---------------------------------------------------------------------------
# Background tasks
# ---------------------------------------------------------------------------

class TaskError(PipelineError):
    """A background task lookup or control request failed."""
    stage = "tasks"
    status_code = 400


class TaskNotFoundError(TaskError):
    """No task with that id, or it finished long enough ago to be dropped."""
    status_code = 404


class TaskConflictError(TaskError):
    """The task is running and can't be cancelled."""
    status_code = 409
