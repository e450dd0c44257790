"""
Remote file registry: dedup and readiness policy.

Gemini keeps uploaded videos for a couple of days. Re-uploading the same
video for every request wastes bandwidth and minutes of server-side
processing, so uploads are keyed by display name (the YouTube video id)
and reused while they exist.

This module is the policy. The actual store (Gemini, or an in-memory fake)
sits behind the RemoteFileStore protocol.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Protocol

from .content.models import VIDEO_MIME_TYPE, FileState, RemoteFileHandle
from .errors import (
    RegistrationCancelledError,
    RegistrationError,
    RemoteFileNotFoundError,
    RemoteFileNotReadyError,
    RemoteProcessingFailedError,
    RemoteProcessingTimeoutError,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class RemoteFileStore(Protocol):
    """
    Interface for a remote file store with asynchronous processing.

    Implementations raise RemoteStoreError for transport failures and
    return None from get() when the file does not exist.
    """

    async def upload(self, path: Path, mime_type: str, display_name: str) -> RemoteFileHandle:
        """Upload a local file. The returned handle is usually PROCESSING."""
        ...

    async def get(self, name: str) -> Optional[RemoteFileHandle]:
        """Fetch current state of a file by its store-assigned name."""
        ...

    async def list(self, page_size: int = 50) -> Iterable[RemoteFileHandle]:
        """List every file in the store, paging internally."""
        ...

    async def delete(self, name: str) -> None:
        """Delete a file by name."""
        ...


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

@dataclass
class Registration:
    """Outcome of register_or_reuse."""
    handle: RemoteFileHandle
    reused: bool


class FileRegistry:
    """
    Dedup-by-display-name on top of a RemoteFileStore, plus bounded polling.

    Find-then-upload for a given video id runs under a per-id lock, so two
    concurrent requests for the same video produce a single upload.
    """

    def __init__(
        self,
        store: RemoteFileStore,
        poll_interval_seconds: float = 5.0,
        max_poll_attempts: int = 60,
        page_size: int = 50,
    ) -> None:
        self._store = store
        self._poll_interval = poll_interval_seconds
        self._max_attempts = max_poll_attempts
        self._page_size = page_size
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, display_name: str) -> asyncio.Lock:
        lock = self._locks.get(display_name)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[display_name] = lock
        return lock

    async def find_by_display_name(self, display_name: str) -> Optional[RemoteFileHandle]:
        """Return the first file whose display name matches, in any state."""
        files = await self._store.list(page_size=self._page_size)
        for handle in files:
            if handle.display_name == display_name:
                return handle
        return None

    async def register_or_reuse(
        self,
        video_id: str,
        local_path: Optional[Path] = None,
        *,
        staged_for_upload: bool = False,
    ) -> Registration:
        """
        Return the existing remote file for video_id, or upload local_path.

        Callers that copied local_path somewhere temporary just for this
        upload (the direct video upload endpoint does) must pass
        staged_for_upload=True: when a remote copy already exists, the staged
        file is deleted. Files in the video cache are never passed that way.
        """
        async with self._lock_for(video_id):
            existing = await self.find_by_display_name(video_id)

            if existing is not None:
                logger.info(
                    "Reusing remote file",
                    extra={
                        "video_id": video_id,
                        "remote_name": existing.name,
                        "state": existing.state.value,
                    }
                )
                if staged_for_upload and local_path is not None:
                    _discard_staged_file(local_path)
                return Registration(handle=existing, reused=True)

            if local_path is None:
                raise RegistrationError(
                    f"No remote file for {video_id} and no local file to upload",
                    details={"video_id": video_id},
                )

            logger.info(
                "Uploading video to remote store",
                extra={"video_id": video_id, "path": str(local_path)}
            )
            handle = await self._store.upload(
                local_path,
                mime_type=VIDEO_MIME_TYPE,
                display_name=video_id,
            )
            logger.info(
                "Upload accepted",
                extra={"video_id": video_id, "remote_name": handle.name, "state": handle.state.value}
            )
            return Registration(handle=handle, reused=False)

    async def await_active(
        self,
        handle: RemoteFileHandle,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> RemoteFileHandle:
        """
        Poll until the handle is ACTIVE.

        Checks at most max_poll_attempts times, sleeping poll_interval_seconds
        before each check. Errors from the store are logged and count as an
        attempt. Raises RemoteProcessingFailedError on FAILED and
        RemoteProcessingTimeoutError when the budget runs out.
        """
        if handle.is_active:
            return handle

        if handle.state is FileState.FAILED:
            raise RemoteProcessingFailedError(
                "Remote processing failed",
                details={"name": handle.name},
            )

        if not handle.is_processing:
            raise RegistrationError(
                f"Unexpected remote file state: {handle.state.value}",
                details={"name": handle.name, "state": handle.state.value},
            )

        current = handle
        for attempt in range(1, self._max_attempts + 1):
            _check_cancelled(cancel_event, handle)
            await asyncio.sleep(self._poll_interval)
            _check_cancelled(cancel_event, handle)

            try:
                fetched = await self._store.get(handle.name)
            except Exception as e:
                logger.warning(
                    "Error polling remote file state",
                    extra={"remote_name": handle.name, "attempt": attempt, "error": str(e)}
                )
                continue

            if fetched is None:
                logger.warning(
                    "Remote file missing while polling",
                    extra={"remote_name": handle.name, "attempt": attempt}
                )
                continue

            current = fetched
            logger.debug(
                "Polled remote file",
                extra={"remote_name": handle.name, "attempt": attempt, "state": current.state.value}
            )

            if current.state is FileState.ACTIVE:
                logger.info(
                    "Remote file is active",
                    extra={"remote_name": handle.name, "attempts": attempt}
                )
                return current

            if current.state is FileState.FAILED:
                raise RemoteProcessingFailedError(
                    "Remote processing failed",
                    details={"name": handle.name},
                )

        raise RemoteProcessingTimeoutError(
            f"File did not become active after {self._max_attempts} checks",
            details={"name": handle.name, "last_state": current.state.value},
        )

    async def get_usable(self, name: str) -> RemoteFileHandle:
        """Fetch a handle for reuse. It must exist and be ACTIVE."""
        handle = await self._store.get(name)
        if handle is None:
            raise RemoteFileNotFoundError(
                "Remote file not found. It may have expired; download the video again.",
                details={"name": name, "needs_redownload": True},
            )
        if handle.state is FileState.FAILED:
            raise RemoteFileNotFoundError(
                "Remote processing failed for this file; download the video again.",
                details={"name": name, "needs_redownload": True},
            )
        if not handle.is_active:
            raise RemoteFileNotReadyError(
                f"Remote file is not ready (state: {handle.state.value})",
                details={"name": name, "state": handle.state.value},
            )
        return handle

    async def get(self, name: str) -> Optional[RemoteFileHandle]:
        return await self._store.get(name)

    async def list_files(self, page_size: Optional[int] = None) -> list[RemoteFileHandle]:
        return list(await self._store.list(page_size=page_size or self._page_size))

    async def delete(self, name: str) -> None:
        await self._store.delete(name)
        logger.info("Deleted remote file", extra={"remote_name": name})

    async def upload_reference(
        self,
        path: Path,
        mime_type: str,
        display_name: str,
    ) -> RemoteFileHandle:
        """Upload a caller-supplied reference file. No dedup."""
        return await self._store.upload(path, mime_type=mime_type, display_name=display_name)


def _check_cancelled(cancel_event: Optional[asyncio.Event], handle: RemoteFileHandle) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise RegistrationCancelledError(
            "Wait for remote file was cancelled",
            details={"name": handle.name},
        )


def _discard_staged_file(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
        logger.info("Removed staged upload file", extra={"path": str(path)})
    except OSError as e:
        logger.warning(
            "Failed to remove staged upload file",
            extra={"path": str(path), "error": str(e)}
        )
