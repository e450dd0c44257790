"""
Gemini Files API wrapper.

Implements the RemoteFileStore protocol from core.registry. The
google-generativeai SDK is synchronous, so every call runs in a worker
thread. SDK file objects are translated to RemoteFileHandle at this
boundary; nothing past it sees SDK types.
"""

import asyncio
import itertools
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Iterable, Optional

from ...core.content.models import FileState, RemoteFileHandle
from ...core.errors import ConfigurationError, RemoteStoreError
from ...core.registry import RemoteFileStore

logger = logging.getLogger(__name__)

# Gemini deletes uploaded files after 48 hours.
REMOTE_FILE_TTL = timedelta(hours=48)


def handle_from_sdk(file: Any) -> RemoteFileHandle:
    """Translate a google.generativeai File into our handle type."""
    return RemoteFileHandle(
        name=file.name,
        uri=file.uri,
        display_name=getattr(file, "display_name", "") or "",
        state=FileState.parse(getattr(file, "state", None)),
        mime_type=getattr(file, "mime_type", "") or "",
        size_bytes=int(getattr(file, "size_bytes", 0) or 0),
        create_time=getattr(file, "create_time", None),
        expiration_time=getattr(file, "expiration_time", None),
    )


class GeminiFileStore:
    """
    Remote file store backed by the Gemini Files API.

    Files that don't exist (or have expired) come back from get() as None.
    Gemini answers 403 rather than 404 for files it no longer knows, so
    both are treated as missing.
    """

    def __init__(self, api_key: str) -> None:
        if not api_key:
            raise ConfigurationError("GEMINI_API_KEY is required for the Gemini file store")

        import google.generativeai as genai
        from google.api_core import exceptions as google_exceptions

        genai.configure(api_key=api_key)
        self._genai = genai
        self._missing_errors = (google_exceptions.NotFound, google_exceptions.PermissionDenied)
        logger.info("Gemini file store initialized")

    async def _call(self, operation: str, func, *args, **kwargs):
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except Exception as e:
            logger.error(
                "Gemini Files API call failed",
                extra={"operation": operation, "error": str(e)}
            )
            raise RemoteStoreError(
                f"Gemini Files API {operation} failed: {e}",
                details={"operation": operation},
            ) from e

    async def upload(self, path: Path, mime_type: str, display_name: str) -> RemoteFileHandle:
        file = await self._call(
            "upload",
            self._genai.upload_file,
            str(path),
            mime_type=mime_type,
            display_name=display_name,
        )
        return handle_from_sdk(file)

    async def get(self, name: str) -> Optional[RemoteFileHandle]:
        try:
            file = await asyncio.to_thread(self._genai.get_file, name)
        except self._missing_errors:
            return None
        except Exception as e:
            raise RemoteStoreError(
                f"Gemini Files API get failed: {e}",
                details={"operation": "get", "remote_name": name},
            ) from e
        return handle_from_sdk(file)

    async def list(self, page_size: int = 50) -> Iterable[RemoteFileHandle]:
        # list_files pages lazily; drain it inside the worker thread
        files = await self._call(
            "list",
            lambda: list(self._genai.list_files(page_size=page_size)),
        )
        return [handle_from_sdk(f) for f in files]

    async def delete(self, name: str) -> None:
        await self._call("delete", self._genai.delete_file, name)


class InMemoryFileStore:
    """
    In-memory stand-in for the Gemini Files API.

    Uploads start PROCESSING and become ACTIVE after `activate_after` calls
    to get(), which is enough to exercise the polling path locally. Not
    suitable for production, but perfect for development and testing.
    """

    def __init__(self, activate_after: int = 1) -> None:
        self._files: dict[str, RemoteFileHandle] = {}
        self._polls: dict[str, int] = {}
        self._counter = itertools.count(1)
        self._activate_after = activate_after
        self.upload_count = 0
        logger.info("Initialized in-memory file store")

    async def upload(self, path: Path, mime_type: str, display_name: str) -> RemoteFileHandle:
        path = Path(path)
        if not path.is_file():
            raise RemoteStoreError(f"File to upload does not exist: {path}")

        name = f"files/mock-{next(self._counter):06d}"
        now = datetime.now(timezone.utc)
        handle = RemoteFileHandle(
            name=name,
            uri=f"https://generativelanguage.googleapis.com/v1beta/{name}",
            display_name=display_name,
            state=FileState.ACTIVE if self._activate_after <= 0 else FileState.PROCESSING,
            mime_type=mime_type,
            size_bytes=path.stat().st_size,
            create_time=now,
            expiration_time=now + REMOTE_FILE_TTL,
        )
        self._files[name] = handle
        self._polls[name] = 0
        self.upload_count += 1
        return handle

    async def get(self, name: str) -> Optional[RemoteFileHandle]:
        handle = self._files.get(name)
        if handle is None:
            return None
        self._polls[name] += 1
        if handle.state is FileState.PROCESSING and self._polls[name] >= self._activate_after:
            handle.state = FileState.ACTIVE
        return handle

    async def list(self, page_size: int = 50) -> Iterable[RemoteFileHandle]:
        return list(self._files.values())

    async def delete(self, name: str) -> None:
        if self._files.pop(name, None) is None:
            raise RemoteStoreError(f"File not found: {name}")
        self._polls.pop(name, None)


def create_file_store(api_key: str = "", mock_mode: bool = False) -> RemoteFileStore:
    """Factory: Gemini Files API, or the in-memory store in mock mode."""
    if mock_mode:
        return InMemoryFileStore()
    return GeminiFileStore(api_key)
