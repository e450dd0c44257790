"""
Content generation logic.

Contains the domain models, prompt templates, the content orchestrator
and the screenshot extraction engine.
"""

from .models import (
    CapturedImageGroup,
    ContentArtifact,
    FileState,
    LocalAsset,
    MetadataArtifact,
    References,
    ReferenceFile,
    RemoteFileHandle,
    ScreenshotSpec,
    VideoSource,
)
from .frames import FrameExtractionEngine
from .orchestrator import ContentOrchestrator

__all__ = [
    "CapturedImageGroup",
    "ContentArtifact",
    "FileState",
    "LocalAsset",
    "MetadataArtifact",
    "References",
    "ReferenceFile",
    "RemoteFileHandle",
    "ScreenshotSpec",
    "VideoSource",
    "FrameExtractionEngine",
    "ContentOrchestrator",
]
