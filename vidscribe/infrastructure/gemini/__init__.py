"""
Gemini API wrappers.

Implements the RemoteFileStore protocol from core.registry and the
GenerativeModelClient protocol from core.content.orchestrator.
"""

from .files import GeminiFileStore, InMemoryFileStore, create_file_store
from .model import GeminiModelClient, MockModelClient, create_model_client

__all__ = [
    "GeminiFileStore",
    "InMemoryFileStore",
    "create_file_store",
    "GeminiModelClient",
    "MockModelClient",
    "create_model_client",
]
