"""
Services package for Talk With Doc.

This package contains the provider, storage and error handling services.
"""

from .constants import DEFAULTS
from .constants import ERROR_CODES
from .constants import get_timeout
from .error_handler import GenerationError
from .error_handler import ProviderError
from .error_handler import StorageError
from .error_handler import TranscriptionError
from .error_handler import handle_error
from .provider_pool import ProviderPool
from .storage import ConversationStore
from .storage import InMemoryConversationStore

__all__ = [
    "DEFAULTS",
    "ERROR_CODES",
    "get_timeout",
    "ProviderError",
    "TranscriptionError",
    "GenerationError",
    "StorageError",
    "handle_error",
    "ProviderPool",
    "ConversationStore",
    "InMemoryConversationStore",
]
