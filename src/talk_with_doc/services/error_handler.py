"""
Error handling and user-friendly error message generation.

This module defines the exception types raised at the provider boundary and
turns any exception into a specific, human-readable status for the client.
"""

import logging
import re
import traceback
from enum import Enum
from typing import Any

from pydantic import ValidationError

from talk_with_doc.services.constants import ERROR_CODES

# Configure logging
logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """An external model provider call failed."""


class TranscriptionError(ProviderError):
    """Speech-to-text failed."""


class GenerationError(ProviderError):
    """Persona or routing generation failed."""


class StorageError(Exception):
    """The persistence collaborator failed."""


class ErrorCategory(Enum):
    """Error category enum."""

    TRANSPORT = "transport"  # Malformed messages, dropped connections
    VALIDATION = "validation"  # Messages that fail schema validation
    TRANSCRIPTION = "transcription"  # Speech-to-text failures
    GENERATION = "generation"  # Persona or routing model failures
    STORAGE = "storage"  # Persistence failures
    UNKNOWN = "unknown"  # Unknown errors


class ErrorHandler:
    """
    Categorizes errors and generates user-facing messages.

    Every category maps to a distinct message and an error code so the
    client can show a specific status and stay ready for a retry.
    """

    def __init__(self):
        """Initialize the error handler."""
        self.error_patterns = {
            ErrorCategory.TRANSPORT: [
                r"json.*decode",
                r"expecting value",
                r"websocket.*error",
                r"connection.*closed",
                r"invalid.*base64",
                r"incorrect padding",
            ],
            ErrorCategory.TRANSCRIPTION: [
                r"transcri",
                r"speech.*to.*text",
            ],
            ErrorCategory.GENERATION: [
                r"generation",
                r"completion",
                r"model.*not.*found",
            ],
            ErrorCategory.STORAGE: [
                r"storage",
                r"document.*not.*found",
                r"session.*not.*found",
            ],
        }

        self.user_messages = {
            ErrorCategory.TRANSPORT: "The message could not be read. Please try speaking again.",
            ErrorCategory.VALIDATION: "The message was not in the expected format.",
            ErrorCategory.TRANSCRIPTION: "Your speech could not be transcribed. Please try again.",
            ErrorCategory.GENERATION: "The voices could not respond right now. Please try again.",
            ErrorCategory.STORAGE: "The conversation could not be saved.",
            ErrorCategory.UNKNOWN: "An unexpected error occurred.",
        }

        self.error_codes = {
            ErrorCategory.TRANSPORT: ERROR_CODES["VALIDATION_ERROR"],
            ErrorCategory.VALIDATION: ERROR_CODES["VALIDATION_ERROR"],
            ErrorCategory.TRANSCRIPTION: ERROR_CODES["TRANSCRIPTION_ERROR"],
            ErrorCategory.GENERATION: ERROR_CODES["ORCHESTRATION_ERROR"],
            ErrorCategory.STORAGE: ERROR_CODES["STORAGE_ERROR"],
            ErrorCategory.UNKNOWN: ERROR_CODES["INTERNAL_ERROR"],
        }

    def categorize_error(self, error: Exception) -> ErrorCategory:
        """
        Categorize an error based on its type and message.

        Args:
            error: The exception to categorize

        Returns:
            ErrorCategory: The error category
        """
        if isinstance(error, ValidationError):
            return ErrorCategory.VALIDATION
        if isinstance(error, TranscriptionError):
            return ErrorCategory.TRANSCRIPTION
        if isinstance(error, ProviderError):
            return ErrorCategory.GENERATION
        if isinstance(error, StorageError):
            return ErrorCategory.STORAGE

        error_str = str(error).lower()
        error_type = type(error).__name__.lower()
        for category, patterns in self.error_patterns.items():
            for pattern in patterns:
                if re.search(pattern, error_str) or re.search(pattern, error_type):
                    return category

        if isinstance(error, ConnectionError | ValueError):
            return ErrorCategory.TRANSPORT

        return ErrorCategory.UNKNOWN

    def get_user_message(self, error: Exception) -> str:
        """Get a user-friendly error message for an exception."""
        return self.user_messages[self.categorize_error(error)]

    def get_error_code(self, error: Exception) -> str:
        """Get the wire error code for an exception."""
        return self.error_codes[self.categorize_error(error)]

    def log_error(
        self, error: Exception, context: dict[str, Any] | None = None, level: int = logging.ERROR
    ) -> None:
        """
        Log an error with context information.

        Args:
            error: The exception
            context: Additional context information
            level: Logging level
        """
        category = self.categorize_error(error)
        message = f"Error [{category.value}]: {type(error).__name__}: {str(error)}"
        if context:
            context_str = ", ".join(f"{k}={v}" for k, v in context.items())
            message += f" (Context: {context_str})"

        logger.log(level, message)
        logger.debug(f"Traceback for {message}:\n{traceback.format_exc()}")

    def handle_error(
        self,
        error: Exception,
        context: dict[str, Any] | None = None,
        log_level: int = logging.ERROR,
    ) -> dict[str, Any]:
        """
        Log the error and format the payload of an ``error`` event.

        Args:
            error: The exception
            context: Additional context information
            log_level: Logging level

        Returns:
            Dict[str, Any]: ``message`` and ``code`` for the client
        """
        self.log_error(error, context, log_level)
        return {"message": self.get_user_message(error), "code": self.get_error_code(error)}


# Global error handler instance
error_handler = ErrorHandler()


def handle_error(
    error: Exception,
    context: dict[str, Any] | None = None,
    log_level: int = logging.ERROR,
) -> dict[str, Any]:
    """
    Handle an error using the global error handler.

    Args:
        error: The exception
        context: Additional context information
        log_level: Logging level

    Returns:
        Dict[str, Any]: ``message`` and ``code`` for the client
    """
    return error_handler.handle_error(error=error, context=context, log_level=log_level)
