"""
Constants and default values for Talk With Doc.

This module centralizes magic numbers, timeouts, and limits
to make them easier to configure and maintain.
"""

from typing import Any

DEFAULTS = {
    # WebSocket timeouts
    "ws_ack_timeout": 10.0,
    # Provider timeouts
    "provider_connect_timeout": 5.0,
    "provider_read_timeout": 60.0,
    "provider_write_timeout": 30.0,
    "provider_pool_timeout": 5.0,
    # Resource limits
    "max_message_bytes": 1_000_000,
    "max_audio_chunks": 4096,
    "max_history_messages": 10,
    "document_context_chars": 4000,
    "resume_user_window": 2,
    "max_persona_turns": 4,
    # Connection pool
    "max_connections": 10,
    "max_keepalive_connections": 5,
    "keepalive_expiry": 30.0,
    # Log rotation
    "log_backup_count": 7,
    "log_rotation": "midnight",
}

# Error codes carried by the "error" event
ERROR_CODES = {
    "VALIDATION_ERROR": "VALIDATION_ERROR",
    "NOT_INITIALIZED": "NOT_INITIALIZED",
    "TRANSCRIPTION_ERROR": "TRANSCRIPTION_ERROR",
    "ORCHESTRATION_ERROR": "ORCHESTRATION_ERROR",
    "STORAGE_ERROR": "STORAGE_ERROR",
    "INTERNAL_ERROR": "INTERNAL_ERROR",
}


def get_timeout(key: str, config: dict[str, Any] | None = None) -> float:
    """
    Get timeout value from config or defaults.

    Args:
        key: Timeout key
        config: Configuration dictionary

    Returns:
        float: Timeout value in seconds
    """
    if config and "timeouts" in config and key in config["timeouts"]:
        return float(config["timeouts"][key])
    default_value = DEFAULTS.get(key)
    if default_value is not None:
        return float(default_value)
    return 30.0
