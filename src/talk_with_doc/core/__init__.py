"""Core configuration for Talk With Doc."""

from talk_with_doc.core.settings import Settings
from talk_with_doc.core.settings import VADConfig
from talk_with_doc.core.settings import get_settings
from talk_with_doc.core.settings import reload_settings

__all__ = ["Settings", "VADConfig", "get_settings", "reload_settings"]
