"""
Request models for the Talk With Doc API.

This module defines Pydantic models for API request validation. Missing or
blank fields are rejected by the endpoints with a 400.
"""

from pydantic import BaseModel


class DocumentCreateRequest(BaseModel):
    """Request model for document creation."""

    doc_text: str = ""


class SessionCreateRequest(BaseModel):
    """Request model for session creation."""

    user_id: str = ""
    document_id: str = ""
