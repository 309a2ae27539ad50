"""Pydantic models for Talk With Doc."""

from talk_with_doc.app.schemas.requests import DocumentCreateRequest
from talk_with_doc.app.schemas.requests import SessionCreateRequest
from talk_with_doc.app.schemas.websocket import InboundMessage
from talk_with_doc.app.schemas.websocket import parse_inbound

__all__ = [
    "DocumentCreateRequest",
    "SessionCreateRequest",
    "InboundMessage",
    "parse_inbound",
]
