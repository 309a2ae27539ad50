"""
Conversation storage for documents, sessions and messages.

The store is a simple create/read collaborator. ``InMemoryConversationStore``
is the default implementation; anything satisfying ``ConversationStore`` can
be injected instead.
"""

import asyncio
import logging
import uuid
from datetime import datetime
from datetime import timezone
from typing import Optional
from typing import Protocol

from pydantic import BaseModel
from pydantic import Field

from talk_with_doc.services.error_handler import StorageError

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Document(BaseModel):
    """A document the user talks about."""

    id: str
    doc_text: str
    created_at: datetime = Field(default_factory=_now)


class Session(BaseModel):
    """A session linking a user to a document."""

    id: str
    user_id: str
    document_id: str
    created_at: datetime = Field(default_factory=_now)


class StoredMessage(BaseModel):
    """A persisted user or persona message."""

    id: str
    document_id: str
    sender: str
    text: str
    created_at: datetime = Field(default_factory=_now)


class ConversationStore(Protocol):
    """Persistence collaborator used by the REST surface and the voice session."""

    async def create_document(self, doc_text: str) -> Document: ...

    async def get_document(self, document_id: str) -> Optional[Document]: ...

    async def create_session(self, user_id: str, document_id: str) -> Session: ...

    async def get_session(self, session_id: str) -> Optional[Session]: ...

    async def save_message(self, document_id: str, sender: str, text: str) -> StoredMessage: ...

    async def list_messages(self, document_id: str) -> list[StoredMessage]: ...

    async def ping(self) -> bool: ...


class InMemoryConversationStore:
    """Process-local ConversationStore."""

    def __init__(self):
        self.documents: dict[str, Document] = {}
        self.sessions: dict[str, Session] = {}
        self.messages: dict[str, list[StoredMessage]] = {}
        self._lock = asyncio.Lock()

    async def create_document(self, doc_text: str) -> Document:
        document = Document(id=str(uuid.uuid4()), doc_text=doc_text)
        async with self._lock:
            self.documents[document.id] = document
        logger.info(f"Document created: {document.id} ({len(doc_text)} chars)")
        return document

    async def get_document(self, document_id: str) -> Optional[Document]:
        return self.documents.get(document_id)

    async def create_session(self, user_id: str, document_id: str) -> Session:
        if document_id not in self.documents:
            raise StorageError(f"Document not found: {document_id}")
        session = Session(id=str(uuid.uuid4()), user_id=user_id, document_id=document_id)
        async with self._lock:
            self.sessions[session.id] = session
        logger.info(f"Session created: {session.id} for document: {document_id}")
        return session

    async def get_session(self, session_id: str) -> Optional[Session]:
        return self.sessions.get(session_id)

    async def save_message(self, document_id: str, sender: str, text: str) -> StoredMessage:
        message = StoredMessage(
            id=str(uuid.uuid4()), document_id=document_id, sender=sender, text=text
        )
        async with self._lock:
            self.messages.setdefault(document_id, []).append(message)
        logger.debug(f"Message saved: {sender} -> '{text[:50]}'")
        return message

    async def list_messages(self, document_id: str) -> list[StoredMessage]:
        return list(self.messages.get(document_id, []))

    async def ping(self) -> bool:
        """Report whether the store is reachable."""
        return True
