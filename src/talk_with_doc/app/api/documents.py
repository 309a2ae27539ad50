"""
Document and session API endpoints for Talk With Doc.

Thin create/read endpoints over the conversation store.
"""

from fastapi import APIRouter
from fastapi import Depends
from fastapi import HTTPException

from talk_with_doc.app.core.dependencies import get_store
from talk_with_doc.app.schemas.requests import DocumentCreateRequest
from talk_with_doc.app.schemas.requests import SessionCreateRequest
from talk_with_doc.services.error_handler import StorageError
from talk_with_doc.services.storage import ConversationStore

router = APIRouter()


@router.post("/documents", status_code=201)
async def create_document(
    request: DocumentCreateRequest, store: ConversationStore = Depends(get_store)
):
    """Store a document's extracted text."""
    if not request.doc_text.strip():
        raise HTTPException(status_code=400, detail="doc_text is required")

    document = await store.create_document(request.doc_text)
    return document


@router.get("/documents/{document_id}")
async def get_document(document_id: str, store: ConversationStore = Depends(get_store)):
    """Fetch a stored document."""
    document = await store.get_document(document_id)
    if document is None:
        raise HTTPException(status_code=404, detail=f"Document {document_id} not found")
    return document


@router.post("/sessions", status_code=201)
async def create_session(
    request: SessionCreateRequest, store: ConversationStore = Depends(get_store)
):
    """Open a session for a user on a document."""
    if not request.user_id.strip() or not request.document_id.strip():
        raise HTTPException(status_code=400, detail="user_id and document_id are required")

    try:
        session = await store.create_session(request.user_id, request.document_id)
    except StorageError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return session


@router.get("/sessions/{session_id}/messages")
async def list_session_messages(session_id: str, store: ConversationStore = Depends(get_store)):
    """List the conversation of the session's document, oldest first."""
    session = await store.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    return await store.list_messages(session.document_id)
