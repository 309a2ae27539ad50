"""API routers for Talk With Doc."""

from fastapi import APIRouter

from talk_with_doc.app.api.documents import router as documents_router
from talk_with_doc.app.api.system import router as system_router

# Create a combined router
api_router = APIRouter()

# Include domain-specific routers
api_router.include_router(system_router, tags=["system"])
api_router.include_router(documents_router, prefix="/api", tags=["documents"])

__all__ = ["api_router"]
