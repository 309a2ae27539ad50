"""
System API endpoints for Talk With Doc.

This module provides the health check endpoint.
"""

import logging
from datetime import datetime

from fastapi import APIRouter
from fastapi import Request
from fastapi.responses import JSONResponse

from talk_with_doc import __version__

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check(request: Request):
    """Health check endpoint."""
    store = getattr(request.app.state, "store", None)
    connection_manager = getattr(request.app.state, "connection_manager", None)

    storage_ok = False
    if store is not None:
        try:
            storage_ok = await store.ping()
        except Exception as e:
            logger.error(f"Storage health check failed: {str(e)}")

    content = {
        "status": "ok" if storage_ok else "error",
        "storage": "ok" if storage_ok else "unavailable",
        "connections": len(connection_manager) if connection_manager is not None else 0,
        "version": __version__,
        "timestamp": datetime.now().isoformat(),
    }
    if not storage_ok:
        return JSONResponse(status_code=503, content=content)
    return content
