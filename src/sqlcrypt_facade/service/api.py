"""
SQLCrypt facade REST API implementation.

This module exposes the query facade over HTTP. The process owns one
facade and therefore one database connection. Endpoints are plain
functions run in the server's worker threads; a lock admits one request
to the facade at a time.
"""

import logging
import threading
from typing import Any, Dict, List

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field
import uvicorn

from ..config import SQLCryptConfig
from ..query_facade import QueryFacade


logger = logging.getLogger(__name__)


class QueryPayload(BaseModel):
    """Payload for running a statement."""
    
    sql: str
    params: List[Any] = Field(default_factory=list)


class TransactionResponse(BaseModel):
    """Response for a transaction control request."""
    
    action: str
    success: bool


# Initialize the FastAPI app
app = FastAPI(
    title="SQLCrypt Facade",
    description="Transparent column-level encryption for parameterized SQL",
    version="0.1.0",
)

_facade: QueryFacade | None = None
_facade_lock = threading.Lock()


def get_facade() -> QueryFacade:
    """Get the process-wide facade, creating it from configuration on first use."""
    global _facade
    with _facade_lock:
        if _facade is None:
            _facade = QueryFacade.from_config()
    return _facade


@app.post("/query", response_model=Dict[str, Any])
def run_query(payload: QueryPayload, facade: QueryFacade = Depends(get_facade)) -> Dict[str, Any]:
    """
    Run a statement through the facade.
    
    Args:
        payload: SQL text and bound values
        facade: The query facade
        
    Returns:
        The query result contract
    """
    with _facade_lock:
        result = facade.query(payload.sql, payload.params)
    
    if not result.success and not SQLCryptConfig.is_dev_mode():
        # In production, do not echo database error details
        logger.info("Query failed; returning generic error to client")
        result = result.model_copy(update={"error": "Query failed"})
    
    return result.to_dict()


@app.post("/transaction/{action}", response_model=TransactionResponse)
def control_transaction(action: str, facade: QueryFacade = Depends(get_facade)) -> TransactionResponse:
    """
    Begin, commit or roll back a transaction on the facade's connection.
    
    Args:
        action: One of "begin", "commit" or "rollback"
        facade: The query facade
        
    Returns:
        Whether the driver accepted the request
    """
    handlers = {
        "begin": facade.begin_transaction,
        "commit": facade.commit,
        "rollback": facade.rollback,
    }
    if action not in handlers:
        raise HTTPException(status_code=404, detail=f"Unknown transaction action: {action}")
    
    with _facade_lock:
        success = handlers[action]()
    
    return TransactionResponse(action=action, success=success)


@app.get("/health")
def health_check() -> Dict[str, Any]:
    """
    Check the health of the service.
    
    Returns:
        Health status
    """
    return {
        "status": "ok",
        "mode": SQLCryptConfig.get("mode"),
        "encryption_enabled": SQLCryptConfig.is_encryption_enabled(),
    }


def start_api(host: str = "0.0.0.0", port: int = 8000, reload: bool = False) -> None:
    """
    Start the API server.
    
    Args:
        host: Host to bind to
        port: Port to bind to
        reload: Whether to enable auto-reload
    """
    uvicorn.run(
        "sqlcrypt_facade.service.api:app",
        host=host,
        port=port,
        reload=reload,
    )
