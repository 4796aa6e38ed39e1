# SentinelDesk - FastAPI Backend
#
# Local REST API over the vault, master password gate and integrity ledger.
# Binds to localhost; every data route requires the session token.

import logging

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..core import EventSeverity, EventType, get_audit_logger
from .auth_routes import router as auth_router
from .ledger_routes import router as ledger_router
from .security import get_session_token, initialize_session_token
from .vault_routes import router as vault_router

logger = logging.getLogger(__name__)

app = FastAPI(
    title="SentinelDesk API",
    description="Encrypted credential vault with an integrity ledger",
    version=__version__,
)

_allowed_origins = [
    "http://localhost:3000", "http://127.0.0.1:3000",
    "http://localhost:8000", "http://127.0.0.1:8000",
]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(vault_router)
app.include_router(auth_router)
app.include_router(ledger_router)


@app.on_event("startup")
async def startup_event():
    """Generate the session token for this backend instance."""
    initialize_session_token()
    logger.info("SentinelDesk API started")
    get_audit_logger().log_event(
        event_type=EventType.SYSTEM_START,
        severity=EventSeverity.INFO,
        message="SentinelDesk API started",
        details={"version": __version__},
    )


@app.on_event("shutdown")
async def shutdown_event():
    get_audit_logger().log_event(
        event_type=EventType.SYSTEM_STOP,
        severity=EventSeverity.INFO,
        message="SentinelDesk API stopped",
    )


@app.get("/api/session")
async def get_session():
    """
    Session token for the local frontend.

    Unprotected: the frontend needs it to authenticate. The token is random,
    changes every restart and the API only listens on localhost.
    """
    return {"session_token": get_session_token()}


@app.get("/api/health")
async def health():
    return {"status": "ok", "version": __version__}


def start_api_server(host: str = "127.0.0.1", port: int = 8000):
    """
    Start the FastAPI server.

    Args:
        host: Host to bind to (default: localhost only)
        port: Port to listen on
    """
    uvicorn.run(app, host=host, port=port, log_level="info")


if __name__ == "__main__":
    start_api_server()
