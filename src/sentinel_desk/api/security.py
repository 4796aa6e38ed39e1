# API Security - Session token and owner context
#
# A random session token is generated when the backend starts. Every vault,
# auth and ledger route requires it in the X-Session-Token header, so other
# local processes cannot read the vault through the API.

import re
import secrets
from typing import Optional

from fastapi import Header, HTTPException, status

DEFAULT_OWNER_ID = "local"
_OWNER_ID_RE = re.compile(r"^[A-Za-z0-9_.@-]{1,128}$")

# Generated once per backend instance
_SESSION_TOKEN: Optional[str] = None


def initialize_session_token() -> str:
    """Generate a fresh 256-bit session token and return it."""
    global _SESSION_TOKEN
    _SESSION_TOKEN = secrets.token_urlsafe(32)
    return _SESSION_TOKEN


def get_session_token() -> str:
    """
    Raises:
        RuntimeError: If the token has not been initialized yet
    """
    if _SESSION_TOKEN is None:
        raise RuntimeError("Session token not initialized. Call initialize_session_token() first.")
    return _SESSION_TOKEN


async def verify_session_token(x_session_token: Optional[str] = Header(None)) -> str:
    """
    FastAPI dependency rejecting calls without the current session token.

    Raises:
        HTTPException: 503 before startup, 401 if missing or wrong
    """
    if _SESSION_TOKEN is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Session token not initialized",
        )
    if x_session_token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Session-Token header",
        )
    # Constant-time comparison
    if not secrets.compare_digest(x_session_token, _SESSION_TOKEN):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid session token",
        )
    return x_session_token


async def get_owner_id(x_owner_id: Optional[str] = Header(None)) -> str:
    """Owner whose vault a request addresses. Defaults to the local user."""
    if x_owner_id is None:
        return DEFAULT_OWNER_ID
    if not _OWNER_ID_RE.match(x_owner_id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid X-Owner-Id header",
        )
    return x_owner_id
