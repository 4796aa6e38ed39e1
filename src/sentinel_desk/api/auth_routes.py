# Auth API - Master password endpoints

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from .security import get_owner_id, verify_session_token
from .services import get_auth, result_or_raise

router = APIRouter(prefix="/api/auth", tags=["auth"])


class PasswordRequest(BaseModel):
    password: str


class ChangePasswordRequest(BaseModel):
    old_password: str
    new_password: str


@router.post("/register")
async def register(
    request: PasswordRequest,
    owner_id: str = Depends(get_owner_id),
    token: str = Depends(verify_session_token),
):
    """First-time setup of the owner's master password."""
    return result_or_raise(await get_auth().register(owner_id, request.password))


@router.post("/verify")
async def verify(
    request: PasswordRequest,
    owner_id: str = Depends(get_owner_id),
    token: str = Depends(verify_session_token),
):
    """
    Check the master password.

    ``ledger_verified`` is false when the stored hash is not attested on a
    valid ledger. Login still succeeds.
    """
    return result_or_raise(await get_auth().verify(owner_id, request.password))


@router.get("/status")
async def status(
    owner_id: str = Depends(get_owner_id),
    token: str = Depends(verify_session_token),
):
    return {"registered": await get_auth().has_master_password(owner_id)}


@router.post("/change")
async def change(
    request: ChangePasswordRequest,
    owner_id: str = Depends(get_owner_id),
    token: str = Depends(verify_session_token),
):
    result = await get_auth().change(owner_id, request.old_password, request.new_password)
    return result_or_raise(result)


@router.get("/info")
async def info(
    owner_id: str = Depends(get_owner_id),
    token: str = Depends(verify_session_token),
):
    return await get_auth().info(owner_id)


@router.post("/reset")
async def reset(
    owner_id: str = Depends(get_owner_id),
    token: str = Depends(verify_session_token),
):
    """Delete the master password record. Vault contents are kept."""
    return result_or_raise(await get_auth().reset(owner_id))
