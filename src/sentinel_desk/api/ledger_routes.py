# Ledger API - Inspect, verify and reset an owner's integrity ledger

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ..exceptions import VaultError
from .security import get_owner_id, verify_session_token
from .services import get_ledger, get_locks, http_error

router = APIRouter(prefix="/api/ledger", tags=["ledger"])


class VerifyRequest(BaseModel):
    data_hash: str = Field(..., min_length=1)


@router.get("/info")
async def ledger_info(
    owner_id: str = Depends(get_owner_id),
    token: str = Depends(verify_session_token),
):
    """Block count, tip, validity and difficulty."""
    async with get_locks()(owner_id):
        try:
            return await get_ledger().info(owner_id)
        except VaultError as e:
            raise http_error(e)


@router.get("/chain")
async def ledger_chain(
    owner_id: str = Depends(get_owner_id),
    token: str = Depends(verify_session_token),
):
    async with get_locks()(owner_id):
        try:
            ledger = await get_ledger().get_chain(owner_id)
        except VaultError as e:
            raise http_error(e)
    return {"total_blocks": len(ledger), **ledger.to_record()}


@router.post("/verify")
async def ledger_verify(
    request: VerifyRequest,
    owner_id: str = Depends(get_owner_id),
    token: str = Depends(verify_session_token),
):
    """Look up a fingerprint and validate the whole chain."""
    async with get_locks()(owner_id):
        try:
            verification = await get_ledger().verify(owner_id, request.data_hash)
        except VaultError as e:
            raise http_error(e)
    return verification.to_dict()


@router.post("/reset")
async def ledger_reset(
    owner_id: str = Depends(get_owner_id),
    token: str = Depends(verify_session_token),
):
    """
    Discard the chain and start from genesis.

    Existing vault blobs will report "No proof found" until saved again.
    """
    async with get_locks()(owner_id):
        try:
            genesis = await get_ledger().reset(owner_id)
        except VaultError as e:
            raise http_error(e)
    return {"success": True, "message": "Ledger reset to genesis block", "genesis": genesis.to_dict()}
