# Vault API - Credential endpoints
#
# The vault is addressed by the X-Owner-Id header. Every call carries the
# master password: nothing stays unlocked between requests.

from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from .security import get_owner_id, verify_session_token
from .services import get_vault_manager, result_or_raise

router = APIRouter(prefix="/api/vault", tags=["vault"])


# Request Models
class EntryModel(BaseModel):
    site: str
    username: str
    secret: str
    notes: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class PassphraseRequest(BaseModel):
    passphrase: str


class SaveVaultRequest(PassphraseRequest):
    entries: List[EntryModel] = Field(default_factory=list)


class AddEntryRequest(PassphraseRequest):
    site: str
    username: str
    secret: str
    notes: Optional[str] = None


class UpdateEntryRequest(PassphraseRequest):
    site: Optional[str] = None
    username: Optional[str] = None
    secret: Optional[str] = None
    notes: Optional[str] = None


class SearchRequest(PassphraseRequest):
    query: str = ""


class ChangePassphraseRequest(BaseModel):
    old_passphrase: str
    new_passphrase: str


class ImportRequest(PassphraseRequest):
    data: str


# Endpoints

@router.post("/save")
async def save_vault(
    request: SaveVaultRequest,
    owner_id: str = Depends(get_owner_id),
    token: str = Depends(verify_session_token),
):
    """
    Replace the owner's vault with the given entries.

    The response carries the ledger block that attests the new ciphertext.
    """
    entries = [e.model_dump(exclude_none=True) for e in request.entries]
    result = await get_vault_manager().save(owner_id, request.passphrase, entries)
    return result_or_raise(result)


@router.post("/load")
async def load_vault(
    request: PassphraseRequest,
    owner_id: str = Depends(get_owner_id),
    token: str = Depends(verify_session_token),
):
    """
    Decrypt the owner's vault.

    Integrity problems do not fail the request: check ``integrity_warning``
    and ``verification`` in the body.
    """
    result = await get_vault_manager().load(owner_id, request.passphrase)
    return result_or_raise(result)


@router.post("/entries")
async def add_entry(
    request: AddEntryRequest,
    owner_id: str = Depends(get_owner_id),
    token: str = Depends(verify_session_token),
):
    result = await get_vault_manager().add_entry(
        owner_id,
        request.passphrase,
        site=request.site,
        username=request.username,
        secret=request.secret,
        notes=request.notes,
    )
    return result_or_raise(result)


@router.patch("/entries/{entry_id}")
async def update_entry(
    entry_id: str,
    request: UpdateEntryRequest,
    owner_id: str = Depends(get_owner_id),
    token: str = Depends(verify_session_token),
):
    """Update only the fields present in the body."""
    changes = request.model_dump(exclude_none=True, exclude={"passphrase"})
    result = await get_vault_manager().update_entry(owner_id, request.passphrase, entry_id, **changes)
    return result_or_raise(result)


@router.delete("/entries/{entry_id}")
async def delete_entry(
    entry_id: str,
    request: PassphraseRequest,
    owner_id: str = Depends(get_owner_id),
    token: str = Depends(verify_session_token),
):
    result = await get_vault_manager().delete_entry(owner_id, request.passphrase, entry_id)
    return result_or_raise(result)


@router.post("/search")
async def search_vault(
    request: SearchRequest,
    owner_id: str = Depends(get_owner_id),
    token: str = Depends(verify_session_token),
):
    result = await get_vault_manager().search(owner_id, request.passphrase, request.query)
    return result_or_raise(result)


@router.post("/change-passphrase")
async def change_passphrase(
    request: ChangePassphraseRequest,
    owner_id: str = Depends(get_owner_id),
    token: str = Depends(verify_session_token),
):
    result = await get_vault_manager().change_passphrase(
        owner_id, request.old_passphrase, request.new_passphrase
    )
    return result_or_raise(result)


@router.post("/export")
async def export_vault(
    request: PassphraseRequest,
    owner_id: str = Depends(get_owner_id),
    token: str = Depends(verify_session_token),
):
    """Decrypted JSON export. The response contains every secret in plaintext."""
    result = await get_vault_manager().export_vault(owner_id, request.passphrase)
    return result_or_raise(result)


@router.post("/import")
async def import_vault(
    request: ImportRequest,
    owner_id: str = Depends(get_owner_id),
    token: str = Depends(verify_session_token),
):
    result = await get_vault_manager().import_vault(owner_id, request.passphrase, request.data)
    return result_or_raise(result)
