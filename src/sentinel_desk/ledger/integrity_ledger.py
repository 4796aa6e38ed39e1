# Ledger - Integrity Ledger Service
#
# Tamper-evident attestation of vault ciphertexts, one chain per owner.
# The persisted chain is the source of truth: every call reloads it, and
# nothing is cached between calls, so a failed write leaves no trace.
#
# Appends use an optimistic tip check. If another writer extended the chain
# between our reload and our write, the append is retried once.

import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from ..config import MAX_LEDGER_DIFFICULTY, get_settings
from ..core import EventSeverity, EventType, get_audit_logger
from ..exceptions import LedgerConflictError, LedgerCorruptError
from ..store import VaultStore
from .chain import Ledger, LedgerBlock

logger = logging.getLogger(__name__)


@dataclass
class LedgerVerification:
    """Outcome of checking a fingerprint against an owner's ledger.

    ``found`` and ``chain_valid`` are independent: a tampered chain can
    still contain the right-looking entry.
    """
    found: bool
    chain_valid: bool
    block_index: Optional[int] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.found and self.chain_valid

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class IntegrityLedger:
    """
    Append/verify/reset operations over the per-owner chains in a VaultStore.

    Args:
        store: Persistence backend holding the chains
        difficulty: Leading hex zeros for newly created chains
            (default: from settings). Existing chains keep their own.
    """

    APPEND_ATTEMPTS = 2

    def __init__(self, store: VaultStore, difficulty: Optional[int] = None):
        if difficulty is None:
            difficulty = get_settings().ledger_difficulty
        if not 1 <= difficulty <= MAX_LEDGER_DIFFICULTY:
            raise ValueError(f"difficulty must be between 1 and {MAX_LEDGER_DIFFICULTY}")
        self.store = store
        self.difficulty = difficulty

    async def _read(self, owner_id: str) -> Optional[Ledger]:
        """Parse the owner's stored chain without writing anything. None if absent."""
        record = await asyncio.to_thread(self.store.get_chain, owner_id)
        if record is None:
            return None
        return self._parse(owner_id, record)

    async def _load(self, owner_id: str) -> Ledger:
        """Load the owner's chain, creating and persisting genesis on first use."""
        record = await asyncio.to_thread(self.store.get_chain, owner_id)
        if record is None:
            ledger = Ledger.genesis(self.difficulty)
            try:
                await asyncio.to_thread(
                    self.store.put_chain, owner_id, ledger.to_record(), ""
                )
            except LedgerConflictError:
                # Another writer created the chain first; use theirs.
                record = await asyncio.to_thread(self.store.get_chain, owner_id)
            else:
                logger.info("Created ledger for owner %s", owner_id)
                get_audit_logger().log_event(
                    event_type=EventType.LEDGER_CREATED,
                    severity=EventSeverity.INFO,
                    message="Ledger initialized with genesis block",
                    owner_id=owner_id,
                    details={"difficulty": self.difficulty},
                )
                return ledger

        return self._parse(owner_id, record)

    @staticmethod
    def _parse(owner_id: str, record: Dict[str, Any]) -> Ledger:
        try:
            ledger = Ledger.from_record(record)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise LedgerCorruptError(f"Stored ledger for {owner_id} is unreadable: {e}") from e
        if not len(ledger):
            raise LedgerCorruptError(f"Stored ledger for {owner_id} has no blocks")
        # Mining at an unbounded stored difficulty would never finish
        if not 1 <= ledger.difficulty <= MAX_LEDGER_DIFFICULTY:
            raise LedgerCorruptError(
                f"Stored ledger for {owner_id} has difficulty {ledger.difficulty} "
                f"outside 1..{MAX_LEDGER_DIFFICULTY}"
            )
        return ledger

    async def append(self, owner_id: str, data_hash: str) -> LedgerBlock:
        """
        Attest ``data_hash`` on the owner's chain.

        Idempotent: if a block already carries this hash it is returned
        unchanged and the chain does not grow.

        Raises:
            LedgerConflictError: The tip moved on both attempts
            LedgerCorruptError: The stored chain cannot be parsed
            PersistenceError: The chain could not be read or written
        """
        for attempt in range(1, self.APPEND_ATTEMPTS + 1):
            ledger = await self._load(owner_id)

            existing = ledger.find(data_hash)
            if existing is not None:
                logger.debug("Proof already exists at block %d", existing.index)
                return existing

            block = ledger.mine_next(data_hash)
            try:
                await asyncio.to_thread(
                    self.store.put_chain,
                    owner_id,
                    ledger.append(block).to_record(),
                    ledger.tip.hash,
                )
            except LedgerConflictError:
                get_audit_logger().log_event(
                    event_type=EventType.LEDGER_CONFLICT,
                    severity=EventSeverity.INVESTIGATE,
                    message=f"Ledger tip moved during append (attempt {attempt})",
                    owner_id=owner_id,
                )
                if attempt == self.APPEND_ATTEMPTS:
                    raise
                continue

            get_audit_logger().log_event(
                event_type=EventType.LEDGER_BLOCK_APPENDED,
                severity=EventSeverity.INFO,
                message=f"Proof stored at block {block.index}",
                owner_id=owner_id,
                details={"block_index": block.index, "nonce": block.nonce},
            )
            return block

    async def verify(self, owner_id: str, data_hash: str) -> LedgerVerification:
        """
        Validate the whole chain and look for ``data_hash``.

        ``found`` and ``chain_valid`` are reported independently. Read-only:
        an owner without a chain gets ``found=False, chain_valid=False``
        and nothing is written.
        """
        try:
            ledger = await self._read(owner_id)
        except LedgerCorruptError as e:
            return LedgerVerification(found=False, chain_valid=False, message=e.user_message)
        if ledger is None:
            return LedgerVerification(found=False, chain_valid=False, message="No ledger found")

        problem = ledger.validate()
        block = ledger.find(data_hash)

        if problem:
            message = f"Ledger integrity compromised: {problem}"
        elif block is None:
            message = "No proof found in ledger"
        else:
            message = f"Proof verified at block {block.index}"

        return LedgerVerification(
            found=block is not None,
            chain_valid=problem is None,
            block_index=block.index if block else None,
            message=message,
        )

    async def reset(self, owner_id: str) -> LedgerBlock:
        """Discard the owner's chain and start over from a fresh genesis block."""
        ledger = Ledger.genesis(self.difficulty)
        await asyncio.to_thread(self.store.put_chain, owner_id, ledger.to_record())

        logger.warning("Ledger for owner %s reset to genesis", owner_id)
        get_audit_logger().log_event(
            event_type=EventType.LEDGER_RESET,
            severity=EventSeverity.ALERT,
            message="Ledger reset to genesis block",
            owner_id=owner_id,
        )
        return ledger.tip

    async def get_chain(self, owner_id: str) -> Ledger:
        return await self._load(owner_id)

    async def info(self, owner_id: str) -> Dict[str, Any]:
        """Summary for display: size, tip, validity, difficulty."""
        ledger = await self._load(owner_id)
        problem = ledger.validate()
        return {
            "total_blocks": len(ledger),
            "latest_block": ledger.tip.to_dict(),
            "chain_valid": problem is None,
            "problem": problem,
            "difficulty": ledger.difficulty,
        }
