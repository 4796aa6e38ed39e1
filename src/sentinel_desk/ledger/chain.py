"""Hash-chained, proof-of-work ledger blocks.

Each block commits to its own fields and to the previous block's hash, and
its hash must start with ``difficulty`` hex zeros. Changing any field of any
block (or reordering blocks) breaks either that block's self-hash or the
link from the block after it.

Blocks are immutable values. ``Ledger`` never mutates in place: ``append``
returns a new ledger, which the caller persists as one unit.
"""

import hashlib
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from ..config import MAX_LEDGER_DIFFICULTY

GENESIS_PREVIOUS_HASH = "0"
GENESIS_DATA = "Genesis Block"


def calculate_hash(data: str) -> str:
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class LedgerBlock:
    """One entry in the chain"""
    index: int
    timestamp: str
    data_hash: str
    previous_hash: str
    nonce: int
    hash: str

    @staticmethod
    def compute_hash(index: int, timestamp: str, data_hash: str, previous_hash: str, nonce: int) -> str:
        return calculate_hash(f"{index}{timestamp}{data_hash}{previous_hash}{nonce}")

    def recompute_hash(self) -> str:
        return self.compute_hash(
            self.index, self.timestamp, self.data_hash, self.previous_hash, self.nonce
        )

    @classmethod
    def mine(
        cls,
        index: int,
        data_hash: str,
        previous_hash: str,
        difficulty: int,
        timestamp: Optional[str] = None,
    ) -> "LedgerBlock":
        """Search nonces until the block hash meets the difficulty target."""
        timestamp = timestamp or datetime.now(timezone.utc).isoformat()
        target = "0" * difficulty
        nonce = 0
        while True:
            block_hash = cls.compute_hash(index, timestamp, data_hash, previous_hash, nonce)
            if block_hash.startswith(target):
                return cls(index, timestamp, data_hash, previous_hash, nonce, block_hash)
            nonce += 1

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LedgerBlock":
        return cls(
            index=int(data["index"]),
            timestamp=str(data["timestamp"]),
            data_hash=str(data["data_hash"]),
            previous_hash=str(data["previous_hash"]),
            nonce=int(data["nonce"]),
            hash=str(data["hash"]),
        )


class Ledger:
    """An owner's chain of blocks plus its difficulty."""

    def __init__(self, blocks: Iterable[LedgerBlock], difficulty: int = 2):
        self._blocks: List[LedgerBlock] = list(blocks)
        self.difficulty = difficulty

    @classmethod
    def genesis(cls, difficulty: int = 2) -> "Ledger":
        block = LedgerBlock.mine(0, GENESIS_DATA, GENESIS_PREVIOUS_HASH, difficulty)
        return cls([block], difficulty)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Ledger":
        """Rebuild a ledger from its stored form (difficulty + block list)."""
        return cls(
            (LedgerBlock.from_dict(b) for b in record.get("blocks", [])),
            int(record.get("difficulty", 2)),
        )

    def to_record(self) -> Dict[str, Any]:
        return {"difficulty": self.difficulty, "blocks": [b.to_dict() for b in self._blocks]}

    @property
    def blocks(self) -> List[LedgerBlock]:
        return list(self._blocks)

    @property
    def tip(self) -> LedgerBlock:
        if not self._blocks:
            raise IndexError("Ledger has no blocks")
        return self._blocks[-1]

    def __len__(self) -> int:
        return len(self._blocks)

    def __iter__(self):
        return iter(self._blocks)

    def find(self, data_hash: str) -> Optional[LedgerBlock]:
        for block in self._blocks:
            if block.data_hash == data_hash:
                return block
        return None

    def mine_next(self, data_hash: str) -> LedgerBlock:
        tip = self.tip
        return LedgerBlock.mine(tip.index + 1, data_hash, tip.hash, self.difficulty)

    def append(self, block: LedgerBlock) -> "Ledger":
        return Ledger(self._blocks + [block], self.difficulty)

    def validate(self) -> Optional[str]:
        """Return a description of the first problem found, or None."""
        if not self._blocks:
            return "Ledger is empty"
        if not 1 <= self.difficulty <= MAX_LEDGER_DIFFICULTY:
            return f"Ledger difficulty {self.difficulty} is out of range"

        target = "0" * self.difficulty
        genesis = self._blocks[0]
        if genesis.index != 0 or genesis.previous_hash != GENESIS_PREVIOUS_HASH:
            return "Genesis block is malformed"

        for i, block in enumerate(self._blocks):
            if block.index != i:
                return f"Block {i} has index {block.index}"
            if block.hash != block.recompute_hash():
                return f"Block {i} has invalid hash"
            if not block.hash.startswith(target):
                return f"Block {i} doesn't meet difficulty requirement"
            if i > 0 and block.previous_hash != self._blocks[i - 1].hash:
                return f"Block {i} has broken chain link"
        return None

    def is_valid(self) -> bool:
        return self.validate() is None
