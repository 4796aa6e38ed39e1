# Ledger Module - Tamper-Evident Vault Attestation
#
# Per-owner hash chain with proof-of-work blocks.
# Each saved vault ciphertext is fingerprinted and recorded on the chain.

from .chain import Ledger, LedgerBlock, calculate_hash
from .integrity_ledger import IntegrityLedger, LedgerVerification

__all__ = [
    "Ledger",
    "LedgerBlock",
    "LedgerVerification",
    "IntegrityLedger",
    "calculate_hash",
]
