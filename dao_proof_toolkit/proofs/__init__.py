from dao_proof_toolkit.proofs.account import Account, decode_account
from dao_proof_toolkit.proofs.attestation import (
    attest_balance,
    attest_ownership,
    verify_slot_balance,
)
from dao_proof_toolkit.proofs.payload import ProofPayload
from dao_proof_toolkit.proofs.storage_keys import derive_balance_slot_key
from dao_proof_toolkit.proofs.trie import verify_proof
from dao_proof_toolkit.proofs.types import BlockHeader, StorageSlotClaim

__all__ = [
    "Account",
    "BlockHeader",
    "ProofPayload",
    "StorageSlotClaim",
    "attest_balance",
    "attest_ownership",
    "decode_account",
    "derive_balance_slot_key",
    "verify_proof",
    "verify_slot_balance",
]
