"""
Balance attestation.

Turns an untrusted eth_getProof payload into a trusted StorageSlotClaim by
walking two Merkle-Patricia proofs against the same block header:

1. the account proof, rooted at ``header.state_root`` and keyed by
   ``keccak256(contract)``, proves the contract's storage root;
2. the storage proof, rooted at that storage root and keyed by
   ``keccak256(balance_slot_key)``, proves the holder's balance.

ERC-721 ownership is attested the same way against the ``owners[token_id]``
slot. Absence of the slot is a valid proof of a zero balance (or of no
owner). Everything else that goes wrong aborts the attestation; there is no
partial success.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from eth_utils import to_checksum_address

from dao_proof_toolkit.proofs import rlp_codec
from dao_proof_toolkit.proofs.account import Account, decode_account
from dao_proof_toolkit.proofs.payload import ProofPayload, StorageProofEntry
from dao_proof_toolkit.proofs.storage_keys import (
    account_trie_key,
    derive_balance_slot_key,
    derive_ownership_slot_key,
    derive_packed_slot_key,
    storage_trie_key,
)
from dao_proof_toolkit.proofs.trie import verify_proof
from dao_proof_toolkit.proofs.types import BlockHeader, StorageSlotClaim
from dao_proof_toolkit.shared.exceptions import (
    AttestError,
    MalformedRlp,
    ProofError,
)
from dao_proof_toolkit.shared.logging import get_logger

_logger = get_logger(__name__)

ProofInput = Union[ProofPayload, Mapping[str, Any]]


def prove_account(
    header: BlockHeader, contract: str, account_proof
) -> Account:
    """Verify an account proof and decode the proven account."""
    try:
        value = verify_proof(
            header.state_root, account_trie_key(contract), account_proof
        )
    except ProofError as e:
        raise AttestError(f"Account proof rejected: {e.message}", e) from e

    if value is None:
        raise AttestError(
            f"Account {contract} does not exist at block {header.number}"
        )

    try:
        return decode_account(value)
    except MalformedRlp as e:
        raise AttestError(f"Proven account is malformed: {e.message}", e) from e


def prove_storage_value(
    storage_root: bytes, slot_key: bytes, storage_proof
) -> int:
    """Verify a storage proof and decode the proven scalar (0 if absent)."""
    try:
        value = verify_proof(
            storage_root, storage_trie_key(slot_key), storage_proof
        )
    except ProofError as e:
        raise AttestError(f"Storage proof rejected: {e.message}", e) from e

    if value is None:
        return 0

    try:
        proven = rlp_codec.decode_scalar(value)
    except MalformedRlp as e:
        raise AttestError(
            f"Proven storage value is malformed: {e.message}", e
        ) from e
    if proven.bit_length() > 256:
        raise AttestError("Proven storage value exceeds 32 bytes")
    return proven


def _check_claimed_account(payload: ProofPayload, account: Account):
    """Self-reported account fields must agree with the proven account."""
    mismatches = []
    if payload.balance is not None and payload.balance != account.balance:
        mismatches.append("balance")
    if payload.nonce is not None and payload.nonce != account.nonce:
        mismatches.append("nonce")
    if (
        payload.storage_hash is not None
        and payload.storage_hash != account.storage_root
    ):
        mismatches.append("storageHash")
    if payload.code_hash is not None and payload.code_hash != account.code_hash:
        mismatches.append("codeHash")
    if mismatches:
        raise AttestError(
            "Payload fields disagree with the proven account: "
            + ", ".join(mismatches)
        )


def _load_payload(proof: ProofInput, contract: str) -> ProofPayload:
    payload = ProofPayload.from_rpc(proof)
    if payload.address is not None and payload.address.lower() != contract.lower():
        raise AttestError(
            f"Payload proves {payload.address}, expected {contract}"
        )
    return payload


def _prove_entry(
    header: BlockHeader,
    contract: str,
    payload: ProofPayload,
    entry: StorageProofEntry,
    slot_key: bytes,
) -> int:
    """Prove the contract account, then the value stored under ``slot_key``."""
    account = prove_account(header, contract, payload.account_proof)
    _check_claimed_account(payload, account)
    _logger.debug(
        "Account %s proven at block %s, storage root 0x%s",
        contract,
        header.number,
        account.storage_root.hex(),
    )

    value = prove_storage_value(account.storage_root, slot_key, entry.proof)
    if entry.value is not None and entry.value != value:
        raise AttestError(
            f"Payload claims value {entry.value}, proof shows {value}"
        )
    return value


def attest_balance(
    header: BlockHeader,
    contract: str,
    holder: str,
    slot_index: int,
    proof: ProofInput,
) -> StorageSlotClaim:
    """
    Verify ``holder``'s token balance in ``contract`` at ``header``.

    Args:
        header: Trusted block header (its state root is the verification root)
        contract: Token contract address
        holder: Token holder address
        slot_index: Storage index of the contract's balances mapping
        proof: eth_getProof payload for ``contract`` containing a storage
            proof for the holder's balance slot

    Returns:
        StorageSlotClaim: the verified balance

    Raises:
        AttestError: if either proof or the payload is invalid
    """
    contract = to_checksum_address(contract)
    holder = to_checksum_address(holder)
    payload = _load_payload(proof, contract)

    slot_key = derive_balance_slot_key(holder, slot_index)
    entry = payload.find_storage_entry(slot_key)
    if entry is None:
        packed = payload.find_storage_entry(
            derive_packed_slot_key(holder, slot_index)
        )
        hint = " (payload uses a packed slot key)" if packed else ""
        raise AttestError(
            f"Payload has no storage proof for slot key 0x{slot_key.hex()}"
            + hint
        )

    value = _prove_entry(header, contract, payload, entry, slot_key)

    _logger.info(
        "Attested balance %s for %s in %s at block %s",
        value,
        holder,
        contract,
        header.number,
    )
    return StorageSlotClaim(
        holder=holder,
        contract=contract,
        slot_index=slot_index,
        value=value,
        block_number=header.number,
        block_hash=header.hash,
    )


def attest_ownership(
    header: BlockHeader,
    contract: str,
    holder: str,
    token_id: int,
    slot_index: int,
    proof: ProofInput,
) -> StorageSlotClaim:
    """
    Verify whether ``holder`` owns ERC-721 ``token_id`` at ``header``.

    The proven ``owners[token_id]`` word must hold an address. The claim's
    value is 1 when that address is ``holder`` and 0 otherwise, including
    when the token has no owner.
    """
    contract = to_checksum_address(contract)
    holder = to_checksum_address(holder)
    payload = _load_payload(proof, contract)

    slot_key = derive_ownership_slot_key(token_id, slot_index)
    entry = payload.find_storage_entry(slot_key)
    if entry is None:
        raise AttestError(
            f"Payload has no storage proof for token {token_id} "
            f"(slot key 0x{slot_key.hex()})"
        )

    word = _prove_entry(header, contract, payload, entry, slot_key)
    if word.bit_length() > 160:
        raise AttestError(
            f"Slot {slot_index} of {contract} does not hold an owner address"
        )
    owner = to_checksum_address(word.to_bytes(20, byteorder="big"))
    owned = word != 0 and owner == holder

    _logger.info(
        "Token %s of %s at block %s is owned by %s (holder %s)",
        token_id,
        contract,
        header.number,
        owner if word else "nobody",
        holder,
    )
    return StorageSlotClaim(
        holder=holder,
        contract=contract,
        slot_index=slot_index,
        value=1 if owned else 0,
        block_number=header.number,
        block_hash=header.hash,
        token_id=token_id,
    )


@dataclass(frozen=True)
class SlotCheck:
    """Outcome of checking a declared slot against an expected balance."""

    valid: bool
    slot_index: int
    proven_balance: Optional[int]
    expected_balance: int
    reason: str


def verify_slot_balance(
    header: BlockHeader,
    contract: str,
    holder: str,
    slot_index: int,
    proof: ProofInput,
    expected_balance: int,
) -> SlotCheck:
    """
    Check that a declared slot proves exactly ``expected_balance``.

    A mismatch usually means the declared slot is wrong for this token;
    accepting it would let an unrelated storage value act as voting power.
    """
    try:
        claim = attest_balance(header, contract, holder, slot_index, proof)
    except AttestError as e:
        return SlotCheck(
            valid=False,
            slot_index=slot_index,
            proven_balance=None,
            expected_balance=expected_balance,
            reason=f"Attestation failed: {e.message}",
        )

    if claim.value != expected_balance:
        _logger.warning(
            "Slot %s of %s proves %s, expected %s",
            slot_index,
            contract,
            claim.value,
            expected_balance,
        )
        return SlotCheck(
            valid=False,
            slot_index=slot_index,
            proven_balance=claim.value,
            expected_balance=expected_balance,
            reason=(
                f"Slot {slot_index} holds {claim.value}, "
                f"expected {expected_balance}"
            ),
        )

    return SlotCheck(
        valid=True,
        slot_index=slot_index,
        proven_balance=claim.value,
        expected_balance=expected_balance,
        reason=f"Slot {slot_index} holds the expected balance",
    )
