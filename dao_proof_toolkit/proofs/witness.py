"""
RLP witness bundles.

A witness packs everything a governance canister needs to re-run a balance
attestation (block, addresses, slot key, proven value and both proofs) into
a single RLP blob.
"""

from typing import Any, Mapping, Union

import rlp
from eth_utils import to_canonical_address, to_checksum_address
from rlp.exceptions import RLPException
from rlp.sedes import Binary, CountableList, big_endian_int, binary

from dao_proof_toolkit.proofs.attestation import attest_balance
from dao_proof_toolkit.proofs.payload import ProofPayload, StorageProofEntry
from dao_proof_toolkit.proofs.storage_keys import derive_balance_slot_key
from dao_proof_toolkit.proofs.types import BlockHeader
from dao_proof_toolkit.shared.exceptions import MalformedRlp

hash32 = Binary.fixed_length(32)
address20 = Binary.fixed_length(20)


class Witness(rlp.Serializable):
    fields = [
        ("block_hash", hash32),
        ("block_number", big_endian_int),
        ("holder", address20),
        ("contract", address20),
        ("storage_key", hash32),
        ("storage_value", big_endian_int),
        ("account_proof", CountableList(binary)),
        ("storage_proof", CountableList(binary)),
        ("chain_id", big_endian_int),
    ]

    def to_dict(self) -> dict:
        return {
            "block_hash": "0x" + self.block_hash.hex(),
            "block_number": self.block_number,
            "holder": to_checksum_address(self.holder),
            "contract": to_checksum_address(self.contract),
            "storage_key": "0x" + self.storage_key.hex(),
            "storage_value": str(self.storage_value),
            "account_proof": ["0x" + n.hex() for n in self.account_proof],
            "storage_proof": ["0x" + n.hex() for n in self.storage_proof],
            "chain_id": self.chain_id,
        }


def build_witness(
    header: BlockHeader,
    holder: str,
    contract: str,
    slot_index: int,
    proof: Union[ProofPayload, Mapping[str, Any]],
    chain_id: int,
) -> Witness:
    """
    Bundle an eth_getProof payload for the holder's balance slot.

    The payload is attested against ``header`` first and the witness carries
    the proven balance, so only verifying payloads can be bundled.

    Raises:
        AttestError: if the payload does not attest
    """
    payload = ProofPayload.from_rpc(proof)
    claim = attest_balance(header, contract, holder, slot_index, payload)
    slot_key = derive_balance_slot_key(holder, slot_index)
    entry = payload.find_storage_entry(slot_key)

    return Witness(
        block_hash=header.hash,
        block_number=header.number,
        holder=to_canonical_address(holder),
        contract=to_canonical_address(contract),
        storage_key=slot_key,
        storage_value=claim.value,
        account_proof=tuple(payload.account_proof),
        storage_proof=tuple(entry.proof),
        chain_id=chain_id,
    )


def encode_witness(witness: Witness) -> bytes:
    return rlp.encode(witness)


def decode_witness(data: bytes) -> Witness:
    """Decode a witness blob; strict like every other RLP input."""
    try:
        return rlp.decode(bytes(data), sedes=Witness)
    except RLPException as e:
        raise MalformedRlp(f"Invalid witness encoding: {e}") from e


def witness_to_payload(witness: Witness) -> ProofPayload:
    """Re-expand a witness into a payload accepted by attest_balance."""
    return ProofPayload(
        account_proof=list(witness.account_proof),
        storage_proof=[
            StorageProofEntry(
                key=int.from_bytes(witness.storage_key, "big"),
                value=witness.storage_value,
                proof=list(witness.storage_proof),
            )
        ],
        address=to_checksum_address(witness.contract),
    )
