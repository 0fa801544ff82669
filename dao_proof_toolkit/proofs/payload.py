"""
Normalization of eth_getProof payloads.

Accepts the JSON-RPC shape (0x-prefixed hex strings, possibly odd-length
quantities) as well as web3's ``get_proof`` result (AttributeDict with
HexBytes and ints). Nothing in a payload is trusted; the claimed scalar
fields are kept only so they can be cross-checked against what the proof
actually shows.
"""

from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Union

from hexbytes import HexBytes
from web3.types import MerkleProof

from dao_proof_toolkit.proofs.types import RpcAccountProof
from dao_proof_toolkit.shared.exceptions import AttestError


def _to_bytes(value: Any, name: str) -> bytes:
    try:
        return bytes(HexBytes(value))
    except (TypeError, ValueError) as e:
        raise AttestError(f"Invalid hex in proof payload field '{name}'") from e


def _to_int(value: Any, name: str) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise AttestError(f"Invalid quantity in proof payload field '{name}'")
    if isinstance(value, int):
        return value
    if isinstance(value, (bytes, bytearray)):
        return int.from_bytes(value, byteorder="big")
    try:
        return int(str(value), 16)
    except ValueError as e:
        raise AttestError(
            f"Invalid quantity in proof payload field '{name}'"
        ) from e


@dataclass(frozen=True)
class StorageProofEntry:
    key: int
    value: Optional[int]
    proof: List[bytes] = field(default_factory=list)


@dataclass(frozen=True)
class ProofPayload:
    account_proof: List[bytes]
    storage_proof: List[StorageProofEntry]
    address: Optional[str] = None
    balance: Optional[int] = None
    nonce: Optional[int] = None
    code_hash: Optional[bytes] = None
    storage_hash: Optional[bytes] = None

    @classmethod
    def from_rpc(
        cls,
        proof: Union[
            "ProofPayload", RpcAccountProof, MerkleProof, Mapping[str, Any]
        ],
    ) -> "ProofPayload":
        """Build a payload from an eth_getProof response."""
        if isinstance(proof, ProofPayload):
            return proof
        if not isinstance(proof, Mapping):
            raise AttestError("Proof payload must be a mapping")
        if "accountProof" not in proof:
            raise AttestError("Proof payload has no accountProof")

        storage_entries = []
        for i, entry in enumerate(proof.get("storageProof") or []):
            if "key" not in entry:
                raise AttestError(f"storageProof[{i}] has no key")
            storage_entries.append(
                StorageProofEntry(
                    key=_to_int(entry["key"], f"storageProof[{i}].key"),
                    value=_to_int(
                        entry.get("value"), f"storageProof[{i}].value"
                    ),
                    proof=[
                        _to_bytes(node, f"storageProof[{i}].proof")
                        for node in entry.get("proof") or []
                    ],
                )
            )

        code_hash = proof.get("codeHash")
        storage_hash = proof.get("storageHash")
        address = proof.get("address")
        return cls(
            account_proof=[
                _to_bytes(node, "accountProof")
                for node in proof["accountProof"]
            ],
            storage_proof=storage_entries,
            address=str(address) if address is not None else None,
            balance=_to_int(proof.get("balance"), "balance"),
            nonce=_to_int(proof.get("nonce"), "nonce"),
            code_hash=(
                _to_bytes(code_hash, "codeHash")
                if code_hash is not None
                else None
            ),
            storage_hash=(
                _to_bytes(storage_hash, "storageHash")
                if storage_hash is not None
                else None
            ),
        )

    def find_storage_entry(self, slot_key: bytes) -> Optional[StorageProofEntry]:
        """Storage proof entry whose requested key equals ``slot_key``."""
        wanted = int.from_bytes(slot_key, byteorder="big")
        for entry in self.storage_proof:
            if entry.key == wanted:
                return entry
        return None
