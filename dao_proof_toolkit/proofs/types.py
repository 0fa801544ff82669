"""
Type definitions for balance proofs.
"""

from dataclasses import dataclass
from typing import List, Optional, TypedDict

# =============================================================================
# RPC PAYLOAD TYPES (shape of eth_getProof, hex encoded)
# =============================================================================


class RpcStorageProof(TypedDict):
    """One entry of ``storageProof`` in an eth_getProof response."""

    key: str  # Requested storage slot key
    value: str  # Claimed slot value (hex quantity)
    proof: List[str]  # RLP encoded trie nodes, root first


class RpcAccountProof(TypedDict):
    """eth_getProof response."""

    address: str  # Contract address
    accountProof: List[str]  # RLP encoded state trie nodes, root first
    balance: str  # Claimed ether balance
    codeHash: str  # Claimed code hash
    nonce: str  # Claimed nonce
    storageHash: str  # Claimed storage root
    storageProof: List[RpcStorageProof]


# =============================================================================
# VERIFIED TYPES
# =============================================================================


@dataclass(frozen=True)
class BlockHeader:
    """Trusted verification root of one block."""

    number: int
    hash: bytes
    state_root: bytes

    def __post_init__(self):
        if len(self.hash) != 32:
            raise ValueError("Block hash must be 32 bytes")
        if len(self.state_root) != 32:
            raise ValueError("State root must be 32 bytes")
        if self.number < 0:
            raise ValueError("Block number must be non-negative")

    @classmethod
    def from_rpc_block(cls, block) -> "BlockHeader":
        """Build a header after checking the block hash; see block_header."""
        from dao_proof_toolkit.proofs.block_header import verify_block_header

        return verify_block_header(block)


@dataclass(frozen=True)
class StorageSlotClaim:
    """A storage value proven against a block's state root."""

    holder: str  # Checksum address of the token holder
    contract: str  # Checksum address of the token contract
    slot_index: int  # Declared mapping slot
    value: int  # Proven balance, or 1/0 ownership for ERC-721 claims
    block_number: int
    block_hash: bytes
    token_id: Optional[int] = None  # Set for ERC-721 ownership claims

    def to_dict(self) -> dict:
        out = {
            "holder": self.holder,
            "contract": self.contract,
            "slot_index": self.slot_index,
            "value": str(self.value),
            "block_number": self.block_number,
            "block_hash": "0x" + self.block_hash.hex(),
        }
        if self.token_id is not None:
            out["token_id"] = self.token_id
        return out
