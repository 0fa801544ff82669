"""Storage slot key derivation"""

from eth_abi import encode
from eth_abi.packed import encode_packed
from eth_utils import to_checksum_address

from dao_proof_toolkit.proofs.hashing import keccak256


def derive_balance_slot_key(holder: str, slot_index: int) -> bytes:
    """
    Calculate the storage key of ``balances[holder]`` for a Solidity
    ``mapping(address => uint256)`` declared at ``slot_index``.

    Both operands are left-padded to 32 bytes before hashing
    (``keccak256(abi.encode(holder, slot_index))``).

    Args:
        holder (str): The token holder address.
        slot_index (int): Storage index of the balances mapping.

    Returns:
        bytes: The 32-byte storage slot key.
    """
    return keccak256(
        encode(["address", "uint256"], [to_checksum_address(holder), slot_index])
    )


def derive_packed_slot_key(holder: str, slot_index: int) -> bytes:
    """
    Tightly packed variant, ``keccak256(abi.encodePacked(holder, slot_index))``.

    This is NOT how Solidity lays out mappings; it exists so diagnostics can
    show which key a misconfigured prover requested.
    """
    return keccak256(
        encode_packed(
            ["address", "uint256"], [to_checksum_address(holder), slot_index]
        )
    )


def derive_ownership_slot_key(token_id: int, slot_index: int) -> bytes:
    """
    Calculate the storage key of ``owners[token_id]`` for an ERC-721
    ``mapping(uint256 => address)`` declared at ``slot_index``.
    """
    return keccak256(encode(["uint256", "uint256"], [token_id, slot_index]))


def account_trie_key(address: str) -> bytes:
    """Path of an account in the (secure) state trie."""
    return keccak256(bytes.fromhex(to_checksum_address(address)[2:]))


def storage_trie_key(slot_key: bytes) -> bytes:
    """Path of a storage slot in the (secure) storage trie."""
    if len(slot_key) != 32:
        raise ValueError("Storage slot key must be 32 bytes")
    return keccak256(slot_key)


def slot_key_to_int(slot_key: bytes) -> int:
    return int.from_bytes(slot_key, byteorder="big")
