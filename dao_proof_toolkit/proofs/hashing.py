"""Keccak-256 hashing"""

from eth_utils import keccak


def keccak256(data: bytes) -> bytes:
    """
    Ethereum Keccak-256 of ``data``.

    This is the original Keccak padding, not NIST SHA3-256
    (``hashlib.sha3_256`` gives different digests).
    """
    return keccak(primitive=bytes(data))


def keccak256_hex(data: bytes) -> str:
    """Keccak-256 as a 0x-prefixed hex string."""
    return "0x" + keccak256(data).hex()
