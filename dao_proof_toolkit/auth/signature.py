"""
Personal-message (EIP-191) signature recovery.

Recovery is strictly single-parity: the address implied by the given ``v`` is
the only one ever returned. Trying ``v ^ 1`` until some address "matches"
would let an attacker choose between two signers for one signature.
"""

from dataclasses import dataclass
from typing import Union

from eth_keys import keys
from eth_keys.exceptions import BadSignature, ValidationError
from eth_utils import is_hex_address
from hexbytes import HexBytes

from dao_proof_toolkit.proofs.hashing import keccak256
from dao_proof_toolkit.shared.constants import SignatureConstants
from dao_proof_toolkit.shared.exceptions import (
    InvalidRecoveryId,
    NonCanonicalSignature,
    RecoveryFailed,
)


@dataclass(frozen=True)
class Signature:
    r: bytes
    s: bytes
    v: int

    def __post_init__(self):
        if len(self.r) != 32 or len(self.s) != 32:
            raise ValueError("Signature r and s must be 32 bytes each")

    @classmethod
    def from_bytes(cls, signature: bytes) -> "Signature":
        """
        Split a 65-byte ``r || s || v`` signature.

        Wallets and some libraries emit the recovery id as 0/1 instead of
        27/28; that form is normalized here and nowhere else.
        """
        signature = bytes(signature)
        if len(signature) != 65:
            raise ValueError(
                f"Signature must be 65 bytes, got {len(signature)}"
            )
        v = signature[64]
        if v in (0, 1):
            v += 27
        return cls(r=signature[:32], s=signature[32:64], v=v)

    @classmethod
    def from_hex(cls, signature: str) -> "Signature":
        return cls.from_bytes(HexBytes(signature))

    @classmethod
    def from_vrs(cls, v: int, r: int, s: int) -> "Signature":
        return cls(
            r=r.to_bytes(32, byteorder="big"),
            s=s.to_bytes(32, byteorder="big"),
            v=v,
        )

    def to_bytes(self) -> bytes:
        return self.r + self.s + bytes([self.v])

    def to_hex(self) -> str:
        return "0x" + self.to_bytes().hex()


def hash_personal_message(message: Union[bytes, str]) -> bytes:
    """
    EIP-191 version 0x45 digest:
    ``keccak256("\\x19Ethereum Signed Message:\\n" + len(message) + message)``,
    with the length written as ASCII decimal.
    """
    if isinstance(message, str):
        message = message.encode("utf-8")
    length = str(len(message)).encode("ascii")
    return keccak256(SignatureConstants.PERSONAL_MESSAGE_PREFIX + length + message)


def recover_signer(message: Union[bytes, str], signature: Signature) -> str:
    """
    Recover the checksum address that signed ``message``.

    Raises:
        InvalidRecoveryId: if ``v`` is not 27 or 28
        NonCanonicalSignature: if ``s`` is in the upper half of the curve order
        RecoveryFailed: if no public key can be recovered
    """
    if signature.v not in SignatureConstants.VALID_V:
        raise InvalidRecoveryId(
            f"Recovery id v={signature.v} is not one of 27, 28"
        )

    r = int.from_bytes(signature.r, byteorder="big")
    s = int.from_bytes(signature.s, byteorder="big")
    if s > SignatureConstants.SECP256K1_HALF_N:
        raise NonCanonicalSignature("Signature s is in the upper half order")
    if not (0 < r < SignatureConstants.SECP256K1_N) or s == 0:
        raise RecoveryFailed("Signature r or s out of range")

    digest = hash_personal_message(message)
    try:
        key_signature = keys.Signature(vrs=(signature.v - 27, r, s))
        public_key = key_signature.recover_public_key_from_msg_hash(digest)
    except (BadSignature, ValidationError) as e:
        raise RecoveryFailed(f"Public key recovery failed: {e}") from e

    return public_key.to_checksum_address()


def addresses_equal(a: str, b: str) -> bool:
    """Case-insensitive address comparison."""
    if not (is_hex_address(a) and is_hex_address(b)):
        return False
    return a.lower() == b.lower()
