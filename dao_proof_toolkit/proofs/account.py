"""Account state codec"""

import rlp
from rlp.exceptions import RLPException
from rlp.sedes import Binary, big_endian_int

from dao_proof_toolkit.proofs import rlp_codec
from dao_proof_toolkit.shared.constants import TrieConstants
from dao_proof_toolkit.shared.exceptions import MalformedRlp

hash32 = Binary.fixed_length(32)


class Account(rlp.Serializable):
    """State trie leaf: ``[nonce, balance, storageRoot, codeHash]``."""

    fields = [
        ("nonce", big_endian_int),
        ("balance", big_endian_int),
        ("storage_root", hash32),
        ("code_hash", hash32),
    ]

    def __init__(
        self,
        nonce: int = 0,
        balance: int = 0,
        storage_root: bytes = TrieConstants.EMPTY_TRIE_ROOT,
        code_hash: bytes = TrieConstants.EMPTY_CODE_HASH,
        **kwargs,
    ):
        super().__init__(nonce, balance, storage_root, code_hash, **kwargs)

    @property
    def has_code(self) -> bool:
        return self.code_hash != TrieConstants.EMPTY_CODE_HASH

    @property
    def has_storage(self) -> bool:
        return self.storage_root != TrieConstants.EMPTY_TRIE_ROOT


def decode_account(rlp_value: bytes) -> Account:
    """
    Decode the RLP account found at the end of an account-proof walk.

    Raises:
        MalformedRlp: if the value is not a canonical 4-item account list
    """
    # Canonical framing first, then the typed fields
    rlp_codec.decode(rlp_value)
    try:
        return rlp.decode(bytes(rlp_value), sedes=Account)
    except RLPException as e:
        raise MalformedRlp(f"Invalid account encoding: {e}") from e


def encode_account(account: Account) -> bytes:
    return rlp.encode(account)
