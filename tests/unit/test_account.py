"""
Unit tests for the account state codec.
"""

import pytest
import rlp

from dao_proof_toolkit.proofs.account import (
    Account,
    decode_account,
    encode_account,
)
from dao_proof_toolkit.shared.constants import TrieConstants
from dao_proof_toolkit.shared.exceptions import MalformedRlp


class TestAccountCodec:
    """Tests for Account encoding and decoding."""

    def test_round_trip(self):
        account = Account(
            nonce=3,
            balance=10**18,
            storage_root=b"\x11" * 32,
            code_hash=b"\x22" * 32,
        )
        decoded = decode_account(encode_account(account))
        assert decoded.nonce == 3
        assert decoded.balance == 10**18
        assert decoded.storage_root == b"\x11" * 32
        assert decoded.code_hash == b"\x22" * 32

    def test_defaults_describe_empty_account(self):
        account = Account()
        assert account.storage_root == TrieConstants.EMPTY_TRIE_ROOT
        assert account.code_hash == TrieConstants.EMPTY_CODE_HASH
        assert not account.has_code
        assert not account.has_storage

    def test_contract_flags(self):
        account = Account(storage_root=b"\x01" * 32, code_hash=b"\x02" * 32)
        assert account.has_code
        assert account.has_storage

    def test_wrong_field_count(self):
        with pytest.raises(MalformedRlp):
            decode_account(rlp.encode([1, 2, b"\x00" * 32]))

    def test_short_storage_root(self):
        with pytest.raises(MalformedRlp):
            decode_account(
                rlp.encode([1, 2, b"\x00" * 31, TrieConstants.EMPTY_CODE_HASH])
            )

    def test_non_canonical_integer(self):
        """A nonce with a leading zero byte is rejected."""
        encoded = rlp.encode(
            [
                b"\x00\x01",
                b"",
                TrieConstants.EMPTY_TRIE_ROOT,
                TrieConstants.EMPTY_CODE_HASH,
            ]
        )
        with pytest.raises(MalformedRlp):
            decode_account(encoded)

    def test_not_a_list(self):
        with pytest.raises(MalformedRlp):
            decode_account(rlp.encode(b"account"))
