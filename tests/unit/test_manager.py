"""
Unit tests for the GovernanceVerifier facade.
"""

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct

from dao_proof_toolkit.auth.nonce_store import InMemoryNonceStore
from dao_proof_toolkit.auth.siwe import new_challenge
from dao_proof_toolkit.proofs.manager import GovernanceVerifier
from dao_proof_toolkit.proofs.witness import build_witness, encode_witness
from dao_proof_toolkit.shared.exceptions import (
    AttestError,
    ChainMismatch,
    ConfigurationException,
    NonceReplay,
)
from dao_proof_toolkit.shared.results import ErrorSeverity

ISSUED = datetime(2024, 3, 13, 10, 0, tzinfo=timezone.utc)
DURING = ISSUED + timedelta(minutes=1)


@pytest.fixture
def verifier():
    return GovernanceVerifier(chain_id=31337)


class TestAttest:
    """Tests for GovernanceVerifier.attest."""

    def test_registry_slot(
        self, verifier, balance_state, rpc_proof, sample_holder_address, sample_contract_address
    ):
        """Slot 0 comes from the registry entry for the local token."""
        result = verifier.attest(
            balance_state["header"],
            sample_contract_address,
            sample_holder_address,
            rpc_proof(sample_holder_address),
        )
        assert result.success
        assert result.data.value == 1_000 * 10**18

    def test_explicit_slot(
        self, balance_state, rpc_proof, dev_address, sample_contract_address
    ):
        verifier = GovernanceVerifier(chain_id=1)
        result = verifier.attest(
            balance_state["header"],
            sample_contract_address,
            dev_address,
            rpc_proof(dev_address),
            slot_index=0,
        )
        assert result.unwrap().value == 42

    def test_unknown_token_is_critical(
        self, balance_state, rpc_proof, dev_address, sample_contract_address
    ):
        verifier = GovernanceVerifier(chain_id=1)
        result = verifier.attest(
            balance_state["header"],
            sample_contract_address,
            dev_address,
            rpc_proof(dev_address),
        )
        assert not result.success
        assert result.errors[0].severity == ErrorSeverity.CRITICAL
        assert isinstance(result.errors[0].exception, ConfigurationException)

    def test_invalid_proof(
        self, verifier, balance_state, rpc_proof, dev_address, sample_contract_address
    ):
        header = replace(balance_state["header"], state_root=b"\x02" * 32)
        result = verifier.attest(
            header, sample_contract_address, dev_address, rpc_proof(dev_address)
        )
        assert not result.success
        assert result.has_errors()
        assert result.errors[0].error_type == "AttestError"
        assert result.errors[0].context["block"] == header.number
        with pytest.raises(AttestError):
            result.unwrap()


class TestAttestOwnership:
    """Tests for GovernanceVerifier.attest_ownership."""

    def test_owner(
        self, verifier, ownership_state, ownership_proof, dev_address, sample_nft_address
    ):
        result = verifier.attest_ownership(
            ownership_state["header"],
            sample_nft_address,
            dev_address,
            7,
            ownership_proof(7),
            slot_index=2,
        )
        assert result.unwrap().value == 1

    def test_wrong_slot_fails(
        self, verifier, ownership_state, ownership_proof, dev_address, sample_nft_address
    ):
        result = verifier.attest_ownership(
            ownership_state["header"],
            sample_nft_address,
            dev_address,
            7,
            ownership_proof(7),
            slot_index=3,
        )
        assert not result.success
        assert result.errors[0].source == "attest_ownership"
        assert result.errors[0].context["token_id"] == 7


class TestAttestWitness:
    """Tests for GovernanceVerifier.attest_witness."""

    def test_encoded_witness(
        self, verifier, balance_state, rpc_proof, sample_holder_address, sample_contract_address
    ):
        witness = build_witness(
            balance_state["header"],
            sample_holder_address,
            sample_contract_address,
            0,
            rpc_proof(sample_holder_address),
            chain_id=31337,
        )
        result = verifier.attest_witness(
            balance_state["header"], encode_witness(witness)
        )
        assert result.unwrap().value == 1_000 * 10**18

    def test_chain_mismatch(
        self, verifier, balance_state, rpc_proof, sample_holder_address, sample_contract_address
    ):
        witness = build_witness(
            balance_state["header"],
            sample_holder_address,
            sample_contract_address,
            0,
            rpc_proof(sample_holder_address),
            chain_id=1,
        )
        result = verifier.attest_witness(balance_state["header"], witness)
        assert not result.success
        assert result.errors[0].source == "attest_witness"

    def test_block_mismatch(
        self, verifier, balance_state, rpc_proof, sample_holder_address, sample_contract_address
    ):
        witness = build_witness(
            balance_state["header"],
            sample_holder_address,
            sample_contract_address,
            0,
            rpc_proof(sample_holder_address),
            chain_id=31337,
        )
        other = replace(balance_state["header"], hash=b"\x05" * 32)
        assert not verifier.attest_witness(other, witness).success


class TestCheckSlot:
    """Tests for GovernanceVerifier.check_slot."""

    def test_wrong_slot_warns(
        self, verifier, balance_state, rpc_proof, dev_address, sample_contract_address
    ):
        result = verifier.check_slot(
            balance_state["header"],
            sample_contract_address,
            dev_address,
            rpc_proof(dev_address, slot_index=3),
            3,
            42,
        )
        assert result.success
        assert not result.data.valid
        assert result.has_warnings()


class TestAuthorize:
    """Tests for GovernanceVerifier.authorize."""

    @pytest.fixture
    def signed_challenge(self, dev_address, dev_private_key):
        challenge = new_challenge(
            dev_address, "Vote on proposal 7", 31337, issued_at=ISSUED
        )
        signed = Account.sign_message(
            encode_defunct(text=challenge.to_message()),
            private_key=dev_private_key,
        )
        return challenge, signed.signature

    def test_hex_signature_and_raw_message(
        self, verifier, signed_challenge, dev_address
    ):
        challenge, signature = signed_challenge
        result = verifier.authorize(
            challenge.to_message(), "0x" + bytes(signature).hex(), DURING
        )
        assert result.unwrap() == dev_address

    def test_replay_fails(self, verifier, signed_challenge):
        challenge, signature = signed_challenge
        assert verifier.authorize(challenge, bytes(signature), DURING).success
        result = verifier.authorize(challenge, bytes(signature), DURING)
        assert not result.success
        assert isinstance(result.errors[0].exception, NonceReplay)
        assert result.errors[0].context["nonce"] == challenge.nonce

    def test_malformed_signature(self, verifier, signed_challenge):
        challenge, _ = signed_challenge
        result = verifier.authorize(challenge, "0x1234", DURING)
        assert not result.success
        assert result.errors[0].source == "authorize"

    def test_shared_nonce_store(self, signed_challenge):
        """Two verifiers sharing a store reject each other's replays."""
        challenge, signature = signed_challenge
        first = GovernanceVerifier(chain_id=31337)
        second = GovernanceVerifier(
            chain_id=31337, nonce_store=first.nonce_store
        )
        assert first.authorize(challenge, bytes(signature), DURING).success
        assert not second.authorize(challenge, bytes(signature), DURING).success

    def test_keeps_injected_empty_store(self):
        store = InMemoryNonceStore()
        verifier = GovernanceVerifier(chain_id=31337, nonce_store=store)
        assert verifier.nonce_store is store
        assert verifier.auth_engine.nonce_store is store

    def test_fresh_store_shared_between_verifiers(self, signed_challenge):
        challenge, signature = signed_challenge
        store = InMemoryNonceStore()
        first = GovernanceVerifier(chain_id=31337, nonce_store=store)
        second = GovernanceVerifier(chain_id=31337, nonce_store=store)
        assert first.authorize(challenge, bytes(signature), DURING).success
        result = second.authorize(challenge, bytes(signature), DURING)
        assert isinstance(result.errors[0].exception, NonceReplay)

    def test_other_chain_rejected(self, signed_challenge, dev_address):
        """A challenge for another chain fails and leaves the nonce unused."""
        challenge, signature = signed_challenge
        mainnet = GovernanceVerifier(chain_id=1)
        result = mainnet.authorize(challenge.to_message(), bytes(signature), DURING)
        assert not result.success
        assert isinstance(result.errors[0].exception, ChainMismatch)
        assert result.errors[0].context["nonce"] == challenge.nonce
        assert not mainnet.nonce_store.is_consumed(dev_address, challenge.nonce)
