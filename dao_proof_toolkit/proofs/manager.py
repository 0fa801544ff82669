from typing import Any, Mapping, Optional, Union

from eth_utils import to_checksum_address

from dao_proof_toolkit.auth.nonce_store import InMemoryNonceStore, NonceStore
from dao_proof_toolkit.auth.session import SessionAuthEngine
from dao_proof_toolkit.auth.signature import Signature
from dao_proof_toolkit.auth.siwe import (
    SiweChallenge,
    Timestamp,
    parse_siwe_message,
)
from dao_proof_toolkit.proofs.attestation import (
    SlotCheck,
    attest_balance,
    attest_ownership,
    verify_slot_balance,
)
from dao_proof_toolkit.proofs.payload import ProofPayload
from dao_proof_toolkit.proofs.types import BlockHeader, StorageSlotClaim
from dao_proof_toolkit.proofs.witness import (
    Witness,
    decode_witness,
    witness_to_payload,
)
from dao_proof_toolkit.shared import registry
from dao_proof_toolkit.shared.constants import GlobalConstants
from dao_proof_toolkit.shared.exceptions import (
    AttestError,
    ChainMismatch,
    ConfigurationException,
)
from dao_proof_toolkit.shared.logging import get_logger
from dao_proof_toolkit.shared.results import (
    ErrorSeverity,
    ProcessingError,
    Result,
)

_logger = get_logger(__name__)

ProofInput = Union[ProofPayload, Mapping[str, Any]]


class GovernanceVerifier:
    """Entry point for balance attestations and session authorizations"""

    def __init__(
        self,
        chain_id: int = GlobalConstants.DEFAULT_CHAIN_ID,
        nonce_store: Optional[NonceStore] = None,
    ):
        self.chain_id = chain_id
        self.nonce_store = (
            nonce_store if nonce_store is not None else InMemoryNonceStore()
        )
        self.auth_engine = SessionAuthEngine(self.nonce_store)

    def resolve_slot(self, contract: str, slot_index: Optional[int]) -> int:
        """Explicit slot if given, otherwise the registered one."""
        if slot_index is not None:
            return slot_index
        return registry.get_balance_slot(self.chain_id, contract)

    def attest(
        self,
        header: BlockHeader,
        contract: str,
        holder: str,
        proof: ProofInput,
        slot_index: Optional[int] = None,
    ) -> Result[StorageSlotClaim]:
        """
        Attest a holder's token balance at a trusted block.

        Args:
            header: Trusted block header
            contract: Token contract address
            holder: Token holder address
            proof: eth_getProof payload for the contract
            slot_index: Balances mapping slot; looked up in the slot registry
                when omitted

        Returns:
            Result[StorageSlotClaim]: Success with the proven balance, or
            failure with error
        """
        context = {
            "chain_id": self.chain_id,
            "contract": contract,
            "holder": holder,
            "block": header.number,
        }

        try:
            slot = self.resolve_slot(contract, slot_index)
            context["slot_index"] = slot
            claim = attest_balance(
                header,
                to_checksum_address(contract),
                to_checksum_address(holder),
                slot,
                proof,
            )
            return Result.ok(claim)
        except ConfigurationException as e:
            return Result.fail(
                ProcessingError(
                    source="attest",
                    message=str(e),
                    severity=ErrorSeverity.CRITICAL,
                    context=context,
                    exception=e,
                )
            )
        except Exception as e:
            _logger.warning("Attestation rejected: %s", e)
            return Result.fail(
                ProcessingError(
                    source="attest",
                    message=f"Error attesting balance: {str(e)}",
                    severity=ErrorSeverity.ERROR,
                    context=context,
                    exception=e,
                )
            )

    def attest_ownership(
        self,
        header: BlockHeader,
        contract: str,
        holder: str,
        token_id: int,
        proof: ProofInput,
        slot_index: int,
    ) -> Result[StorageSlotClaim]:
        """
        Attest whether a holder owns an ERC-721 token at a trusted block.

        Args:
            header: Trusted block header
            contract: ERC-721 contract address
            holder: Address whose ownership is checked
            token_id: Token to check
            proof: eth_getProof payload with the ``owners[token_id]`` slot
            slot_index: Storage index of the contract's owners mapping

        Returns:
            Result[StorageSlotClaim]: Success with value 1 if ``holder`` owns
            the token and 0 otherwise, or failure with error
        """
        context = {
            "chain_id": self.chain_id,
            "contract": contract,
            "holder": holder,
            "token_id": token_id,
            "slot_index": slot_index,
            "block": header.number,
        }

        try:
            claim = attest_ownership(
                header,
                to_checksum_address(contract),
                to_checksum_address(holder),
                token_id,
                slot_index,
                proof,
            )
            return Result.ok(claim)
        except Exception as e:
            _logger.warning("Ownership attestation rejected: %s", e)
            return Result.fail(
                ProcessingError(
                    source="attest_ownership",
                    message=f"Error attesting ownership: {str(e)}",
                    severity=ErrorSeverity.ERROR,
                    context=context,
                    exception=e,
                )
            )

    def attest_witness(
        self, header: BlockHeader, witness: Union[Witness, bytes]
    ) -> Result[StorageSlotClaim]:
        """
        Attest the balance carried by an RLP witness bundle.

        The witness's block and chain must match the trusted header and this
        verifier; its slot key is re-derived rather than trusted.
        """
        context = {"chain_id": self.chain_id, "block": header.number}

        try:
            if not isinstance(witness, Witness):
                witness = decode_witness(witness)
            if witness.chain_id != self.chain_id:
                raise AttestError(
                    f"Witness is for chain {witness.chain_id}, "
                    f"verifier is on chain {self.chain_id}"
                )
            if (
                witness.block_hash != header.hash
                or witness.block_number != header.number
            ):
                raise AttestError("Witness was built for a different block")
        except Exception as e:
            return Result.fail(
                ProcessingError(
                    source="attest_witness",
                    message=f"Error reading witness: {str(e)}",
                    severity=ErrorSeverity.ERROR,
                    context=context,
                    exception=e,
                )
            )

        contract = to_checksum_address(witness.contract)
        return self.attest(
            header,
            contract,
            to_checksum_address(witness.holder),
            witness_to_payload(witness),
        )

    def check_slot(
        self,
        header: BlockHeader,
        contract: str,
        holder: str,
        proof: ProofInput,
        slot_index: int,
        expected_balance: int,
    ) -> Result[SlotCheck]:
        """Check a declared slot against a balance known from elsewhere."""
        check = verify_slot_balance(
            header, contract, holder, slot_index, proof, expected_balance
        )
        result = Result.ok(check)
        if not check.valid:
            result.add_warning(
                source="check_slot",
                message=check.reason,
                context={"contract": contract, "slot_index": slot_index},
            )
        return result

    def authorize(
        self,
        challenge: Union[SiweChallenge, str],
        signature: Union[Signature, bytes, str],
        now: Optional[Timestamp] = None,
    ) -> Result[str]:
        """
        Authorize a signed SIWE challenge.

        Args:
            challenge: The challenge or its raw message text
            signature: Signature object, 65 raw bytes or a hex string
            now: Current time, defaults to the wall clock

        Returns:
            Result[str]: Success with the signer's checksum address, or
            failure with error
        """
        context = {"chain_id": self.chain_id}

        try:
            if isinstance(signature, str):
                signature = Signature.from_hex(signature)
            elif not isinstance(signature, Signature):
                signature = Signature.from_bytes(signature)

            if isinstance(challenge, str):
                challenge = parse_siwe_message(challenge)
            context["address"] = challenge.address
            context["nonce"] = challenge.nonce

            if challenge.chain_id != self.chain_id:
                raise ChainMismatch(
                    f"Challenge is for chain {challenge.chain_id}, "
                    f"verifier is on chain {self.chain_id}"
                )
            address = self.auth_engine.authorize(challenge, signature, now)
            return Result.ok(address)
        except Exception as e:
            return Result.fail(
                ProcessingError(
                    source="authorize",
                    message=f"Error authorizing session: {str(e)}",
                    severity=ErrorSeverity.ERROR,
                    context=context,
                    exception=e,
                )
            )
