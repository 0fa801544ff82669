"""
Session authorization.

Turns a SIWE challenge plus its signature into an authorized address. The
checks run in a fixed order: expiry, signature recovery, signer match and
finally nonce consumption, so a rejected attempt never burns the nonce.
"""

from datetime import datetime, timezone
from typing import Optional

from dao_proof_toolkit.auth.nonce_store import NonceStore
from dao_proof_toolkit.auth.signature import (
    Signature,
    addresses_equal,
    recover_signer,
)
from dao_proof_toolkit.auth.siwe import (
    SiweChallenge,
    Timestamp,
    as_datetime,
    parse_siwe_message,
)
from dao_proof_toolkit.shared.exceptions import (
    ChallengeExpired,
    InvalidSignature,
    NonceReplay,
    SigError,
    SignerMismatch,
)
from dao_proof_toolkit.shared.logging import get_logger, short_hex

_logger = get_logger(__name__)


class SessionAuthEngine:
    def __init__(self, nonce_store: NonceStore):
        self.nonce_store = nonce_store

    def authorize(
        self,
        challenge: SiweChallenge,
        signature: Signature,
        now: Optional[Timestamp] = None,
    ) -> str:
        """
        Authorize the signer of ``challenge``.

        Args:
            challenge: The challenge that was handed out
            signature: Signature over ``challenge.to_message()``
            now: Current time (datetime or unix seconds), defaults to now

        Returns:
            str: Checksum address of the authorized signer

        Raises:
            ChallengeExpired: if ``now`` is at or past the expiration time
            InvalidSignature: if no signer can be recovered
            SignerMismatch: if the signer is not ``challenge.address``
            NonceReplay: if the challenge nonce was already used
        """
        now = as_datetime(now if now is not None else datetime.now(timezone.utc))
        expires_at = challenge.expires_at
        if now >= expires_at:
            _logger.warning(
                "Challenge for %s expired at %s",
                challenge.address,
                challenge.expiration_time,
            )
            raise ChallengeExpired(
                f"Challenge expired at {challenge.expiration_time}"
            )

        try:
            signer = recover_signer(challenge.to_message(), signature)
        except SigError as e:
            _logger.warning(
                "Rejected signature %s: %s",
                short_hex(signature.to_bytes()),
                e.message,
            )
            raise InvalidSignature(f"Invalid signature: {e.message}") from e

        if not addresses_equal(signer, challenge.address):
            _logger.warning(
                "Signer %s does not match challenge address %s",
                signer,
                challenge.address,
            )
            raise SignerMismatch(
                f"Signed by {signer}, challenge is for {challenge.address}"
            )

        if not self.nonce_store.consume(
            challenge.address, challenge.nonce, expires_at
        ):
            _logger.warning(
                "Replayed nonce %s for %s", challenge.nonce, challenge.address
            )
            raise NonceReplay(
                f"Nonce {challenge.nonce} already used by {challenge.address}"
            )

        _logger.info("Authorized %s (nonce %s)", signer, challenge.nonce)
        return signer

    def authorize_message(
        self,
        message: str,
        signature: Signature,
        now: Optional[Timestamp] = None,
    ) -> str:
        """Parse raw SIWE message text, then authorize it."""
        return self.authorize(parse_siwe_message(message), signature, now)

