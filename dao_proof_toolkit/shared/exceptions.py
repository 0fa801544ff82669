"""
Exception hierarchy for the DAO Proof Toolkit.

Exception Categories:
- NonRetryableException: Permanent failures that won't benefit from retry.
  Every verification failure lives here: an invalid proof or signature is
  never fixed by trying again with the same input.
- ConfigurationException: Startup/config errors that prevent operation

Verification exceptions:
- MalformedRlp -> unparsable or non-canonical RLP
- ProofError -> InvalidProof -> RootMismatch (trie walk failures)
- AttestError -> balance attestation aborted (wraps the above)
- SigError -> NonCanonicalSignature / InvalidRecoveryId / RecoveryFailed
- AuthError -> ChallengeExpired / NonceReplay / SignerMismatch /
  ChainMismatch / ...
"""


class NonRetryableException(Exception):
    """
    Base class for exceptions that won't benefit from retry.

    Use for permanent failures like:
    - Invalid proofs or signatures
    - Malformed input data
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationException(NonRetryableException):
    """
    Exception for configuration/startup errors.

    Use when:
    - A token has no registered balance slot
    - A registry override file is unreadable or malformed
    """

    pass


# =============================================================================
# ENCODING
# =============================================================================


class MalformedRlp(NonRetryableException):
    """Unparsable or non-canonical RLP encoding."""

    pass


# =============================================================================
# TRIE PROOFS
# =============================================================================


class ProofError(NonRetryableException):
    """Base class for Merkle-Patricia proof failures."""

    pass


class InvalidProof(ProofError):
    """
    Hash mismatch, malformed node, or a walk that neither completes nor
    cleanly proves absence.
    """

    pass


class RootMismatch(InvalidProof):
    """The first proof node does not hash to the trusted root."""

    pass


class InvalidBlockHeader(NonRetryableException):
    """A block header does not hash to its claimed block hash."""

    pass


class AttestError(NonRetryableException):
    """
    Balance attestation failed.

    The underlying ProofError or MalformedRlp, when there is one, is chained
    as ``__cause__`` and also exposed as ``cause``.
    """

    def __init__(self, message: str, cause: Exception = None):
        super().__init__(message)
        self.cause = cause


# =============================================================================
# SIGNATURES & SESSIONS
# =============================================================================


class SigError(NonRetryableException):
    """Base class for signature recovery failures."""

    pass


class NonCanonicalSignature(SigError):
    """Signature ``s`` lies in the upper half of the curve order."""

    pass


class InvalidRecoveryId(SigError):
    """Signature ``v`` is not 27 or 28."""

    pass


class RecoveryFailed(SigError):
    """No public key could be recovered from the signature."""

    pass


class AuthError(NonRetryableException):
    """Base class for session authorization failures."""

    pass


class ChallengeExpired(AuthError):
    """The challenge expiration time has passed."""

    pass


class NonceReplay(AuthError):
    """The (address, nonce) pair was already consumed."""

    pass


class SignerMismatch(AuthError):
    """The recovered signer is not the address named in the challenge."""

    pass


class ChainMismatch(AuthError):
    """The challenge names another chain than the verifier serves."""

    pass


class InvalidSignature(AuthError):
    """The challenge signature could not be verified at all."""

    pass


class MalformedChallenge(AuthError):
    """A SIWE message could not be parsed into a challenge."""

    pass
