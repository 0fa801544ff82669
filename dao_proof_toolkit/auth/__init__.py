from dao_proof_toolkit.auth.nonce_store import InMemoryNonceStore, NonceStore
from dao_proof_toolkit.auth.session import SessionAuthEngine
from dao_proof_toolkit.auth.signature import (
    Signature,
    addresses_equal,
    hash_personal_message,
    recover_signer,
)
from dao_proof_toolkit.auth.siwe import (
    SiweChallenge,
    new_challenge,
    parse_siwe_message,
)

__all__ = [
    "InMemoryNonceStore",
    "NonceStore",
    "SessionAuthEngine",
    "Signature",
    "SiweChallenge",
    "addresses_equal",
    "hash_personal_message",
    "new_challenge",
    "parse_siwe_message",
    "recover_signer",
]
