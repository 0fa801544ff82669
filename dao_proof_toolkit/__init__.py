"""DAO Proof Toolkit - storage-proof balance attestation and SIWE sessions."""

__version__ = "0.1.0"

from .proofs.manager import GovernanceVerifier
from .shared import registry

__all__ = ["GovernanceVerifier", "registry"]
