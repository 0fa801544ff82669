"""All constants for the project"""

import os

from dotenv import load_dotenv

load_dotenv()


class TrieConstants:
    """Constants of Ethereum's Merkle-Patricia tries"""

    # keccak256(rlp(b"")): root of a trie holding no keys
    EMPTY_TRIE_ROOT = bytes.fromhex(
        "56e81f171bcc55a6ff8345e692c0f86e5b48e01b996cadc001622fb5e363b421"
    )

    # keccak256(b""): code hash of an account without code
    EMPTY_CODE_HASH = bytes.fromhex(
        "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"
    )

    BRANCH_WIDTH = 16
    HASH_LENGTH = 32

    # Proof walks never legitimately exceed this many nodes
    # (64 nibbles of key, plus embedded nodes)
    MAX_PROOF_DEPTH = 128


class SignatureConstants:
    """Constants for secp256k1 personal-message signatures"""

    SECP256K1_N = int(
        "fffffffffffffffffffffffffffffffebaaedce6af48a03bbfd25e8cd0364141", 16
    )
    SECP256K1_HALF_N = SECP256K1_N // 2

    PERSONAL_MESSAGE_PREFIX = b"\x19Ethereum Signed Message:\n"

    VALID_V = (27, 28)


class SiweConstants:
    """Defaults for Sign-In-With-Ethereum challenges"""

    DEFAULT_DOMAIN = os.getenv("DAO_PROOF_SIWE_DOMAIN", "example.com")
    DEFAULT_URI = os.getenv("DAO_PROOF_SIWE_URI", "https://example.com")
    VERSION = "1"

    # 10 minutes, matching the governance canister
    DEFAULT_EXPIRATION_SECONDS = int(
        os.getenv("DAO_PROOF_SIWE_EXPIRATION_SECONDS", "600")
    )


class GlobalConstants:
    """Global class constants for the project"""

    SLOT_REGISTRY_FILE = os.getenv("DAO_PROOF_SLOT_REGISTRY") or None

    DEFAULT_CHAIN_ID = int(os.getenv("DAO_PROOF_CHAIN_ID", "1"))

    CHAIN_NAMES = {
        1: "ethereum",
        10: "optimism",
        137: "polygon",
        8453: "base",
        42161: "arbitrum",
        11155111: "sepolia",
        31337: "anvil",
    }
