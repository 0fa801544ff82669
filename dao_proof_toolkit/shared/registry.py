"""
Registry of ERC-20 balance-mapping storage slots.

Different token implementations place ``mapping(address => uint256)`` at
different storage indices (proxy variables, inherited state, ...). A wrong
slot proves some *other* storage value, so slots are only ever taken from
this registry or from an explicit caller declaration, never guessed.

Built-in entries can be extended with a JSON file named by the
DAO_PROOF_SLOT_REGISTRY environment variable:

    {"1": {"0xToken...": {"slot": 9, "name": "USDC"}}}
"""

import json
from typing import Dict, List, Optional

from eth_utils import is_address, to_checksum_address

from dao_proof_toolkit.shared.constants import GlobalConstants
from dao_proof_toolkit.shared.exceptions import ConfigurationException
from dao_proof_toolkit.shared.logging import get_logger

_logger = get_logger(__name__)


class SlotRegistry:
    """Balance slot lookups keyed by chain id and token address."""

    # Verified layouts: chain id -> token -> (slot, name)
    KNOWN_SLOTS = {
        1: {
            "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48": (9, "USDC"),
            "0xdAC17F958D2ee523a2206206994597C13D831ec7": (2, "USDT"),
            "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2": (3, "WETH"),
        },
        42161: {
            "0xaf88d065e77c8cC2239327C5EDb3A432268e5831": (9, "USDC"),
        },
        # First contract deployed by the default Anvil/Hardhat account
        31337: {
            "0x5FbDB2315678afecb367f032d93F642f64180aa3": (
                0,
                "GovernanceToken",
            ),
        },
    }

    def __init__(self, registry_file: Optional[str] = None):
        self._slots: Dict[int, Dict[str, Dict]] = {}
        self._load_builtin()
        if registry_file:
            self._load_file(registry_file)

    def _load_builtin(self):
        for chain_id, tokens in self.KNOWN_SLOTS.items():
            for token, (slot, name) in tokens.items():
                self.register(chain_id, token, slot, name)

    def _load_file(self, path: str):
        """Merge slot declarations from a JSON file."""
        try:
            with open(path, "r") as file:
                data = json.load(file)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationException(
                f"Could not read slot registry {path}: {e}"
            ) from e

        if not isinstance(data, dict):
            raise ConfigurationException(
                f"Slot registry {path} must be a JSON object"
            )

        for chain_id, tokens in data.items():
            if not isinstance(tokens, dict):
                raise ConfigurationException(
                    f"Slot registry {path}: chain {chain_id} must map tokens"
                )
            for token, entry in tokens.items():
                if isinstance(entry, int):
                    entry = {"slot": entry}
                if not isinstance(entry, dict) or "slot" not in entry:
                    raise ConfigurationException(
                        f"Slot registry {path}: entry for {token} has no slot"
                    )
                self.register(
                    int(chain_id), token, entry["slot"], entry.get("name")
                )

        _logger.info("Loaded slot registry overrides from %s", path)

    def register(
        self,
        chain_id: int,
        token: str,
        slot: int,
        name: Optional[str] = None,
    ):
        """Declare the balance slot of a token on a chain."""
        if not is_address(token):
            raise ConfigurationException(
                f"Invalid token address in slot registry: {token}"
            )
        if not isinstance(slot, int) or isinstance(slot, bool) or slot < 0:
            raise ConfigurationException(
                f"Invalid slot for {token}: {slot!r}"
            )
        self._slots.setdefault(int(chain_id), {})[token.lower()] = {
            "slot": slot,
            "name": name,
            "token": to_checksum_address(token),
        }

    def find(self, chain_id: int, token: str) -> Optional[Dict]:
        return self._slots.get(int(chain_id), {}).get(token.lower())


# =============================================================================
# SINGLETON INSTANCE
# =============================================================================

_registry = None


def _get_registry() -> SlotRegistry:
    """Get or create the registry instance."""
    global _registry
    if _registry is None:
        _registry = SlotRegistry(GlobalConstants.SLOT_REGISTRY_FILE)
    return _registry


# =============================================================================
# PUBLIC API FUNCTIONS
# =============================================================================


def get_balance_slot(chain_id: int, token: str) -> int:
    """Get the declared balance-mapping slot of a token.

    Raises:
        ConfigurationException: if the token has no declared slot
    """
    entry = _get_registry().find(chain_id, token)
    if entry is None:
        raise ConfigurationException(
            f"No balance slot registered for {token} on chain {chain_id}; "
            "declare it explicitly"
        )
    return entry["slot"]


def get_token_name(chain_id: int, token: str) -> Optional[str]:
    """Get the display name of a registered token."""
    entry = _get_registry().find(chain_id, token)
    return entry["name"] if entry else None


def get_tokens_for_chain(chain_id: int) -> List[Dict]:
    """Get all registered tokens on a specific chain."""
    registry = _get_registry()
    return [
        {"chain_id": int(chain_id), **entry}
        for entry in registry._slots.get(int(chain_id), {}).values()
    ]


def register_balance_slot(
    chain_id: int, token: str, slot: int, name: Optional[str] = None
):
    """Declare a balance slot at runtime."""
    _get_registry().register(chain_id, token, slot, name)


def reset_registry():
    """Drop the cached registry so the next lookup reloads configuration."""
    global _registry
    _registry = None
