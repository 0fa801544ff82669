from eth_utils import is_address, to_checksum_address
from hexbytes import HexBytes

from dao_proof_toolkit.shared.constants import GlobalConstants


def validate_eth_address(address: str, param_name: str = "address") -> str:
    """Validate and return checksum ethereum address"""
    if not address or not isinstance(address, str):
        raise ValueError(
            f"Invalid {param_name}: address must be a non-empty string"
        )
    if not is_address(address):
        raise ValueError(
            f"Invalid {param_name}: {address} is not a valid Ethereum address"
        )
    return to_checksum_address(address)


def validate_chain_id(chain_id: int) -> int:
    """Validate chain ID"""
    if chain_id not in GlobalConstants.CHAIN_NAMES:
        raise ValueError(
            f"Invalid chain_id: {chain_id}. "
            f"Must be one of {sorted(GlobalConstants.CHAIN_NAMES)}"
        )
    return chain_id


def validate_slot_index(slot_index: int) -> int:
    """Validate a storage slot index"""
    if slot_index < 0 or slot_index >= 2**256:
        raise ValueError(
            f"Invalid slot index: {slot_index}. Must fit in a uint256"
        )
    return slot_index


def validate_hex32(value: str, param_name: str = "value") -> bytes:
    """Validate a 32-byte hex string (block hash, state root)"""
    try:
        data = bytes(HexBytes(value))
    except (TypeError, ValueError):
        raise ValueError(f"Invalid {param_name}: {value} is not hex")
    if len(data) != 32:
        raise ValueError(
            f"Invalid {param_name}: expected 32 bytes, got {len(data)}"
        )
    return data
