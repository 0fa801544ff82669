"""Block header encoding and verification"""

from typing import Any, Dict

from hexbytes import HexBytes

from dao_proof_toolkit.proofs import rlp_codec
from dao_proof_toolkit.proofs.hashing import keccak256
from dao_proof_toolkit.proofs.types import BlockHeader
from dao_proof_toolkit.shared.exceptions import InvalidBlockHeader

# Consensus field order; later forks append fields
BLOCK_HEADER = (
    "parentHash",
    "sha3Uncles",
    "miner",
    "stateRoot",
    "transactionsRoot",
    "receiptsRoot",
    "logsBloom",
    "difficulty",
    "number",
    "gasLimit",
    "gasUsed",
    "timestamp",
    "extraData",
    "mixHash",
    "nonce",
    "baseFeePerGas",
    "withdrawalsRoot",
    "blobGasUsed",
    "excessBlobGas",
    "parentBeaconBlockRoot",
    "requestsHash",
)

# Quantities are RLP integers; everything else is raw bytes
_QUANTITY_FIELDS = {
    "difficulty",
    "number",
    "gasLimit",
    "gasUsed",
    "timestamp",
    "baseFeePerGas",
    "blobGasUsed",
    "excessBlobGas",
}


def _header_field(name: str, value: Any) -> bytes:
    if name in _QUANTITY_FIELDS:
        if isinstance(value, str):
            value = int(value, 16)
        if isinstance(value, int):
            return b"" if value == 0 else value.to_bytes(
                (value.bit_length() + 7) // 8, "big"
            )
        # Minimal big-endian already
        return bytes(HexBytes(value)).lstrip(b"\x00")
    return bytes(HexBytes(value))


def encode_block_header(block: Dict[str, Any]) -> bytes:
    """Encode a block header -> RLP encoded"""
    block_header = [
        _header_field(k, block[k])
        for k in BLOCK_HEADER
        if block.get(k) is not None
    ]
    return rlp_codec.encode(block_header)


def verify_block_header(block: Dict[str, Any]) -> BlockHeader:
    """
    Trust a block's stateRoot only if its header hashes to its block hash.

    Args:
        block: eth_getBlockByNumber result (JSON hex or web3 AttributeDict)

    Returns:
        BlockHeader: number, hash and state root of the verified block

    Raises:
        InvalidBlockHeader: if the header does not hash to ``block["hash"]``
    """
    for required in ("hash", "stateRoot", "number"):
        if block.get(required) is None:
            raise InvalidBlockHeader(f"Block is missing '{required}'")

    claimed_hash = bytes(HexBytes(block["hash"]))
    computed_hash = keccak256(encode_block_header(block))
    if computed_hash != claimed_hash:
        raise InvalidBlockHeader(
            f"Header hashes to 0x{computed_hash.hex()}, "
            f"block claims 0x{claimed_hash.hex()}"
        )

    number = block["number"]
    if isinstance(number, str):
        number = int(number, 16)

    return BlockHeader(
        number=number,
        hash=claimed_hash,
        state_root=bytes(HexBytes(block["stateRoot"])),
    )
