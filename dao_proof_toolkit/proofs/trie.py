"""
Merkle-Patricia trie proof verification.

A proof is the list of RLP-encoded nodes on the path from the root to a key,
root first, exactly as returned in ``accountProof`` / ``storageProof[i].proof``
by eth_getProof. Verification walks that list iteratively: every hashed node
must hash to the reference its parent selected, and the walk either ends on
the key's value (inclusion) or on a point that proves the key is absent
(non-inclusion, returned as ``None``).

Node kinds are decided purely by the decoded RLP shape:

- 17 items: branch (16 children + value)
- 2 items, HP flag with leaf bit: leaf (remaining path, value)
- 2 items, HP flag without leaf bit: extension (shared path, child)
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

from dao_proof_toolkit.proofs import rlp_codec
from dao_proof_toolkit.proofs.hashing import keccak256
from dao_proof_toolkit.shared.constants import TrieConstants
from dao_proof_toolkit.shared.exceptions import (
    InvalidProof,
    MalformedRlp,
    RootMismatch,
)
from dao_proof_toolkit.shared.logging import get_logger

_logger = get_logger(__name__)

# A child reference: b"" (empty), a 32-byte node hash, or an embedded node
# (decoded RLP list of an encoding shorter than 32 bytes)
ChildRef = Union[bytes, list]


@dataclass(frozen=True)
class BranchNode:
    children: Tuple[ChildRef, ...]
    value: bytes


@dataclass(frozen=True)
class ExtensionNode:
    path: Tuple[int, ...]
    child: ChildRef


@dataclass(frozen=True)
class LeafNode:
    path: Tuple[int, ...]
    value: bytes


MptNode = Union[BranchNode, ExtensionNode, LeafNode]


# =============================================================================
# NIBBLES & HEX-PREFIX ENCODING
# =============================================================================


def key_to_nibbles(key: bytes) -> Tuple[int, ...]:
    """Split bytes into 4-bit nibbles, high nibble first."""
    nibbles = []
    for byte in key:
        nibbles.append(byte >> 4)
        nibbles.append(byte & 0x0F)
    return tuple(nibbles)


def encode_hex_prefix(nibbles: Sequence[int], is_leaf: bool) -> bytes:
    """Compact (HP) encoding of a nibble path."""
    flag = (2 if is_leaf else 0) + (len(nibbles) % 2)
    if len(nibbles) % 2:
        prefixed = [flag] + list(nibbles)
    else:
        prefixed = [flag, 0] + list(nibbles)
    return bytes(
        (prefixed[i] << 4) | prefixed[i + 1] for i in range(0, len(prefixed), 2)
    )


def decode_hex_prefix(encoded: bytes) -> Tuple[Tuple[int, ...], bool]:
    """
    Decode a compact (HP) encoded path.

    The first nibble is a flag: bit 1 marks a leaf, bit 0 an odd-length
    path. Even-length paths carry a zero padding nibble.

    Returns:
        (nibbles, is_leaf)
    """
    if not encoded:
        raise InvalidProof("Empty hex-prefix path")

    nibbles = key_to_nibbles(encoded)
    flag = nibbles[0]
    if flag > 3:
        raise InvalidProof(f"Invalid hex-prefix flag nibble {flag}")

    is_leaf = bool(flag & 2)
    if flag & 1:
        return nibbles[1:], is_leaf

    if nibbles[1] != 0:
        raise InvalidProof("Non-zero padding nibble in even hex-prefix path")
    return nibbles[2:], is_leaf


# =============================================================================
# NODE DECODING
# =============================================================================


def _check_child_ref(ref) -> ChildRef:
    if isinstance(ref, list):
        if len(rlp_codec.encode(ref)) >= TrieConstants.HASH_LENGTH:
            raise InvalidProof("Embedded node must be shorter than 32 bytes")
        return ref
    if len(ref) not in (0, TrieConstants.HASH_LENGTH):
        raise InvalidProof(f"Invalid child reference length {len(ref)}")
    return ref


def _node_from_items(items) -> MptNode:
    if not isinstance(items, list):
        raise InvalidProof("Trie node must be an RLP list")

    if len(items) == 17:
        value = items[16]
        if not isinstance(value, bytes):
            raise InvalidProof("Branch value must be a byte string")
        return BranchNode(
            children=tuple(_check_child_ref(c) for c in items[:16]),
            value=value,
        )

    if len(items) == 2:
        encoded_path, second = items
        if not isinstance(encoded_path, bytes):
            raise InvalidProof("Node path must be a byte string")
        path, is_leaf = decode_hex_prefix(encoded_path)
        if is_leaf:
            if not isinstance(second, bytes):
                raise InvalidProof("Leaf value must be a byte string")
            return LeafNode(path=path, value=second)
        if not path:
            raise InvalidProof("Extension node with empty path")
        child = _check_child_ref(second)
        if child == b"":
            raise InvalidProof("Extension node without child")
        return ExtensionNode(path=path, child=child)

    raise InvalidProof(f"Invalid node list length: {len(items)}")


def decode_node(raw: bytes) -> MptNode:
    """Decode one RLP-encoded trie node."""
    try:
        items = rlp_codec.decode(raw)
    except MalformedRlp as e:
        raise InvalidProof(f"Undecodable trie node: {e.message}") from e
    return _node_from_items(items)


# =============================================================================
# VERIFICATION
# =============================================================================


def verify_proof(
    root: bytes, key: bytes, proof_nodes: Sequence[bytes]
) -> Optional[bytes]:
    """
    Verify a Merkle-Patricia proof for ``key`` against a trusted ``root``.

    Args:
        root: 32-byte trusted root hash
        key: trie path in bytes (already keccak'd for secure tries)
        proof_nodes: RLP-encoded nodes, root first

    Returns:
        The value stored at ``key``, or None if the proof shows the key is
        absent.

    Raises:
        RootMismatch: if the first node does not hash to ``root``
        InvalidProof: on any other hash mismatch, malformed node, missing or
            superfluous node
    """
    root = bytes(root)
    if len(root) != TrieConstants.HASH_LENGTH:
        raise InvalidProof("Trie root must be 32 bytes")

    nodes: List[bytes] = [bytes(n) for n in proof_nodes]
    if not nodes:
        if root == TrieConstants.EMPTY_TRIE_ROOT:
            return None
        raise InvalidProof("Empty proof for a non-empty trie")
    if len(nodes) > TrieConstants.MAX_PROOF_DEPTH:
        raise InvalidProof(f"Proof has {len(nodes)} nodes")

    if keccak256(nodes[0]) != root:
        raise RootMismatch(
            f"First proof node does not hash to root 0x{root.hex()}"
        )

    remaining = key_to_nibbles(key)
    node = decode_node(nodes[0])
    index = 1

    while True:
        if isinstance(node, BranchNode):
            if not remaining:
                value = node.value or None
                next_ref = None
            else:
                next_ref = node.children[remaining[0]]
                remaining = remaining[1:]
                if next_ref == b"":
                    _logger.debug("Empty branch slot, key absent")
                    value, next_ref = None, None

        elif isinstance(node, ExtensionNode):
            if remaining[: len(node.path)] != node.path:
                _logger.debug("Key diverges from extension path, key absent")
                value, next_ref = None, None
            else:
                remaining = remaining[len(node.path):]
                next_ref = node.child

        else:
            value = node.value if node.path == remaining else None
            if value is None:
                _logger.debug("Key diverges from leaf path, key absent")
            next_ref = None

        if next_ref is None:
            if index != len(nodes):
                raise InvalidProof(
                    f"Proof has {len(nodes) - index} unused trailing node(s)"
                )
            return value

        if isinstance(next_ref, list):
            # Embedded node: covered by its parent's hash
            node = _node_from_items(next_ref)
            continue

        if index >= len(nodes):
            raise InvalidProof(
                f"Proof ends before node 0x{next_ref.hex()} is revealed"
            )
        raw = nodes[index]
        if keccak256(raw) != next_ref:
            raise InvalidProof(
                f"Proof node {index} does not hash to 0x{next_ref.hex()}"
            )
        node = decode_node(raw)
        index += 1
