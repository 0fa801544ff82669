"""
Canonical RLP encode/decode.

Thin layer over ``pyrlp`` that pins decoding to its strictest behavior and
reports every failure as MalformedRlp. Items are ``bytes`` or (nested) lists
of items.
"""

from typing import List, Union

import rlp
from rlp.exceptions import RLPException
from rlp.sedes import big_endian_int

from dao_proof_toolkit.shared.exceptions import MalformedRlp

Item = Union[bytes, List["Item"]]


def encode(item: Item) -> bytes:
    """RLP-encode a byte string or a nested list of byte strings."""
    return rlp.encode(item)


def decode(data: bytes) -> Item:
    """
    Decode exactly one RLP item spanning all of ``data``.

    Raises:
        MalformedRlp: on truncated input, trailing bytes, non-minimal length
            headers or a single low byte wrapped in a string header
    """
    data = bytes(data)
    if not data:
        raise MalformedRlp("Cannot decode empty input")
    try:
        item = rlp.decode(data, strict=True)
    except RLPException as e:
        raise MalformedRlp(f"Invalid RLP: {e}") from e

    # Re-encoding must reproduce the input byte-for-byte
    if rlp.encode(item) != data:
        raise MalformedRlp("Non-canonical RLP encoding")
    return item


def decode_scalar(data: bytes) -> int:
    """
    Decode an RLP-encoded unsigned integer.

    The payload must be a byte string in minimal big-endian form; leading
    zero bytes are rejected.
    """
    item = decode(data)
    if not isinstance(item, bytes):
        raise MalformedRlp("Expected an RLP string, got a list")
    try:
        return big_endian_int.deserialize(item)
    except RLPException as e:
        raise MalformedRlp(f"Invalid RLP integer: {e}") from e
