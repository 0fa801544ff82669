"""
Pytest configuration and shared fixtures.

This module provides common fixtures and configuration for all tests,
including a small Merkle-Patricia trie builder used to produce real proofs
without a node.
"""

from typing import Dict, List, Optional, Sequence, Tuple, Union

import pytest
import rlp
from eth_utils import keccak, to_canonical_address
from rlp.sedes import big_endian_int

from dao_proof_toolkit.proofs.account import Account
from dao_proof_toolkit.proofs.storage_keys import (
    derive_balance_slot_key,
    derive_ownership_slot_key,
)
from dao_proof_toolkit.proofs.types import BlockHeader
from dao_proof_toolkit.shared import registry

# Hardhat / Anvil account #0
DEV_PRIVATE_KEY = (
    "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
)
DEV_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

# Hardhat / Anvil account #1
OTHER_PRIVATE_KEY = (
    "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"
)
OTHER_ADDRESS = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"

TOKEN_ADDRESS = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
NFT_ADDRESS = "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"


# =============================================================================
# TRIE BUILDER
# =============================================================================


def _nibbles(key: bytes) -> Tuple[int, ...]:
    out = []
    for byte in key:
        out.extend((byte >> 4, byte & 0x0F))
    return tuple(out)


def hex_prefix(nibbles: Sequence[int], is_leaf: bool) -> bytes:
    """Compact path encoding, independent of the code under test."""
    flag = 2 if is_leaf else 0
    if len(nibbles) % 2:
        nibbles = [flag + 1] + list(nibbles)
    else:
        nibbles = [flag, 0] + list(nibbles)
    return bytes(
        (nibbles[i] << 4) | nibbles[i + 1] for i in range(0, len(nibbles), 2)
    )


def leaf_node(nibbles: Sequence[int], value: bytes) -> list:
    return [hex_prefix(nibbles, True), value]


def extension_node(nibbles: Sequence[int], child) -> list:
    return [hex_prefix(nibbles, False), child]


def branch_node(children: Dict[int, object], value: bytes = b"") -> list:
    node = [b""] * 17
    for index, child in children.items():
        node[index] = child
    node[16] = value
    return node


def node_ref(node: list):
    """Parent reference: the node inline if short, otherwise its hash."""
    encoded = rlp.encode(node)
    return node if len(encoded) < 32 else keccak(encoded)


class TrieBuilder:
    """
    Minimal in-memory hexary trie that can produce eth_getProof style proofs.

    Keys are hashed with keccak when ``secure`` is set, as in the state and
    storage tries.
    """

    def __init__(self, secure: bool = True):
        self.secure = secure
        self._items: Dict[Tuple[int, ...], bytes] = {}
        self._db: Dict[bytes, list] = {}
        self._root_node: Optional[list] = None

    def _path(self, key: bytes) -> Tuple[int, ...]:
        return _nibbles(keccak(key) if self.secure else key)

    def put(self, key: bytes, value: bytes) -> "TrieBuilder":
        self._items[self._path(key)] = value
        self._root_node = None
        return self

    def get(self, key: bytes) -> Optional[bytes]:
        return self._items.get(self._path(key))

    def _build(self, items: List[Tuple[Tuple[int, ...], bytes]]):
        if len(items) == 1:
            path, value = items[0]
            return leaf_node(path, value)

        prefix_len = 0
        first = items[0][0]
        while all(
            len(path) > prefix_len and path[prefix_len] == first[prefix_len]
            for path, _ in items
        ):
            prefix_len += 1
        if prefix_len:
            child = self._build([(p[prefix_len:], v) for p, v in items])
            return extension_node(first[:prefix_len], self._ref(child))

        children = {}
        value = b""
        groups: Dict[int, list] = {}
        for path, item_value in items:
            if not path:
                value = item_value
            else:
                groups.setdefault(path[0], []).append((path[1:], item_value))
        for index, group in groups.items():
            children[index] = self._ref(self._build(group))
        return branch_node(children, value)

    def _ref(self, node: list):
        ref = node_ref(node)
        if not isinstance(ref, list):
            self._db[ref] = node
        return ref

    @property
    def root_node(self) -> list:
        if self._root_node is None:
            self._root_node = self._build(sorted(self._items.items()))
        return self._root_node

    @property
    def root(self) -> bytes:
        if not self._items:
            return keccak(rlp.encode(b""))
        return keccak(rlp.encode(self.root_node))

    def prove(self, key: bytes) -> List[bytes]:
        """RLP-encoded nodes from the root to ``key`` (or its divergence)."""
        if not self._items:
            return []
        remaining = self._path(key)
        node = self.root_node
        proof = [rlp.encode(node)]
        while True:
            if len(node) == 17:
                if not remaining:
                    return proof
                ref = node[remaining[0]]
                remaining = remaining[1:]
                if ref == b"":
                    return proof
            else:
                flag = node[0][0] >> 4
                path = _nibbles(node[0])[2 - (flag & 1):]
                if flag & 2 or remaining[: len(path)] != path:
                    return proof
                remaining = remaining[len(path):]
                ref = node[1]
            if isinstance(ref, list):
                node = ref
                continue
            node = self._db[ref]
            proof.append(rlp.encode(node))


def hexlify(nodes: Sequence[bytes]) -> List[str]:
    return ["0x" + bytes(n).hex() for n in nodes]


def _contract_state(
    storage: TrieBuilder,
    contract: str,
    block_number: int,
    extra_accounts: Sequence[str],
):
    account = Account(
        nonce=1,
        balance=0,
        storage_root=storage.root,
        code_hash=keccak(b"\x60\x80"),
    )
    state = TrieBuilder()
    state.put(to_canonical_address(contract), rlp.encode(account))
    for i, other in enumerate(extra_accounts):
        state.put(
            to_canonical_address(other), rlp.encode(Account(nonce=i + 1))
        )

    header = BlockHeader(
        number=block_number,
        hash=keccak(b"block" + block_number.to_bytes(8, "big")),
        state_root=state.root,
    )
    return header, storage, state, account


def build_balance_fixture(
    balances: Dict[str, int],
    slot_index: int = 0,
    contract: str = TOKEN_ADDRESS,
    block_number: int = 19_000_000,
    extra_accounts: Sequence[str] = (),
):
    """
    Build a state with one token contract holding ``balances``.

    Returns:
        (header, storage_trie, state_trie, account)
    """
    storage = TrieBuilder()
    for holder, balance in balances.items():
        if balance:
            storage.put(
                derive_balance_slot_key(holder, slot_index),
                rlp.encode(balance),
            )
    return _contract_state(storage, contract, block_number, extra_accounts)


def build_ownership_fixture(
    owners: Dict[int, Union[str, int]],
    slot_index: int = 2,
    contract: str = NFT_ADDRESS,
    block_number: int = 19_000_000,
):
    """
    State with one ERC-721 contract whose ``owners`` mapping is filled.

    Owners are addresses, or raw storage words written as given.
    """
    storage = TrieBuilder()
    for token_id, owner in owners.items():
        if isinstance(owner, str):
            owner = int.from_bytes(to_canonical_address(owner), "big")
        storage.put(
            derive_ownership_slot_key(token_id, slot_index), rlp.encode(owner)
        )
    return _contract_state(storage, contract, block_number, ())


def make_rpc_proof(
    holder: str,
    storage: TrieBuilder,
    state: TrieBuilder,
    account: Account,
    slot_index: int = 0,
    contract: str = TOKEN_ADDRESS,
    value: Optional[int] = None,
    slot_key: Optional[bytes] = None,
) -> dict:
    """eth_getProof shaped response for one slot (the holder's balance by default)."""
    if slot_key is None:
        slot_key = derive_balance_slot_key(holder, slot_index)
    if value is None:
        raw = storage.get(slot_key)
        value = rlp.decode(raw, sedes=big_endian_int) if raw else 0
    return {
        "address": contract,
        "accountProof": hexlify(state.prove(to_canonical_address(contract))),
        "balance": hex(account.balance),
        "codeHash": "0x" + account.code_hash.hex(),
        "nonce": hex(account.nonce),
        "storageHash": "0x" + account.storage_root.hex(),
        "storageProof": [
            {
                "key": "0x" + slot_key.hex(),
                "value": hex(value),
                "proof": hexlify(storage.prove(slot_key)),
            }
        ],
    }


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def _fresh_registry():
    """Each test sees only the built-in slot registry."""
    registry.reset_registry()
    yield
    registry.reset_registry()


@pytest.fixture
def dev_private_key() -> str:
    """Well-known development private key (Hardhat account #0)."""
    return DEV_PRIVATE_KEY


@pytest.fixture
def dev_address() -> str:
    """Address of the development private key."""
    return DEV_ADDRESS


@pytest.fixture
def other_private_key() -> str:
    return OTHER_PRIVATE_KEY


@pytest.fixture
def other_address() -> str:
    return OTHER_ADDRESS


@pytest.fixture
def sample_contract_address() -> str:
    """Governance token deployed first on a local dev chain."""
    return TOKEN_ADDRESS


@pytest.fixture
def sample_nft_address() -> str:
    """ERC-721 contract deployed second on a local dev chain."""
    return NFT_ADDRESS


@pytest.fixture
def sample_holder_address() -> str:
    """Sample token holder address for tests."""
    return "0x52f541764E6e90eeBc5c21Ff570De0e2D63766B6"


@pytest.fixture
def sample_block_number() -> int:
    """Sample block number for tests."""
    return 19_000_000


@pytest.fixture
def balance_state(sample_holder_address, dev_address, other_address):
    """
    A token contract whose storage holds three balances at slot 0.

    Returns a dict with the header, tries, account and balances.
    """
    balances = {
        sample_holder_address: 1_000 * 10**18,
        dev_address: 42,
        other_address: 7,
    }
    header, storage, state, account = build_balance_fixture(
        balances, extra_accounts=[sample_holder_address, dev_address]
    )
    return {
        "header": header,
        "storage": storage,
        "state": state,
        "account": account,
        "balances": balances,
    }


@pytest.fixture
def trie_builder():
    """The TrieBuilder class, for tests that assemble their own tries."""
    return TrieBuilder


@pytest.fixture
def trie_nodes():
    """Raw node constructors: (hex_prefix, leaf, extension, branch, ref)."""
    return {
        "hex_prefix": hex_prefix,
        "leaf": leaf_node,
        "extension": extension_node,
        "branch": branch_node,
        "ref": node_ref,
    }


@pytest.fixture
def build_state():
    """Factory for a token contract state, see ``build_balance_fixture``."""
    return build_balance_fixture


@pytest.fixture
def rpc_proof(balance_state):
    """Factory for eth_getProof payloads against ``balance_state``."""

    def _make(holder: str, **kwargs) -> dict:
        return make_rpc_proof(
            holder,
            balance_state["storage"],
            balance_state["state"],
            balance_state["account"],
            **kwargs,
        )

    return _make


@pytest.fixture
def ownership_state(dev_address, other_address):
    """
    An ERC-721 contract with owners at slot 2: token 7 is held by the dev
    account, token 8 by the other account, token 9 is unminted and the
    slot of token 10 holds a word wider than an address.
    """
    header, storage, state, account = build_ownership_fixture(
        {7: dev_address, 8: other_address, 10: 2**200}
    )
    return {
        "header": header,
        "storage": storage,
        "state": state,
        "account": account,
    }


@pytest.fixture
def ownership_proof(ownership_state):
    """Factory for eth_getProof payloads of one ``owners[token_id]`` slot."""

    def _make(token_id: int, slot_index: int = 2, **kwargs) -> dict:
        return make_rpc_proof(
            NFT_ADDRESS,
            ownership_state["storage"],
            ownership_state["state"],
            ownership_state["account"],
            contract=NFT_ADDRESS,
            slot_key=derive_ownership_slot_key(token_id, slot_index),
            **kwargs,
        )

    return _make


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: mark test as slow-running")
