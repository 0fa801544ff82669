#!/usr/bin/env python3
"""
Unified CLI for the DAO Proof Toolkit.

Examples:
  - Storage keys
    dao-proof storage-key --holder 0x... --slot-index 0
    dao-proof storage-key --holder 0x... --contract 0x... --chain-id 1

  - Balance attestation (proof from eth_getProof, block from eth_getBlockByNumber)
    dao-proof attest --contract 0x... --holder 0x... --proof proof.json --block block.json
    dao-proof attest --contract 0x... --holder 0x... --proof proof.json \
        --state-root 0x... --block-hash 0x... --block-number 19000000
    dao-proof attest --contract 0x... --holder 0x... --proof proof.json --block block.json \
        --token-id 7 --slot-index 2

  - Sessions
    dao-proof siwe-message --address 0x... --statement "Vote on proposal 7" --chain-id 1
    dao-proof authorize --message challenge.txt --signature 0x...

  - Witness bundle
    dao-proof witness --contract 0x... --holder 0x... --proof proof.json --block block.json
"""

import argparse
from datetime import datetime, timezone
from typing import List, Optional

from dao_proof_toolkit.auth.siwe import new_challenge
from dao_proof_toolkit.commands.helpers import handle_command_error
from dao_proof_toolkit.commands.validation import (
    validate_chain_id,
    validate_eth_address,
    validate_hex32,
    validate_slot_index,
)
from dao_proof_toolkit.proofs.block_header import verify_block_header
from dao_proof_toolkit.proofs.manager import GovernanceVerifier
from dao_proof_toolkit.proofs.storage_keys import (
    derive_balance_slot_key,
    derive_packed_slot_key,
    storage_trie_key,
)
from dao_proof_toolkit.proofs.types import BlockHeader
from dao_proof_toolkit.proofs.witness import build_witness, encode_witness
from dao_proof_toolkit.shared import registry
from dao_proof_toolkit.shared.constants import GlobalConstants
from dao_proof_toolkit.utils.file_utils import load_json, load_text
from dao_proof_toolkit.utils.formatters import (
    console,
    create_claim_table,
    format_address,
    generate_timestamped_filename,
    save_json_output,
)


def _load_header(args: argparse.Namespace) -> BlockHeader:
    """Trusted header from a block JSON file or explicit root arguments."""
    if args.block:
        return verify_block_header(load_json(args.block))
    if not (args.state_root and args.block_hash and args.block_number is not None):
        raise ValueError(
            "Provide --block, or --state-root with --block-hash and --block-number"
        )
    return BlockHeader(
        number=args.block_number,
        hash=validate_hex32(args.block_hash, "block_hash"),
        state_root=validate_hex32(args.state_root, "state_root"),
    )


def _resolve_slot(args: argparse.Namespace, contract: Optional[str]) -> int:
    if args.slot_index is not None:
        return validate_slot_index(args.slot_index)
    if not contract:
        raise ValueError("Provide --slot-index or --contract")
    return registry.get_balance_slot(args.chain_id, contract)


def cmd_storage_key(args: argparse.Namespace) -> None:
    holder = validate_eth_address(args.holder, "holder")
    contract = (
        validate_eth_address(args.contract, "contract")
        if args.contract
        else None
    )
    slot_index = _resolve_slot(args, contract)

    if args.packed:
        slot_key = derive_packed_slot_key(holder, slot_index)
    else:
        slot_key = derive_balance_slot_key(holder, slot_index)

    out = {
        "holder": holder,
        "slot_index": slot_index,
        "encoding": "packed" if args.packed else "abi",
        "slot_key": "0x" + slot_key.hex(),
        "trie_key": "0x" + storage_trie_key(slot_key).hex(),
    }
    if args.json:
        filename = args.output or f"storage_key_{holder[:10]}.json"
        save_json_output(out, filename)
        return

    console.print(f"Slot key: [green]{out['slot_key']}[/green]")
    console.print(f"Trie key: [green]{out['trie_key']}[/green]")


def cmd_attest(args: argparse.Namespace) -> None:
    validate_chain_id(args.chain_id)
    contract = validate_eth_address(args.contract, "contract")
    holder = validate_eth_address(args.holder, "holder")
    header = _load_header(args)
    proof = load_json(args.proof)

    verifier = GovernanceVerifier(args.chain_id)
    slot_index = (
        validate_slot_index(args.slot_index)
        if args.slot_index is not None
        else None
    )

    if args.token_id is not None:
        if slot_index is None:
            raise ValueError("--token-id needs the owners mapping --slot-index")
        claim = verifier.attest_ownership(
            header, contract, holder, args.token_id, proof, slot_index
        ).unwrap()
    elif args.expected_balance is not None:
        if slot_index is None:
            slot_index = verifier.resolve_slot(contract, None)
        result = verifier.check_slot(
            header, contract, holder, proof, slot_index, args.expected_balance
        )
        check = result.unwrap()
        status = "[green]valid[/green]" if check.valid else "[red]invalid[/red]"
        console.print(f"Slot {slot_index} for {format_address(contract)}: {status}")
        console.print(check.reason)
        return
    else:
        claim = verifier.attest(
            header, contract, holder, proof, slot_index
        ).unwrap()

    out = claim.to_dict()
    out["chain_id"] = args.chain_id
    out["chain"] = GlobalConstants.CHAIN_NAMES.get(args.chain_id)
    out["token"] = registry.get_token_name(args.chain_id, contract)

    console.print(create_claim_table(out))
    if args.json or args.output:
        filename = args.output or f"attestation_{header.number}.json"
        save_json_output(out, filename)


def cmd_siwe_message(args: argparse.Namespace) -> None:
    address = validate_eth_address(args.address, "address")
    validate_chain_id(args.chain_id)

    kwargs = {}
    if args.domain:
        kwargs["domain"] = args.domain
    if args.uri:
        kwargs["uri"] = args.uri
    challenge = new_challenge(
        address,
        args.statement,
        args.chain_id,
        expires_in=args.expires_in,
        nonce=args.nonce,
        with_nanos=args.nanos,
        **kwargs,
    )
    message = challenge.to_message()

    if args.output:
        save_json_output(
            {
                "message": message,
                "address": challenge.address,
                "nonce": challenge.nonce,
                "expiration_time": challenge.expiration_time,
            },
            args.output,
        )
        return

    # Raw text so it can be piped into a wallet or the authorize command
    print(message)


def cmd_authorize(args: argparse.Namespace) -> None:
    message = load_text(args.message)
    now = (
        datetime.fromtimestamp(args.now, tz=timezone.utc)
        if args.now is not None
        else None
    )

    verifier = GovernanceVerifier(args.chain_id)
    address = verifier.authorize(message, args.signature, now).unwrap()
    console.print(f"Authorized: [green]{address}[/green]")


def cmd_witness(args: argparse.Namespace) -> None:
    validate_chain_id(args.chain_id)
    contract = validate_eth_address(args.contract, "contract")
    holder = validate_eth_address(args.holder, "holder")
    header = _load_header(args)
    slot_index = _resolve_slot(args, contract)
    proof = load_json(args.proof)

    verifier = GovernanceVerifier(args.chain_id)
    claim = verifier.attest(header, contract, holder, proof, slot_index).unwrap()

    witness = build_witness(
        header, holder, contract, slot_index, proof, args.chain_id
    )
    out = {
        "claim": claim.to_dict(),
        "witness": witness.to_dict(),
        "rlp": "0x" + encode_witness(witness).hex(),
    }
    filename = args.output or generate_timestamped_filename("witness")
    save_json_output(out, filename)


def _add_header_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--block", type=str, help="Block JSON file")
    parser.add_argument("--state-root", type=str)
    parser.add_argument("--block-hash", type=str)
    parser.add_argument("--block-number", type=int)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dao-proof",
        description="Unified CLI for the DAO Proof Toolkit",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    # storage-key
    p_sk = sub.add_parser(
        "storage-key", help="Derive a balance mapping storage key"
    )
    p_sk.add_argument("--holder", type=str, required=True)
    p_sk.add_argument("--slot-index", type=int)
    p_sk.add_argument(
        "--contract", type=str, help="Look the slot up in the registry"
    )
    p_sk.add_argument(
        "--chain-id", type=int, default=GlobalConstants.DEFAULT_CHAIN_ID
    )
    p_sk.add_argument(
        "--packed",
        action="store_true",
        help="Use abi.encodePacked instead of abi.encode",
    )
    p_sk.add_argument("--json", action="store_true", help="Output JSON")
    p_sk.add_argument("--output", type=str, help="Output filename")
    p_sk.set_defaults(func=cmd_storage_key)

    # attest
    p_at = sub.add_parser("attest", help="Verify a token balance proof")
    p_at.add_argument("--contract", type=str, required=True)
    p_at.add_argument("--holder", type=str, required=True)
    p_at.add_argument(
        "--proof", type=str, required=True, help="eth_getProof JSON file"
    )
    p_at.add_argument("--slot-index", type=int)
    p_at.add_argument(
        "--chain-id", type=int, default=GlobalConstants.DEFAULT_CHAIN_ID
    )
    p_at.add_argument(
        "--expected-balance",
        type=int,
        help="Check the slot against a known balance instead",
    )
    p_at.add_argument(
        "--token-id",
        type=int,
        help="Attest ERC-721 ownership of this token instead",
    )
    _add_header_args(p_at)
    p_at.add_argument("--json", action="store_true", help="Output JSON")
    p_at.add_argument("--output", type=str, help="Output filename")
    p_at.set_defaults(func=cmd_attest)

    # siwe-message
    p_sm = sub.add_parser("siwe-message", help="Create a SIWE challenge")
    p_sm.add_argument("--address", type=str, required=True)
    p_sm.add_argument("--statement", type=str, required=True)
    p_sm.add_argument(
        "--chain-id", type=int, default=GlobalConstants.DEFAULT_CHAIN_ID
    )
    p_sm.add_argument("--domain", type=str)
    p_sm.add_argument("--uri", type=str)
    p_sm.add_argument("--nonce", type=str)
    p_sm.add_argument("--expires-in", type=int, help="Seconds")
    p_sm.add_argument(
        "--nanos",
        action="store_true",
        help="Include the nanosecond timestamp lines",
    )
    p_sm.add_argument("--output", type=str, help="Output filename")
    p_sm.set_defaults(func=cmd_siwe_message)

    # authorize
    p_au = sub.add_parser("authorize", help="Verify a signed SIWE message")
    p_au.add_argument(
        "--message", type=str, required=True, help="SIWE message text file"
    )
    p_au.add_argument("--signature", type=str, required=True)
    p_au.add_argument(
        "--chain-id", type=int, default=GlobalConstants.DEFAULT_CHAIN_ID
    )
    p_au.add_argument("--now", type=int, help="Unix time to verify at")
    p_au.set_defaults(func=cmd_authorize)

    # witness
    p_wi = sub.add_parser("witness", help="Build an RLP witness bundle")
    p_wi.add_argument("--contract", type=str, required=True)
    p_wi.add_argument("--holder", type=str, required=True)
    p_wi.add_argument("--proof", type=str, required=True)
    p_wi.add_argument("--slot-index", type=int)
    p_wi.add_argument(
        "--chain-id", type=int, default=GlobalConstants.DEFAULT_CHAIN_ID
    )
    _add_header_args(p_wi)
    p_wi.add_argument("--output", type=str, help="Output filename")
    p_wi.set_defaults(func=cmd_witness)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        args.func(args)
    except Exception as e:
        handle_command_error(e)


if __name__ == "__main__":
    main()
