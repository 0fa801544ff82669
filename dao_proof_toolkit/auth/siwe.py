"""
Sign-In-With-Ethereum (EIP-4361) challenges.

The signature covers the literal message text, so ``to_message`` must be
byte-exact and ``parse_siwe_message`` accepts only text that re-renders to
itself. Two dialects are supported: the plain EIP-4361 field set and the
governance canister's, which adds ``Issued At Nanos`` and
``Expiration Nanos`` lines.
"""

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from eth_utils import is_hex_address, to_checksum_address

from dao_proof_toolkit.shared.constants import SiweConstants
from dao_proof_toolkit.shared.exceptions import MalformedChallenge

HEADER_SUFFIX = " wants you to sign in with your Ethereum account:"

Timestamp = Union[datetime, int, float]


def parse_timestamp(value: str) -> datetime:
    """Parse an RFC 3339 timestamp; naive values are taken as UTC."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise MalformedChallenge(f"Invalid timestamp: {value}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(moment: datetime) -> str:
    """RFC 3339 in UTC with millisecond precision (``...T19:17:11.000Z``)."""
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + (
        f"{moment.microsecond // 1000:03d}Z"
    )


def as_datetime(now: Timestamp) -> datetime:
    """Accept datetimes or unix seconds."""
    if isinstance(now, datetime):
        return now if now.tzinfo else now.replace(tzinfo=timezone.utc)
    return datetime.fromtimestamp(now, tz=timezone.utc)


@dataclass(frozen=True)
class SiweChallenge:
    domain: str
    address: str
    statement: str
    uri: str
    version: str
    chain_id: int
    nonce: str
    issued_at: str
    expiration_time: str
    issued_at_nanos: Optional[int] = None
    expiration_nanos: Optional[int] = None

    def __post_init__(self):
        for name in (
            "domain",
            "address",
            "statement",
            "uri",
            "version",
            "nonce",
            "issued_at",
            "expiration_time",
        ):
            value = getattr(self, name)
            if not isinstance(value, str) or not value:
                raise MalformedChallenge(f"Challenge field '{name}' is empty")
            if "\n" in value or "\r" in value:
                raise MalformedChallenge(
                    f"Challenge field '{name}' spans several lines"
                )
        if not is_hex_address(self.address):
            raise MalformedChallenge(f"Invalid address: {self.address}")
        # Fail on construction rather than at authorization time
        for label, text, nanos in (
            ("Issued At", self.issued_at, self.issued_at_nanos),
            ("Expiration", self.expiration_time, self.expiration_nanos),
        ):
            moment = parse_timestamp(text)
            # The ISO line carries milliseconds only
            if (
                nanos is not None
                and nanos // 1_000_000 != _to_nanos(moment) // 1_000_000
            ):
                raise MalformedChallenge(
                    f"'{label} Nanos' does not match the {label} timestamp"
                )

    @property
    def expires_at(self) -> datetime:
        return parse_timestamp(self.expiration_time)

    def to_message(self) -> str:
        """Render the canonical message text that gets signed."""
        lines = [
            f"{self.domain}{HEADER_SUFFIX}",
            self.address,
            "",
            self.statement,
            "",
            f"URI: {self.uri}",
            f"Version: {self.version}",
            f"Chain ID: {self.chain_id}",
            f"Nonce: {self.nonce}",
        ]
        if self.issued_at_nanos is not None:
            lines.append(f"Issued At Nanos: {self.issued_at_nanos}")
        lines.append(f"Issued At: {self.issued_at}")
        if self.expiration_nanos is not None:
            lines.append(f"Expiration Nanos: {self.expiration_nanos}")
        lines.append(f"Expiration Time: {self.expiration_time}")
        return "\n".join(lines)


def new_challenge(
    address: str,
    statement: str,
    chain_id: int,
    issued_at: Optional[datetime] = None,
    expires_in: Optional[int] = None,
    domain: str = SiweConstants.DEFAULT_DOMAIN,
    uri: str = SiweConstants.DEFAULT_URI,
    nonce: Optional[str] = None,
    with_nanos: bool = False,
) -> SiweChallenge:
    """
    Create a fresh challenge for ``address``.

    With ``with_nanos`` the canister dialect is produced and, as the canister
    expects, the nonce defaults to the expiration time in nanoseconds.
    """
    issued = (issued_at or datetime.now(timezone.utc)).astimezone(timezone.utc)
    issued = issued.replace(microsecond=(issued.microsecond // 1000) * 1000)
    if expires_in is None:
        expires_in = SiweConstants.DEFAULT_EXPIRATION_SECONDS
    expires = issued + timedelta(seconds=expires_in)

    issued_nanos = expiration_nanos = None
    if with_nanos:
        issued_nanos = _to_nanos(issued)
        expiration_nanos = _to_nanos(expires)
    if nonce is None:
        nonce = (
            str(expiration_nanos) if with_nanos else secrets.token_hex(16)
        )

    return SiweChallenge(
        domain=domain,
        address=to_checksum_address(address),
        statement=statement,
        uri=uri,
        version=SiweConstants.VERSION,
        chain_id=chain_id,
        nonce=nonce,
        issued_at=format_timestamp(issued),
        expiration_time=format_timestamp(expires),
        issued_at_nanos=issued_nanos,
        expiration_nanos=expiration_nanos,
    )


def _to_nanos(moment: datetime) -> int:
    epoch = datetime(1970, 1, 1, tzinfo=timezone.utc)
    delta = moment - epoch
    return (
        delta.days * 86_400 + delta.seconds
    ) * 1_000_000_000 + delta.microseconds * 1_000


def _field(line: str, label: str) -> str:
    prefix = f"{label}: "
    if not line.startswith(prefix):
        raise MalformedChallenge(f"Expected '{label}' line, got {line!r}")
    return line[len(prefix):]


def _int_field(line: str, label: str) -> int:
    value = _field(line, label)
    if not value.isdigit():
        raise MalformedChallenge(f"'{label}' must be a decimal integer")
    return int(value)


def parse_siwe_message(message: str) -> SiweChallenge:
    """
    Parse canonical SIWE message text back into a challenge.

    Raises:
        MalformedChallenge: if the text deviates from the canonical layout
    """
    lines = message.split("\n")
    if len(lines) < 10:
        raise MalformedChallenge("SIWE message is too short")

    if not lines[0].endswith(HEADER_SUFFIX):
        raise MalformedChallenge("Missing SIWE header line")
    if lines[2] != "" or lines[4] != "":
        raise MalformedChallenge("Statement must be surrounded by blank lines")

    rest = lines[5:]
    uri = _field(rest.pop(0), "URI")
    version = _field(rest.pop(0), "Version")
    chain_id = _int_field(rest.pop(0), "Chain ID")
    nonce = _field(rest.pop(0), "Nonce")

    issued_at_nanos = expiration_nanos = None
    if rest and rest[0].startswith("Issued At Nanos: "):
        issued_at_nanos = _int_field(rest.pop(0), "Issued At Nanos")
    if not rest:
        raise MalformedChallenge("Missing 'Issued At' line")
    issued_at = _field(rest.pop(0), "Issued At")
    if rest and rest[0].startswith("Expiration Nanos: "):
        expiration_nanos = _int_field(rest.pop(0), "Expiration Nanos")
    if not rest:
        raise MalformedChallenge("Missing 'Expiration Time' line")
    expiration_time = _field(rest.pop(0), "Expiration Time")
    if rest:
        raise MalformedChallenge(f"Unexpected trailing lines: {rest!r}")

    challenge = SiweChallenge(
        domain=lines[0][: -len(HEADER_SUFFIX)],
        address=lines[1],
        statement=lines[3],
        uri=uri,
        version=version,
        chain_id=chain_id,
        nonce=nonce,
        issued_at=issued_at,
        expiration_time=expiration_time,
        issued_at_nanos=issued_at_nanos,
        expiration_nanos=expiration_nanos,
    )
    if challenge.to_message() != message:
        raise MalformedChallenge("SIWE message is not in canonical form")
    return challenge
