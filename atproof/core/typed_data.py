"""
atproof/core/typed_data.py

EIP-712 Verification Claim — wire contract

THIS SCHEMA IS A WIRE CONTRACT.
Changing the domain, the field order, a field name or a field type changes
every digest and invalidates every signature issued so far. Any change
requires a new domain version.

    domain       = { name, version, salt }        (no chainId, no contract)
    primaryType  = "VerificationClaim"
    fields       = did: string, address: bytes, blockHash: bytes32
    message      = { did, address: 0x-hex, blockHash: 0x-hex }

The message carries address and blockHash as 0x-prefixed hex strings,
which is the representation wallets receive. to_signable() converts them
back to raw bytes before hashing so the digest never depends on how a
particular library interprets hex strings.
"""

from dataclasses import dataclass
from typing import Any, Dict, List

from eth_account.messages import SignableMessage, encode_typed_data
from eth_utils import keccak, to_bytes

from atproof.core.address import InteroperableAddress
from atproof.core.exceptions import EncodingError


# ─────────────────────────────────────────────────────────────
# Constants
# ─────────────────────────────────────────────────────────────

DOMAIN_NAME    = "Atproto Verify Ethereum Address"
DOMAIN_VERSION = "1.0.0"
# Fixed random salt scoping signatures to this protocol
DOMAIN_SALT    = "0xc17864bd52a2ad9ca178ee6d6122db20dad1e67d2e99eb8d7cfbcde8fc05d7c8"

DOMAIN: Dict[str, str] = {
    "name":    DOMAIN_NAME,
    "version": DOMAIN_VERSION,
    "salt":    DOMAIN_SALT,
}

EIP712_DOMAIN_FIELDS: List[Dict[str, str]] = [
    {"name": "name",    "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "salt",    "type": "bytes32"},
]

PRIMARY_TYPE = "VerificationClaim"

VERIFICATION_CLAIM_FIELDS: List[Dict[str, str]] = [
    {"name": "did",       "type": "string"},
    {"name": "address",   "type": "bytes"},
    {"name": "blockHash", "type": "bytes32"},
]

VERIFICATION_TYPES: Dict[str, List[Dict[str, str]]] = {
    PRIMARY_TYPE: VERIFICATION_CLAIM_FIELDS,
}

BLOCK_HASH_LENGTH = 32


# ─────────────────────────────────────────────────────────────
# Message construction
# ─────────────────────────────────────────────────────────────

def _hex(value: bytes) -> str:
    return "0x" + bytes(value).hex()


def build_message(
    subject:         str,
    encoded_address: bytes,
    block_hash:      bytes,
) -> Dict[str, str]:
    """
    Assemble the canonical claim message. Pure, no I/O.

    Raises:
        EncodingError: subject is not a non-empty string, or block_hash is
                       not exactly 32 bytes.
    """
    if not isinstance(subject, str) or not subject:
        raise EncodingError("subject must be a non-empty string")
    if not isinstance(encoded_address, (bytes, bytearray)):
        raise EncodingError(
            f"encoded_address must be bytes, got {type(encoded_address).__name__}"
        )
    if (
        not isinstance(block_hash, (bytes, bytearray))
        or len(block_hash) != BLOCK_HASH_LENGTH
    ):
        raise EncodingError(
            f"block_hash must be {BLOCK_HASH_LENGTH} bytes",
            {"length": len(block_hash) if isinstance(block_hash, (bytes, bytearray)) else None},
        )

    return {
        "did":       subject,
        "address":   _hex(encoded_address),
        "blockHash": _hex(block_hash),
    }


def build_typed_data(message: Dict[str, str]) -> Dict[str, Any]:
    """
    Full EIP-712 document, as taken by eth_signTypedData_v4.
    """
    return {
        "types": {
            "EIP712Domain": EIP712_DOMAIN_FIELDS,
            **VERIFICATION_TYPES,
        },
        "primaryType": PRIMARY_TYPE,
        "domain":      dict(DOMAIN),
        "message":     dict(message),
    }


# ─────────────────────────────────────────────────────────────
# Hashing
# ─────────────────────────────────────────────────────────────

def _bytes_fields(fields: List[Dict[str, str]], values: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(values)
    for field in fields:
        name, kind = field["name"], field["type"]
        if kind.startswith("bytes") and isinstance(out.get(name), str):
            out[name] = to_bytes(hexstr=out[name])
    return out


def to_signable(
    domain:       Dict[str, Any],
    types:        Dict[str, List[Dict[str, str]]],
    primary_type: str,
    message:      Dict[str, Any],
) -> SignableMessage:
    """
    Build the eth-account SignableMessage for (domain, types, message).

    Hex-string values of bytes/bytesN fields are converted to raw bytes
    first. Only the primary type's fields are normalized; nested structs
    are not part of this protocol.
    """
    if primary_type not in types:
        raise EncodingError(
            f"primary type '{primary_type}' missing from types",
            {"types": sorted(types)},
        )
    domain_data  = _bytes_fields(EIP712_DOMAIN_FIELDS, domain)
    message_data = _bytes_fields(types[primary_type], message)
    message_types = {k: v for k, v in types.items() if k != "EIP712Domain"}
    return encode_typed_data(
        domain_data=domain_data,
        message_types=message_types,
        message_data=message_data,
    )


def signable_digest(signable: SignableMessage) -> bytes:
    """keccak256(0x19 ‖ version ‖ header ‖ body)"""
    return keccak(
        b"\x19" + signable.version + signable.header + signable.body
    )


def typed_data_hash(message: Dict[str, str]) -> bytes:
    """32-byte EIP-712 digest of a claim message under the fixed domain."""
    return signable_digest(
        to_signable(DOMAIN, VERIFICATION_TYPES, PRIMARY_TYPE, message)
    )


# ─────────────────────────────────────────────────────────────
# Claim value type
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class VerificationClaim:
    """
    Binds one subject to one (chain, address) pair at one block.

    Ephemeral. Never persisted by the library.
    """

    subject:    str
    address:    InteroperableAddress
    block_hash: bytes

    def to_message(self) -> Dict[str, str]:
        return build_message(self.subject, self.address.to_bytes(), self.block_hash)

    def to_typed_data(self) -> Dict[str, Any]:
        return build_typed_data(self.to_message())

    def digest(self) -> bytes:
        return typed_data_hash(self.to_message())
