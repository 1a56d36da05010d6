"""
atproof/core/record.py

org.chainagnostic.verification record value.

Repository clients hand bytes back in more than one shape: raw bytes,
atproto JSON {"$bytes": "<base64>"}, or 0x-hex strings. unwrap_bytes() is the
single place those shapes are normalized. The codec and the engine only ever
see raw bytes.
"""

import base64
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping

from atproof.core.address import InteroperableAddress, decode_interoperable_address
from atproof.core.exceptions import RecordError
from atproof.core.time import is_record_timestamp
from atproof.core.typed_data import BLOCK_HASH_LENGTH


COLLECTION = "org.chainagnostic.verification"

# Lexicon limits
_MAX_ADDRESS_BYTES    = 128
_MAX_BLOCK_HASH_BYTES = BLOCK_HASH_LENGTH


# ─────────────────────────────────────────────────────────────
# Byte normalization
# ─────────────────────────────────────────────────────────────

def unwrap_bytes(value: Any, field_name: str = "value") -> bytes:
    """
    Normalize a repository byte value to raw bytes.

    Accepts:
        bytes / bytearray / memoryview
        {"$bytes": "<base64, padding optional>"}
        "0x..." hex string

    Raises:
        RecordError: any other shape, or an undecodable payload.
    """
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)

    if isinstance(value, Mapping) and "$bytes" in value:
        encoded = value["$bytes"]
        if not isinstance(encoded, str):
            raise RecordError(f"{field_name}: $bytes must be a string")
        # Re-add base64 padding if stripped
        padding = 4 - len(encoded) % 4
        try:
            return base64.b64decode(encoded + "=" * (padding % 4), validate=True)
        except ValueError as exc:
            raise RecordError(
                f"{field_name}: invalid base64 in $bytes",
                {"error": exc},
            ) from exc

    if isinstance(value, str) and value[:2] in ("0x", "0X"):
        try:
            return bytes.fromhex(value[2:])
        except ValueError as exc:
            raise RecordError(f"{field_name}: invalid hex string") from exc

    raise RecordError(
        f"{field_name}: cannot interpret {type(value).__name__} as bytes"
    )


def wrap_bytes(value: bytes) -> Dict[str, str]:
    """atproto JSON byte wrapper (standard base64, no padding)."""
    return {"$bytes": base64.b64encode(value).decode("ascii").rstrip("=")}


# ─────────────────────────────────────────────────────────────
# SchemaValidationResult
# ─────────────────────────────────────────────────────────────

@dataclass
class SchemaValidationResult:
    """
    Result of VerificationRecord.validate_schema().

    Returned, not raised, so callers can choose hard fail vs log.
    bool(result) is True iff valid.
    """
    valid:  bool
    errors: List[str]

    def __bool__(self) -> bool:
        return self.valid

    def __repr__(self) -> str:
        if self.valid:
            return "SchemaValidationResult(VALID)"
        return f"SchemaValidationResult(INVALID, errors={self.errors})"


# ─────────────────────────────────────────────────────────────
# VerificationRecord
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class VerificationRecord:
    """
    One stored claim: {address, signature, blockHash, createdAt}.

    address is the encoded interoperable address. The subject (DID) is not
    stored; it is the repository owner.
    """

    address:    bytes
    signature:  bytes
    block_hash: bytes
    created_at: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "VerificationRecord":
        """
        Deserialize a repository record value. Byte fields go through
        unwrap_bytes(). Does NOT validate lengths; call validate_schema().

        Raises:
            RecordError: missing field or unreadable byte value.
        """
        if not isinstance(data, Mapping):
            raise RecordError(
                f"record must be a mapping, got {type(data).__name__}"
            )
        # listRecords returns {"uri", "cid", "value": {...}}
        if "value" in data and isinstance(data["value"], Mapping):
            data = data["value"]

        missing = [
            k for k in ("address", "signature", "blockHash", "createdAt")
            if k not in data
        ]
        if missing:
            raise RecordError("record missing fields", {"missing": missing})

        return cls(
            address=    unwrap_bytes(data["address"],   "address"),
            signature=  unwrap_bytes(data["signature"], "signature"),
            block_hash= unwrap_bytes(data["blockHash"], "blockHash"),
            created_at= data["createdAt"],
        )

    def to_dict(self) -> Dict[str, Any]:
        """atproto JSON form, suitable for createRecord / putRecord."""
        return {
            "$type":     COLLECTION,
            "address":   wrap_bytes(self.address),
            "signature": wrap_bytes(self.signature),
            "blockHash": wrap_bytes(self.block_hash),
            "createdAt": self.created_at,
        }

    @property
    def record_key(self) -> str:
        """Deterministic rkey: hex of the encoded address, no 0x."""
        return self.address.hex()

    def decoded_address(self) -> InteroperableAddress:
        """Raises DecodeError subclasses for malformed addresses."""
        return decode_interoperable_address(self.address)

    def validate_schema(self) -> SchemaValidationResult:
        errors: List[str] = []

        if not self.address:
            errors.append("address must not be empty")
        elif len(self.address) > _MAX_ADDRESS_BYTES:
            errors.append(
                f"address exceeds {_MAX_ADDRESS_BYTES} bytes, got {len(self.address)}"
            )

        if len(self.block_hash) > _MAX_BLOCK_HASH_BYTES:
            errors.append(
                f"blockHash exceeds {_MAX_BLOCK_HASH_BYTES} bytes, got {len(self.block_hash)}"
            )

        if not self.signature:
            errors.append("signature must not be empty")

        if not is_record_timestamp(self.created_at):
            errors.append(
                f"createdAt '{self.created_at}' is not an RFC 3339 datetime"
            )

        return SchemaValidationResult(valid=len(errors) == 0, errors=errors)
