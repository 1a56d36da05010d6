"""
atproof/core/address.py

Interoperable Address Codec (ERC-7930, version 1, EIP-155 namespace)

Wire format (bit-exact, big-endian):

    offset 0              version       uint16   MUST be 0x0001
    offset 2              chainType     uint16   MUST be 0x0000
    offset 4              chainRefLen   uint8
    offset 5              chainRef      chainRefLen bytes, unsigned int
    offset 5+chainRefLen  addrLen       uint8
    offset 6+chainRefLen  address       addrLen bytes

ChainRef is the minimal big-endian encoding of the chain id. Chain id 0 is a
single 0x00 byte, never a zero-length reference.

Trailing bytes after the address field are rejected (TrailingBytes) unless
the caller passes allow_trailing=True, in which case they are ignored.

Pure computation, no I/O.
"""

from dataclasses import dataclass
from typing import Union

from eth_utils import to_checksum_address
from loguru import logger

from atproof.core.exceptions import (
    EncodingError,
    TrailingBytes,
    TruncatedInput,
    UnsupportedChainType,
    UnsupportedVersion,
)


INTEROP_VERSION  = 1
CHAIN_TYPE_EIP155 = 0

_HEADER_LENGTH   = 4
_MAX_FIELD_LENGTH = 255

BytesLike = Union[bytes, bytearray, memoryview, str]


def coerce_bytes(value: BytesLike, field: str) -> bytes:
    """Accept raw bytes or a (0x-prefixed) hex string."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        text = value[2:] if value[:2] in ("0x", "0X") else value
        try:
            return bytes.fromhex(text)
        except ValueError:
            raise EncodingError(
                f"{field} is not valid hex",
                {"value": value},
            )
    raise EncodingError(
        f"{field} must be bytes or hex string, got {type(value).__name__}"
    )


def _chain_reference(chain_id: int) -> bytes:
    length = max(1, (chain_id.bit_length() + 7) // 8)
    return chain_id.to_bytes(length, "big")


@dataclass(frozen=True)
class InteroperableAddress:
    """
    A (chain id, account address) pair in the EIP-155 namespace.

    Immutable value. Identity is its encoded bytes.
    """

    chain_id:   int
    address:    bytes
    version:    int = INTEROP_VERSION
    chain_type: int = CHAIN_TYPE_EIP155

    def __post_init__(self) -> None:
        # to_bytes() only emits version 1 in the EIP-155 namespace
        if self.version != INTEROP_VERSION:
            raise UnsupportedVersion(
                f"unsupported interoperable address version {self.version}",
                {"expected": INTEROP_VERSION},
            )
        if self.chain_type != CHAIN_TYPE_EIP155:
            raise UnsupportedChainType(
                f"unsupported chain type 0x{self.chain_type:04x}",
                {"expected": f"0x{CHAIN_TYPE_EIP155:04x}"},
            )

    def to_bytes(self) -> bytes:
        return encode_interoperable_address(self.address, self.chain_id)

    def hex(self) -> str:
        """0x-prefixed lowercase hex of the encoded form."""
        return "0x" + self.to_bytes().hex()

    @property
    def address_hex(self) -> str:
        return "0x" + self.address.hex()

    @property
    def checksum_address(self) -> str:
        """EIP-55 form. Raises ValueError for non 20-byte addresses."""
        return to_checksum_address(self.address_hex)

    @classmethod
    def from_bytes(
        cls, data: BytesLike, allow_trailing: bool = False
    ) -> "InteroperableAddress":
        return decode_interoperable_address(data, allow_trailing=allow_trailing)

    def __repr__(self) -> str:
        return (
            f"InteroperableAddress(chain_id={self.chain_id}, "
            f"address={self.address_hex})"
        )


def encode_interoperable_address(address: BytesLike, chain_id: int) -> bytes:
    """
    Encode an account address and numeric chain id.

    Deterministic: identical inputs always yield identical bytes.

    Raises:
        EncodingError: negative or non-integer chain id, undecodable address,
                       or a field longer than 255 bytes.
    """
    if isinstance(chain_id, bool) or not isinstance(chain_id, int):
        raise EncodingError(
            f"chain_id must be int, got {type(chain_id).__name__}"
        )
    if chain_id < 0:
        raise EncodingError(
            "chain_id must be non-negative",
            {"chain_id": chain_id},
        )

    addr_bytes = coerce_bytes(address, "address")
    chain_ref  = _chain_reference(chain_id)

    if len(chain_ref) > _MAX_FIELD_LENGTH:
        raise EncodingError(
            f"chain reference exceeds {_MAX_FIELD_LENGTH} bytes",
            {"length": len(chain_ref)},
        )
    if len(addr_bytes) > _MAX_FIELD_LENGTH:
        raise EncodingError(
            f"address exceeds {_MAX_FIELD_LENGTH} bytes",
            {"length": len(addr_bytes)},
        )

    return b"".join([
        INTEROP_VERSION.to_bytes(2, "big"),
        CHAIN_TYPE_EIP155.to_bytes(2, "big"),
        bytes([len(chain_ref)]),
        chain_ref,
        bytes([len(addr_bytes)]),
        addr_bytes,
    ])


def decode_interoperable_address(
    data: BytesLike,
    allow_trailing: bool = False,
) -> InteroperableAddress:
    """
    Decode an interoperable address.

    Version and chain type are checked before any other field is read.

    Raises:
        UnsupportedVersion:   version != 1
        UnsupportedChainType: chain type != 0 (EIP-155)
        TruncatedInput:       a length prefix runs past the end of data
        TrailingBytes:        bytes remain after the address field
                              (only when allow_trailing is False)
        EncodingError:        data is a string that is not valid hex
    """
    buf = coerce_bytes(data, "encoded address")

    if len(buf) < _HEADER_LENGTH:
        raise TruncatedInput(
            "missing version/chain type header",
            {"available": len(buf), "required": _HEADER_LENGTH},
        )

    version = int.from_bytes(buf[0:2], "big")
    if version != INTEROP_VERSION:
        raise UnsupportedVersion(
            f"unsupported interoperable address version {version}",
            {"expected": INTEROP_VERSION},
        )

    chain_type = int.from_bytes(buf[2:4], "big")
    if chain_type != CHAIN_TYPE_EIP155:
        raise UnsupportedChainType(
            f"unsupported chain type 0x{chain_type:04x}",
            {"expected": f"0x{CHAIN_TYPE_EIP155:04x}"},
        )

    offset = _HEADER_LENGTH
    chain_ref, offset = _read_prefixed(buf, offset, "chain reference")
    addr, offset      = _read_prefixed(buf, offset, "address")

    if offset != len(buf):
        extra = len(buf) - offset
        if not allow_trailing:
            raise TrailingBytes(
                "unexpected bytes after address field",
                {"extra": extra},
            )
        logger.debug("Ignoring {} trailing byte(s) after address field", extra)

    return InteroperableAddress(
        chain_id=int.from_bytes(chain_ref, "big"),
        address=addr,
    )


def _read_prefixed(buf: bytes, offset: int, field: str):
    """Read a uint8 length prefix followed by that many bytes."""
    if offset >= len(buf):
        raise TruncatedInput(
            f"missing {field} length prefix",
            {"offset": offset},
        )
    length = buf[offset]
    start  = offset + 1
    end    = start + length
    if end > len(buf):
        raise TruncatedInput(
            f"{field} truncated",
            {"declared": length, "available": len(buf) - start},
        )
    return buf[start:end], end
