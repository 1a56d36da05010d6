"""
atproof/__init__.py

atproof: portable proofs that an atproto identity controls a blockchain account.

A claim binds a DID, an ERC-7930 interoperable address and a recent block hash
under an EIP-712 domain. Anyone can re-verify it later against the chain.
"""

__version__ = "0.1.0"

from loguru import logger

from atproof.core.address import (
    InteroperableAddress,
    decode_interoperable_address,
    encode_interoperable_address,
)
from atproof.core.chains import (
    ChainAccessor,
    ChainRegistry,
    LocalChainAccessor,
    Web3ChainAccessor,
)
from atproof.core.engine import (
    VerificationEngine,
    VerificationReason,
    VerificationResult,
)
from atproof.core.exceptions import (
    AtproofError,
    ChainNotSupported,
    ConfigError,
    DecodeError,
    EncodingError,
    RecordError,
    SignerUnavailable,
    TrailingBytes,
    TruncatedInput,
    UnsupportedChainType,
    UnsupportedVersion,
    VerificationError,
    VerificationTransportError,
)
from atproof.core.signer import LocalAccountSigner, Signer
from atproof.core.typed_data import (
    DOMAIN,
    PRIMARY_TYPE,
    VERIFICATION_TYPES,
    VerificationClaim,
    build_message,
    build_typed_data,
    typed_data_hash,
)
from atproof.config import AtproofConfig, ChainConfig
from atproof.records import (
    COLLECTION,
    RecordBundle,
    VerificationRecord,
    unwrap_bytes,
    verify_record,
    verify_records,
)

# Silent unless the application opts in (see atproof.log.configure_logging)
logger.disable("atproof")

__all__ = [
    # Codec
    "InteroperableAddress",
    "encode_interoperable_address",
    "decode_interoperable_address",
    # Typed data
    "DOMAIN",
    "PRIMARY_TYPE",
    "VERIFICATION_TYPES",
    "VerificationClaim",
    "build_message",
    "build_typed_data",
    "typed_data_hash",
    # Engine
    "VerificationEngine",
    "VerificationReason",
    "VerificationResult",
    "ChainAccessor",
    "ChainRegistry",
    "LocalChainAccessor",
    "Web3ChainAccessor",
    "Signer",
    "LocalAccountSigner",
    # Records
    "COLLECTION",
    "RecordBundle",
    "VerificationRecord",
    "unwrap_bytes",
    "verify_record",
    "verify_records",
    # Config
    "AtproofConfig",
    "ChainConfig",
    # Errors
    "AtproofError",
    "EncodingError",
    "DecodeError",
    "UnsupportedVersion",
    "UnsupportedChainType",
    "TruncatedInput",
    "TrailingBytes",
    "VerificationError",
    "ChainNotSupported",
    "SignerUnavailable",
    "VerificationTransportError",
    "RecordError",
    "ConfigError",
]
