"""
atproof/core/engine.py

Verification Protocol Engine

Protocol Law:
    check() is the ONLY verification path. verify(), verify_many() and
    atproof.records.verify_record() all go through it.

    check(subject, encoded_address, block_hash, signature):
        1. decode encoded_address            DecodeError    → malformed_address
        2. registry.get(chain_id)            not registered → chain_not_supported
        3. build_message(subject, encoded_address, block_hash)
                                             bad input      → malformed_input
        4. accessor.verify_signature(...)    False          → signature_mismatch
                                             raised         → transport_error
        5. True                                             → verified

Fail-closed: check() never raises and never reports valid=True on error.
The reason code tells an unsupported chain apart from a cryptographic
mismatch. Both are still valid=False.

Stateless: no cache, no retry, no mutation of the registry. Each call has
exactly one external suspension point.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple, Union

from loguru import logger

from atproof.core.address import (
    coerce_bytes,
    decode_interoperable_address,
    encode_interoperable_address,
)
from atproof.core.chains import ChainRegistry
from atproof.core.exceptions import (
    ChainNotSupported,
    DecodeError,
    EncodingError,
    SignerUnavailable,
)
from atproof.core.record import VerificationRecord
from atproof.core.signer import Signer
from atproof.core.time import record_timestamp
from atproof.core.typed_data import (
    DOMAIN,
    PRIMARY_TYPE,
    VERIFICATION_TYPES,
    build_message,
)


BytesOrHex = Union[bytes, bytearray, str]


# ─────────────────────────────────────────────────────────────
# Result Type
# ─────────────────────────────────────────────────────────────

class VerificationReason(str, Enum):
    VERIFIED            = "verified"
    SIGNATURE_MISMATCH  = "signature_mismatch"
    MALFORMED_ADDRESS   = "malformed_address"
    MALFORMED_INPUT     = "malformed_input"
    CHAIN_NOT_SUPPORTED = "chain_not_supported"
    TRANSPORT_ERROR     = "transport_error"


@dataclass
class VerificationResult:
    """
    Outcome of one claim check.

    bool(result) is True iff valid. error carries the underlying exception
    for every failure except a plain signature mismatch.
    """
    valid:    bool
    reason:   VerificationReason
    chain_id: Optional[int]       = None
    address:  Optional[str]       = None
    error:    Optional[Exception] = None

    def __bool__(self) -> bool:
        return self.valid

    def __repr__(self) -> str:
        status = "VALID" if self.valid else "INVALID"
        return f"VerificationResult({status}, {self.reason.value}, chain_id={self.chain_id})"

    def to_dict(self) -> dict:
        return {
            "valid":    self.valid,
            "reason":   self.reason.value,
            "chain_id": self.chain_id,
            "address":  self.address,
            "error":    str(self.error) if self.error else None,
        }


# ─────────────────────────────────────────────────────────────
# Engine
# ─────────────────────────────────────────────────────────────

class VerificationEngine:
    """
    Builds, signs and re-verifies verification claims.

    Parameterized only by a ChainRegistry supplied by the application.
    """

    def __init__(self, registry: ChainRegistry) -> None:
        self.registry = registry

    # ── Construction ──────────────────────────────────────────

    @staticmethod
    def build_message(
        subject:         str,
        encoded_address: bytes,
        block_hash:      bytes,
    ) -> Dict[str, str]:
        return build_message(subject, encoded_address, block_hash)

    # ── Signing ───────────────────────────────────────────────

    async def sign(
        self,
        message: Dict[str, str],
        signer:  Optional[Signer],
    ) -> bytes:
        """
        Delegate signing to the account holder's signer.

        Raises:
            SignerUnavailable: signer is None.
            Anything the signer raises (user rejection, disconnected wallet)
            propagates unchanged.
        """
        if signer is None:
            raise SignerUnavailable("no signer supplied for claim signing")
        signature = await signer.sign_typed_data(
            dict(DOMAIN), VERIFICATION_TYPES, PRIMARY_TYPE, message
        )
        return coerce_bytes(signature, "signature")

    async def create_claim(
        self,
        subject:  str,
        address:  BytesOrHex,
        chain_id: int,
        signer:   Optional[Signer],
    ) -> VerificationRecord:
        """
        End-to-end claim flow: latest block hash → encode → build → sign.

        Returns a VerificationRecord ready for the storage collaborator.

        Raises:
            ChainNotSupported, VerificationTransportError, EncodingError,
            SignerUnavailable, or whatever the signer raises.
        """
        if signer is None:
            raise SignerUnavailable("no signer supplied for claim signing")

        accessor   = self.registry.get(chain_id)
        block_hash = await accessor.get_latest_block_hash()
        encoded    = encode_interoperable_address(address, chain_id)
        message    = build_message(subject, encoded, block_hash)
        signature  = await self.sign(message, signer)

        logger.info(
            "Signed claim for {} on chain {} at block {}",
            subject, chain_id, "0x" + block_hash.hex()[:16],
        )
        return VerificationRecord(
            address=    encoded,
            signature=  signature,
            block_hash= block_hash,
            created_at= record_timestamp(),
        )

    # ── Verification ──────────────────────────────────────────

    async def check(
        self,
        subject:         str,
        encoded_address: BytesOrHex,
        block_hash:      BytesOrHex,
        signature:       BytesOrHex,
    ) -> VerificationResult:
        """
        Re-verify a claim. Never raises (cancellation excepted).
        """
        try:
            encoded = coerce_bytes(encoded_address, "encoded_address")
            decoded = decode_interoperable_address(encoded)
        except (DecodeError, EncodingError) as exc:
            logger.info("Claim for {} has malformed address: {}", subject, exc)
            return VerificationResult(
                valid=  False,
                reason= VerificationReason.MALFORMED_ADDRESS,
                error=  exc,
            )

        chain_id = decoded.chain_id
        address  = decoded.address_hex

        try:
            accessor = self.registry.get(chain_id)
        except ChainNotSupported as exc:
            logger.warning("Chain ID {} not supported or found", chain_id)
            return VerificationResult(
                valid=    False,
                reason=   VerificationReason.CHAIN_NOT_SUPPORTED,
                chain_id= chain_id,
                address=  address,
                error=    exc,
            )

        try:
            message = build_message(
                subject,
                encoded,
                coerce_bytes(block_hash, "block_hash"),
            )
            sig = coerce_bytes(signature, "signature")
        except EncodingError as exc:
            logger.info("Claim for {} has malformed input: {}", subject, exc)
            return VerificationResult(
                valid=    False,
                reason=   VerificationReason.MALFORMED_INPUT,
                chain_id= chain_id,
                address=  address,
                error=    exc,
            )

        try:
            ok = await accessor.verify_signature(
                decoded.address,
                dict(DOMAIN),
                VERIFICATION_TYPES,
                PRIMARY_TYPE,
                message,
                sig,
            )
        except Exception as exc:
            logger.warning(
                "Verification transport error on chain {} for {}: {}",
                chain_id, address, exc,
            )
            return VerificationResult(
                valid=    False,
                reason=   VerificationReason.TRANSPORT_ERROR,
                chain_id= chain_id,
                address=  address,
                error=    exc,
            )

        if not ok:
            logger.info(
                "Signature mismatch for {} on chain {} ({})",
                address, chain_id, subject,
            )
            return VerificationResult(
                valid=    False,
                reason=   VerificationReason.SIGNATURE_MISMATCH,
                chain_id= chain_id,
                address=  address,
            )

        return VerificationResult(
            valid=    True,
            reason=   VerificationReason.VERIFIED,
            chain_id= chain_id,
            address=  address,
        )

    async def verify(
        self,
        subject:         str,
        encoded_address: BytesOrHex,
        block_hash:      BytesOrHex,
        signature:       BytesOrHex,
    ) -> bool:
        result = await self.check(subject, encoded_address, block_hash, signature)
        return result.valid

    async def verify_many(
        self,
        claims: Iterable[Tuple[str, BytesOrHex, BytesOrHex, BytesOrHex]],
    ) -> List[VerificationResult]:
        """
        Check independent claims concurrently. Results keep input order.
        """
        return list(await asyncio.gather(
            *(self.check(*claim) for claim in claims)
        ))
