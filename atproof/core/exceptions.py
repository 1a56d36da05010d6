"""
atproof Exception Hierarchy

All exceptions inherit from AtproofError for easy catching.

Codec errors (EncodingError, DecodeError and its subclasses) are raised to the
immediate caller. Verification errors are collapsed to a boolean by the engine
and carried on VerificationResult.error as a diagnostic.
"""


class AtproofError(Exception):
    """Base exception for all atproof errors"""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


# ── Codec ─────────────────────────────────────────────────────

class EncodingError(AtproofError):
    """Raised when an address/chain id pair cannot be encoded"""
    pass


class DecodeError(AtproofError):
    """Raised when bytes are not a valid interoperable address"""
    pass


class UnsupportedVersion(DecodeError):
    """Raised when the version field is not 1"""
    pass


class UnsupportedChainType(DecodeError):
    """Raised when the chain type is not the EIP-155 namespace"""
    pass


class TruncatedInput(DecodeError):
    """Raised when a length prefix demands more bytes than remain"""
    pass


class TrailingBytes(DecodeError):
    """Raised when bytes remain after the address field"""
    pass


# ── Engine ────────────────────────────────────────────────────

class VerificationError(AtproofError):
    """Base for failures raised while driving a sign or verify call"""
    pass


class ChainNotSupported(VerificationError):
    """Raised when no chain accessor is registered for a chain id"""
    pass


class SignerUnavailable(VerificationError):
    """Raised when a claim must be signed but no signer was supplied"""
    pass


class VerificationTransportError(VerificationError):
    """Raised when a chain accessor cannot reach its endpoint"""
    pass


# ── Boundaries ────────────────────────────────────────────────

class RecordError(AtproofError):
    """Raised when a stored verification record cannot be normalized"""
    pass


class ConfigError(AtproofError):
    """Raised when chain configuration is missing or malformed"""
    pass
