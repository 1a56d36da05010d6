"""
atproof/core/signer.py

Signer capability.

The engine never handles private keys. Anything that can turn
(domain, types, primaryType, message) into signature bytes is a Signer:
a browser wallet bridge, a hardware wallet, a remote KMS, or the local
account below.
"""

from typing import Any, Dict, List, Protocol, runtime_checkable

from eth_account import Account
from eth_account.signers.local import LocalAccount

from atproof.core.typed_data import to_signable


@runtime_checkable
class Signer(Protocol):
    async def sign_typed_data(
        self,
        domain:       Dict[str, Any],
        types:        Dict[str, List[Dict[str, str]]],
        primary_type: str,
        message:      Dict[str, Any],
    ) -> bytes:
        ...


class LocalAccountSigner:
    """
    Signer backed by an eth-account LocalAccount.

    Public surface:
        LocalAccountSigner.from_key(hex_or_bytes)  → signer
        LocalAccountSigner.generate()              → signer with a random key
        signer.address                             → EIP-55 checksum address
        await signer.sign_typed_data(...)          → 65-byte r‖s‖v signature
    """

    def __init__(self, account: LocalAccount) -> None:
        self._account = account

    @classmethod
    def from_key(cls, private_key) -> "LocalAccountSigner":
        return cls(Account.from_key(private_key))

    @classmethod
    def generate(cls) -> "LocalAccountSigner":
        return cls(Account.create())

    @property
    def address(self) -> str:
        return self._account.address

    @property
    def address_bytes(self) -> bytes:
        return bytes.fromhex(self._account.address[2:])

    async def sign_typed_data(
        self,
        domain:       Dict[str, Any],
        types:        Dict[str, List[Dict[str, str]]],
        primary_type: str,
        message:      Dict[str, Any],
    ) -> bytes:
        signable = to_signable(domain, types, primary_type, message)
        signed   = self._account.sign_message(signable)
        return bytes(signed.signature)

    def __repr__(self) -> str:
        return f"LocalAccountSigner(address={self.address})"
