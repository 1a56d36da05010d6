"""
atproof/core/chains.py

Chain accessors and the chain registry.

A chain accessor is the authority on what "valid signature for this
address" means on its chain. The registry is a plain capability table:
chain id → accessor. No inheritance, one interface.

    LocalChainAccessor   offline, plain-key (ECDSA) signatures only
    Web3ChainAccessor    JSON-RPC via web3.py AsyncWeb3:
                           1. ECDSA recovery against the address
                           2. else, if the address holds code,
                              EIP-1271 isValidSignature(digest, signature)

ERC-6492 wrapped signatures (undeployed smart wallets) are not supported.
"""

from typing import (
    Any, Dict, Iterable, List, Mapping, Optional, Protocol, Tuple, Union,
    runtime_checkable,
)

from aiohttp import ClientTimeout
from eth_account import Account
from eth_account.messages import SignableMessage
from eth_utils import to_checksum_address
from loguru import logger
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import ContractLogicError

from atproof.core.address import coerce_bytes
from atproof.core.exceptions import ChainNotSupported, VerificationTransportError
from atproof.core.typed_data import signable_digest, to_signable


AddressLike = Union[bytes, str]

EVM_ADDRESS_LENGTH  = 20
EIP1271_MAGIC_VALUE = bytes.fromhex("1626ba7e")

EIP1271_ABI = [
    {
        "inputs": [
            {"name": "_hash",      "type": "bytes32"},
            {"name": "_signature", "type": "bytes"},
        ],
        "name":            "isValidSignature",
        "outputs":         [{"name": "", "type": "bytes4"}],
        "stateMutability": "view",
        "type":            "function",
    }
]


@runtime_checkable
class ChainAccessor(Protocol):
    chain_id: int

    async def verify_signature(
        self,
        address:      AddressLike,
        domain:       Dict[str, Any],
        types:        Dict[str, List[Dict[str, str]]],
        primary_type: str,
        message:      Dict[str, Any],
        signature:    bytes,
    ) -> bool:
        ...

    async def get_latest_block_hash(self) -> bytes:
        ...


def _checksum(address: AddressLike) -> str:
    if isinstance(address, (bytes, bytearray)):
        address = "0x" + bytes(address).hex()
    return to_checksum_address(address)


def recover_matches(
    signable:  SignableMessage,
    signature: bytes,
    address:   AddressLike,
) -> bool:
    """
    True iff the ECDSA signer of signable is address.
    False for ANY failure (malformed signature, bad v, wrong length). Never raises.
    """
    try:
        recovered = Account.recover_message(signable, signature=signature)
        return recovered == _checksum(address)
    except Exception:
        return False


# ─────────────────────────────────────────────────────────────
# Offline accessor
# ─────────────────────────────────────────────────────────────

class LocalChainAccessor:
    """
    Offline accessor. Verifies plain-key signatures only.

    Useful for re-verifying exported bundles without an RPC endpoint and
    as a deterministic accessor in tests. Contract accounts always fail.
    """

    def __init__(self, chain_id: int, block_hash: Optional[bytes] = None) -> None:
        self.chain_id    = chain_id
        self._block_hash = block_hash

    async def verify_signature(
        self,
        address:      AddressLike,
        domain:       Dict[str, Any],
        types:        Dict[str, List[Dict[str, str]]],
        primary_type: str,
        message:      Dict[str, Any],
        signature:    bytes,
    ) -> bool:
        signable = to_signable(domain, types, primary_type, message)
        return recover_matches(signable, signature, address)

    async def get_latest_block_hash(self) -> bytes:
        if self._block_hash is None:
            raise ChainNotSupported(
                "offline accessor has no block source",
                {"chain_id": self.chain_id},
            )
        return self._block_hash

    def __repr__(self) -> str:
        return f"LocalChainAccessor(chain_id={self.chain_id})"


# ─────────────────────────────────────────────────────────────
# JSON-RPC accessor
# ─────────────────────────────────────────────────────────────

class Web3ChainAccessor:
    """
    JSON-RPC accessor over web3.py's AsyncWeb3.

    The AsyncWeb3 instance (and its HTTP session) belongs to whoever built
    the accessor. Construct with from_rpc_url() or inject a configured
    AsyncWeb3.
    """

    def __init__(self, chain_id: int, w3: AsyncWeb3) -> None:
        self.chain_id = chain_id
        self._w3      = w3

    @classmethod
    def from_rpc_url(
        cls,
        chain_id: int,
        rpc_url:  str,
        timeout:  float = 10.0,
    ) -> "Web3ChainAccessor":
        provider = AsyncHTTPProvider(
            rpc_url,
            request_kwargs={"timeout": ClientTimeout(total=timeout)},
        )
        return cls(chain_id, AsyncWeb3(provider))

    async def verify_signature(
        self,
        address:      AddressLike,
        domain:       Dict[str, Any],
        types:        Dict[str, List[Dict[str, str]]],
        primary_type: str,
        message:      Dict[str, Any],
        signature:    bytes,
    ) -> bool:
        """
        Raises:
            VerificationTransportError: the RPC endpoint failed while checking
                                        a contract account.
        """
        signable = to_signable(domain, types, primary_type, message)
        if recover_matches(signable, signature, address):
            return True

        raw = coerce_bytes(address, "address")
        if len(raw) != EVM_ADDRESS_LENGTH:
            logger.debug(
                "No EIP-1271 check for {}-byte address on chain {}",
                len(raw), self.chain_id,
            )
            return False

        checksum = _checksum(raw)
        try:
            code = await self._w3.eth.get_code(checksum)
            if not code:
                return False
            contract = self._w3.eth.contract(address=checksum, abi=EIP1271_ABI)
            result = await contract.functions.isValidSignature(
                signable_digest(signable), signature
            ).call()
        except ContractLogicError as exc:
            logger.debug("EIP-1271 check reverted for {}: {}", checksum, exc)
            return False
        except Exception as exc:
            raise VerificationTransportError(
                f"EIP-1271 check failed: {exc}",
                {"chain_id": self.chain_id, "address": checksum},
            ) from exc

        return bytes(result) == EIP1271_MAGIC_VALUE

    async def get_latest_block_hash(self) -> bytes:
        try:
            block = await self._w3.eth.get_block("latest")
        except Exception as exc:
            raise VerificationTransportError(
                f"failed to fetch latest block: {exc}",
                {"chain_id": self.chain_id},
            ) from exc
        return bytes(block["hash"])

    async def aclose(self) -> None:
        """Close the provider's HTTP session."""
        await self._w3.provider.disconnect()

    def __repr__(self) -> str:
        return f"Web3ChainAccessor(chain_id={self.chain_id})"


# ─────────────────────────────────────────────────────────────
# Registry
# ─────────────────────────────────────────────────────────────

class ChainRegistry:
    """
    chain id → ChainAccessor.

    Built once by the application and handed to the engine. The engine only
    reads it.
    """

    def __init__(
        self,
        accessors: Optional[Union[Mapping[int, ChainAccessor], Iterable[Tuple[int, ChainAccessor]]]] = None,
    ) -> None:
        self._accessors: Dict[int, ChainAccessor] = dict(accessors or {})

    @classmethod
    def from_config(cls, config) -> "ChainRegistry":
        """Build one Web3ChainAccessor per configured chain."""
        registry = cls()
        for chain in config.chains.values():
            registry.register(
                chain.chain_id,
                Web3ChainAccessor.from_rpc_url(
                    chain.chain_id, chain.rpc_url, timeout=config.timeout
                ),
            )
        return registry

    async def aclose(self) -> None:
        """Close every accessor that holds a connection."""
        for accessor in self._accessors.values():
            close = getattr(accessor, "aclose", None)
            if close is not None:
                await close()

    def register(self, chain_id: int, accessor: ChainAccessor) -> None:
        self._accessors[chain_id] = accessor

    def get(self, chain_id: int) -> ChainAccessor:
        try:
            return self._accessors[chain_id]
        except KeyError:
            raise ChainNotSupported(
                f"chain {chain_id} not supported",
                {"chain_id": chain_id},
            ) from None

    @property
    def chain_ids(self) -> List[int]:
        return sorted(self._accessors)

    def __contains__(self, chain_id: object) -> bool:
        return chain_id in self._accessors

    def __len__(self) -> int:
        return len(self._accessors)

    def __repr__(self) -> str:
        return f"ChainRegistry(chain_ids={self.chain_ids})"
