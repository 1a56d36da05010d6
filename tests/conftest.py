"""
Shared fixtures: deterministic keys, a fixed block hash, and an offline
registry for chains 1 and 5.
"""

import pytest

from atproof.core.chains import ChainRegistry, LocalChainAccessor
from atproof.core.engine import VerificationEngine
from atproof.core.signer import LocalAccountSigner


# Well-known development keys. NOT secrets.
KEY_A = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
KEY_B = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"

SUBJECT    = "did:plc:ewvi7nxzyoun6zhxrhs64oiz"
BLOCK_HASH = bytes.fromhex(
    "88e96d4537bea4d9c05d12549907b32561d3bf31f45aae734cdc119f13406cb6"
)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def signer():
    return LocalAccountSigner.from_key(KEY_A)


@pytest.fixture
def signer2():
    return LocalAccountSigner.from_key(KEY_B)


@pytest.fixture
def registry():
    return ChainRegistry({
        1: LocalChainAccessor(1, block_hash=BLOCK_HASH),
        5: LocalChainAccessor(5, block_hash=BLOCK_HASH),
    })


@pytest.fixture
def engine(registry):
    return VerificationEngine(registry)


@pytest.fixture
def subject():
    return SUBJECT


@pytest.fixture
def block_hash():
    return BLOCK_HASH
