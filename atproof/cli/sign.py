"""
atproof sign — create a verification claim with a local key.

The private key is read from an environment variable, never from argv.

    export ATPROOF_PRIVATE_KEY=0x...
    atproof sign --did did:plc:abc --chain-id 1 --output claims.json

If OUTPUT already holds a bundle for the same DID, the record is added to it
(replacing any record with the same record key).

Exit codes:
    0  claim written
    2  error (missing key, unsupported chain, RPC failure, bad config)
"""

import asyncio
import os
import sys
from pathlib import Path
from typing import Optional

import click

from atproof.cli.output import emit_error, row_info
from atproof.cli.verify import build_registry, load_config
from atproof.core.chains import ChainRegistry
from atproof.core.engine import VerificationEngine
from atproof.core.exceptions import AtproofError
from atproof.core.signer import LocalAccountSigner
from atproof.records import RecordBundle, VerificationRecord


async def _create_claim(
    registry: ChainRegistry,
    did:      str,
    chain_id: int,
    signer:   LocalAccountSigner,
) -> VerificationRecord:
    try:
        return await VerificationEngine(registry).create_claim(
            did, signer.address_bytes, chain_id, signer
        )
    finally:
        await registry.aclose()


@click.command(name="sign")
@click.option("--did", required=True, help="Subject DID the claim is bound to.")
@click.option("--chain-id", type=int, default=1, show_default=True)
@click.option(
    "--key-env",
    default="ATPROOF_PRIVATE_KEY",
    show_default=True,
    help="Environment variable holding the hex private key.",
)
@click.option("--config", "config_path", type=click.Path(), default=None, help="Chain config YAML.")
@click.option(
    "--output",
    type=click.Path(),
    default="verifications.json",
    show_default=True,
    help="Bundle file to write.",
)
def sign_command(
    did:         str,
    chain_id:    int,
    key_env:     str,
    config_path: Optional[str],
    output:      str,
) -> None:
    """
    Sign a claim binding DID to the key's address on CHAIN_ID.
    """
    private_key = os.environ.get(key_env)
    if not private_key:
        emit_error(f"environment variable {key_env} is not set")
        sys.exit(2)

    try:
        signer = LocalAccountSigner.from_key(private_key)
    except Exception as e:
        emit_error(f"invalid private key in {key_env}: {e}")
        sys.exit(2)

    output_path = Path(output)
    try:
        config = load_config(config_path)
        bundle = RecordBundle.load(output_path) if output_path.exists() else RecordBundle(did=did)
        if bundle.did != did:
            emit_error(f"{output} holds claims for {bundle.did}, not {did}")
            sys.exit(2)

        record = asyncio.run(_create_claim(
            build_registry(config, offline=False), did, chain_id, signer,
        ))
    except AtproofError as e:
        emit_error(f"{type(e).__name__}: {e}")
        sys.exit(2)

    bundle.records = [
        r for r in bundle.records
        if not (isinstance(r, VerificationRecord) and r.record_key == record.record_key)
    ] + [record]
    bundle.save(output_path)

    click.echo(row_info("Address", signer.address))
    click.echo(row_info("Chain ID", str(chain_id)))
    click.echo(row_info("Record key", record.record_key))
    click.echo(row_info("Block hash", "0x" + record.block_hash.hex()))
    click.echo(row_info("Written", str(output_path)))
