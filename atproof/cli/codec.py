"""
atproof encode / atproof decode — interoperable address conversion.

Exit codes:
    0  success
    1  input rejected by the codec (error class name is printed)
"""

import json
import sys

import click

from atproof.cli.output import _Color, emit_error, row_info
from atproof.core.address import (
    InteroperableAddress,
    decode_interoperable_address,
    encode_interoperable_address,
)
from atproof.core.exceptions import DecodeError, EncodingError


def _display_address(decoded: InteroperableAddress) -> str:
    if len(decoded.address) == 20:
        return decoded.checksum_address
    return decoded.address_hex


@click.command(name="encode")
@click.argument("address")
@click.option("--chain-id", type=int, required=True, help="Numeric EIP-155 chain id.")
def encode_command(address: str, chain_id: int) -> None:
    """
    Encode ADDRESS on CHAIN_ID as an ERC-7930 interoperable address (hex).
    """
    try:
        encoded = encode_interoperable_address(address, chain_id)
    except EncodingError as e:
        emit_error(f"{type(e).__name__}: {e}")
        sys.exit(1)
    click.echo("0x" + encoded.hex())


@click.command(name="decode")
@click.argument("encoded")
@click.option(
    "--allow-trailing",
    is_flag=True,
    default=False,
    help="Ignore bytes after the address field instead of rejecting them.",
)
@click.option(
    "--format", "fmt",
    type=click.Choice(["human", "json"], case_sensitive=False),
    default="human",
    show_default=True,
)
def decode_command(encoded: str, allow_trailing: bool, fmt: str) -> None:
    """
    Decode an ERC-7930 interoperable address given as hex.
    """
    try:
        decoded = decode_interoperable_address(encoded, allow_trailing=allow_trailing)
    except (DecodeError, EncodingError) as e:
        emit_error(f"{type(e).__name__}: {e}", fmt)
        sys.exit(1)

    address = _display_address(decoded)
    caip10  = f"eip155:{decoded.chain_id}:{address}"

    if fmt == "json":
        click.echo(json.dumps({
            "chain_id": decoded.chain_id,
            "address":  address,
            "caip10":   caip10,
        }))
        return

    click.echo(row_info("Chain ID", str(decoded.chain_id)))
    click.echo(row_info("Address", address))
    click.echo(row_info("CAIP-10", _Color.dim(caip10)))
