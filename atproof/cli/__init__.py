"""
atproof/cli/__init__.py

atproof CLI — root Click command group.

Registered in pyproject.toml as:

    [project.scripts]
    atproof = "atproof.cli:cli"
"""

import click

from atproof.cli.codec import decode_command, encode_command
from atproof.cli.output import _Color
from atproof.cli.sign import sign_command
from atproof.cli.verify import verify_command
from atproof.log import configure_logging


@click.group()
@click.version_option(package_name="atproof")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Debug logging to stderr.")
@click.option("--no-color", is_flag=True, default=False, help="Disable ANSI color output.")
def cli(verbose: bool, no_color: bool) -> None:
    """
    atproof — prove an atproto identity controls a blockchain account.

    \b
    Commands:
      encode    Address + chain id → ERC-7930 interoperable address
      decode    ERC-7930 interoperable address → chain id + address
      sign      Create a signed claim with a local key
      verify    Re-verify an exported claim bundle

    \b
    Quick start:
      atproof encode 0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045 --chain-id 1
      atproof sign --did did:plc:abc --chain-id 1 --output claims.json
      atproof verify claims.json --format json
    """
    configure_logging(verbose)
    _Color.configure(not no_color)


cli.add_command(encode_command)
cli.add_command(decode_command)
cli.add_command(sign_command)
cli.add_command(verify_command)
