"""
atproof/cli/verify.py

atproof verify — re-verify an exported record bundle
=====================================================

Usage:
    atproof verify <bundle>                      Human output (default)
    atproof verify <bundle> --format json        Machine-readable JSON
    atproof verify <bundle> --did did:plc:...    Override the bundle's DID
    atproof verify <bundle> --config chains.yaml Chain endpoints
    atproof verify <bundle> --offline            Plain-key signatures only, no RPC
    atproof verify <bundle> --quiet              Exit code only

Exit codes:
    0  every record verified
    1  at least one record invalid
    2  error (bundle missing or unreadable, bad config)
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

import click

from atproof.cli.output import _Color, emit_error, row_fail, row_info, row_ok
from atproof.config import AtproofConfig
from atproof.core.chains import ChainRegistry, LocalChainAccessor
from atproof.core.engine import VerificationEngine, VerificationResult
from atproof.core.exceptions import ConfigError, RecordError
from atproof.records import RecordBundle, RecordLike, VerificationRecord, verify_records


def load_config(config_path: Optional[str]) -> AtproofConfig:
    if config_path:
        return AtproofConfig.from_yaml(Path(config_path))
    return AtproofConfig.from_env()


def build_registry(config: AtproofConfig, offline: bool) -> ChainRegistry:
    if offline:
        return ChainRegistry({
            chain_id: LocalChainAccessor(chain_id) for chain_id in config.chains
        })
    return ChainRegistry.from_config(config)


async def _verify_all(
    registry: ChainRegistry,
    subject:  str,
    records:  List[RecordLike],
) -> List[VerificationResult]:
    try:
        return await verify_records(VerificationEngine(registry), subject, records)
    finally:
        await registry.aclose()


def _record_label(record: RecordLike) -> str:
    if isinstance(record, VerificationRecord):
        return record.record_key[:24] + "..."
    return "<unreadable>"


@click.command(name="verify")
@click.argument("bundle", type=click.Path(exists=False))
@click.option("--did", type=str, default=None, help="Subject DID (defaults to the bundle's).")
@click.option("--config", "config_path", type=click.Path(), default=None, help="Chain config YAML.")
@click.option("--offline", is_flag=True, default=False, help="Verify plain-key signatures without RPC.")
@click.option(
    "--format", "fmt",
    type=click.Choice(["human", "json"], case_sensitive=False),
    default="human",
    show_default=True,
)
@click.option("--quiet", is_flag=True, default=False, help="Exit code only.")
def verify_command(
    bundle:      str,
    did:         Optional[str],
    config_path: Optional[str],
    offline:     bool,
    fmt:         str,
    quiet:       bool,
) -> None:
    """
    Re-verify every record in BUNDLE against its chain.
    """
    try:
        loaded = RecordBundle.load(Path(bundle))
    except FileNotFoundError as e:
        emit_error(str(e), fmt, quiet)
        sys.exit(2)
    except RecordError as e:
        emit_error(f"Unreadable bundle: {e}", fmt, quiet)
        sys.exit(2)

    try:
        config = load_config(config_path)
    except ConfigError as e:
        emit_error(str(e), fmt, quiet)
        sys.exit(2)

    subject = did or loaded.did
    results = asyncio.run(
        _verify_all(build_registry(config, offline), subject, loaded.records)
    )
    all_valid = all(r.valid for r in results)

    if quiet:
        sys.exit(0 if all_valid else 1)

    if fmt == "json":
        _output_json(subject, loaded.records, results, all_valid)
    else:
        _output_human(subject, bundle, loaded.records, results, all_valid)

    sys.exit(0 if all_valid else 1)


def _output_human(
    subject:   str,
    bundle:    str,
    records:   List[RecordLike],
    results:   List[VerificationResult],
    all_valid: bool,
) -> None:
    bar = "─" * 60
    click.echo()
    click.echo(row_info("Bundle", bundle))
    click.echo(row_info("Subject", subject))
    click.echo(row_info("Records", str(len(records))))
    click.echo()

    for record, result in zip(records, results):
        detail = f"{result.address or _record_label(record)}  chain {result.chain_id}"
        if result.valid:
            click.echo(row_ok("Valid", detail))
        else:
            click.echo(row_fail(
                "Invalid",
                f"{detail}  " + _Color.yellow(result.reason.value),
            ))

    click.echo(f"  {bar}")
    if all_valid:
        click.echo(_Color.green(_Color.bold("  ✅  VALID  ·  all records verified")))
    else:
        n = sum(1 for r in results if not r.valid)
        click.echo(_Color.red(_Color.bold(f"  ❌  INVALID  ·  {n} record(s) failed")))
    click.echo(f"  {bar}")


def _output_json(
    subject:   str,
    records:   List[RecordLike],
    results:   List[VerificationResult],
    all_valid: bool,
) -> None:
    out = {
        "did":     subject,
        "valid":   all_valid,
        "records": [
            {
                "record_key": record.record_key if isinstance(record, VerificationRecord) else None,
                **result.to_dict(),
            }
            for record, result in zip(records, results)
        ],
    }
    click.echo(json.dumps(out, indent=2))
