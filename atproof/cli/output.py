"""
atproof/cli/output.py

Terminal output helpers shared by the CLI commands.
"""

import json
import sys

import click


class _Color:
    """
    Minimal ANSI color wrapper.
    Auto-disables when not a TTY or --no-color is passed.
    """
    _on: bool = True

    @classmethod
    def configure(cls, enabled: bool) -> None:
        cls._on = enabled and sys.stdout.isatty()

    @classmethod
    def green(cls, s: str) -> str:
        return f"\033[32m{s}\033[0m" if cls._on else s

    @classmethod
    def red(cls, s: str) -> str:
        return f"\033[31m{s}\033[0m" if cls._on else s

    @classmethod
    def yellow(cls, s: str) -> str:
        return f"\033[33m{s}\033[0m" if cls._on else s

    @classmethod
    def bold(cls, s: str) -> str:
        return f"\033[1m{s}\033[0m" if cls._on else s

    @classmethod
    def dim(cls, s: str) -> str:
        return f"\033[2m{s}\033[0m" if cls._on else s


def row_ok(label: str, value: str) -> str:
    return f"  {_Color.dim(f'{label:<14}')}  {_Color.green('✅')}  {value}"


def row_fail(label: str, value: str) -> str:
    return f"  {_Color.dim(f'{label:<14}')}  {_Color.red('❌')}  {value}"


def row_info(label: str, value: str) -> str:
    return f"  {_Color.dim(f'{label:<14}')}     {value}"


def emit_error(msg: str, fmt: str = "human", quiet: bool = False) -> None:
    """Emit error in the correct format. Never raises."""
    if quiet:
        return
    if fmt == "json":
        click.echo(json.dumps({"error": msg, "valid": False}))
    else:
        click.echo(_Color.red(f"\n  ❌  ERROR: {msg}\n"), err=True)
