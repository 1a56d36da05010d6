"""
tests/test_cli.py

CLI contract: output shape and exit codes.

    encode / decode    0 ok, 1 codec rejection
    sign               0 written, 2 error
    verify             0 all valid, 1 any invalid, 2 error
"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from click.testing import CliRunner

from atproof.cli import cli
from atproof.core.chains import ChainRegistry, LocalChainAccessor
from atproof.records import RecordBundle


# Hardhat development account #0. NOT a secret.
KEY_A   = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
ENCODED = "0x00010000010114" + ADDRESS[2:].lower()

SUBJECT    = "did:plc:ewvi7nxzyoun6zhxrhs64oiz"
BLOCK_HASH = bytes.fromhex(
    "88e96d4537bea4d9c05d12549907b32561d3bf31f45aae734cdc119f13406cb6"
)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    monkeypatch.delenv("ATPROOF_CONFIG", raising=False)
    monkeypatch.delenv("ATPROOF_PRIVATE_KEY", raising=False)


@pytest.fixture
def offline_chain(monkeypatch):
    """sign fetches the latest block from a local accessor instead of RPC."""
    monkeypatch.setattr(
        "atproof.cli.sign.build_registry",
        lambda config, offline: ChainRegistry({
            1: LocalChainAccessor(1, block_hash=BLOCK_HASH),
        }),
    )


@pytest.fixture
def signed_bundle(runner, tmp_path, monkeypatch, offline_chain):
    path = tmp_path / "claims.json"
    monkeypatch.setenv("ATPROOF_PRIVATE_KEY", KEY_A)
    result = runner.invoke(cli, ["sign", "--did", SUBJECT, "--output", str(path)])
    assert result.exit_code == 0, result.output
    return path


# ─────────────────────────────────────────────────────────────
# encode / decode
# ─────────────────────────────────────────────────────────────

class TestCodecCommands:

    def test_encode(self, runner):
        result = runner.invoke(cli, ["encode", ADDRESS, "--chain-id", "1"])
        assert result.exit_code == 0
        assert result.output.strip() == ENCODED

    def test_encode_rejects_negative_chain(self, runner):
        result = runner.invoke(cli, ["encode", ADDRESS, "--chain-id", "-1"])
        assert result.exit_code == 1
        assert "EncodingError" in result.output

    def test_decode_json(self, runner):
        result = runner.invoke(cli, ["decode", ENCODED, "--format", "json"])
        assert result.exit_code == 0
        assert json.loads(result.output) == {
            "chain_id": 1,
            "address":  ADDRESS,
            "caip10":   f"eip155:1:{ADDRESS}",
        }

    def test_decode_human(self, runner):
        result = runner.invoke(cli, ["decode", ENCODED])
        assert result.exit_code == 0
        assert "eip155:1:" in result.output

    def test_decode_wrong_version(self, runner):
        result = runner.invoke(cli, ["decode", "0x0002" + ENCODED[6:]])
        assert result.exit_code == 1
        assert "UnsupportedVersion" in result.output

    def test_decode_trailing(self, runner):
        strict = runner.invoke(cli, ["decode", ENCODED + "00"])
        assert strict.exit_code == 1
        assert "TrailingBytes" in strict.output

        lenient = runner.invoke(cli, ["decode", ENCODED + "00", "--allow-trailing"])
        assert lenient.exit_code == 0


# ─────────────────────────────────────────────────────────────
# sign
# ─────────────────────────────────────────────────────────────

class TestSignCommand:

    def test_writes_bundle(self, signed_bundle):
        bundle = RecordBundle.load(signed_bundle)
        assert bundle.did == SUBJECT
        assert len(bundle.records) == 1
        assert bundle.records[0].block_hash == BLOCK_HASH

    def test_resigning_replaces_same_record(self, runner, signed_bundle):
        result = runner.invoke(cli, ["sign", "--did", SUBJECT, "--output", str(signed_bundle)])
        assert result.exit_code == 0, result.output
        assert len(RecordBundle.load(signed_bundle).records) == 1

    def test_other_did_refused(self, runner, signed_bundle):
        result = runner.invoke(
            cli, ["sign", "--did", "did:plc:other", "--output", str(signed_bundle)]
        )
        assert result.exit_code == 2

    def test_missing_key(self, runner, tmp_path, offline_chain):
        result = runner.invoke(
            cli, ["sign", "--did", SUBJECT, "--output", str(tmp_path / "c.json")]
        )
        assert result.exit_code == 2
        assert "ATPROOF_PRIVATE_KEY" in result.output

    def test_invalid_key(self, runner, tmp_path, monkeypatch, offline_chain):
        monkeypatch.setenv("ATPROOF_PRIVATE_KEY", "0x1234")
        result = runner.invoke(
            cli, ["sign", "--did", SUBJECT, "--output", str(tmp_path / "c.json")]
        )
        assert result.exit_code == 2

    def test_unsupported_chain(self, runner, tmp_path, monkeypatch, offline_chain):
        monkeypatch.setenv("ATPROOF_PRIVATE_KEY", KEY_A)
        result = runner.invoke(cli, [
            "sign", "--did", SUBJECT, "--chain-id", "8453",
            "--output", str(tmp_path / "c.json"),
        ])
        assert result.exit_code == 2
        assert "ChainNotSupported" in result.output
        assert not (tmp_path / "c.json").exists()


# ─────────────────────────────────────────────────────────────
# verify
# ─────────────────────────────────────────────────────────────

class TestVerifyCommand:

    def test_valid_bundle(self, runner, signed_bundle):
        result = runner.invoke(cli, ["verify", str(signed_bundle), "--offline"])
        assert result.exit_code == 0, result.output
        assert "VALID" in result.output

    def test_json_output(self, runner, signed_bundle):
        result = runner.invoke(
            cli, ["verify", str(signed_bundle), "--offline", "--format", "json"]
        )
        assert result.exit_code == 0
        out = json.loads(result.output)
        assert out["valid"] is True
        assert out["records"][0]["reason"] == "verified"
        assert out["records"][0]["record_key"] == ENCODED[2:]

    def test_other_did_is_invalid(self, runner, signed_bundle):
        result = runner.invoke(cli, [
            "verify", str(signed_bundle), "--offline",
            "--did", "did:plc:other", "--format", "json",
        ])
        assert result.exit_code == 1
        assert json.loads(result.output)["records"][0]["reason"] == "signature_mismatch"

    def test_unreadable_record_is_invalid(self, runner, tmp_path):
        path = tmp_path / "bundle.json"
        path.write_text(json.dumps({"did": SUBJECT, "records": [{"address": 1}]}))
        result = runner.invoke(cli, ["verify", str(path), "--offline", "--quiet"])
        assert result.exit_code == 1
        assert result.output == ""

    def test_missing_bundle(self, runner, tmp_path):
        result = runner.invoke(cli, ["verify", str(tmp_path / "nope.json")])
        assert result.exit_code == 2

    def test_bad_config(self, runner, signed_bundle, tmp_path):
        result = runner.invoke(cli, [
            "verify", str(signed_bundle), "--config", str(tmp_path / "absent.yaml"),
        ])
        assert result.exit_code == 2


# ─────────────────────────────────────────────────────────────
# Connection cleanup
# ─────────────────────────────────────────────────────────────

class TestRegistryClosed:
    """Commands close every accessor they built before the loop exits."""

    @staticmethod
    def _registry_with_connection():
        connection = MagicMock()
        connection.aclose = AsyncMock()
        registry = ChainRegistry({
            1:     LocalChainAccessor(1, block_hash=BLOCK_HASH),
            10:    connection,
        })
        return registry, connection

    def test_verify_closes_registry(self, runner, signed_bundle, monkeypatch):
        registry, connection = self._registry_with_connection()
        monkeypatch.setattr("atproof.cli.verify.build_registry", lambda config, offline: registry)

        result = runner.invoke(cli, ["verify", str(signed_bundle), "--quiet"])
        assert result.exit_code == 0, result.output
        connection.aclose.assert_awaited_once()

    def test_sign_closes_registry_on_failure(self, runner, tmp_path, monkeypatch):
        registry, connection = self._registry_with_connection()
        monkeypatch.setattr("atproof.cli.sign.build_registry", lambda config, offline: registry)
        monkeypatch.setenv("ATPROOF_PRIVATE_KEY", KEY_A)

        result = runner.invoke(cli, [
            "sign", "--did", SUBJECT, "--chain-id", "8453",
            "--output", str(tmp_path / "c.json"),
        ])
        assert result.exit_code == 2
        connection.aclose.assert_awaited_once()
