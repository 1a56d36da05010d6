"""
tests/test_records.py

Repository records and offline bundles.

  unwrap_bytes normalizes raw bytes, {"$bytes": base64} and 0x-hex
  VerificationRecord survives the atproto JSON form
  validate_schema returns, never raises
  verify_record reports unreadable records invalid instead of raising
  bundles are canonical JSON and keep unreadable records
"""

import json

import pytest

from atproof.core.engine import VerificationReason
from atproof.core.exceptions import AtproofError, RecordError
from atproof.records import (
    COLLECTION,
    RecordBundle,
    VerificationRecord,
    unwrap_bytes,
    verify_record,
    verify_records,
    wrap_bytes,
)

pytestmark = pytest.mark.anyio


@pytest.fixture
async def record(anyio_backend, engine, signer, subject):
    return await engine.create_claim(subject, signer.address, 1, signer)


# ─────────────────────────────────────────────────────────────
# Byte normalization
# ─────────────────────────────────────────────────────────────

class TestUnwrapBytes:

    @pytest.mark.parametrize("value", [
        b"\x00\x01\x02\x03",
        bytearray(b"\x00\x01\x02\x03"),
        {"$bytes": "AAECAw"},
        {"$bytes": "AAECAw=="},
        "0x00010203",
        "0X00010203",
    ])
    def test_accepted_shapes(self, value):
        assert unwrap_bytes(value) == bytes.fromhex("00010203")

    @pytest.mark.parametrize("value", [
        "00010203",
        12345,
        None,
        {"bytes": "AAECAw"},
        {"$bytes": 5},
        {"$bytes": "!!!"},
        "0xzz",
    ])
    def test_rejected_shapes(self, value):
        with pytest.raises(RecordError):
            unwrap_bytes(value, "address")

    def test_error_names_field(self):
        with pytest.raises(RecordError, match="signature"):
            unwrap_bytes(3.5, "signature")

    def test_wrap_strips_padding(self):
        assert wrap_bytes(bytes.fromhex("00010203")) == {"$bytes": "AAECAw"}


# ─────────────────────────────────────────────────────────────
# VerificationRecord
# ─────────────────────────────────────────────────────────────

class TestVerificationRecord:

    async def test_to_dict_is_atproto_json(self, record):
        data = record.to_dict()
        assert data["$type"] == COLLECTION
        assert set(data["address"]) == {"$bytes"}
        assert data["createdAt"] == record.created_at

    async def test_from_dict_reads_to_dict(self, record):
        assert VerificationRecord.from_dict(record.to_dict()) == record

    async def test_from_dict_unwraps_list_records_envelope(self, record):
        envelope = {
            "uri":   f"at://did:plc:x/{COLLECTION}/{record.record_key}",
            "cid":   "bafyrei...",
            "value": record.to_dict(),
        }
        assert VerificationRecord.from_dict(envelope) == record

    def test_missing_fields(self):
        with pytest.raises(RecordError) as exc_info:
            VerificationRecord.from_dict({"address": "0x00"})
        assert exc_info.value.details["missing"] == ["signature", "blockHash", "createdAt"]

    def test_non_mapping_rejected(self):
        with pytest.raises(RecordError):
            VerificationRecord.from_dict(["address"])

    async def test_record_key_is_encoded_address_hex(self, record, signer):
        assert record.record_key == "000100000101" + "14" + signer.address_bytes.hex()

    async def test_decoded_address(self, record, signer):
        decoded = record.decoded_address()
        assert decoded.chain_id == 1
        assert decoded.address == signer.address_bytes

    def test_record_error_is_atproof_error(self):
        assert issubclass(RecordError, AtproofError)


class TestValidateSchema:

    async def test_created_record_is_valid(self, record):
        result = record.validate_schema()
        assert result and result.errors == []

    def test_all_violations_reported(self):
        bad = VerificationRecord(
            address=    bytes(129),
            signature=  b"",
            block_hash= bytes(33),
            created_at= "yesterday",
        )
        result = bad.validate_schema()
        assert not result
        assert len(result.errors) == 4

    def test_empty_address(self):
        bad = VerificationRecord(
            address=    b"",
            signature=  b"\x01",
            block_hash= bytes(32),
            created_at= "2025-01-01T00:00:00Z",
        )
        assert bad.validate_schema().errors == ["address must not be empty"]


# ─────────────────────────────────────────────────────────────
# verify_record / verify_records
# ─────────────────────────────────────────────────────────────

class TestVerifyRecord:

    async def test_record_verifies(self, engine, subject, record):
        result = await verify_record(engine, subject, record)
        assert result.valid

    async def test_json_form_verifies(self, engine, subject, record):
        result = await verify_record(engine, subject, record.to_dict())
        assert result.reason is VerificationReason.VERIFIED

    async def test_wrong_subject(self, engine, record):
        result = await verify_record(engine, "did:plc:someoneelse", record)
        assert result.reason is VerificationReason.SIGNATURE_MISMATCH

    async def test_unreadable_record_is_malformed_input(self, engine, subject):
        result = await verify_record(engine, subject, {"address": 42})
        assert not result.valid
        assert result.reason is VerificationReason.MALFORMED_INPUT
        assert isinstance(result.error, RecordError)

    async def test_many_keep_order(self, engine, subject, record):
        results = await verify_records(engine, subject, [record, {"nope": 1}, record.to_dict()])
        assert [r.valid for r in results] == [True, False, True]


# ─────────────────────────────────────────────────────────────
# Bundles
# ─────────────────────────────────────────────────────────────

class TestRecordBundle:

    async def test_canonical_json_is_sorted_and_compact(self, record, subject):
        text = RecordBundle(did=subject, records=[record]).to_canonical_json().decode()
        assert text.startswith('{"did":')
        assert ": " not in text and ", " not in text

    async def test_save_and_load(self, tmp_path, record, subject):
        path = tmp_path / "out" / "bundle.json"
        RecordBundle(did=subject, records=[record]).save(path)

        loaded = RecordBundle.load(path)
        assert loaded.did == subject
        assert loaded.records == [record]

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            RecordBundle.load(tmp_path / "nope.json")

    def test_load_invalid_json(self, tmp_path):
        path = tmp_path / "bundle.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(RecordError):
            RecordBundle.load(path)

    def test_unreadable_records_kept_raw(self, subject):
        bundle = RecordBundle.from_dict({
            "did":     subject,
            "records": [{"address": "garbage"}, "not-a-record"],
        })
        assert bundle.records == [{"address": "garbage"}, {"value": "not-a-record"}]

    @pytest.mark.parametrize("data", [
        {"records": []},
        {"did": "", "records": []},
        {"did": "did:plc:x"},
        {"did": "did:plc:x", "records": {}},
        [],
    ])
    def test_malformed_bundle_rejected(self, data):
        with pytest.raises(RecordError):
            RecordBundle.from_dict(data)

    async def test_raw_records_exported_as_is(self, record, subject):
        bundle = RecordBundle(did=subject, records=[record, {"address": "garbage"}])
        exported = json.loads(bundle.to_canonical_json())
        assert exported["records"][1] == {"address": "garbage"}
