"""
atproof/records.py

Storage-collaborator boundary for org.chainagnostic.verification records.

verify_record() re-verifies one stored record through the engine and reports
an unreadable record as invalid instead of raising.

Bundles are the offline export format: {"did": ..., "records": [...]}
serialized as RFC 8785 canonical JSON so that exports are byte-stable and
diffable.
"""

import asyncio
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Union

import jcs
from loguru import logger

from atproof.core.engine import VerificationEngine, VerificationReason, VerificationResult
from atproof.core.exceptions import RecordError
from atproof.core.record import (
    COLLECTION,
    SchemaValidationResult,
    VerificationRecord,
    unwrap_bytes,
    wrap_bytes,
)

__all__ = [
    "COLLECTION",
    "RecordBundle",
    "RecordLike",
    "SchemaValidationResult",
    "VerificationRecord",
    "unwrap_bytes",
    "verify_record",
    "verify_records",
    "wrap_bytes",
]


RecordLike = Union[VerificationRecord, Mapping[str, Any]]


async def verify_record(
    engine:  VerificationEngine,
    subject: str,
    record:  RecordLike,
) -> VerificationResult:
    """
    Verify one stored record for subject.

    A record that cannot be normalized is reported invalid (malformed_input)
    rather than aborting the caller's list operation.
    """
    if not isinstance(record, VerificationRecord):
        try:
            record = VerificationRecord.from_dict(record)
        except RecordError as exc:
            return VerificationResult(
                valid=  False,
                reason= VerificationReason.MALFORMED_INPUT,
                error=  exc,
            )
    return await engine.check(
        subject, record.address, record.block_hash, record.signature
    )


async def verify_records(
    engine:  VerificationEngine,
    subject: str,
    records: Iterable[RecordLike],
) -> List[VerificationResult]:
    """Verify records concurrently. Results keep input order."""
    return list(await asyncio.gather(
        *(verify_record(engine, subject, r) for r in records)
    ))


# ─────────────────────────────────────────────────────────────
# Bundles
# ─────────────────────────────────────────────────────────────

@dataclass
class RecordBundle:
    """All verification records of one subject, for offline export."""

    did:     str
    records: List[RecordLike] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "did":     self.did,
            "records": [
                r.to_dict() if isinstance(r, VerificationRecord) else dict(r)
                for r in self.records
            ],
        }

    def to_canonical_json(self) -> bytes:
        return jcs.canonicalize(self.to_dict())

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RecordBundle":
        """
        Records that cannot be normalized are kept in raw form so that
        verification reports them invalid instead of rejecting the bundle.

        Raises:
            RecordError: missing did or records list.
        """
        if not isinstance(data, Mapping) or not isinstance(data.get("records"), list):
            raise RecordError("bundle must be an object with a 'records' list")
        did = data.get("did")
        if not isinstance(did, str) or not did:
            raise RecordError("bundle 'did' must be a non-empty string")

        records: List[RecordLike] = []
        for raw in data["records"]:
            try:
                records.append(VerificationRecord.from_dict(raw))
            except RecordError as exc:
                logger.warning("Keeping unreadable record in raw form: {}", exc)
                records.append(raw if isinstance(raw, Mapping) else {"value": raw})
        return cls(did=did, records=records)

    def save(self, path: Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.to_canonical_json())

    @classmethod
    def load(cls, path: Path) -> "RecordBundle":
        """
        Raises FileNotFoundError if path does not exist.
        Raises RecordError if the file is not a valid bundle.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Bundle not found: {path}")
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise RecordError(f"bundle is not valid JSON: {exc}") from exc
        return cls.from_dict(data)
