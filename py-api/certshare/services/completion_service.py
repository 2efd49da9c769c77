"""Persistence of which sharing steps a participant has completed.

Records are stored as raw JSON text, one value per storage key, either in
MongoDB (when ENABLE_MONGODB is true) or in the process-local dict from
``certshare.storage``. Two shapes exist on disk:

* current: ``{"step1": {"completed": bool, "timestamp": int | null}, "step2": {...}}``
* legacy: ``{"step1": bool, "step1Timestamp": int, "step2": bool, ...}``

Reads accept both and normalize to the current shape in memory. Writes only
ever produce the current shape, so a legacy key is migrated the first time a
step is saved and is left untouched until then.
"""

from __future__ import annotations

import base64
import json
import logging
import math
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pymongo.errors import PyMongoError

from certshare import database, storage
from certshare.errors import StorageCorrupt, StorageUnavailable
from certshare.utils.clock import now_millis
from certshare.utils.params import SessionParams

_LOGGER = logging.getLogger(__name__)

STORAGE_KEY_PREFIX = "cert_completion_"
STEPS = ("step1", "step2")
RECENT_ACTIVITY_WINDOW_MS = 2 * 60 * 1000
MAX_WRITE_ATTEMPTS = 5

# Serializes read-modify-write cycles of save_step within this process.
_SAVE_LOCK = threading.Lock()

# Top-level fields that only exist in the legacy shape.
LEGACY_FIELDS = ("step1Timestamp", "step2Timestamp", "timestamp")


@dataclass(frozen=True)
class StepState:
    completed: bool = False
    timestamp: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"completed": self.completed, "timestamp": self.timestamp}


@dataclass(frozen=True)
class CompletionRecord:
    """Completion state of both steps, always in the current shape."""

    step1: StepState = field(default_factory=StepState)
    step2: StepState = field(default_factory=StepState)

    def step(self, name: str) -> StepState:
        _check_step(name)
        return getattr(self, name)

    def with_step(self, name: str, state: StepState) -> "CompletionRecord":
        _check_step(name)
        return replace(self, **{name: state})

    def to_dict(self) -> Dict[str, Any]:
        return {"step1": self.step1.to_dict(), "step2": self.step2.to_dict()}


class RecordKind(str, Enum):
    ABSENT = "absent"
    CORRUPT = "corrupt"
    LEGACY = "legacy"
    CURRENT = "current"


@dataclass(frozen=True)
class DecodedRecord:
    """Result of decoding a stored value; ``record`` is always normalized."""

    kind: RecordKind
    record: CompletionRecord


def _check_step(name: str) -> None:
    if name not in STEPS:
        raise ValueError(f"Unknown step {name!r}, expected one of {', '.join(STEPS)}")


def derive_storage_key(params: SessionParams, organization_name: Optional[str]) -> str:
    """
    Return the storage key of a certificate session.

    The certificate id is used when present. Otherwise the key is a base64
    digest of the document URL, formation and organization name with the
    characters ``+/=`` removed.
    """
    if params.cert_id:
        return f"{STORAGE_KEY_PREFIX}{params.cert_id}"

    parts = [part for part in (params.pdf_url, params.formation_name, organization_name) if part]
    digest = base64.b64encode("|".join(parts).encode("utf-8")).decode("ascii")
    return STORAGE_KEY_PREFIX + digest.translate(str.maketrans("", "", "+/="))


def _parse_timestamp(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    try:
        return int(value) or None
    except (ValueError, OverflowError):
        return None


def _decode_step(document: Dict[str, Any], name: str) -> Tuple[StepState, bool]:
    """Return the step state and whether it was stored in the legacy shape."""
    value = document.get(name)
    if isinstance(value, bool):
        timestamp = _parse_timestamp(document.get(f"{name}Timestamp"))
        return StepState(completed=value, timestamp=timestamp), True
    if isinstance(value, dict):
        return (
            StepState(
                completed=bool(value.get("completed")),
                timestamp=_parse_timestamp(value.get("timestamp")),
            ),
            False,
        )
    return StepState(), False


def _parse_document(raw: str) -> Dict[str, Any]:
    try:
        document = json.loads(raw)
    except ValueError as exc:
        raise StorageCorrupt("Stored completion record is not valid JSON") from exc
    if not isinstance(document, dict):
        raise StorageCorrupt("Stored completion record is not a JSON object")
    return document


def decode_record(raw: Optional[str]) -> DecodedRecord:
    """Classify a stored value and normalize it to the current shape."""
    if raw is None:
        return DecodedRecord(RecordKind.ABSENT, CompletionRecord())

    try:
        document = _parse_document(raw)
    except StorageCorrupt:
        return DecodedRecord(RecordKind.CORRUPT, CompletionRecord())

    step1, step1_legacy = _decode_step(document, "step1")
    step2, step2_legacy = _decode_step(document, "step2")
    legacy = step1_legacy or step2_legacy or any(name in document for name in LEGACY_FIELDS)
    kind = RecordKind.LEGACY if legacy else RecordKind.CURRENT
    return DecodedRecord(kind, CompletionRecord(step1=step1, step2=step2))


def encode_record(record: CompletionRecord) -> str:
    return json.dumps(record.to_dict())


# --- Storage backend ---


def read_raw(key: str) -> Optional[str]:
    """Return the stored JSON text for ``key``, or None."""
    if not database.mongodb_enabled():
        return storage.completion_records.get(key)

    try:
        document = database.get_completion_collection().find_one({"key": key})
    except PyMongoError as exc:
        raise StorageUnavailable(f"Unable to read completion record {key}") from exc
    if not document:
        return None
    return document.get("value")


def write_if_unchanged(key: str, expected: Optional[str], value: str) -> bool:
    """
    Replace the stored JSON text for ``key`` only if it still equals ``expected``.

    ``expected`` is None when the key was absent at read time. Returns False
    when another writer got there first.
    """
    if not database.mongodb_enabled():
        if storage.completion_records.get(key) != expected:
            return False
        storage.completion_records[key] = value
        return True

    collection = database.get_completion_collection()
    try:
        if expected is None:
            result = collection.update_one(
                {"key": key},
                {"$setOnInsert": {"key": key, "value": value, "updated_at": datetime.utcnow()}},
                upsert=True,
            )
            return result.upserted_id is not None

        result = collection.update_one(
            {"key": key, "value": expected},
            {"$set": {"value": value, "updated_at": datetime.utcnow()}},
        )
        return result.matched_count == 1
    except PyMongoError as exc:
        raise StorageUnavailable(f"Unable to write completion record {key}") from exc


def clear_all_records() -> int:
    """Delete every completion record and return how many were removed."""
    if not database.mongodb_enabled():
        removed = len(storage.completion_records)
        storage.completion_records.clear()
        return removed

    try:
        return database.get_completion_collection().delete_many({}).deleted_count
    except PyMongoError as exc:
        raise StorageUnavailable("Unable to clear completion records") from exc


# --- Store operations ---


def load_record(key: str) -> CompletionRecord:
    """
    Return the completion record stored under ``key``.

    Never raises: a missing, unreadable or corrupt value is reported as a
    record with no completed step. Nothing is written back.
    """
    try:
        raw = read_raw(key)
    except StorageUnavailable:
        _LOGGER.warning("Completion store unavailable, assuming no prior state", exc_info=True)
        return CompletionRecord()

    decoded = decode_record(raw)
    if decoded.kind is RecordKind.CORRUPT:
        _LOGGER.warning("Ignoring corrupt completion record for %s", key)
    return decoded.record


def _apply_step(
    record: CompletionRecord,
    step: str,
    completed: bool,
    now_ms: Optional[int],
) -> CompletionRecord:
    current = record.step(step)
    if completed:
        stamp = now_ms if now_ms is not None else now_millis()
        if current.timestamp is not None:
            stamp = max(stamp, current.timestamp)
        return record.with_step(step, StepState(completed=True, timestamp=stamp))
    return record.with_step(step, StepState(completed=False, timestamp=current.timestamp))


def save_step(
    key: str,
    step: str,
    completed: bool,
    now_ms: Optional[int] = None,
) -> Optional[CompletionRecord]:
    """
    Mark ``step`` as completed (or not) and persist the normalized record.

    Completing a step stamps it with the current time, never moving an
    existing timestamp backwards. Un-completing keeps the timestamp.

    Args:
        key: Storage key of the session
        step: "step1" or "step2"
        completed: New completion flag
        now_ms: Clock override in milliseconds

    Returns:
        The record as written, or None when the store is unavailable or
        keeps changing underneath
    """
    _check_step(step)

    try:
        with _SAVE_LOCK:
            for _ in range(MAX_WRITE_ATTEMPTS):
                raw = read_raw(key)
                decoded = decode_record(raw)
                record = _apply_step(decoded.record, step, completed, now_ms)
                if write_if_unchanged(key, raw, encode_record(record)):
                    break
            else:
                _LOGGER.warning("Gave up saving %s for %s after concurrent updates", step, key)
                return None
    except StorageUnavailable:
        _LOGGER.warning("Could not persist %s for %s", step, key, exc_info=True)
        return None

    if decoded.kind is RecordKind.LEGACY:
        _LOGGER.info("Migrated legacy completion record %s", key)
    return record


def _latest_completed_timestamp(record: CompletionRecord) -> Optional[int]:
    stamps = [
        state.timestamp
        for state in (record.step1, record.step2)
        if state.completed and state.timestamp is not None
    ]
    return max(stamps) if stamps else None


def has_recent_activity(
    record: CompletionRecord,
    now_ms: int,
    window_ms: int = RECENT_ACTIVITY_WINDOW_MS,
) -> bool:
    """True iff a step is completed and the newest completion is within the window."""
    latest = _latest_completed_timestamp(record)
    if latest is None:
        return False
    return now_ms - latest <= window_ms


def is_stale_session(
    record: CompletionRecord,
    now_ms: int,
    window_ms: int = RECENT_ACTIVITY_WINDOW_MS,
) -> bool:
    """True when the participant shared before and the window has passed."""
    if _latest_completed_timestamp(record) is None:
        return False
    return not has_recent_activity(record, now_ms, window_ms)
