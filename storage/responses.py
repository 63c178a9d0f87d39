"""
JSON-based response record storage for MilestoneBot.

One record per (employee, anniversary date) holds the employee's consent
decision, the confirmed gift, and whether the celebration has been posted.

Storage format:
{
  "responses": [
    {
      "employee_id": "emp_42",
      "anniversary_date": "YYYY-MM-DD",
      "event_kind": "birthday" | "anniversary",
      "approval": "unset" | "approved" | "declined",
      "gift_id": "G1" or null,
      "announced": false,
      "created_at": "ISO timestamp",
      "updated_at": "ISO timestamp"
    }
  ]
}

Records are kept in insertion order. Every mutation targets exactly one record
and runs under the file lock, so concurrent writers never interleave.

Key functions: get_response(), insert_response(), set_approval(), set_gift(),
mark_announced(), get_pending_announcements()
"""

import json
import threading
from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import List, Optional

from filelock import FileLock

from config import RESPONSE_RETENTION_DAYS, RESPONSES_JSON_FILE, TIMEOUTS, get_logger

logger = get_logger("responses")

# Thread lock for atomic read-modify-write operations (same process)
_responses_thread_lock = threading.Lock()


class EventKind(str, Enum):
    BIRTHDAY = "birthday"
    ANNIVERSARY = "anniversary"


class Approval(str, Enum):
    UNSET = "unset"
    APPROVED = "approved"
    DECLINED = "declined"


@dataclass
class ResponseRecord:
    """A single employee's response to one anniversary notification."""

    employee_id: str
    anniversary_date: date
    event_kind: EventKind
    approval: Approval = Approval.UNSET
    gift_id: Optional[str] = None
    announced: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def key(self):
        return self.employee_id, self.anniversary_date

    def to_dict(self) -> dict:
        data = asdict(self)
        data["anniversary_date"] = self.anniversary_date.isoformat()
        data["event_kind"] = self.event_kind.value
        data["approval"] = self.approval.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ResponseRecord":
        return cls(
            employee_id=data["employee_id"],
            anniversary_date=date.fromisoformat(data["anniversary_date"]),
            event_kind=EventKind(data["event_kind"]),
            approval=Approval(data.get("approval", Approval.UNSET.value)),
            gift_id=data.get("gift_id"),
            announced=bool(data.get("announced", False)),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )


def _lock():
    return FileLock(RESPONSES_JSON_FILE + ".lock", timeout=TIMEOUTS["file_lock"])


def _now():
    return datetime.now(timezone.utc).isoformat()


def _read_records() -> List[ResponseRecord]:
    """Read all records. Caller must hold the file lock."""
    try:
        with open(RESPONSES_JSON_FILE, "r") as f:
            data = json.load(f)
    except FileNotFoundError:
        return []
    return [ResponseRecord.from_dict(item) for item in data.get("responses", [])]


def _write_records(records: List[ResponseRecord]):
    """Write all records. Caller must hold the file lock."""
    with open(RESPONSES_JSON_FILE, "w") as f:
        json.dump({"responses": [r.to_dict() for r in records]}, f, indent=2)


def _find(records, employee_id, anniversary_date):
    for record in records:
        if record.employee_id == employee_id and record.anniversary_date == anniversary_date:
            return record
    return None


def load_responses() -> List[ResponseRecord]:
    """
    Load all response records from JSON storage.

    Returns:
        List of ResponseRecord in insertion order
    """
    with _lock():
        records = _read_records()
    logger.debug(f"STORAGE: Loaded {len(records)} response records")
    return records


def get_response(employee_id: str, anniversary_date: date) -> Optional[ResponseRecord]:
    """
    Point lookup of a response record.

    Returns:
        ResponseRecord or None if not found
    """
    with _lock():
        return _find(_read_records(), employee_id, anniversary_date)


def insert_response(record: ResponseRecord) -> bool:
    """
    Insert a new response record (thread-safe atomic operation).

    Existing records are never overwritten. Records older than
    RESPONSE_RETENTION_DAYS are pruned on the same write.

    Args:
        record: Record to insert

    Returns:
        True if inserted, False if a record with the same key already exists
    """
    with _responses_thread_lock, _lock():
        records = _read_records()
        if _find(records, record.employee_id, record.anniversary_date):
            logger.info(
                f"STORAGE: Response for {record.employee_id} on "
                f"{record.anniversary_date.isoformat()} already exists, not inserting"
            )
            return False

        now = _now()
        record.created_at = record.created_at or now
        record.updated_at = now

        cutoff = record.anniversary_date - timedelta(days=RESPONSE_RETENTION_DAYS)
        kept = [r for r in records if r.anniversary_date >= cutoff]
        if len(kept) < len(records):
            logger.info(f"CLEANUP: Pruned {len(records) - len(kept)} old response records")

        kept.append(record)
        _write_records(kept)

    logger.info(
        f"STORAGE: Inserted {record.event_kind.value} response for {record.employee_id} "
        f"on {record.anniversary_date.isoformat()}"
    )
    return True


def _update(employee_id, anniversary_date, mutate, action):
    """
    Apply mutate(record) to one record under the lock.

    mutate returns False to refuse the change. Announced records are terminal
    and never passed to mutate.

    Returns:
        Updated ResponseRecord, or None if missing, terminal or refused
    """
    with _responses_thread_lock, _lock():
        records = _read_records()
        record = _find(records, employee_id, anniversary_date)

        if record is None:
            logger.warning(
                f"STORAGE: No response record for {employee_id} on "
                f"{anniversary_date.isoformat()} ({action})"
            )
            return None

        if record.announced:
            logger.warning(
                f"STORAGE: Refusing {action} for {employee_id} on "
                f"{anniversary_date.isoformat()} - already announced"
            )
            return None

        if mutate(record) is False:
            return None

        record.updated_at = _now()
        _write_records(records)

    logger.info(f"STORAGE: {action} for {employee_id} on {anniversary_date.isoformat()}")
    return record


def set_approval(
    employee_id: str, anniversary_date: date, approval: Approval
) -> Optional[ResponseRecord]:
    """
    Record the employee's approve/decline decision.

    The decision is taken once. Repeating the same decision is a harmless no-op
    write; the opposite decision on a decided record is refused. Declining clears
    any gift id.

    Returns:
        Updated record, or None if missing, already announced or already decided otherwise
    """

    def mutate(record):
        if record.approval not in (Approval.UNSET, approval):
            logger.warning(
                f"STORAGE: Refusing approval={approval.value} for {employee_id} on "
                f"{anniversary_date.isoformat()} - already {record.approval.value}"
            )
            return False
        record.approval = approval
        if approval == Approval.DECLINED:
            record.gift_id = None

    return _update(employee_id, anniversary_date, mutate, f"Set approval={approval.value}")


def set_gift(employee_id: str, anniversary_date: date, gift_id: str) -> Optional[ResponseRecord]:
    """
    Persist the confirmed gift, overwriting any earlier choice.

    Only allowed while the record is approved and not yet announced.

    Returns:
        Updated record, or None if missing, not approved or already announced
    """

    def mutate(record):
        if record.approval != Approval.APPROVED:
            logger.warning(
                f"STORAGE: Refusing gift {gift_id} for {employee_id} - "
                f"approval is {record.approval.value}"
            )
            return False
        record.gift_id = gift_id

    return _update(employee_id, anniversary_date, mutate, f"Set gift={gift_id}")


def mark_announced(employee_id: str, anniversary_date: date) -> bool:
    """
    Flip announced to True for an approved record.

    Returns:
        True if marked, False if missing, not approved or already announced
    """

    def mutate(record):
        if record.approval != Approval.APPROVED:
            logger.warning(
                f"STORAGE: Refusing to announce {employee_id} - approval is {record.approval.value}"
            )
            return False
        record.announced = True

    return _update(employee_id, anniversary_date, mutate, "Marked announced") is not None


def get_pending_announcements(target_date: date) -> List[ResponseRecord]:
    """
    Records for target_date that are approved and not yet announced.

    Args:
        target_date: Anniversary date to scan for

    Returns:
        List of ResponseRecord in storage order
    """
    pending = [
        record
        for record in load_responses()
        if record.anniversary_date == target_date
        and record.approval == Approval.APPROVED
        and not record.announced
    ]
    logger.info(
        f"STORAGE: Found {len(pending)} pending announcements for {target_date.isoformat()}"
    )
    return pending
