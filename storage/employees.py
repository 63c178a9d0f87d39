"""
Employee roster storage for MilestoneBot.

The roster is owned by the HR sync job; the sweeps only read it.

Storage format:
{
  "EMPLOYEE_CODE": {
    "name": "Display Name",
    "slack_id": "U0123456" or null,
    "hire_date": "YYYY-MM-DD" or null,
    "birth_date": "YYYY-MM-DD" or null,
    "retired_on": "YYYY-MM-DD" or null,
    "updated_at": "HR-side ISO timestamp" or null
  }
}

Key functions: load_employees(), get_employee(), upsert_employees()
Key classes: Employee, RosterCache
"""

import json
import threading
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Optional

from filelock import FileLock

from config import EMPLOYEES_JSON_FILE, TIMEOUTS, get_logger

logger = get_logger("employees")

# Thread lock for atomic read-modify-write operations (same process)
_employees_thread_lock = threading.Lock()


@dataclass
class Employee:
    employee_id: str
    name: str
    slack_id: Optional[str] = None
    hire_date: Optional[date] = None
    birth_date: Optional[date] = None
    retired_on: Optional[date] = None
    updated_at: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.retired_on is None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "slack_id": self.slack_id,
            "hire_date": self.hire_date.isoformat() if self.hire_date else None,
            "birth_date": self.birth_date.isoformat() if self.birth_date else None,
            "retired_on": self.retired_on.isoformat() if self.retired_on else None,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, employee_id: str, data: dict) -> "Employee":
        def _date(key):
            value = data.get(key)
            return date.fromisoformat(value) if value else None

        return cls(
            employee_id=employee_id,
            name=data.get("name") or employee_id,
            slack_id=data.get("slack_id") or None,
            hire_date=_date("hire_date"),
            birth_date=_date("birth_date"),
            retired_on=_date("retired_on"),
            updated_at=data.get("updated_at"),
        )


def _lock():
    return FileLock(EMPLOYEES_JSON_FILE + ".lock", timeout=TIMEOUTS["file_lock"])


def _read_raw() -> dict:
    try:
        with open(EMPLOYEES_JSON_FILE, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        logger.warning(f"FILE_ERROR: {EMPLOYEES_JSON_FILE} not found")
        return {}


def load_employees() -> Dict[str, Employee]:
    """
    Load the roster from JSON storage.

    Returns:
        Dictionary mapping employee_id to Employee, in storage order

    Raises:
        json.JSONDecodeError: If the roster file is corrupt (callers treat the
            roster as unavailable)
    """
    with _lock():
        raw = _read_raw()
    employees = {emp_id: Employee.from_dict(emp_id, data) for emp_id, data in raw.items()}
    logger.info(f"STORAGE: Loaded {len(employees)} employees from JSON")
    return employees


def get_employee(employee_id: str) -> Optional[Employee]:
    """Point lookup of one employee, None if not on the roster."""
    return load_employees().get(employee_id)


def upsert_employees(employees: Iterable[Employee]) -> Dict[str, int]:
    """
    Insert or update roster rows (thread-safe atomic operation).

    The employee id is the immutable key. A retirement date already on file is
    never cleared by an incoming row without one, and a resolved Slack id is
    kept when the incoming row has none.

    Args:
        employees: Rows from the HR system

    Returns:
        {"added": n, "updated": n}
    """
    stats = {"added": 0, "updated": 0}

    with _employees_thread_lock, _lock():
        raw = _read_raw()

        for employee in employees:
            existing = raw.get(employee.employee_id)
            if existing:
                previous = Employee.from_dict(employee.employee_id, existing)
                if employee.retired_on is None and previous.retired_on is not None:
                    employee.retired_on = previous.retired_on
                if employee.slack_id is None:
                    employee.slack_id = previous.slack_id
                stats["updated"] += 1
            else:
                stats["added"] += 1
            raw[employee.employee_id] = employee.to_dict()

        with open(EMPLOYEES_JSON_FILE, "w", encoding="utf-8") as f:
            json.dump(raw, f, indent=2, ensure_ascii=False)

    logger.info(
        f"STORAGE: Upserted roster - {stats['added']} added, {stats['updated']} updated"
    )
    return stats


class RosterCache:
    """
    Read-through roster cache owned by a single sweep invocation.

    Loads the roster once on first use and serves lookups from memory until
    invalidate() is called. Create a new instance per sweep rather than
    sharing one across invocations.
    """

    def __init__(self, loader=None):
        self._loader = loader or load_employees
        self._employees = None

    def _ensure_loaded(self) -> Dict[str, Employee]:
        if self._employees is None:
            self._employees = self._loader()
        return self._employees

    def get(self, employee_id: str) -> Optional[Employee]:
        return self._ensure_loaded().get(employee_id)

    def all(self) -> List[Employee]:
        return list(self._ensure_loaded().values())

    def active(self) -> List[Employee]:
        return [employee for employee in self.all() if employee.is_active]

    def invalidate(self):
        self._employees = None
