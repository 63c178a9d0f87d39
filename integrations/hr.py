"""
HR system client and roster sync for MilestoneBot.

Pulls employee rows changed since the last successful sync, resolves each
employee's Slack member id from an HR custom field, and upserts the roster.

Expected HR API shape:
- GET {base}/employees?page=N&per_page=M&sort=-updated_at -> JSON list of rows
  with "code", "name" (or "first_name"/"last_name"), "hire_date",
  "birth_date", "retired_on", "updated_at". A page shorter than per_page is
  the last one.
- GET {base}/employees/{code} -> row plus "custom_fields": [{"name", "value"}]

Sync state (last seen HR updated_at) lives in HR_SYNC_STATE_FILE and only
advances past rows that synced; a row whose details failed keeps the mark
below it so the next pull retries it.

Key classes: HRClient
Key functions: sync_roster(), extract_chat_handle()
"""

import json
import os
import time
from datetime import datetime, timezone
from typing import Dict, List, Optional

import requests

from config import (
    API_CALL_DELAY_SECONDS,
    HR_API_BASE_URL,
    HR_API_TOKEN,
    HR_PAGE_SIZE,
    HR_SLACK_FIELD_NAME,
    HR_SYNC_STATE_FILE,
    TIMEOUTS,
    get_logger,
)
from slack_io.client import lookup_user_id_by_email
from slack_io.messaging import report_admin_error
from storage.employees import Employee, upsert_employees
from utils.action_tokens import validate_employee_id
from utils.date import parse_optional_date
from utils.errors import ConfigurationError, ExternalCallError, ValidationError

logger = get_logger("hr")

SLACK_MEMBER_ID_PREFIXES = ("U", "W")


def _parse_timestamp(value) -> Optional[datetime]:
    """Parse an HR ISO timestamp; naive values are taken as UTC."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"HR: Unparseable updated_at {value!r}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class HRClient:
    """
    Minimal read-only client for the HR system's employee API.

    All failures surface as ExternalCallError("hr", ...).
    """

    def __init__(self, base_url: str = None, token: str = None, page_size: int = None):
        self.base_url = (base_url or HR_API_BASE_URL or "").rstrip("/")
        self.token = token or HR_API_TOKEN
        self.page_size = page_size or HR_PAGE_SIZE

        if not self.base_url:
            raise ConfigurationError("HR_API_BASE_URL is not configured")
        if not self.token:
            raise ConfigurationError("HR_API_TOKEN is not configured")

    def _get(self, path: str, params: Optional[dict] = None):
        url = f"{self.base_url}{path}"
        try:
            response = requests.get(
                url,
                params=params,
                headers={
                    "Authorization": f"Bearer {self.token}",
                    "Accept": "application/json",
                },
                timeout=TIMEOUTS.get("http_request", 30),
            )
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            raise ExternalCallError("hr", f"GET {path} failed: {e}") from e
        except ValueError as e:
            raise ExternalCallError("hr", f"GET {path} returned invalid JSON: {e}") from e

    def list_employees(self, updated_since: Optional[datetime] = None) -> List[dict]:
        """
        Fetch employee rows, newest change first.

        Args:
            updated_since: Stop at the first row not newer than this instant

        Returns:
            Rows changed after updated_since (all rows if None)
        """
        rows = []
        page = 1

        while True:
            batch = self._get(
                "/employees",
                params={"page": page, "per_page": self.page_size, "sort": "-updated_at"},
            )
            if not isinstance(batch, list):
                raise ExternalCallError("hr", f"Unexpected /employees page {page} shape")

            for row in batch:
                if updated_since is not None:
                    row_updated = _parse_timestamp(row.get("updated_at"))
                    if row_updated is not None and row_updated <= updated_since:
                        logger.info(f"HR: Reached rows unchanged since {updated_since.isoformat()}")
                        return rows
                rows.append(row)

            if len(batch) < self.page_size:
                return rows
            page += 1

    def get_employee_detail(self, employee_id: str) -> dict:
        detail = self._get(f"/employees/{employee_id}")
        if not isinstance(detail, dict):
            raise ExternalCallError("hr", f"Unexpected detail shape for {employee_id}")
        return detail


def extract_chat_handle(detail: dict, field_name: str = None) -> Optional[str]:
    """
    Read the Slack handle from an employee's custom fields.

    Args:
        detail: Employee detail from HRClient.get_employee_detail()
        field_name: Custom field name (defaults to HR_SLACK_FIELD_NAME)

    Returns:
        Stripped field value, or None when absent or blank
    """
    field_name = field_name or HR_SLACK_FIELD_NAME
    for field in detail.get("custom_fields") or []:
        if field.get("name") == field_name:
            value = (field.get("value") or "").strip()
            return value or None
    return None


def resolve_slack_id(app, handle: Optional[str]) -> Optional[str]:
    """Member ids are used as is; emails are looked up in Slack."""
    if not handle:
        return None
    if "@" in handle:
        if app is None:
            logger.warning(f"HR: Cannot resolve {handle} without a Slack app")
            return None
        return lookup_user_id_by_email(app, handle)
    if handle.startswith(SLACK_MEMBER_ID_PREFIXES):
        return handle
    logger.warning(f"HR: Unrecognized Slack handle {handle!r}")
    return None


def employee_from_row(row: dict, slack_id: Optional[str]) -> Employee:
    """
    Map an HR row to a roster Employee.

    Malformed dates are dropped (logged) rather than failing the row.

    Raises:
        ValidationError: If the code cannot be used as an employee id
    """
    employee_id = validate_employee_id(str(row.get("code") or ""))
    name = row.get("name") or " ".join(
        part for part in (row.get("first_name"), row.get("last_name")) if part
    )
    return Employee(
        employee_id=employee_id,
        name=name or employee_id,
        slack_id=slack_id,
        hire_date=parse_optional_date(row.get("hire_date")),
        birth_date=parse_optional_date(row.get("birth_date")),
        retired_on=parse_optional_date(row.get("retired_on")),
        updated_at=row.get("updated_at"),
    )


# =============================================================================
# Sync State
# =============================================================================


def load_sync_state() -> Dict:
    if not os.path.exists(HR_SYNC_STATE_FILE):
        return {}
    try:
        with open(HR_SYNC_STATE_FILE, "r", encoding="utf-8") as f:
            return json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(f"HR: Ignoring unreadable sync state: {e}")
        return {}


def save_sync_state(state: Dict):
    with open(HR_SYNC_STATE_FILE, "w", encoding="utf-8") as f:
        json.dump(state, f, indent=2)


# =============================================================================
# Roster Sync
# =============================================================================


def _advance_high_water_mark(previous, synced, failed):
    """
    Newest synced updated_at that keeps every failed row inside the next pull.

    Rows are pulled while strictly newer than the mark, so the mark must stay
    below the oldest failed row. A failed row without a timestamp pins it.
    """
    if any(stamp is None for stamp in failed):
        return previous
    ceiling = min(failed) if failed else None

    newest = previous
    for stamp in synced:
        if stamp is None or (ceiling is not None and stamp >= ceiling):
            continue
        if newest is None or stamp > newest:
            newest = stamp
    return newest


def sync_roster(app=None, full=False, client=None):
    """
    Pull changed HR rows into the roster.

    Never raises. A failure listing employees aborts the sync and is reported
    once; a failure on one employee is reported for that employee and the
    rest still sync. The high-water mark never moves past a failed row.

    Args:
        app: Slack app instance (email resolution and admin reports)
        full: Ignore the stored high-water mark and pull everything
        client: Optional HRClient

    Returns:
        Dictionary with fetched, added, updated, skipped and failed counts
    """
    results = {"fetched": 0, "added": 0, "updated": 0, "skipped": 0, "failed": 0}

    try:
        client = client or HRClient()
        state = load_sync_state()
        updated_since = None if full else _parse_timestamp(state.get("last_updated_at"))

        logger.info(
            f"HR: Starting {'full' if updated_since is None else 'incremental'} roster sync"
            + (f" since {updated_since.isoformat()}" if updated_since else "")
        )

        rows = client.list_employees(updated_since=updated_since)
        results["fetched"] = len(rows)

        employees = []
        synced_stamps = []
        failed_stamps = []
        for row in rows:
            if not row.get("code"):
                logger.warning(f"HR: Skipping row without employee code: {row.get('name')!r}")
                results["skipped"] += 1
                continue

            row_updated = _parse_timestamp(row.get("updated_at"))

            try:
                detail = client.get_employee_detail(row["code"])
                slack_id = resolve_slack_id(app, extract_chat_handle(detail))
            except ExternalCallError as e:
                results["failed"] += 1
                failed_stamps.append(row_updated)
                logger.error(f"HR_ERROR: Could not fetch details for {row['code']}: {e}")
                report_admin_error(app, "HR employee sync failed", f"{row['code']}: {e}")
                continue
            finally:
                # Pace the per-employee HR and Slack lookups
                time.sleep(API_CALL_DELAY_SECONDS)

            try:
                employees.append(employee_from_row(row, slack_id))
            except ValidationError as e:
                logger.warning(f"HR: Skipping invalid row: {e}")
                results["skipped"] += 1
                continue

            synced_stamps.append(row_updated)

        if employees:
            results.update(upsert_employees(employees))

        newest = _advance_high_water_mark(updated_since, synced_stamps, failed_stamps)
        if newest is not None and newest != updated_since:
            save_sync_state({"last_updated_at": newest.isoformat()})

    except (ConfigurationError, ExternalCallError) as e:
        logger.error(f"HR_ERROR: Roster sync aborted: {e}")
        report_admin_error(app, "HR roster sync failed", str(e))
    except Exception as e:
        logger.exception("HR_ERROR: Unexpected error during roster sync")
        report_admin_error(app, "HR roster sync failed", str(e))

    logger.info(
        f"HR: Sync completed - {results['fetched']} fetched, {results['added']} added, "
        f"{results['updated']} updated, {results['skipped']} skipped, {results['failed']} failed"
    )
    return results
