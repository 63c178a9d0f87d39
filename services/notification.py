"""
Pre-day anniversary notifications for MilestoneBot.

Runs once a day before the target day: finds every active employee whose
birthday or milestone hire anniversary is tomorrow, DMs them an Approve /
Decline prompt, and seeds a pending response record for each DM sent.

Main functions: send_anniversary_notifications(), notify_employee().
"""

import time

from slack_sdk.errors import SlackApiError

from config import API_CALL_DELAY_SECONDS, get_logger
from slack_io.blocks import build_notification_blocks
from slack_io.messaging import report_admin_error, send_message
from storage.employees import RosterCache
from storage.responses import ResponseRecord, get_response, insert_response
from utils.date import evaluate_anniversary, get_notification_target_date
from utils.errors import ExternalCallError

logger = get_logger("notification")


def notify_employee(app, employee, target_date, event_kind, years=None):
    """
    Send one anniversary DM and seed its pending response record.

    Args:
        app: Slack app instance
        employee: Employee to notify
        target_date: Anniversary date (tomorrow)
        event_kind: Birthday or anniversary
        years: Years of service for anniversaries

    Raises:
        ExternalCallError: If Slack rejects the DM
    """
    blocks, fallback_text = build_notification_blocks(employee, target_date, event_kind, years)
    result = send_message(app, employee.slack_id, fallback_text, blocks)
    if not result["success"]:
        raise ExternalCallError("slack", f"DM to {employee.slack_id} failed: {result['error']}")

    insert_response(
        ResponseRecord(
            employee_id=employee.employee_id,
            anniversary_date=target_date,
            event_kind=event_kind,
        )
    )


def send_anniversary_notifications(app, moment=None, roster=None):
    """
    Run the pre-day sweep.

    One employee's failure is reported and the sweep moves on. Any failure
    before iteration (e.g. roster unavailable) is reported once. Never raises.

    Args:
        app: Slack app instance
        moment: Optional reference instant; the target is the local day after it
        roster: Optional RosterCache (a fresh one is created per sweep by default)

    Returns:
        Dictionary with sent, skipped and failed counts and the target date
    """
    results = {"sent": 0, "skipped": 0, "failed": 0, "target_date": None}

    try:
        target_date = get_notification_target_date(moment)
        results["target_date"] = target_date.isoformat()
        roster = roster or RosterCache()
        employees = roster.active()

        logger.info(
            f"NOTIFY: Checking {len(employees)} active employees for {target_date.isoformat()}"
        )

        for employee in employees:
            match = evaluate_anniversary(employee, target_date)
            if match is None:
                continue
            event_kind, years = match

            if not employee.slack_id:
                logger.warning(
                    f"NOTIFY: {employee.employee_id} has a {event_kind.value} but no Slack ID, skipping"
                )
                results["skipped"] += 1
                continue

            try:
                if get_response(employee.employee_id, target_date) is not None:
                    logger.info(
                        f"NOTIFY: {employee.employee_id} already notified for "
                        f"{target_date.isoformat()}, skipping"
                    )
                    results["skipped"] += 1
                    continue

                notify_employee(app, employee, target_date, event_kind, years)
                results["sent"] += 1
                logger.info(
                    f"NOTIFY: Sent {event_kind.value} DM to {employee.name} ({employee.employee_id})"
                )

            except (ExternalCallError, SlackApiError) as e:
                results["failed"] += 1
                report_admin_error(
                    app, "Anniversary notification failed", f"{employee.employee_id}: {e}"
                )
            except Exception as e:
                results["failed"] += 1
                logger.exception(f"NOTIFY_ERROR: Unexpected error for {employee.employee_id}")
                report_admin_error(
                    app, "Anniversary notification failed", f"{employee.employee_id}: {e}"
                )

            # Respect Slack rate limits between DMs
            time.sleep(API_CALL_DELAY_SECONDS)

    except Exception as e:
        logger.exception("NOTIFY_ERROR: Notification sweep aborted")
        report_admin_error(app, "Notification sweep aborted", str(e))

    logger.info(
        f"NOTIFY: Completed - {results['sent']} sent, {results['skipped']} skipped, "
        f"{results['failed']} failed"
    )
    return results
