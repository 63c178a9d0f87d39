"""
Day-of celebration pipeline for MilestoneBot.

Posts one public celebration per approved, not-yet-announced response record
for today, then marks the record announced. A record is marked only after its
post succeeds, so a failed post is retried on the next run and a successful
one is never repeated.

Key classes: CelebrationPipeline
Key functions: announce_approved_celebrations()
"""

import time

from filelock import Timeout

from config import API_CALL_DELAY_SECONDS, CELEBRATION_CHANNEL, get_logger
from slack_io.blocks import build_celebration_blocks
from slack_io.client import get_user_avatar_url
from slack_io.messaging import report_admin_error, send_message
from storage.employees import RosterCache
from storage.gifts import get_gift
from storage.responses import EventKind, get_pending_announcements, mark_announced
from utils.date import get_local_today, years_of_service
from utils.errors import ConfigurationError, ExternalCallError, NotFoundAnomaly

logger = get_logger("celebration")


# =============================================================================
# CELEBRATION PIPELINE
# =============================================================================


class CelebrationPipeline:
    """
    Announces approved anniversaries for a single day.

    Usage:
        pipeline = CelebrationPipeline(app)
        results = pipeline.celebrate(target_date)
    """

    def __init__(self, app, channel=None, roster=None):
        self.app = app
        self.channel = channel or CELEBRATION_CHANNEL
        self.roster = roster or RosterCache()

    def celebrate(self, target_date):
        """
        Post and mark every pending record for target_date.

        Args:
            target_date: Local calendar date being celebrated

        Returns:
            Dictionary with announced, skipped and failed counts

        Raises:
            ConfigurationError: If no celebration channel is configured
        """
        if not self.channel:
            raise ConfigurationError("CELEBRATION_CHANNEL_ID is not configured")

        results = {"announced": 0, "skipped": 0, "failed": 0}
        pending = get_pending_announcements(target_date)

        for record in pending:
            try:
                self._announce(record)
                results["announced"] += 1
            except NotFoundAnomaly as e:
                logger.warning(f"CELEBRATE: {e}, skipping")
                results["skipped"] += 1
                continue
            except ExternalCallError as e:
                results["failed"] += 1
                report_admin_error(
                    self.app, "Celebration post failed", f"{record.employee_id}: {e}"
                )
            except Exception as e:
                results["failed"] += 1
                logger.exception(f"CELEBRATE_ERROR: Unexpected error for {record.employee_id}")
                report_admin_error(
                    self.app, "Celebration post failed", f"{record.employee_id}: {e}"
                )

            time.sleep(API_CALL_DELAY_SECONDS)

        return results

    def _announce(self, record):
        employee = self.roster.get(record.employee_id)
        if employee is None:
            raise NotFoundAnomaly(f"Employee {record.employee_id} is no longer on the roster")

        gift = get_gift(record.gift_id) if record.gift_id else None
        if record.gift_id and gift is None:
            logger.warning(
                f"CELEBRATE: Gift {record.gift_id} for {record.employee_id} is not in the catalog"
            )

        years = None
        if record.event_kind == EventKind.ANNIVERSARY and employee.hire_date:
            years = years_of_service(employee.hire_date, record.anniversary_date)

        avatar_url = get_user_avatar_url(self.app, employee.slack_id)
        blocks, fallback_text = build_celebration_blocks(
            employee, record.event_kind, years, avatar_url, gift
        )

        result = send_message(self.app, self.channel, fallback_text, blocks)
        if not result["success"]:
            raise ExternalCallError("slack", f"Post to {self.channel} failed: {result['error']}")

        try:
            marked = mark_announced(record.employee_id, record.anniversary_date)
        except Timeout:
            logger.warning(
                f"CELEBRATE: Posted for {record.employee_id} but the response store is locked; "
                f"record stays pending and the next run may post it again"
            )
            raise

        if not marked:
            # Posted but the record changed underneath us; nothing left to retry
            logger.warning(
                f"CELEBRATE: Posted for {record.employee_id} but record could not be marked announced"
            )

        logger.info(
            f"CELEBRATE: Announced {record.event_kind.value} for {employee.name} "
            f"({record.employee_id})"
        )


def announce_approved_celebrations(app, moment=None, roster=None):
    """
    Run the day-of sweep for today's local date.

    Never raises: configuration problems abort the sweep and are reported once,
    per-record failures are reported and the sweep moves on.

    Args:
        app: Slack app instance
        moment: Optional reference instant
        roster: Optional RosterCache

    Returns:
        Dictionary with announced, skipped and failed counts and the target date
    """
    results = {"announced": 0, "skipped": 0, "failed": 0, "target_date": None}

    try:
        target_date = get_local_today(moment)
        results["target_date"] = target_date.isoformat()
        logger.info(f"CELEBRATE: Starting celebration sweep for {target_date.isoformat()}")

        results.update(CelebrationPipeline(app, roster=roster).celebrate(target_date))

    except ConfigurationError as e:
        logger.error(f"CONFIG_ERROR: {e}")
        report_admin_error(app, "Celebration sweep aborted", str(e))
    except Exception as e:
        logger.exception("CELEBRATE_ERROR: Celebration sweep aborted")
        report_admin_error(app, "Celebration sweep aborted", str(e))

    logger.info(
        f"CELEBRATE: Completed - {results['announced']} announced, "
        f"{results['skipped']} skipped, {results['failed']} failed"
    )
    return results
