"""
MilestoneBot - Slack Anniversary and Birthday Celebration Bot

Main application entry point. Builds the Slack Bolt app and exposes the daily
jobs as subcommands:

    python app.py serve                  # interactivity endpoint on PORT
    python app.py notify [--date D]      # pre-day DMs (D = day being celebrated)
    python app.py celebrate [--date D]   # day-of celebration posts
    python app.py sync [--full]          # HR roster sync
    python app.py scheduler              # run all three daily jobs forever

Uses Slack Bolt, schedule and component-specific logging.
"""

import argparse
import sys
from datetime import datetime, time, timedelta

from slack_bolt import App
from slack_sdk import WebClient

# Import configuration
from config import PORT, SLACK_BOT_TOKEN, SLACK_SIGNING_SECRET, TIMEOUTS, TIMEZONE, logger

# Import services
from integrations.hr import sync_roster
from services.celebration import announce_approved_celebrations
from services.notification import send_anniversary_notifications
from services.scheduler import get_scheduler_health, run_scheduler, setup_scheduler

# Import event handlers
from handlers.interaction_handler import register_interaction_handlers
from utils.date import get_timezone_object, parse_iso_date


def create_app():
    """
    Initialize the Slack app and register interaction handlers.

    Bolt's own signature check is disabled: requests are verified by the
    interaction middleware, which also handles transports that strip headers.
    """
    app = App(
        client=WebClient(token=SLACK_BOT_TOKEN, timeout=TIMEOUTS["slack_api"]),
        signing_secret=SLACK_SIGNING_SECRET,
        request_verification_enabled=False,
        token_verification_enabled=False,
    )
    logger.info("INIT: App initialized")

    register_interaction_handlers(app)
    return app


def moment_for_local_date(value):
    """Local noon of value in TIMEZONE, as an aware datetime."""
    return get_timezone_object(TIMEZONE).localize(datetime.combine(value, time(12, 0)))


def _date_argument(value):
    try:
        return parse_iso_date(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


def build_parser():
    parser = argparse.ArgumentParser(
        prog="milestonebot", description="Slack anniversary and birthday celebrations"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("serve", help="Serve the Slack interactivity endpoint")

    notify = subparsers.add_parser("notify", help="Send pre-day consent DMs")
    notify.add_argument(
        "--date", type=_date_argument, help="Day being celebrated (default: tomorrow)"
    )

    celebrate = subparsers.add_parser("celebrate", help="Post day-of celebrations")
    celebrate.add_argument(
        "--date", type=_date_argument, help="Day to celebrate (default: today)"
    )

    sync = subparsers.add_parser("sync", help="Sync the roster from the HR system")
    sync.add_argument(
        "--full", action="store_true", help="Ignore the last sync point and pull everything"
    )

    subparsers.add_parser("scheduler", help="Run the daily jobs in the foreground")
    return parser


def main(argv=None, app=None):
    args = build_parser().parse_args(argv)
    app = app or create_app()

    if args.command == "serve":
        logger.info(f"INIT: Serving interactivity endpoint on port {PORT}")
        app.start(port=PORT, path="/slack/events")
        return 0

    if args.command == "notify":
        moment = moment_for_local_date(args.date - timedelta(days=1)) if args.date else None
        results = send_anniversary_notifications(app, moment=moment)
        return 1 if results["failed"] else 0

    if args.command == "celebrate":
        moment = moment_for_local_date(args.date) if args.date else None
        results = announce_approved_celebrations(app, moment=moment)
        return 1 if results["failed"] else 0

    if args.command == "sync":
        results = sync_roster(app, full=args.full)
        return 1 if results["failed"] else 0

    if args.command == "scheduler":
        setup_scheduler(app)
        try:
            run_scheduler()
        except KeyboardInterrupt:
            logger.info(f"SCHEDULER: Stopped - {get_scheduler_health()}")
        return 0

    return 2


# Start the app
if __name__ == "__main__":
    try:
        sys.exit(main())
    except Exception as e:
        logger.critical(f"CRITICAL: Error starting app: {e}")
        sys.exit(1)
