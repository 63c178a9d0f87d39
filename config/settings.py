"""
MilestoneBot Configuration - Core Settings and Constants

Centralized configuration including environment variables, file paths, scheduling
windows, callback security parameters, and application constants.

Key modules: utils/log_setup.py, utils/errors.py
"""

import os
from datetime import time

from dotenv import load_dotenv

# Load environment variables first - this should be at the very top
# Project root is one level up from the config/ package directory
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
# Load .env from the project root
load_dotenv(os.path.join(BASE_DIR, ".env"), override=True)

# ----- FILE STRUCTURE CONFIGURATION -----

# Directory structure definitions
DATA_DIR = os.getenv("DATA_DIR", "data")
LOGS_DIR = os.path.join(DATA_DIR, "logs")
STORAGE_DIR = os.path.join(DATA_DIR, "storage")

# ----- FILE PATHS -----

# Core data files
EMPLOYEES_JSON_FILE = os.path.join(STORAGE_DIR, "employees.json")
GIFTS_JSON_FILE = os.path.join(STORAGE_DIR, "gifts.json")
RESPONSES_JSON_FILE = os.path.join(STORAGE_DIR, "responses.json")
INTERACTION_KEYS_FILE = os.path.join(STORAGE_DIR, "interaction_keys.json")
HR_SYNC_STATE_FILE = os.path.join(STORAGE_DIR, "hr_sync_state.json")

# ----- SLACK CONFIGURATION -----

SLACK_BOT_TOKEN = os.getenv("SLACK_BOT_TOKEN")
SLACK_SIGNING_SECRET = os.getenv("SLACK_SIGNING_SECRET")

# Public channel for celebration posts
CELEBRATION_CHANNEL = os.getenv("CELEBRATION_CHANNEL_ID")

# Channel for operational error reports (optional - errors are only logged when unset)
ADMIN_CHANNEL = os.getenv("ADMIN_CHANNEL_ID")

# HTTP port for the interactivity endpoint
PORT = int(os.getenv("PORT", "3000"))

# Placeholder shown when an employee's Slack avatar cannot be fetched
DEFAULT_AVATAR_URL = os.getenv(
    "DEFAULT_AVATAR_URL", "https://a.slack-edge.com/80588/img/avatars/ava_0001-192.png"
)

# ----- ANNIVERSARY CONFIGURATION -----

# Years of service that trigger an anniversary notification
MILESTONE_YEARS = frozenset(
    int(value) for value in os.getenv("MILESTONE_YEARS", "1,3,5,10").split(",") if value.strip()
)

# Timezone used to decide where "today" and "tomorrow" begin
TIMEZONE = os.getenv("TIMEZONE", "UTC")

# Date format constants
ISO_DATE_FORMAT = "%Y-%m-%d"
SLASH_DATE_FORMAT = "%Y/%m/%d"

# ----- SCHEDULING CONFIGURATION -----


def _env_time(name, default):
    hours, minutes = os.getenv(name, default).split(":")
    return time(int(hours), int(minutes))


# All times are in TIMEZONE
HR_SYNC_TIME = _env_time("HR_SYNC_TIME", "03:00")  # Roster refresh, early morning
CELEBRATE_TIME = _env_time("CELEBRATE_TIME", "09:00")  # Day-of celebration posts
NOTIFY_TIME = _env_time("NOTIFY_TIME", "15:00")  # Pre-day DMs asking for consent

SCHEDULER_CHECK_INTERVAL_SECONDS = 60  # How often the scheduler loop wakes up

# Pause between successive Slack calls in bulk loops (Slack tier rate limits)
API_CALL_DELAY_SECONDS = float(os.getenv("API_CALL_DELAY_SECONDS", "1.0"))

# ----- CALLBACK SECURITY CONFIGURATION -----

# Maximum allowed skew between Slack's request timestamp and our clock
SIGNATURE_MAX_AGE_SECONDS = int(os.getenv("SIGNATURE_MAX_AGE_SECONDS", "300"))

# Interaction types accepted by the structural fallback check
ALLOWED_INTERACTION_TYPES = ("block_actions",)

# How long a trigger id is remembered for deduplication
DEDUP_TTL_SECONDS = int(os.getenv("DEDUP_TTL_SECONDS", "60"))

# Bounded wait for the callback serialization lock
CALLBACK_LOCK_TIMEOUT_SECONDS = float(os.getenv("CALLBACK_LOCK_TIMEOUT_SECONDS", "0.1"))

# Field validation bounds for decoded action tokens
EMPLOYEE_ID_PATTERN = r"^[A-Za-z0-9_.\-]{1,64}$"
GIFT_ID_PATTERN = r"^[A-Za-z0-9\-]+$"
GIFT_ID_MAX_LENGTH = 64

# ----- HR SYSTEM CONFIGURATION -----

HR_API_BASE_URL = os.getenv("HR_API_BASE_URL")
HR_API_TOKEN = os.getenv("HR_API_TOKEN")
# Custom field in the HR detail record holding the employee's Slack member ID or email
HR_SLACK_FIELD_NAME = os.getenv("HR_SLACK_FIELD_NAME", "Slack ID")
HR_PAGE_SIZE = int(os.getenv("HR_PAGE_SIZE", "100"))

# ----- STORAGE CONFIGURATION -----

# Response records older than this are pruned on insert
RESPONSE_RETENTION_DAYS = int(os.getenv("RESPONSE_RETENTION_DAYS", "400"))

# Timeout values in seconds
TIMEOUTS = {
    "file_lock": 10,  # Store read-modify-write
    "http_request": 30,  # HR API calls
    "response_url": 3,  # Follow-up UI updates inside the interaction budget
    "slack_api": 10,  # Web API client
}

# ----- TEAM AND BOT IDENTITY -----

BOT_NAME = os.getenv("BOT_NAME", "MilestoneBot")

# ----- INITIALIZATION -----

# Initialize logging system
from utils.log_setup import setup_logging

setup_logging(LOGS_DIR)

# Get the main logger
from utils.log_setup import get_logger

logger = get_logger("main")

# Create directory structure
for directory in [DATA_DIR, LOGS_DIR, STORAGE_DIR]:
    if not os.path.exists(directory):
        os.makedirs(directory)
        logger.info(f"CONFIG: Created directory {directory}")

# Log any configuration issues
if not CELEBRATION_CHANNEL:
    logger.error("CONFIG_ERROR: CELEBRATION_CHANNEL_ID not found in .env file")
if not SLACK_SIGNING_SECRET:
    logger.warning(
        "CONFIG_ERROR: SLACK_SIGNING_SECRET not found - signed callbacks will be rejected"
    )
