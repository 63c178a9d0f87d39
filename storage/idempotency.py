"""
Short-lived idempotency cache for Slack interaction callbacks.

Slack may deliver the same button click more than once. Each interaction is
claimed by key before dispatch; a second claim within DEDUP_TTL_SECONDS fails
and the duplicate is dropped. The check and the set happen under one file lock
with a short bounded wait, so two concurrent deliveries cannot both win.

Storage format:
{
  "interaction:<trigger_id>": <expiry epoch seconds>
}

Key functions: try_claim_interaction(), build_interaction_key()
"""

import json
import time

from filelock import FileLock, Timeout

from config import (
    CALLBACK_LOCK_TIMEOUT_SECONDS,
    DEDUP_TTL_SECONDS,
    INTERACTION_KEYS_FILE,
    get_logger,
)

logger = get_logger("idempotency")


def build_interaction_key(trigger_id=None, user_id=None, action_id=None, action_ts=None):
    """
    Derive the idempotency key for one interaction.

    Slack's trigger_id is unique per click. When it is missing, the user,
    action and action timestamp identify the click instead.

    Returns:
        Key string, or None if nothing identifies the interaction
    """
    if trigger_id:
        return f"interaction:{trigger_id}"
    if user_id and action_id and action_ts:
        return f"interaction:{user_id}:{action_id}:{action_ts}"
    return None


def _load_keys():
    try:
        with open(INTERACTION_KEYS_FILE, "r") as f:
            return json.load(f)
    except FileNotFoundError:
        return {}
    except json.JSONDecodeError as e:
        logger.error(f"JSON_ERROR: Interaction key cache unreadable, starting fresh: {e}")
        return {}


def try_claim_interaction(key, ttl_seconds=None, lock_timeout=None, now=None):
    """
    Atomically check whether key is fresh and claim it if so.

    Args:
        key: Idempotency key from build_interaction_key()
        ttl_seconds: How long the claim blocks duplicates (defaults to DEDUP_TTL_SECONDS)
        lock_timeout: Bounded wait for the lock (defaults to CALLBACK_LOCK_TIMEOUT_SECONDS)
        now: Optional epoch seconds, for tests

    Returns:
        True if claimed (first delivery), False if duplicate or lock not acquired
    """
    if ttl_seconds is None:
        ttl_seconds = DEDUP_TTL_SECONDS
    if lock_timeout is None:
        lock_timeout = CALLBACK_LOCK_TIMEOUT_SECONDS
    if now is None:
        now = time.time()

    try:
        with FileLock(INTERACTION_KEYS_FILE + ".lock", timeout=lock_timeout):
            keys = _load_keys()

            # Drop expired claims on every write
            keys = {k: expiry for k, expiry in keys.items() if expiry > now}

            if key in keys:
                logger.info(f"DEDUP: Duplicate delivery of {key}, skipping")
                return False

            keys[key] = now + ttl_seconds
            with open(INTERACTION_KEYS_FILE, "w") as f:
                json.dump(keys, f, indent=2, sort_keys=True)

            logger.debug(f"DEDUP: Claimed {key} for {ttl_seconds}s")
            return True

    except Timeout:
        logger.warning(
            f"DEDUP: Could not acquire callback lock within {lock_timeout}s for {key}, dropping"
        )
        return False
