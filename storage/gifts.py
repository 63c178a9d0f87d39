"""
Gift catalog storage for MilestoneBot.

Read-only reference data maintained by administrators in gifts.json:
[
  {"gift_id": "G1", "name": "Coffee voucher", "url": "https://..."},
  ...
]

A missing catalog or a lookup miss never fails a flow - callers fall back to
showing the raw gift id.
"""

import json
from dataclasses import dataclass
from typing import List, Optional

from filelock import FileLock

from config import GIFTS_JSON_FILE, TIMEOUTS, get_logger

logger = get_logger("gifts")


@dataclass(frozen=True)
class Gift:
    gift_id: str
    name: str
    url: Optional[str] = None

    @property
    def display_name(self):
        return self.name or self.gift_id


def load_gifts() -> List[Gift]:
    """
    Load the gift catalog in file order.

    Returns:
        List of Gift, empty if the catalog is missing or unreadable
    """
    lock = FileLock(GIFTS_JSON_FILE + ".lock", timeout=TIMEOUTS["file_lock"])
    try:
        with lock:
            with open(GIFTS_JSON_FILE, "r", encoding="utf-8") as f:
                data = json.load(f)
    except FileNotFoundError:
        logger.warning(f"FILE_ERROR: {GIFTS_JSON_FILE} not found")
        return []
    except json.JSONDecodeError as e:
        logger.error(f"JSON_ERROR: Failed to parse gift catalog: {e}")
        return []

    gifts = []
    for item in data:
        if not item.get("gift_id"):
            logger.warning(f"GIFTS: Skipping catalog entry without gift_id: {item}")
            continue
        gifts.append(
            Gift(
                gift_id=str(item["gift_id"]),
                name=item.get("name") or str(item["gift_id"]),
                url=item.get("url") or None,
            )
        )
    logger.debug(f"STORAGE: Loaded {len(gifts)} gifts")
    return gifts


def get_gift(gift_id: Optional[str]) -> Optional[Gift]:
    """
    Look up a gift by id.

    Returns:
        Gift or None if gift_id is empty or not in the catalog
    """
    if not gift_id:
        return None
    for gift in load_gifts():
        if gift.gift_id == gift_id:
            return gift
    logger.warning(f"GIFTS: Gift {gift_id} not found in catalog")
    return None


def get_gift_display_name(gift_id: str) -> str:
    """Gift name for display, falling back to the raw id."""
    gift = get_gift(gift_id)
    return gift.display_name if gift else gift_id
