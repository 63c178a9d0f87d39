"""
Slack Block Kit builder utilities for MilestoneBot.

Re-exports all block builders so callers can use `from slack_io.blocks import ...`.
"""

from slack_io.blocks.anniversary import (
    build_admin_error_blocks,
    build_celebration_blocks,
    build_declined_blocks,
    build_gift_confirm_blocks,
    build_gift_confirmed_blocks,
    build_gift_picker_blocks,
    build_notification_blocks,
)

__all__ = [
    "build_notification_blocks",
    "build_gift_picker_blocks",
    "build_gift_confirm_blocks",
    "build_gift_confirmed_blocks",
    "build_declined_blocks",
    "build_celebration_blocks",
    "build_admin_error_blocks",
]
