"""
MilestoneBot Configuration Package

Re-exports all settings.
Usage: from config import CELEBRATION_CHANNEL, get_logger, ...

Modules:
    config.settings - Core settings, constants, scheduling windows
"""

from config.settings import *  # noqa: F401, F403
