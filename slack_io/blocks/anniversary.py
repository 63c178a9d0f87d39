"""
Anniversary Block Kit builders.

Handles the pre-day consent DM, the gift picker and confirmation steps, the
terminal follow-ups, and the public celebration post.
"""

from typing import Any, Dict, List, Optional

from config import BOT_NAME, get_logger
from slack_io.client import get_user_mention
from storage.responses import EventKind
from utils.action_tokens import (
    ApproveAction,
    ConfirmGiftAction,
    DeclineAction,
    RetryGiftAction,
    SelectGiftAction,
    validate_gift_id,
)
from utils.date import date_to_words
from utils.errors import ValidationError

logger = get_logger("blocks")

# Slack limits for static_select menus
MAX_SELECT_OPTIONS = 100
MAX_OPTION_TEXT_LENGTH = 75


def _describe_event(event_kind: EventKind, years: Optional[int]) -> str:
    if event_kind == EventKind.BIRTHDAY:
        return "birthday"
    if years == 1:
        return "1-year work anniversary"
    return f"{years}-year work anniversary"


def build_notification_blocks(
    employee, anniversary_date, event_kind: EventKind, years: Optional[int] = None
) -> tuple[List[Dict[str, Any]], str]:
    """
    Build the pre-day DM asking whether to celebrate publicly.

    Args:
        employee: Employee receiving the DM
        anniversary_date: The date being celebrated (tomorrow)
        event_kind: Birthday or anniversary
        years: Years of service for anniversaries

    Returns:
        Tuple of (blocks list, fallback_text string)
    """
    event_text = _describe_event(event_kind, years)
    emoji = "🎂" if event_kind == EventKind.BIRTHDAY else "🎉"

    blocks = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": f"{emoji} Your {event_text} is tomorrow!"},
        },
        {
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": (
                    f"Hi {employee.name}! Tomorrow, the *{date_to_words(anniversary_date)}*, "
                    f"is your {event_text}.\n\n"
                    f"Would you like {BOT_NAME} to celebrate it with the team? "
                    f"If you say yes, you can also pick a small gift."
                ),
            },
        },
        {
            "type": "actions",
            "elements": [
                {
                    "type": "button",
                    "text": {"type": "plain_text", "text": "Yes, celebrate!"},
                    "style": "primary",
                    "action_id": ApproveAction(employee.employee_id, anniversary_date).encode(),
                    "value": event_kind.value,
                },
                {
                    "type": "button",
                    "text": {"type": "plain_text", "text": "No, thanks"},
                    "action_id": DeclineAction(employee.employee_id, anniversary_date).encode(),
                    "value": event_kind.value,
                },
            ],
        },
    ]

    fallback_text = f"{emoji} Your {event_text} is tomorrow - shall we celebrate?"
    return blocks, fallback_text


def build_gift_picker_blocks(employee_id: str, anniversary_date, gifts) -> tuple[list, str]:
    """
    Build the gift selection step shown after approving.

    Gifts whose ids cannot be carried in an action token are left out.

    Args:
        employee_id: Employee the record belongs to
        anniversary_date: Date of the record
        gifts: Gift catalog

    Returns:
        Tuple of (blocks list, fallback_text string)
    """
    options = []
    for gift in gifts:
        try:
            validate_gift_id(gift.gift_id)
        except ValidationError as e:
            logger.warning(f"BLOCKS: Leaving gift out of picker: {e}")
            continue
        options.append(
            {
                "text": {
                    "type": "plain_text",
                    "text": gift.display_name[:MAX_OPTION_TEXT_LENGTH],
                },
                "value": gift.gift_id,
            }
        )

    if len(options) > MAX_SELECT_OPTIONS:
        logger.warning(
            f"BLOCKS: Gift catalog has {len(options)} entries, showing first {MAX_SELECT_OPTIONS}"
        )
        options = options[:MAX_SELECT_OPTIONS]

    blocks = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": "🎁 Pick a gift"},
        },
    ]

    if not options:
        blocks.append(
            {
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": "Great, we'll celebrate with the team! "
                    "There are no gifts to choose from right now.",
                },
            }
        )
        return blocks, "Great, we'll celebrate with the team!"

    blocks.append(
        {
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": "Great, we'll celebrate with the team! Choose a gift you'd like:",
            },
            "accessory": {
                "type": "static_select",
                "placeholder": {"type": "plain_text", "text": "Choose a gift"},
                "action_id": SelectGiftAction(employee_id, anniversary_date).encode(),
                "options": options,
            },
        }
    )

    links = [f"• <{gift.url}|{gift.display_name}>" for gift in gifts if gift.url]
    if links:
        blocks.append(
            {
                "type": "context",
                "elements": [{"type": "mrkdwn", "text": "\n".join(links)}],
            }
        )

    return blocks, "Great, we'll celebrate with the team! Choose a gift you'd like."


def build_gift_confirm_blocks(
    employee_id: str, anniversary_date, gift_id: str, gift_name: str
) -> tuple[list, str]:
    """
    Build the review step for a selected gift: confirm or choose again.

    Returns:
        Tuple of (blocks list, fallback_text string)
    """
    blocks = [
        {
            "type": "section",
            "text": {"type": "mrkdwn", "text": f"You picked *{gift_name}*. Is that right?"},
        },
        {
            "type": "actions",
            "elements": [
                {
                    "type": "button",
                    "text": {"type": "plain_text", "text": "Confirm"},
                    "style": "primary",
                    "action_id": ConfirmGiftAction(
                        employee_id, anniversary_date, gift_id
                    ).encode(),
                },
                {
                    "type": "button",
                    "text": {"type": "plain_text", "text": "Choose again"},
                    "action_id": RetryGiftAction(employee_id, anniversary_date).encode(),
                },
            ],
        },
    ]
    return blocks, f"You picked {gift_name}. Is that right?"


def build_gift_confirmed_blocks(gift_name: str) -> tuple[list, str]:
    """Terminal confirmation after a gift is committed."""
    blocks = [
        {
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": f"✅ Done! Your gift is *{gift_name}*. See you at the celebration!",
            },
        }
    ]
    return blocks, f"Your gift is {gift_name}."


def build_declined_blocks() -> tuple[list, str]:
    """Terminal follow-up after the employee opts out."""
    blocks = [
        {
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": "👍 Thanks for letting us know - we'll skip the public celebration.",
            },
        }
    ]
    return blocks, "Thanks for letting us know - we'll skip the public celebration."


def build_celebration_blocks(
    employee, event_kind: EventKind, years: Optional[int], avatar_url: str, gift=None
) -> tuple[list, str]:
    """
    Build the public celebration post.

    Args:
        employee: Employee being celebrated
        event_kind: Birthday or anniversary
        years: Years of service for anniversaries
        avatar_url: Profile photo (or placeholder) URL
        gift: Optional Gift the employee chose

    Returns:
        Tuple of (blocks list, fallback_text string)
    """
    mention = get_user_mention(employee.slack_id) if employee.slack_id else f"*{employee.name}*"

    if event_kind == EventKind.BIRTHDAY:
        header = f"🎂 Happy Birthday, {employee.name}!"
        text = f"Today is {mention}'s birthday! Please join us in wishing them a wonderful day 🎉"
    else:
        year_word = "year" if years == 1 else "years"
        header = f"🎉 Happy {years}-Year Work Anniversary, {employee.name}!"
        text = (
            f"Today {mention} celebrates *{years} {year_word}* with us! "
            f"Thank you for everything you bring to the team 🙌"
        )

    blocks = [
        {"type": "header", "text": {"type": "plain_text", "text": header}},
        {
            "type": "section",
            "text": {"type": "mrkdwn", "text": text},
            "accessory": {
                "type": "image",
                "image_url": avatar_url,
                "alt_text": employee.name,
            },
        },
    ]

    if gift is not None:
        gift_text = f"<{gift.url}|{gift.display_name}>" if gift.url else gift.display_name
        blocks.append(
            {
                "type": "context",
                "elements": [{"type": "mrkdwn", "text": f"🎁 Gift: {gift_text}"}],
            }
        )

    return blocks, header


def build_admin_error_blocks(title: str, detail: str) -> tuple[list, str]:
    """Operational error report for the admin channel."""
    blocks = [
        {"type": "header", "text": {"type": "plain_text", "text": f"⚠️ {title}"}},
        {"type": "section", "text": {"type": "mrkdwn", "text": f"```{detail}```"}},
    ]
    return blocks, f"{title}: {detail}"
