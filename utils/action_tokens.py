"""
Action tokens carried in Slack interactive elements.

Every button or select in an anniversary DM carries an action_id of the form

    {kind}_{employee_id}_{YYYY-MM-DD}[_{gift_id}]

e.g. "approve_emp_42_2024-03-10" or "confirm_gift_emp_42_2024-03-10_G1".

Employee ids may contain underscores, so decoding anchors on the trailing
segments: the date never contains an underscore and gift ids are restricted to
[A-Za-z0-9-]. Decoding yields one of a closed set of typed actions and fails
closed with ValidationError on anything else.

Key functions: encode_action(), decode_action(), validate_action()
"""

import re
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import ClassVar, Optional

from config import (
    EMPLOYEE_ID_PATTERN,
    GIFT_ID_MAX_LENGTH,
    GIFT_ID_PATTERN,
    get_logger,
)
from utils.date import format_iso_date, parse_iso_date
from utils.errors import ValidationError

logger = get_logger("action_tokens")


class ActionKind(str, Enum):
    APPROVE = "approve"
    DECLINE = "decline"
    SELECT_GIFT = "select_gift"
    CONFIRM_GIFT = "confirm_gift"
    RETRY_GIFT = "retry_gift"

    @property
    def prefix(self):
        return f"{self.value}_"


# Matches every action_id this module produces (used for Bolt listener routing)
ACTION_ID_PATTERN = re.compile(
    "^(" + "|".join(re.escape(kind.prefix) for kind in ActionKind) + ")"
)

_EMPLOYEE_ID_RE = re.compile(EMPLOYEE_ID_PATTERN)
_GIFT_ID_RE = re.compile(GIFT_ID_PATTERN)


@dataclass(frozen=True)
class ResponseAction:
    """Base of all typed actions: which response record the click is about."""

    employee_id: str
    anniversary_date: date

    kind: ClassVar[ActionKind]

    def encode(self) -> str:
        return encode_action(self)


@dataclass(frozen=True)
class ApproveAction(ResponseAction):
    kind: ClassVar[ActionKind] = ActionKind.APPROVE


@dataclass(frozen=True)
class DeclineAction(ResponseAction):
    kind: ClassVar[ActionKind] = ActionKind.DECLINE


@dataclass(frozen=True)
class SelectGiftAction(ResponseAction):
    # Chosen in the select menu, not part of the token
    gift_id: Optional[str] = None

    kind: ClassVar[ActionKind] = ActionKind.SELECT_GIFT


@dataclass(frozen=True)
class ConfirmGiftAction(ResponseAction):
    gift_id: str

    kind: ClassVar[ActionKind] = ActionKind.CONFIRM_GIFT


@dataclass(frozen=True)
class RetryGiftAction(ResponseAction):
    kind: ClassVar[ActionKind] = ActionKind.RETRY_GIFT


_ACTION_CLASSES = {
    ActionKind.APPROVE: ApproveAction,
    ActionKind.DECLINE: DeclineAction,
    ActionKind.SELECT_GIFT: SelectGiftAction,
    ActionKind.CONFIRM_GIFT: ConfirmGiftAction,
    ActionKind.RETRY_GIFT: RetryGiftAction,
}


def validate_employee_id(employee_id) -> str:
    if not isinstance(employee_id, str) or not _EMPLOYEE_ID_RE.match(employee_id):
        raise ValidationError(f"Invalid employee id: {employee_id!r}")
    return employee_id


def validate_gift_id(gift_id) -> str:
    if not isinstance(gift_id, str) or not gift_id:
        raise ValidationError("Gift id is empty")
    if len(gift_id) > GIFT_ID_MAX_LENGTH:
        raise ValidationError(f"Gift id longer than {GIFT_ID_MAX_LENGTH} characters")
    if not _GIFT_ID_RE.match(gift_id):
        raise ValidationError(f"Invalid gift id: {gift_id!r}")
    return gift_id


def validate_action(action: ResponseAction) -> ResponseAction:
    """
    Check every field of a decoded action.

    Raises:
        ValidationError: On the first invalid field
    """
    validate_employee_id(action.employee_id)
    if not isinstance(action.anniversary_date, date):
        raise ValidationError(f"Invalid date: {action.anniversary_date!r}")
    if isinstance(action, (SelectGiftAction, ConfirmGiftAction)):
        validate_gift_id(action.gift_id)
    return action


def encode_action(action: ResponseAction) -> str:
    """
    Serialize an action into an action_id token.

    Raises:
        ValidationError: If a field would make the token ambiguous
    """
    validate_employee_id(action.employee_id)
    parts = [action.employee_id, format_iso_date(action.anniversary_date)]
    if isinstance(action, ConfirmGiftAction):
        parts.append(validate_gift_id(action.gift_id))
    return action.kind.prefix + "_".join(parts)


def _split_kind(token: str):
    for kind in ActionKind:
        if token.startswith(kind.prefix):
            return kind, token[len(kind.prefix) :]
    raise ValidationError(f"Unknown action token prefix: {token!r}")


def decode_action(token, selected_value=None) -> ResponseAction:
    """
    Parse and validate an action_id token.

    Args:
        token: The action_id from the interaction payload
        selected_value: selected_option.value, required for gift selection

    Returns:
        One of ApproveAction, DeclineAction, SelectGiftAction,
        ConfirmGiftAction, RetryGiftAction

    Raises:
        ValidationError: If the token is malformed or any field is invalid
    """
    if not isinstance(token, str) or not token:
        raise ValidationError("Empty action token")

    kind, suffix = _split_kind(token)
    segment_count = 3 if kind == ActionKind.CONFIRM_GIFT else 2
    parts = suffix.rsplit("_", segment_count - 1)
    if len(parts) != segment_count or not all(parts):
        raise ValidationError(
            f"Malformed {kind.value} token {token!r}: expected {segment_count} segments"
        )

    employee_id, raw_date = parts[0], parts[1]
    try:
        anniversary_date = parse_iso_date(raw_date)
    except ValueError as e:
        raise ValidationError(str(e)) from e

    action_class = _ACTION_CLASSES[kind]
    if kind == ActionKind.CONFIRM_GIFT:
        action = action_class(employee_id, anniversary_date, parts[2])
    elif kind == ActionKind.SELECT_GIFT:
        action = action_class(employee_id, anniversary_date, selected_value)
    else:
        action = action_class(employee_id, anniversary_date)

    return validate_action(action)
