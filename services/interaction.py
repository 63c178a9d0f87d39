"""
Interactive callback routing for MilestoneBot.

Every click on an anniversary DM arrives here and moves through a fixed
sequence of stages:

    Received -> Verified -> Deduplicated -> Parsed -> Validated -> Dispatched

A failure at any stage ends processing with a log entry and no state change.
Slack always receives an empty 200; the user either sees the next step, a
terminal confirmation, or (on internal failure) the previous UI left standing.

Verification is two-tier. When Slack's timestamp and signature headers are
present the request is authenticated cryptographically. When the transport
strips both headers, the payload is accepted only if it matches the expected
interaction schema and an allow-listed type. This fallback is a reduced trust
level imposed by such transports and is logged on every use.

Transitions (see utils/action_tokens.py for the token format):
- Approve: approval=approved, respond with the gift picker
- Decline: approval=declined, respond with a terminal "skipping" message
- SelectGift: no mutation, respond with confirm/choose-again for the selection
- ConfirmGift: persist gift_id, respond with a terminal confirmation
- RetryGift: no mutation, respond with the gift picker again

Main functions: verify_request(), process_interaction()
"""

import hmac
import json
import time
from typing import List, Optional
from urllib.parse import parse_qs

from pydantic import BaseModel, Field
from pydantic import ValidationError as SchemaValidationError
from slack_sdk.signature import SignatureVerifier

from config import (
    ALLOWED_INTERACTION_TYPES,
    SIGNATURE_MAX_AGE_SECONDS,
    SLACK_SIGNING_SECRET,
    get_logger,
)
from slack_io.blocks import (
    build_declined_blocks,
    build_gift_confirm_blocks,
    build_gift_confirmed_blocks,
    build_gift_picker_blocks,
)
from slack_io.messaging import report_admin_error, send_response_update
from storage.gifts import get_gift_display_name, load_gifts
from storage.idempotency import build_interaction_key, try_claim_interaction
from storage.responses import Approval, get_response, set_approval, set_gift
from utils.action_tokens import (
    ApproveAction,
    ConfirmGiftAction,
    DeclineAction,
    RetryGiftAction,
    SelectGiftAction,
    decode_action,
)
from utils.errors import (
    ConfigurationError,
    NotFoundAnomaly,
    SignatureError,
    ValidationError,
)

logger = get_logger("interactions")

TIMESTAMP_HEADER = "x-slack-request-timestamp"
SIGNATURE_HEADER = "x-slack-signature"


# =============================================================================
# Payload Schema
# =============================================================================


class InteractionUser(BaseModel):
    id: str


class SelectedOption(BaseModel):
    value: str


class InteractionAction(BaseModel):
    action_id: str
    action_ts: Optional[str] = None
    selected_option: Optional[SelectedOption] = None


class InteractionPayload(BaseModel):
    """The subset of a Slack block_actions payload the router relies on."""

    type: str
    user: InteractionUser
    response_url: str
    trigger_id: Optional[str] = None
    actions: List[InteractionAction] = Field(min_length=1)


def parse_payload(payload) -> InteractionPayload:
    """
    Validate an interaction payload against the expected schema.

    Raises:
        ValidationError: If required fields are missing or mistyped
    """
    if not isinstance(payload, dict):
        raise ValidationError("Interaction payload is not an object")
    try:
        return InteractionPayload.model_validate(payload)
    except SchemaValidationError as e:
        raise ValidationError(f"Interaction payload failed schema check: {e}") from e


def decode_raw_body(raw_body) -> dict:
    """
    Extract the interaction payload from a raw request body.

    Slack posts interactions form-encoded as payload=<json>; a bare JSON body
    is accepted too.

    Raises:
        ValidationError: If the body holds no decodable payload
    """
    if isinstance(raw_body, bytes):
        raw_body = raw_body.decode("utf-8")
    if not raw_body:
        raise ValidationError("Empty request body")

    try:
        form = parse_qs(raw_body)
        encoded = form["payload"][0] if "payload" in form else raw_body
        return json.loads(encoded)
    except (ValueError, KeyError, IndexError) as e:
        raise ValidationError(f"Request body is not a JSON payload: {e}") from e


# =============================================================================
# Verification
# =============================================================================


def _get_header(headers, name) -> Optional[str]:
    """Case-insensitive header lookup; Bolt passes list values."""
    for key, value in (headers or {}).items():
        if key.lower() == name:
            if isinstance(value, (list, tuple)):
                return value[0] if value else None
            return value
    return None


def _verify_signature(raw_body: str, timestamp: str, signature: str, now=None):
    """
    Check Slack's v0 HMAC-SHA256 signature and the replay window.

    Raises:
        ConfigurationError: If SLACK_SIGNING_SECRET is not configured
        SignatureError: If the timestamp is stale or the signature differs
    """
    if not SLACK_SIGNING_SECRET:
        raise ConfigurationError("SLACK_SIGNING_SECRET is not configured")

    try:
        request_time = int(timestamp)
    except ValueError:
        raise SignatureError(f"Malformed request timestamp {timestamp!r}")

    if now is None:
        now = time.time()
    skew = abs(now - request_time)
    if skew > SIGNATURE_MAX_AGE_SECONDS:
        raise SignatureError(f"Request timestamp skew {skew:.0f}s exceeds replay window")

    expected = SignatureVerifier(SLACK_SIGNING_SECRET).generate_signature(
        timestamp=timestamp, body=raw_body
    )
    if not expected or not hmac.compare_digest(
        expected.encode("utf-8"), signature.encode("utf-8", "replace")
    ):
        raise SignatureError("Signature mismatch")


def _verify_structure(payload):
    """
    Structural fallback for transports that strip Slack's signing headers.

    Raises:
        SignatureError: If the payload is not a well-formed, allow-listed interaction
    """
    try:
        interaction = parse_payload(payload)
    except ValidationError as e:
        raise SignatureError(f"Unsigned payload failed structural check: {e}")

    if interaction.type not in ALLOWED_INTERACTION_TYPES:
        raise SignatureError(f"Unsigned payload has disallowed type {interaction.type!r}")

    logger.warning(
        f"SECURITY: Accepted unsigned {interaction.type} from {interaction.user.id} "
        f"on structural check only (signing headers absent)"
    )


def verify_request(raw_body, headers, payload=None, app=None, now=None) -> bool:
    """
    Decide whether an inbound callback may be processed.

    Args:
        raw_body: Request body exactly as received
        headers: Request headers (any case, str or list values)
        payload: Already-decoded payload, if the caller has one
        app: Slack app instance for admin reports
        now: Optional epoch seconds, for tests

    Returns:
        True if the request passed cryptographic or (header-less) structural checks
    """
    if isinstance(raw_body, bytes):
        raw_body = raw_body.decode("utf-8")

    timestamp = _get_header(headers, TIMESTAMP_HEADER)
    signature = _get_header(headers, SIGNATURE_HEADER)

    try:
        if timestamp and signature:
            _verify_signature(raw_body, timestamp, signature, now=now)
        elif timestamp or signature:
            raise SignatureError("Only one of the signing headers is present")
        else:
            if payload is None:
                try:
                    payload = decode_raw_body(raw_body)
                except ValidationError as e:
                    raise SignatureError(str(e))
            _verify_structure(payload)
        return True

    except SignatureError as e:
        logger.warning(f"SECURITY: Rejected callback: {e}")
        return False
    except ConfigurationError as e:
        logger.error(f"CONFIG_ERROR: Cannot verify callback: {e}")
        report_admin_error(app, "Callback verification misconfigured", str(e))
        return False


# =============================================================================
# Transition Handlers
# =============================================================================


def _send_gift_picker(action, response_url):
    blocks, text = build_gift_picker_blocks(
        action.employee_id, action.anniversary_date, load_gifts()
    )
    send_response_update(response_url, text, blocks)


def _require_open_approved_record(action):
    """
    Fetch the record a gift step refers to.

    Raises:
        NotFoundAnomaly: If the record is missing, not approved or already announced
    """
    record = get_response(action.employee_id, action.anniversary_date)
    if record is None:
        raise NotFoundAnomaly(
            f"No response record for {action.employee_id} on {action.anniversary_date}"
        )
    if record.approval != Approval.APPROVED or record.announced:
        raise NotFoundAnomaly(
            f"Record for {action.employee_id} on {action.anniversary_date} is not open for "
            f"gift selection (approval={record.approval.value}, announced={record.announced})"
        )
    return record


def handle_approve(action: ApproveAction, response_url: str):
    record = set_approval(action.employee_id, action.anniversary_date, Approval.APPROVED)
    if record is None:
        raise NotFoundAnomaly(
            f"Approve for {action.employee_id} on {action.anniversary_date} matched no open record"
        )
    logger.info(f"CALLBACK: {action.employee_id} approved {action.anniversary_date}")
    _send_gift_picker(action, response_url)


def handle_decline(action: DeclineAction, response_url: str):
    record = set_approval(action.employee_id, action.anniversary_date, Approval.DECLINED)
    if record is None:
        raise NotFoundAnomaly(
            f"Decline for {action.employee_id} on {action.anniversary_date} matched no open record"
        )
    logger.info(f"CALLBACK: {action.employee_id} declined {action.anniversary_date}")
    blocks, text = build_declined_blocks()
    send_response_update(response_url, text, blocks)


def handle_select_gift(action: SelectGiftAction, response_url: str):
    # Review before commit: nothing is persisted until ConfirmGift
    _require_open_approved_record(action)
    gift_name = get_gift_display_name(action.gift_id)
    logger.info(f"CALLBACK: {action.employee_id} selected gift {action.gift_id}")
    blocks, text = build_gift_confirm_blocks(
        action.employee_id, action.anniversary_date, action.gift_id, gift_name
    )
    send_response_update(response_url, text, blocks)


def handle_confirm_gift(action: ConfirmGiftAction, response_url: str):
    record = set_gift(action.employee_id, action.anniversary_date, action.gift_id)
    if record is None:
        raise NotFoundAnomaly(
            f"Gift {action.gift_id} for {action.employee_id} on {action.anniversary_date} "
            f"was not persisted"
        )
    logger.info(f"CALLBACK: {action.employee_id} confirmed gift {action.gift_id}")
    blocks, text = build_gift_confirmed_blocks(get_gift_display_name(action.gift_id))
    send_response_update(response_url, text, blocks)


def handle_retry_gift(action: RetryGiftAction, response_url: str):
    _require_open_approved_record(action)
    logger.info(f"CALLBACK: {action.employee_id} is choosing a gift again")
    _send_gift_picker(action, response_url)


TRANSITION_HANDLERS = {
    ApproveAction: handle_approve,
    DeclineAction: handle_decline,
    SelectGiftAction: handle_select_gift,
    ConfirmGiftAction: handle_confirm_gift,
    RetryGiftAction: handle_retry_gift,
}


# =============================================================================
# Router
# =============================================================================


def process_interaction(payload, app=None) -> bool:
    """
    Deduplicate, parse, validate and dispatch one verified interaction.

    Never raises: every failure is logged and absorbed.

    Args:
        payload: Decoded interaction payload
        app: Slack app instance for admin reports

    Returns:
        True if a transition handler completed
    """
    try:
        interaction = parse_payload(payload)
    except ValidationError as e:
        logger.error(f"CALLBACK_ERROR: {e}")
        return False

    action_payload = interaction.actions[0]

    key = build_interaction_key(
        trigger_id=interaction.trigger_id,
        user_id=interaction.user.id,
        action_id=action_payload.action_id,
        action_ts=action_payload.action_ts,
    )
    if key is None:
        logger.error("CALLBACK_ERROR: Interaction carries nothing to deduplicate on, dropping")
        return False
    if not try_claim_interaction(key):
        return False

    selected_value = (
        action_payload.selected_option.value if action_payload.selected_option else None
    )
    try:
        action = decode_action(action_payload.action_id, selected_value)
    except ValidationError as e:
        logger.error(f"CALLBACK_ERROR: Rejected action from {interaction.user.id}: {e}")
        return False

    handler = TRANSITION_HANDLERS[type(action)]
    logger.info(
        f"CALLBACK: Dispatching {action.kind.value} for {action.employee_id} "
        f"on {action.anniversary_date} from {interaction.user.id}"
    )

    try:
        handler(action, interaction.response_url)
        return True
    except NotFoundAnomaly as e:
        logger.warning(f"CALLBACK_ANOMALY: {e}")
    except ConfigurationError as e:
        logger.error(f"CONFIG_ERROR: {e}")
        report_admin_error(app, "Callback handling misconfigured", str(e))
    except Exception as e:
        logger.exception(f"CALLBACK_ERROR: {action.kind.value} for {action.employee_id} failed")
        report_admin_error(
            app, "Callback handling failed", f"{action.kind.value} {action.employee_id}: {e}"
        )
    return False
