"""
Slack messaging utilities for MilestoneBot.

All outbound messages: channel posts and DMs via chat.postMessage, follow-up
UI updates via an interaction's single-use response_url, and operational
error reports to the admin channel.
"""

from slack_sdk.errors import SlackApiError
from slack_sdk.webhook import WebhookClient

from config import ADMIN_CHANNEL, TIMEOUTS, get_logger

logger = get_logger("slack")


# =============================================================================
# Core Message Sending
# =============================================================================


def send_message(app, channel: str, text: str, blocks=None):
    """
    Send a message to a Slack channel or user DM with error handling.

    Args:
        app: Slack app instance
        channel: Channel ID, or user ID for a DM
        text: Fallback text (notifications and clients without Block Kit)
        blocks: Optional blocks for rich formatting

    Returns:
        dict: {"success": bool, "ts": str or None, "error": str or None}
    """
    try:
        if blocks:
            response = app.client.chat_postMessage(channel=channel, text=text, blocks=blocks)
        else:
            response = app.client.chat_postMessage(channel=channel, text=text)

        if not response.get("ok"):
            error = response.get("error", "unknown_error")
            logger.error(f"API_ERROR: chat.postMessage to {channel} returned {error}")
            return {"success": False, "ts": None, "error": error}

        if channel.startswith("U"):
            logger.info(f"MESSAGE: Sent DM to {channel}")
        else:
            logger.info(f"MESSAGE: Sent message to channel {channel}")

        return {"success": True, "ts": response.get("ts"), "error": None}

    except SlackApiError as e:
        logger.error(f"API_ERROR: Failed to send message to {channel}: {e}")
        return {"success": False, "ts": None, "error": e.response.get("error", str(e))}


def send_response_update(response_url: str, text: str, blocks=None) -> bool:
    """
    Replace the original interactive message via the interaction's response_url.

    The URL is single-use-per-interaction and short-lived; failures are logged
    and never retried.

    Args:
        response_url: URL from the interaction payload
        text: Fallback text
        blocks: Replacement blocks

    Returns:
        True if Slack accepted the update
    """
    try:
        webhook = WebhookClient(response_url, timeout=TIMEOUTS["response_url"])
        response = webhook.send(text=text, blocks=blocks, replace_original=True)
        if response.status_code != 200:
            logger.error(
                f"RESPONSE_URL_ERROR: Update rejected with {response.status_code}: {response.body}"
            )
            return False
        logger.info("RESPONSE_URL: Replaced original message")
        return True
    except Exception as e:
        logger.error(f"RESPONSE_URL_ERROR: Failed to post update: {e}")
        return False


def report_admin_error(app, title: str, detail: str) -> bool:
    """
    Report an operational failure to the admin channel.

    Logged only when ADMIN_CHANNEL_ID is not configured. Never raises.

    Args:
        app: Slack app instance
        title: Short summary, e.g. "Notification failed"
        detail: Error details

    Returns:
        True if the report was posted
    """
    logger.error(f"ADMIN_REPORT: {title}: {detail}")

    if not ADMIN_CHANNEL or app is None:
        return False

    from slack_io.blocks import build_admin_error_blocks

    blocks, fallback_text = build_admin_error_blocks(title, detail)
    try:
        return send_message(app, ADMIN_CHANNEL, fallback_text, blocks)["success"]
    except Exception as e:
        logger.error(f"ADMIN_REPORT: Could not post report to {ADMIN_CHANNEL}: {e}")
        return False
