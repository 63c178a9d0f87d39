"""
Slack API lookups for MilestoneBot.

User profile helpers used by the sweeps and the HR sync: avatar URLs for
celebration posts and member-id resolution from HR-supplied emails.

Key functions: get_user_avatar_url(), lookup_user_id_by_email(), get_user_mention().
"""

from slack_sdk.errors import SlackApiError

from config import DEFAULT_AVATAR_URL, get_logger

logger = get_logger("slack")

# Profile image sizes in order of preference
AVATAR_FIELDS = ("image_192", "image_512", "image_72", "image_original")


def get_user_avatar_url(app, user_id):
    """
    Get a user's profile photo URL for celebration posts.

    Never raises: any failure degrades to DEFAULT_AVATAR_URL.

    Args:
        app: Slack app instance
        user_id: Slack member ID

    Returns:
        Image URL
    """
    if not user_id:
        return DEFAULT_AVATAR_URL

    try:
        response = app.client.users_profile_get(user=user_id)
        if not response["ok"]:
            logger.error(f"API_ERROR: Failed to get profile for user {user_id}")
            return DEFAULT_AVATAR_URL

        profile = response["profile"]
        for field in AVATAR_FIELDS:
            if profile.get(field):
                return profile[field]

        logger.debug(f"PROFILE: No avatar set for {user_id}, using default")
        return DEFAULT_AVATAR_URL

    except SlackApiError as e:
        logger.error(f"API_ERROR: Slack error when getting profile for {user_id}: {e}")
        return DEFAULT_AVATAR_URL
    except Exception as e:
        logger.error(f"ERROR: Unexpected error getting avatar for {user_id}: {e}")
        return DEFAULT_AVATAR_URL


def lookup_user_id_by_email(app, email):
    """
    Resolve a Slack member ID from an email address.

    Args:
        app: Slack app instance
        email: Address registered in the HR system

    Returns:
        Member ID or None if not found
    """
    try:
        response = app.client.users_lookupByEmail(email=email)
        if response["ok"]:
            return response["user"]["id"]
        logger.warning(f"API_ERROR: users.lookupByEmail returned not ok for {email}")
    except SlackApiError as e:
        logger.warning(f"API_ERROR: Could not resolve Slack user for {email}: {e}")
    return None


def get_user_mention(user_id):
    """
    Get a formatted mention for a user

    Args:
        user_id: User ID to format

    Returns:
        Formatted mention string
    """
    return f"<@{user_id}>" if user_id else "Unknown User"
