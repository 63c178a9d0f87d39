"""
Slack interactivity wiring for MilestoneBot.

Installs a global middleware that authenticates every inbound request
(services.interaction.verify_request) and a single action listener for
anniversary DM buttons and menus. Rejected requests still get an empty 200
so Slack does not retry them.

Main function: register_interaction_handlers().
"""

from slack_bolt import BoltResponse

from config import get_logger
from services.interaction import process_interaction, verify_request
from utils.action_tokens import ACTION_ID_PATTERN

interactions_logger = get_logger("interaction_handler")


def register_interaction_handlers(app):
    interactions_logger.info("INTERACTION_HANDLER: Registering callback verification and actions")

    @app.middleware
    def verify_inbound_request(req, resp, next):
        payload = req.body if isinstance(req.body, dict) and req.body else None
        if not verify_request(req.raw_body, req.headers, payload=payload, app=app):
            return BoltResponse(status=200, body="")
        return next()

    @app.action(ACTION_ID_PATTERN)
    def handle_anniversary_action(ack, body):
        """
        Handle approve/decline buttons, the gift menu and gift confirmation.

        Slack expects an acknowledgement within 3 seconds; follow-up UI goes
        through the interaction's response_url.
        """
        ack()
        process_interaction(body, app=app)

    interactions_logger.info("INTERACTION_HANDLER: Anniversary action handler registered")
