"""
Exception taxonomy for MilestoneBot.

Each class maps to one handling policy:
- ConfigurationError: required setting missing; aborts the sweep/handler, reported to admins
- ExternalCallError: Slack or HR API returned non-success; caught per employee/record
- ValidationError: malformed inbound token or field; callback dropped, logged only
- NotFoundAnomaly: referenced employee/record missing; logged and skipped
- SignatureError: callback authenticity check failed; rejected as a security event
"""


class MilestoneBotError(Exception):
    """Base class for all MilestoneBot errors."""


class ConfigurationError(MilestoneBotError):
    """A required secret or setting is missing."""


class ExternalCallError(MilestoneBotError):
    """An external platform call failed."""

    def __init__(self, service, detail):
        self.service = service
        self.detail = detail
        super().__init__(f"{service}: {detail}")


class ValidationError(MilestoneBotError):
    """Inbound token or field failed validation."""


class NotFoundAnomaly(MilestoneBotError):
    """An employee or response record expected to exist was not found."""


class SignatureError(MilestoneBotError):
    """Inbound callback could not be authenticated."""
