"""Content moderation for user and persona posts."""

from .moderator import ContentModerator, ModerationAction, ModerationResult, get_moderator

__all__ = ["ContentModerator", "ModerationAction", "ModerationResult", "get_moderator"]
