"""Push alert types for moderation staff."""

from enum import Enum
from typing import NamedTuple


class NotificationConfig(NamedTuple):
    """Configuration for a staff alert type."""

    topic_suffix: str
    default_priority: str  # min, low, default, high, max
    tags: str  # comma-separated emoji shortcodes


class NotificationType(Enum):
    """
    Staff alert types with their topic suffix, default priority, and tags.

    Each type maps to its own ntfy topic so moderators can subscribe only
    to the queues they work.
    """

    REPORT = NotificationConfig("reports", "high", "rotating_light,report")
    TRUST_STATE = NotificationConfig("trust-state", "high", "warning,lock")

    @property
    def topic_suffix(self) -> str:
        """Get the topic suffix for this alert type."""
        return self.value.topic_suffix

    @property
    def default_priority(self) -> str:
        """Get the default priority for this alert type."""
        return self.value.default_priority

    @property
    def tags(self) -> str:
        """Get the tags for this alert type."""
        return self.value.tags
