"""
Configuration lifecycle status.

Configuration sets are append-only.  Only PUBLISHED sets are selected at
runtime; DRAFT and SUPERSEDED sets stay on disk for review and audit.
"""

from enum import Enum, unique


@unique
class ConfigStatus(str, Enum):
    """Lifecycle status for a configuration set."""

    DRAFT = "draft"
    PUBLISHED = "published"
    SUPERSEDED = "superseded"

