"""Exception types raised by the simulation core."""

from __future__ import annotations


class LoreweaveError(Exception):
    """Base class for errors raised by loreweave."""


class ConfigError(LoreweaveError):
    """A required piece of domain configuration is missing or malformed."""

    def __init__(self, field_path: str, message: str) -> None:
        super().__init__(f"{field_path}: {message}")
        self.field_path = field_path
        self.message = message


class CollaboratorError(LoreweaveError):
    """A name-generation or enrichment collaborator failed."""


class EnrichmentAborted(LoreweaveError):
    """The enrichment batch was cancelled by its abort check."""
