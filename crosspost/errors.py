"""
Exceptions shared by the ingestion, publishing and token layers.

Only publisher/token errors are allowed to travel up to the job executor,
which records them on the job instead of re-raising.
"""

from typing import Any, Optional


class CrosspostError(Exception):
    """Base class for every error raised by this package."""


class InstagramAPIError(CrosspostError):
    """The Instagram Graph API answered with an error envelope."""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.code = code


class PublishError(CrosspostError):
    """
    A destination platform rejected a publish step.

    Attributes:
        platform: destination platform tag ("twitter", "youtube")
        message: human-readable message stored on the job
        details: raw payload or response snippet, for logs
    """

    def __init__(self, platform: str, message: str, details: Any = None):
        super().__init__(message)
        self.platform = platform
        self.message = message
        self.details = details

    def __str__(self) -> str:
        return self.message


class TokenError(CrosspostError):
    """No usable bearer token could be produced for an account."""
