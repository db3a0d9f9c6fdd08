"""Error types raised by the capture adapter and the Gemini clients."""

from __future__ import annotations


class StyleReplicatorError(Exception):
    """Base class for every recoverable failure in the wizard."""


class CaptureError(StyleReplicatorError):
    """Camera unavailable, permission denied, or an unreadable frame."""


class AnalysisError(StyleReplicatorError):
    """The style analysis call failed or returned unusable data."""


class GenerationError(StyleReplicatorError):
    """The style application call failed or returned no image."""
