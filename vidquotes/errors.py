"""
Vid Quotes - Error Types
Every failure the engine reports to the UI is one of these.
"""


class VidQuotesError(Exception):
    """Base class for all engine errors."""


class InputError(VidQuotesError):
    """Missing or invalid user input (empty prompt, empty file, bad value)."""


class DecodeError(VidQuotesError):
    """An audio, font or image asset could not be decoded."""


class CapabilityError(VidQuotesError):
    """The runtime lacks something a capture needs (encoder, drawing surface)."""


class EncodeError(CapabilityError):
    """FFmpeg failed while a capture was being encoded."""


class ExternalServiceError(VidQuotesError):
    """The generative image service failed or returned no image."""
