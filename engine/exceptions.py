"""Custom exceptions for the Galaxy Piano engine."""

from theory.exceptions import GalaxyError, InvalidInputError, NoteRangeError

__all__ = [
    "GalaxyError",
    "NoteRangeError",
    "InvalidInputError",
    "SequencerError",
    "TransportError",
    "TrackIndexError",
    "ToneSourceError",
    "ConfigurationError",
]


class SequencerError(GalaxyError):
    """Error in pattern or transport operations."""

    pass


class TransportError(SequencerError):
    """Invalid transport state change (e.g. resume while stopped)."""

    pass


class TrackIndexError(SequencerError):
    """Track index outside the active pattern."""

    pass


class ToneSourceError(SequencerError):
    """Tone Source rejected a note emission."""

    pass


class ConfigurationError(GalaxyError):
    """Error in engine configuration."""

    pass
