"""Per-operation option records with named defaults."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class AnalysisOptions:
    """Options for ChordAnalyzer.analyze_chord.

    Attributes:
        strict_mode: Require exact pitch-class set equality
        include_inversions: Report the bass observation
        include_extensions: Report 9th/11th/13th extensions
        context_key: Pitch class of the key context (enables context scoring)
    """

    strict_mode: bool = False
    include_inversions: bool = True
    include_extensions: bool = True
    context_key: Optional[int] = None

    def __post_init__(self) -> None:
        if self.context_key is not None and not (0 <= self.context_key <= 11):
            raise ValueError(
                f"Invalid context_key: {self.context_key} (must be a pitch class 0-11)"
            )


@dataclass(frozen=True)
class ValidationOptions:
    """Options for HarmonicValidator.validate_harmony."""

    context_key: Optional[int] = None
    valid_threshold: float = 60.0

    def __post_init__(self) -> None:
        if self.context_key is not None and not (0 <= self.context_key <= 11):
            raise ValueError(
                f"Invalid context_key: {self.context_key} (must be a pitch class 0-11)"
            )


@dataclass(frozen=True)
class ParseOptions:
    """Options for parse_musical_input.

    Attributes:
        allow_chords: Keep multi-note segments (otherwise they are dropped)
        default_octave: Octave for note names written without one
        default_duration: Duration in beats when no @duration is given
        default_velocity: Velocity when no vVELOCITY is given
    """

    allow_chords: bool = True
    default_octave: int = 4
    default_duration: float = 0.5
    default_velocity: float = 0.7

    def __post_init__(self) -> None:
        if self.default_duration <= 0:
            raise ValueError(
                f"Invalid default_duration: {self.default_duration} (must be > 0)"
            )
        if not (0.0 <= self.default_velocity <= 1.0):
            raise ValueError(
                f"Invalid default_velocity: {self.default_velocity} (must be 0.0-1.0)"
            )
