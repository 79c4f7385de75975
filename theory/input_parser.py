"""Parser for compact textual note, chord, duration and velocity input.

Supported segment formats (segments separated by "," or ";"):

    40                  single note by number
    C4                  single note by name (octave optional)
    40+43+47            chord by numbers
    C4+E4+G4            chord by names
    40@0.5              note with duration in beats
    40@0.5v0.8          note with duration and velocity
    C4+E4+G4@1.0v0.9    chord with duration and velocity

A malformed segment produces a warning and is skipped; parsing never
aborts on a single bad segment.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional

from theory.options import ParseOptions
from theory.pitch import NOTE_MAX, NOTE_MIN, from_name_and_octave, is_valid_note, to_display_name

logger = logging.getLogger(__name__)

MAX_CHORD_NOTES = 10
LONG_SEQUENCE_BEATS = 10.0

_SEGMENT_SPLIT = re.compile(r"[,;]")
_DURATION = re.compile(r"@([0-9.]+)")
_VELOCITY = re.compile(r"v([0-9.]+)")
_NOTE_NAME = re.compile(r"^([A-G][#b]?)([0-9]?)$", re.IGNORECASE)
_NOTE_NUMBER = re.compile(r"[0-9]+")


class SegmentError(ValueError):
    """A single segment could not be parsed."""

    pass


@dataclass
class ParsedNote:
    number: int
    name: str
    duration: float
    velocity: float

    def to_json(self) -> dict[str, Any]:
        return vars(self).copy()


@dataclass
class ParsedChord:
    notes: list[ParsedNote]
    duration: float
    velocity: float
    start_time: float  # beats from sequence start

    @property
    def note_numbers(self) -> list[int]:
        return [note.number for note in self.notes]

    def to_json(self) -> dict[str, Any]:
        return {
            "notes": [note.to_json() for note in self.notes],
            "note_numbers": self.note_numbers,
            "duration": self.duration,
            "velocity": self.velocity,
            "start_time": self.start_time,
        }


@dataclass
class Segment:
    """One parsed unit: a single note or a chord."""

    note_numbers: list[int]
    duration: float
    velocity: float


@dataclass
class ParsedInput:
    success: bool = True
    notes: list[ParsedNote] = field(default_factory=list)
    chords: list[ParsedChord] = field(default_factory=list)
    total_duration: float = 0.0
    warnings: list[str] = field(default_factory=list)
    error: Optional[str] = None

    def all_note_numbers(self) -> list[int]:
        numbers = [note.number for note in self.notes]
        for chord in self.chords:
            numbers.extend(chord.note_numbers)
        return numbers

    def to_json(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "error": self.error,
            "notes": [note.to_json() for note in self.notes],
            "chords": [chord.to_json() for chord in self.chords],
            "total_duration": self.total_duration,
            "warnings": list(self.warnings),
        }


@dataclass
class InputValidation:
    valid: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)

    def to_json(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "suggestions": list(self.suggestions),
        }


def parse_note_token(token: str, default_octave: int) -> Optional[int]:
    """Parse a bare note number (1-88) or a note name with optional octave.

    Returns:
        Note number, or None if the token is not a valid note
    """
    if _NOTE_NUMBER.fullmatch(token):
        number = int(token)
        if NOTE_MIN <= number <= NOTE_MAX:
            return number
        return None

    match = _NOTE_NAME.match(token)
    if match is None:
        return None

    octave = int(match.group(2)) if match.group(2) else default_octave
    return from_name_and_octave(match.group(1), octave)


def parse_segment(segment: str, options: ParseOptions) -> Segment:
    """Parse a single NOTE(+NOTE)*[@duration][vVELOCITY] segment.

    Raises:
        SegmentError: If any part of the segment is malformed
    """
    duration = options.default_duration
    velocity = options.default_velocity
    notes_part = segment

    duration_match = _DURATION.search(segment)
    if duration_match:
        try:
            duration = float(duration_match.group(1))
        except ValueError:
            raise SegmentError(f"Invalid duration: {duration_match.group(1)!r}") from None
        if duration <= 0:
            raise SegmentError(f"Duration must be positive, got {duration}")
        notes_part = _DURATION.sub("", notes_part, count=1)

    velocity_match = _VELOCITY.search(segment)
    if velocity_match:
        try:
            velocity = min(1.0, float(velocity_match.group(1)))
        except ValueError:
            raise SegmentError(f"Invalid velocity: {velocity_match.group(1)!r}") from None
        notes_part = _VELOCITY.sub("", notes_part, count=1)

    note_numbers: list[int] = []
    for token in (t.strip() for t in notes_part.split("+")):
        number = parse_note_token(token, options.default_octave)
        if number is None:
            raise SegmentError(f"Invalid note: {token!r}")
        note_numbers.append(number)

    return Segment(note_numbers=note_numbers, duration=duration, velocity=velocity)


def parse_musical_input(text: str, options: Optional[ParseOptions] = None) -> ParsedInput:
    """Parse textual musical input into notes and chords.

    Notes and chords share one running clock; each chord records its
    start time in beats.

    Args:
        text: Comma/semicolon separated segments
        options: Parse defaults (octave, duration, velocity, chords allowed)

    Returns:
        ParsedInput; success=False only when nothing could be extracted
    """
    options = options or ParseOptions()

    if not isinstance(text, str) or not text.strip():
        return ParsedInput(success=False, error="Invalid input: expected non-empty text")

    result = ParsedInput()
    clean = re.sub(r"\s+", " ", text.strip())

    for raw_segment in _SEGMENT_SPLIT.split(clean):
        segment = raw_segment.strip()
        if not segment:
            continue

        try:
            parsed = parse_segment(segment, options)
        except SegmentError as e:
            result.warnings.append(f'Segment "{segment}": {e}')
            continue

        entries = [
            ParsedNote(
                number=number,
                name=to_display_name(number),
                duration=parsed.duration,
                velocity=parsed.velocity,
            )
            for number in parsed.note_numbers
        ]

        if len(entries) == 1:
            result.notes.append(entries[0])
        elif options.allow_chords:
            result.chords.append(
                ParsedChord(
                    notes=entries,
                    duration=parsed.duration,
                    velocity=parsed.velocity,
                    start_time=result.total_duration,
                )
            )

        result.total_duration += parsed.duration

    if not result.notes and not result.chords:
        result.success = False
        result.error = "No valid notes found"

    logger.debug(
        f"Parsed {len(result.notes)} notes and {len(result.chords)} chords "
        f"({len(result.warnings)} warnings)"
    )

    return result


def validate_musical_input(parsed: ParsedInput) -> InputValidation:
    """Re-check parsed input before it is written to a track."""
    validation = InputValidation()

    if not parsed.success:
        validation.valid = False
        validation.errors.append(parsed.error or "Parsing failed")
        return validation

    out_of_range = [n for n in parsed.all_note_numbers() if not is_valid_note(n)]
    if out_of_range:
        validation.valid = False
        validation.errors.append(
            f"Notes out of range: {', '.join(str(n) for n in out_of_range)}"
        )

    max_simultaneous = max((len(chord.notes) for chord in parsed.chords), default=1)
    if max_simultaneous > MAX_CHORD_NOTES:
        validation.warnings.append(
            f"Very complex chord ({max_simultaneous} simultaneous notes)"
        )

    if parsed.total_duration > LONG_SEQUENCE_BEATS:
        validation.warnings.append(
            f"Long sequence ({parsed.total_duration:g} beats) - consider splitting into several patterns"
        )

    if parsed.chords:
        validation.suggestions.append("Chords detected - harmonic analysis is available")

    return validation
