"""Pitch model: note number, pitch class, frequency and name conversions.

Note numbers follow the 88-key piano layout: 1 = A0 (MIDI 21),
40 = C4 (MIDI 60), 88 = C8 (MIDI 108).
"""

from dataclasses import dataclass
from typing import Literal, Optional

from theory.exceptions import InvalidInputError, NoteRangeError

NOTE_MIN = 1
NOTE_MAX = 88
MIDI_OFFSET = 20  # note 1 -> MIDI 21

# Canonical names use sharps only
PITCH_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]

# Accepted spellings (upper-cased) -> pitch class
_NAME_TO_PITCH_CLASS = {
    "C": 0, "C#": 1, "DB": 1,
    "D": 2, "D#": 3, "EB": 3,
    "E": 4,
    "F": 5, "F#": 6, "GB": 6,
    "G": 7, "G#": 8, "AB": 8,
    "A": 9, "A#": 10, "BB": 10,
    "B": 11,
}

Register = Literal[
    "extreme_low", "low", "low_mid", "high_mid", "high", "very_high", "extreme_high"
]

# (upper bound inclusive, register)
_REGISTERS: list[tuple[int, Register]] = [
    (15, "extreme_low"),
    (30, "low"),
    (45, "low_mid"),
    (60, "high_mid"),
    (75, "high"),
    (85, "very_high"),
    (88, "extreme_high"),
]


@dataclass(frozen=True)
class NoteInfo:
    """Derived information about a single piano key."""

    number: int
    midi_number: int
    frequency: float  # Hz, rounded to 0.01
    name: str
    register: Register

    def to_json(self) -> dict:
        return {
            "number": self.number,
            "midi_number": self.midi_number,
            "frequency": self.frequency,
            "name": self.name,
            "register": self.register,
        }


def is_valid_note(note_number: object) -> bool:
    """Check whether a value is an integer note number in [1, 88]."""
    return (
        isinstance(note_number, int)
        and not isinstance(note_number, bool)
        and NOTE_MIN <= note_number <= NOTE_MAX
    )


def validate_note(note_number: object) -> int:
    """Return the note number unchanged or raise.

    Raises:
        InvalidInputError: If the value is not an integer
        NoteRangeError: If the value is outside [1, 88]
    """
    if not isinstance(note_number, int) or isinstance(note_number, bool):
        raise InvalidInputError(f"Note number must be an integer, got {note_number!r}")
    if not (NOTE_MIN <= note_number <= NOTE_MAX):
        raise NoteRangeError(note_number)
    return note_number


def to_midi(note_number: int) -> int:
    return validate_note(note_number) + MIDI_OFFSET


def to_pitch_class(note_number: int) -> int:
    """Convert a note number to its pitch class (C=0 .. B=11).

    Raises:
        NoteRangeError: If note_number is outside [1, 88]
    """
    return to_midi(note_number) % 12


def to_frequency_hz(note_number: int) -> float:
    """Equal-tempered frequency with A4 (note 49) = 440 Hz."""
    return 440.0 * 2 ** ((to_midi(note_number) - 69) / 12.0)


def to_display_name(note_number: int) -> str:
    """Scientific pitch name, e.g. 40 -> "C4", 1 -> "A0"."""
    midi = to_midi(note_number)
    return f"{PITCH_NAMES[midi % 12]}{midi // 12 - 1}"


def pitch_class_name(pitch_class: int) -> str:
    return PITCH_NAMES[pitch_class % 12]


def from_name_and_octave(name: str, octave: int) -> Optional[int]:
    """Convert a note name and octave to a note number.

    Accepts sharps and flats in any case ("C#", "db", "Bb").

    Returns:
        Note number, or None if the name is unknown or the result
        falls outside [1, 88]
    """
    key = name.strip().upper()
    if key not in _NAME_TO_PITCH_CLASS:
        return None

    midi = (octave + 1) * 12 + _NAME_TO_PITCH_CLASS[key]
    note_number = midi - MIDI_OFFSET

    if NOTE_MIN <= note_number <= NOTE_MAX:
        return note_number
    return None


def register_of(note_number: int) -> Register:
    validate_note(note_number)
    for upper, register in _REGISTERS:
        if note_number <= upper:
            return register
    raise NoteRangeError(note_number)  # unreachable for validated input


def note_info(note_number: int) -> NoteInfo:
    return NoteInfo(
        number=note_number,
        midi_number=to_midi(note_number),
        frequency=round(to_frequency_hz(note_number), 2),
        name=to_display_name(note_number),
        register=register_of(note_number),
    )


def frequency_range() -> tuple[float, float]:
    """Lowest and highest key frequencies in Hz."""
    return to_frequency_hz(NOTE_MIN), to_frequency_hz(NOTE_MAX)


def closest_note(frequency_hz: float) -> int:
    """Find the key whose frequency is nearest to frequency_hz.

    Raises:
        InvalidInputError: If frequency_hz is not positive
    """
    if frequency_hz <= 0:
        raise InvalidInputError(f"Frequency must be positive, got {frequency_hz}")

    return min(
        range(NOTE_MIN, NOTE_MAX + 1),
        key=lambda n: abs(to_frequency_hz(n) - frequency_hz),
    )
