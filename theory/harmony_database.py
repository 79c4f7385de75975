"""Static chord and scale template tables.

Templates are immutable and defined once; a HarmonyDatabase value is
injected into the analyzer and validator rather than shared globally.
"""

from dataclasses import dataclass, field
from typing import Literal, Optional

QualityTag = Literal["consonant", "dissonant", "suspended", "extended"]


@dataclass(frozen=True)
class ChordTemplate:
    """Chord shape as interval offsets from the root.

    Attributes:
        id: Stable identifier (e.g. "dominant7")
        display_label: Human-readable name
        symbol: Suffix appended to the root name ("m", "7", "maj7")
        intervals: Semitone offsets from root; may exceed 11 for extensions
        quality: Consonance tag
        harmonic_functions: Functional roles, first is primary
        examples: Example chord symbols
    """

    id: str
    display_label: str
    symbol: str
    intervals: tuple[int, ...]
    quality: QualityTag
    harmonic_functions: tuple[str, ...]
    examples: tuple[str, ...] = field(default_factory=tuple)

    @property
    def primary_function(self) -> str:
        return self.harmonic_functions[0]

    def pitch_classes(self, root: int) -> frozenset[int]:
        """Pitch classes of this chord transposed to root."""
        return frozenset((root + interval) % 12 for interval in self.intervals)


@dataclass(frozen=True)
class ScaleTemplate:
    """Scale shape as a pitch-class set relative to the tonic."""

    id: str
    display_label: str
    intervals: tuple[int, ...]
    character: str


# Definition order is also the tie-break order for equal-scoring matches
CHORD_TEMPLATES: tuple[ChordTemplate, ...] = (
    ChordTemplate("major", "Major", "", (0, 4, 7), "consonant",
                  ("tonic", "dominant"), ("C", "F", "G")),
    ChordTemplate("minor", "Minor", "m", (0, 3, 7), "consonant",
                  ("tonic", "subdominant"), ("Am", "Dm", "Em")),
    ChordTemplate("diminished", "Diminished", "dim", (0, 3, 6), "dissonant",
                  ("leading_tone",), ("Bdim", "F#dim")),
    ChordTemplate("augmented", "Augmented", "aug", (0, 4, 8), "dissonant",
                  ("chromatic",), ("Caug", "Faug")),
    ChordTemplate("dominant7", "Dominant Seventh", "7", (0, 4, 7, 10), "dissonant",
                  ("dominant",), ("G7", "C7", "D7")),
    ChordTemplate("major7", "Major Seventh", "maj7", (0, 4, 7, 11), "consonant",
                  ("tonic",), ("Cmaj7", "Fmaj7")),
    ChordTemplate("minor7", "Minor Seventh", "m7", (0, 3, 7, 10), "consonant",
                  ("subdominant",), ("Am7", "Dm7")),
    ChordTemplate("sus2", "Suspended Second", "sus2", (0, 2, 7), "suspended",
                  ("suspension",), ("Csus2", "Gsus2")),
    ChordTemplate("sus4", "Suspended Fourth", "sus4", (0, 5, 7), "suspended",
                  ("suspension",), ("Csus4", "Fsus4")),
    ChordTemplate("add9", "Added Ninth", "add9", (0, 4, 7, 14), "extended",
                  ("color",), ("Cadd9", "Gadd9")),
)

SCALE_TEMPLATES: tuple[ScaleTemplate, ...] = (
    ScaleTemplate("major", "Major (Ionian)", (0, 2, 4, 5, 7, 9, 11), "bright"),
    ScaleTemplate("minor", "Natural Minor (Aeolian)", (0, 2, 3, 5, 7, 8, 10), "dark"),
    ScaleTemplate("harmonic_minor", "Harmonic Minor", (0, 2, 3, 5, 7, 8, 11), "exotic"),
    ScaleTemplate("melodic_minor", "Melodic Minor", (0, 2, 3, 5, 7, 9, 11), "smooth"),
    ScaleTemplate("dorian", "Dorian", (0, 2, 3, 5, 7, 9, 10), "jazzy"),
    ScaleTemplate("phrygian", "Phrygian", (0, 1, 3, 5, 7, 8, 10), "spanish"),
    ScaleTemplate("lydian", "Lydian", (0, 2, 4, 6, 7, 9, 11), "dreamy"),
    ScaleTemplate("mixolydian", "Mixolydian", (0, 2, 4, 5, 7, 9, 10), "bluesy"),
    ScaleTemplate("pentatonic_major", "Major Pentatonic", (0, 2, 4, 7, 9), "simple"),
    ScaleTemplate("pentatonic_minor", "Minor Pentatonic", (0, 3, 5, 7, 10), "bluesy"),
    ScaleTemplate("blues", "Blues", (0, 3, 5, 6, 7, 10), "soulful"),
)


class HarmonyDatabase:
    """Read-only lookup over chord and scale templates."""

    def __init__(
        self,
        chord_templates: Optional[tuple[ChordTemplate, ...]] = None,
        scale_templates: Optional[tuple[ScaleTemplate, ...]] = None,
    ):
        self._chords = tuple(CHORD_TEMPLATES if chord_templates is None else chord_templates)
        self._scales = tuple(SCALE_TEMPLATES if scale_templates is None else scale_templates)
        self._chords_by_id = {template.id: template for template in self._chords}
        self._scales_by_id = {template.id: template for template in self._scales}

    def all_chord_templates(self) -> tuple[ChordTemplate, ...]:
        return self._chords

    def all_scale_templates(self) -> tuple[ScaleTemplate, ...]:
        return self._scales

    def chord_template(self, template_id: str) -> ChordTemplate:
        """Look up a chord template by id.

        Raises:
            KeyError: If template_id is unknown
        """
        if template_id not in self._chords_by_id:
            available = ", ".join(self._chords_by_id)
            raise KeyError(f"Unknown chord template: {template_id}. Available: {available}")
        return self._chords_by_id[template_id]

    def scale_template(self, template_id: str) -> ScaleTemplate:
        """Look up a scale template by id.

        Raises:
            KeyError: If template_id is unknown
        """
        if template_id not in self._scales_by_id:
            available = ", ".join(self._scales_by_id)
            raise KeyError(f"Unknown scale template: {template_id}. Available: {available}")
        return self._scales_by_id[template_id]

    @property
    def chord_count(self) -> int:
        return len(self._chords)

    @property
    def scale_count(self) -> int:
        return len(self._scales)

    def __repr__(self) -> str:
        return f"HarmonyDatabase(chords={self.chord_count}, scales={self.scale_count})"
