"""Chord analysis by pitch-class template matching.

Matches an unordered set of sounding notes against every chord template
transposed to all 12 roots, scores the candidates, and derives confidence,
extensions and functional-harmony suggestions for the best match.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np

from theory.exceptions import InvalidInputError
from theory.harmony_database import ChordTemplate, HarmonyDatabase, ScaleTemplate
from theory.options import AnalysisOptions
from theory.pitch import is_valid_note, pitch_class_name, to_pitch_class
from theory.progression_history import ProgressionHistory

logger = logging.getLogger(__name__)

MIN_CHORD_SIZE = 2
MIN_COVERAGE = 0.6
EXTRA_NOTE_PENALTY = 0.1

# Weight of each harmonic function when a key context is given
FUNCTION_WEIGHTS = {
    "tonic": 1.0,
    "dominant": 0.9,
    "subdominant": 0.8,
    "leading_tone": 0.7,
    "chromatic": 0.3,
    "color": 0.6,
    "suspension": 0.5,
}

CIRCLE_OF_FIFTHS = (0, 7, 2, 9, 4, 11, 6, 1, 8, 3, 10, 5)

# Interval from root -> (extension type, name)
EXTENSION_INTERVALS = {
    2: ("9", "ninth"),
    14: ("9", "ninth"),
    5: ("11", "eleventh"),
    17: ("11", "eleventh"),
    9: ("13", "thirteenth"),
    21: ("13", "thirteenth"),
}


@dataclass
class ChordMatch:
    """A chord template transposed to a root and scored against the input."""

    template: ChordTemplate
    root: int
    match_quality: float
    missing_pitch_classes: list[int] = field(default_factory=list)
    extra_pitch_classes: list[int] = field(default_factory=list)
    context_score: float = 0.0

    @property
    def template_id(self) -> str:
        return self.template.id

    @property
    def root_name(self) -> str:
        return pitch_class_name(self.root)

    @property
    def display_name(self) -> str:
        return f"{self.root_name}{self.template.symbol}"

    @property
    def harmonic_functions(self) -> tuple[str, ...]:
        return self.template.harmonic_functions

    @property
    def primary_function(self) -> str:
        return self.template.primary_function

    def to_json(self) -> dict[str, Any]:
        return {
            "template_id": self.template_id,
            "root": self.root,
            "root_name": self.root_name,
            "display_name": self.display_name,
            "match_quality": self.match_quality,
            "missing_pitch_classes": list(self.missing_pitch_classes),
            "extra_pitch_classes": list(self.extra_pitch_classes),
            "context_score": self.context_score,
            "quality": self.template.quality,
            "harmonic_functions": list(self.harmonic_functions),
        }


@dataclass
class Inversion:
    type: str
    bass: int
    description: str


@dataclass
class Extension:
    type: str  # "9", "11" or "13"
    name: str
    interval: int


@dataclass
class Suggestion:
    chord: str
    reason: str
    function: Optional[str] = None


@dataclass
class ScaleFit:
    """A scale transposed to a root and its coverage of the input."""

    scale: ScaleTemplate
    root: int
    coverage: float

    @property
    def display_name(self) -> str:
        return f"{pitch_class_name(self.root)} {self.scale.display_label}"

    def to_json(self) -> dict[str, Any]:
        return {
            "scale_id": self.scale.id,
            "root": self.root,
            "display_name": self.display_name,
            "coverage": self.coverage,
            "character": self.scale.character,
        }


@dataclass
class ChordAnalysisResult:
    """Outcome of a single analyze_chord call.

    success=False means the input was not analyzable (fewer than two
    distinct pitch classes); it is not an error condition.
    """

    success: bool
    input_notes: list[int]
    pitch_classes: list[int] = field(default_factory=list)
    candidate_matches: list[ChordMatch] = field(default_factory=list)
    best_match: Optional[ChordMatch] = None
    confidence: float = 0.0
    inversions: list[Inversion] = field(default_factory=list)
    extensions: list[Extension] = field(default_factory=list)
    suggestions: list[Suggestion] = field(default_factory=list)
    error: Optional[str] = None

    def to_json(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "error": self.error,
            "input_notes": list(self.input_notes),
            "pitch_classes": list(self.pitch_classes),
            "candidate_matches": [m.to_json() for m in self.candidate_matches],
            "best_match": self.best_match.to_json() if self.best_match else None,
            "confidence": self.confidence,
            "inversions": [vars(i) for i in self.inversions],
            "extensions": [vars(e) for e in self.extensions],
            "suggestions": [vars(s) for s in self.suggestions],
        }


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def _coerce_note_list(note_numbers: Iterable[int]) -> list[int]:
    """Materialize input notes, rejecting structurally invalid input."""
    if isinstance(note_numbers, (str, bytes)) or not isinstance(note_numbers, Iterable):
        raise InvalidInputError(
            f"Note numbers must be a collection of integers, got {type(note_numbers).__name__}"
        )

    notes = list(note_numbers)
    if not notes:
        raise InvalidInputError("Note numbers must not be empty")

    for note in notes:
        if not isinstance(note, int) or isinstance(note, bool):
            raise InvalidInputError(f"Note numbers must be integers, got {note!r}")
    return notes


def compare_to_input(
    template_pitches: frozenset[int], input_pitches: frozenset[int], strict_mode: bool
) -> tuple[bool, float, list[int], list[int]]:
    """Compare a transposed template with the input pitch classes.

    Returns:
        Tuple of (accepted, quality, missing pitch classes, extra pitch classes)
    """
    if strict_mode:
        matches = template_pitches == input_pitches
        return matches, 1.0 if matches else 0.0, [], []

    intersection = template_pitches & input_pitches
    missing = sorted(template_pitches - input_pitches)
    extra = sorted(input_pitches - template_pitches)

    coverage = len(intersection) / len(template_pitches)
    penalty = len(extra) * EXTRA_NOTE_PENALTY
    quality = max(0.0, coverage - penalty)

    return coverage >= MIN_COVERAGE, quality, missing, extra


def context_score(template: ChordTemplate, context_key: Optional[int]) -> float:
    """Mean function weight of a template, or 0 without a key context."""
    if context_key is None:
        return 0.0

    functions = template.harmonic_functions
    if not functions:
        return 0.0
    return sum(FUNCTION_WEIGHTS.get(f, 0.0) for f in functions) / len(functions)


class ChordAnalyzer:
    """Identify chords from sounding notes and suggest continuations.

    Scoring is stateless; the only mutable state is the bounded
    progression history of recognized chords and the last result.
    """

    def __init__(
        self,
        database: HarmonyDatabase,
        history: Optional[ProgressionHistory] = None,
        suggestion_limit: int = 5,
    ):
        """Initialize chord analyzer.

        Args:
            database: Chord and scale templates
            history: Progression history to append recognized chords to
            suggestion_limit: Maximum number of suggestions per analysis
        """
        self.database = database
        self.history = history if history is not None else ProgressionHistory(capacity=8)
        self.suggestion_limit = suggestion_limit
        self.last_analysis: Optional[ChordAnalysisResult] = None

        logger.info(
            f"Chord analyzer initialized ({database.chord_count} chords, "
            f"{database.scale_count} scales)"
        )

    def analyze_chord(
        self, note_numbers: Iterable[int], options: Optional[AnalysisOptions] = None
    ) -> ChordAnalysisResult:
        """Analyze a set of sounding notes.

        Args:
            note_numbers: Note numbers (1-88), any order, duplicates allowed
            options: Matching options (defaults: flexible, inversions and
                extensions on, no key context)

        Returns:
            ChordAnalysisResult; success=False when fewer than two distinct
            pitch classes are present

        Raises:
            InvalidInputError: If the input is empty or contains non-integers
            NoteRangeError: If a note number is outside [1, 88]
        """
        options = options or AnalysisOptions()
        notes = _coerce_note_list(note_numbers)

        if len(notes) < MIN_CHORD_SIZE:
            return ChordAnalysisResult(
                success=False,
                input_notes=notes,
                error=f"At least {MIN_CHORD_SIZE} notes are required for analysis",
            )

        pitch_classes = sorted({to_pitch_class(note) for note in notes})
        if len(pitch_classes) < MIN_CHORD_SIZE:
            return ChordAnalysisResult(
                success=False,
                input_notes=notes,
                pitch_classes=pitch_classes,
                error=f"At least {MIN_CHORD_SIZE} distinct pitch classes are required",
            )

        result = ChordAnalysisResult(
            success=True, input_notes=notes, pitch_classes=pitch_classes
        )

        result.candidate_matches = self.find_matching_chords(
            pitch_classes, options.strict_mode, options.context_key
        )

        if result.candidate_matches:
            result.best_match = result.candidate_matches[0]
            result.confidence = self.calculate_confidence(result.best_match, pitch_classes)

        if options.include_inversions:
            result.inversions = self.analyze_inversions(pitch_classes)

        if options.include_extensions:
            result.extensions = self.detect_extensions(pitch_classes, result.best_match)

        result.suggestions = self.generate_suggestions(result.best_match)

        self.last_analysis = result
        if result.best_match is not None:
            self.history.append(result.best_match)

        logger.debug(
            f"Analyzed {notes}: "
            f"{result.best_match.display_name if result.best_match else 'no match'} "
            f"(confidence {result.confidence:.0%})"
        )

        return result

    def find_matching_chords(
        self,
        pitch_classes: list[int],
        strict_mode: bool = False,
        context_key: Optional[int] = None,
    ) -> list[ChordMatch]:
        """Score every template at every root against the input.

        Returns:
            Accepted matches sorted by match quality, then context score,
            both descending; ties keep root-then-definition order
        """
        input_pitches = frozenset(pitch_classes)
        matches: list[ChordMatch] = []

        for root in range(12):
            for template in self.database.all_chord_templates():
                accepted, quality, missing, extra = compare_to_input(
                    template.pitch_classes(root), input_pitches, strict_mode
                )
                if not accepted:
                    continue

                matches.append(
                    ChordMatch(
                        template=template,
                        root=root,
                        match_quality=quality,
                        missing_pitch_classes=missing,
                        extra_pitch_classes=extra,
                        context_score=context_score(template, context_key),
                    )
                )

        matches.sort(key=lambda m: (-m.match_quality, -m.context_score))
        return matches

    def calculate_confidence(self, best_match: Optional[ChordMatch], pitch_classes: list[int]) -> float:
        if best_match is None:
            return 0.0

        complexity_penalty = max(0.0, (len(pitch_classes) - 4) * 0.1)
        consonance_bonus = 0.1 if best_match.template.quality == "consonant" else 0.0

        return _clamp01(best_match.match_quality - complexity_penalty + consonance_bonus)

    def analyze_inversions(self, pitch_classes: list[int]) -> list[Inversion]:
        # Only the lowest pitch class is inspected; always root position
        return [
            Inversion(
                type="root_position",
                bass=min(pitch_classes),
                description="Root position detected",
            )
        ]

    def detect_extensions(
        self, pitch_classes: list[int], best_match: Optional[ChordMatch]
    ) -> list[Extension]:
        if best_match is None:
            return []

        base_intervals = set(best_match.template.intervals)
        extensions: list[Extension] = []

        for pitch in pitch_classes:
            interval = (pitch - best_match.root) % 12
            if interval in base_intervals:
                continue
            if interval in EXTENSION_INTERVALS:
                ext_type, name = EXTENSION_INTERVALS[interval]
                extensions.append(Extension(type=ext_type, name=name, interval=interval))

        return extensions

    def generate_suggestions(self, current: Optional[ChordMatch]) -> list[Suggestion]:
        """Suggest follow-up chords for the current match.

        Without a match, four generic C-major suggestions are returned.
        """
        if current is None:
            return [
                Suggestion("C", "Stable major tonic", "tonic"),
                Suggestion("Am", "Emotional minor tonic", "tonic"),
                Suggestion("F", "Warm subdominant", "subdominant"),
                Suggestion("G", "Energetic dominant", "dominant"),
            ]

        root = current.root
        suggestions: list[Suggestion] = []

        function = current.primary_function
        if function == "tonic":
            suggestions += [
                Suggestion(pitch_class_name(root + 5), "Move to the subdominant", "subdominant"),
                Suggestion(pitch_class_name(root + 9) + "m", "Relative minor for a change of mood", "relative_minor"),
                Suggestion(pitch_class_name(root + 7), "Classic I-V progression", "dominant"),
            ]
        elif function == "dominant":
            suggestions += [
                Suggestion(pitch_class_name(root + 5), "Natural V-I resolution", "tonic"),
                Suggestion(pitch_class_name(root + 10), "V-IV plagal motion", "subdominant"),
                Suggestion(pitch_class_name(root + 2) + "m", "Deceptive resolution", "relative_minor"),
            ]
        elif function == "subdominant":
            # A minor subdominant is ii of the key a whole step below, a major one is IV
            is_minor = 3 in current.template.intervals
            tonic = root + (10 if is_minor else 7)
            suggestions += [
                Suggestion(pitch_class_name(tonic + 7), "Subdominant to dominant motion", "dominant"),
                Suggestion(pitch_class_name(tonic), "Direct resolution to the tonic", "tonic"),
            ]
            if is_minor:
                suggestions.append(Suggestion(pitch_class_name(tonic + 4) + "m", "Step up to iii", "iii"))
            else:
                suggestions.append(
                    Suggestion(pitch_class_name(tonic + 2) + "m", "Circle-of-fifths motion to ii", "ii")
                )

        suggestions += self.circle_of_fifths_suggestions(root)

        return suggestions[: self.suggestion_limit]

    def circle_of_fifths_suggestions(self, root: int) -> list[Suggestion]:
        index = CIRCLE_OF_FIFTHS.index(root % 12)
        fifth_up = CIRCLE_OF_FIFTHS[(index + 1) % 12]
        fifth_down = CIRCLE_OF_FIFTHS[(index - 1) % 12]

        return [
            Suggestion(pitch_class_name(fifth_up), "Ascending fifth (circle of fifths)"),
            Suggestion(pitch_class_name(fifth_down), "Descending fifth (subdominant motion)"),
        ]

    def rank_scales(
        self, note_numbers: Iterable[int], min_coverage: float = 1.0, limit: int = 10
    ) -> list[ScaleFit]:
        """Rank scales (all roots) by how many input pitch classes they contain.

        Args:
            note_numbers: Note numbers (1-88)
            min_coverage: Minimum fraction of input pitch classes in the scale
            limit: Maximum number of fits returned

        Returns:
            Fits sorted by coverage descending, then smaller scales first
        """
        notes = _coerce_note_list(note_numbers)
        pitch_classes = sorted({to_pitch_class(note) for note in notes})

        profile = np.zeros(12)
        profile[pitch_classes] = 1.0

        fits: list[ScaleFit] = []
        for scale in self.database.all_scale_templates():
            mask = np.zeros(12)
            mask[list(scale.intervals)] = 1.0

            for root in range(12):
                coverage = float(np.roll(mask, root) @ profile) / len(pitch_classes)
                if coverage >= min_coverage:
                    fits.append(ScaleFit(scale=scale, root=root, coverage=coverage))

        fits.sort(key=lambda f: (-f.coverage, len(f.scale.intervals)))
        return fits[:limit]

    def progression(self) -> list[ChordMatch]:
        """Recognized chords, oldest first (copy)."""
        return self.history.snapshot()

    def clear_progression(self) -> None:
        self.history.clear()

    def get_stats(self) -> dict[str, Any]:
        return {
            "chords_in_database": self.database.chord_count,
            "scales_in_database": self.database.scale_count,
            "current_progression": len(self.history),
            "last_analysis_confidence": (
                self.last_analysis.confidence if self.last_analysis else 0.0
            ),
        }


def is_analyzable(note_numbers: Iterable[int]) -> bool:
    """Quick check: at least two distinct valid pitch classes."""
    valid = [n for n in note_numbers if is_valid_note(n)]
    return len({to_pitch_class(n) for n in valid}) >= MIN_CHORD_SIZE
