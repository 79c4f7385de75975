"""Functional-harmony validation of chord progressions.

Scores a progression starting at 100 and subtracts fixed penalties for
awkward root movement and unconventional functional transitions.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Optional

from theory.chord_analyzer import ChordMatch
from theory.exceptions import InvalidInputError
from theory.options import ValidationOptions

logger = logging.getLogger(__name__)

# Root movement in semitones -> (penalty, advisory note)
ROOT_MOVEMENT_PENALTIES = {
    2: (5, "Major-second root movement - consider an intermediate step"),
    10: (5, "Major-second root movement - consider an intermediate step"),
    1: (10, "Chromatic root movement - very dissonant"),
    11: (10, "Chromatic root movement - very dissonant"),
}

FUNCTION_PENALTY = 15

# Primary function -> primary functions it may move to
COMPATIBLE_TRANSITIONS = {
    "tonic": ("subdominant", "dominant", "tonic"),
    "subdominant": ("dominant", "tonic"),
    "dominant": ("tonic", "subdominant"),
}

# Per-chord contribution to key stability
STABILITY_WEIGHTS = (("tonic", 0.3), ("dominant", 0.2), ("subdominant", 0.1))


@dataclass
class TransitionAnalysis:
    root_movement: int
    penalty: int
    compatible: bool
    issues: list[str] = field(default_factory=list)


@dataclass
class HarmonyValidation:
    """Result of validate_harmony.

    The score is not clamped; only the validity threshold matters.
    """

    valid: bool = True
    score: float = 100.0
    issues: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)
    key_stability: float = 0.0
    voice_leading: float = 0.0
    functional_coherence: float = 0.0
    transitions: list[TransitionAnalysis] = field(default_factory=list)

    def to_json(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "score": self.score,
            "issues": list(self.issues),
            "suggestions": list(self.suggestions),
            "analysis": {
                "key_stability": self.key_stability,
                "voice_leading": self.voice_leading,
                "functional_coherence": self.functional_coherence,
            },
        }


def check_functional_compatibility(current: ChordMatch, following: ChordMatch) -> tuple[bool, Optional[str]]:
    """Check the primary-function transition against the adjacency table.

    Functions absent from the table are always incompatible.
    """
    source = current.primary_function
    target = following.primary_function

    if target in COMPATIBLE_TRANSITIONS.get(source, ()):
        return True, None
    return False, f"Unconventional {source} -> {target} transition"


class HarmonicValidator:
    """Validates chord progressions for functional coherence."""

    def validate_harmony(
        self,
        progression: Sequence[ChordMatch],
        options: Optional[ValidationOptions] = None,
    ) -> HarmonyValidation:
        """Score a chord progression.

        Args:
            progression: Chord matches in playing order
            options: Key context and validity threshold

        Returns:
            HarmonyValidation; trivially valid with score 100 for fewer
            than two chords

        Raises:
            InvalidInputError: If an element is not a ChordMatch
        """
        options = options or ValidationOptions()
        validation = HarmonyValidation()

        for chord in progression:
            if not isinstance(chord, ChordMatch):
                raise InvalidInputError(
                    f"Progression entries must be chord matches, got {type(chord).__name__}"
                )

        if len(progression) < 2:
            return validation

        for current, following in zip(progression, progression[1:]):
            transition = self.analyze_transition(current, following)
            validation.transitions.append(transition)
            validation.score -= transition.penalty
            validation.issues.extend(transition.issues)

        validation.key_stability = self.analyze_key_stability(progression, options.context_key)
        validation.functional_coherence = self.analyze_functional_coherence(validation.transitions)
        validation.valid = validation.score >= options.valid_threshold

        if not validation.valid:
            validation.suggestions.append(
                "Favor root movement by fifths and tonic-subdominant-dominant motion"
            )

        logger.debug(
            f"Validated {len(progression)} chords: score={validation.score}, "
            f"valid={validation.valid}"
        )

        return validation

    def analyze_transition(self, current: ChordMatch, following: ChordMatch) -> TransitionAnalysis:
        root_movement = (following.root - current.root + 12) % 12
        analysis = TransitionAnalysis(root_movement=root_movement, penalty=0, compatible=True)

        # Fifth motion (7 or 5) and other intervals carry no penalty
        if root_movement in ROOT_MOVEMENT_PENALTIES:
            penalty, note = ROOT_MOVEMENT_PENALTIES[root_movement]
            analysis.penalty += penalty
            analysis.issues.append(note)

        compatible, reason = check_functional_compatibility(current, following)
        if not compatible:
            analysis.compatible = False
            analysis.penalty += FUNCTION_PENALTY
            analysis.issues.append(reason)  # type: ignore[arg-type]

        return analysis

    def analyze_key_stability(self, progression: Sequence[ChordMatch], context_key: Optional[int]) -> float:
        if context_key is None:
            return 0.5

        stability = 0.0
        for chord in progression:
            for function, weight in STABILITY_WEIGHTS:
                if function in chord.harmonic_functions:
                    stability += weight
                    break

        return max(0.0, min(1.0, stability / len(progression)))

    def analyze_functional_coherence(self, transitions: list[TransitionAnalysis]) -> float:
        coherence = 0.5
        for transition in transitions:
            coherence += 0.1 if transition.compatible else -0.05
        return max(0.0, min(1.0, coherence))
