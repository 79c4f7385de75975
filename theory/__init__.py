"""Galaxy Piano Theory - Music intelligence algorithms.

This module contains the pitch model, chord/scale template tables, chord
analysis, harmonic validation and the textual musical input parser.
"""

from theory.chord_analyzer import ChordAnalysisResult, ChordAnalyzer, ChordMatch
from theory.exceptions import GalaxyError, InvalidInputError, NoteRangeError
from theory.harmonic_validator import HarmonicValidator, HarmonyValidation
from theory.harmony_database import ChordTemplate, HarmonyDatabase, ScaleTemplate
from theory.input_parser import ParsedInput, parse_musical_input, validate_musical_input
from theory.options import AnalysisOptions, ParseOptions, ValidationOptions
from theory.progression_history import ProgressionHistory

__version__ = "1.0.0"

__all__ = [
    "ChordAnalyzer",
    "ChordAnalysisResult",
    "ChordMatch",
    "HarmonicValidator",
    "HarmonyValidation",
    "HarmonyDatabase",
    "ChordTemplate",
    "ScaleTemplate",
    "ProgressionHistory",
    "ParsedInput",
    "parse_musical_input",
    "validate_musical_input",
    "AnalysisOptions",
    "ParseOptions",
    "ValidationOptions",
    "GalaxyError",
    "InvalidInputError",
    "NoteRangeError",
]
