"""Unit tests for chord identification, confidence and suggestions."""

import pytest

from theory.chord_analyzer import (
    ChordAnalyzer,
    compare_to_input,
    is_analyzable,
)
from theory.exceptions import InvalidInputError, NoteRangeError
from theory.options import AnalysisOptions
from theory.progression_history import ProgressionHistory

C_MAJOR = [40, 44, 47]  # C4 E4 G4
E_MINOR = [44, 47, 51]  # E4 G4 B4
G_DOMINANT7 = [47, 51, 54, 57]  # G4 B4 D5 F5


class TestChordIdentification:
    """Test best-match selection."""

    def test_c_major(self, analyzer):
        result = analyzer.analyze_chord(C_MAJOR)

        assert result.success
        assert result.pitch_classes == [0, 4, 7]
        assert result.best_match.template_id == "major"
        assert result.best_match.root == 0
        assert result.best_match.match_quality == 1.0
        assert result.best_match.display_name == "C"
        assert result.confidence == 1.0

    def test_e_minor(self, analyzer):
        result = analyzer.analyze_chord(E_MINOR)

        assert result.best_match.template_id == "minor"
        assert result.best_match.root == 4
        assert result.best_match.display_name == "Em"

    def test_g_dominant_seventh(self, analyzer):
        result = analyzer.analyze_chord(G_DOMINANT7)

        assert result.best_match.template_id == "dominant7"
        assert result.best_match.root == 7
        assert result.best_match.display_name == "G7"
        assert result.confidence == 1.0

    def test_order_and_duplicates_do_not_matter(self, analyzer):
        result = analyzer.analyze_chord([47, 40, 52, 44, 40])
        assert result.pitch_classes == [0, 4, 7]
        assert result.best_match.display_name == "C"

    def test_candidates_sorted_by_quality(self, analyzer):
        result = analyzer.analyze_chord(C_MAJOR)
        qualities = [m.match_quality for m in result.candidate_matches]
        assert qualities == sorted(qualities, reverse=True)
        assert result.candidate_matches[0] is result.best_match

    def test_raw_number_examples_spell_other_chords(self, analyzer):
        """40-43-47 is C-Eb-G; 47-50-53-56 stacks minor thirds."""
        assert analyzer.analyze_chord([40, 43, 47]).best_match.display_name == "Cm"
        assert analyzer.analyze_chord([43, 47, 50]).best_match.display_name == "D#"

        stacked = analyzer.analyze_chord([47, 50, 53, 56])
        assert stacked.best_match.template_id == "diminished"
        assert stacked.best_match.match_quality == pytest.approx(0.9)


class TestUnanalyzableInput:
    """Test structured failures and precondition errors."""

    @pytest.mark.parametrize("notes", [[40], [1], [200], [-3]])
    def test_single_note_is_not_analyzable(self, analyzer, notes):
        result = analyzer.analyze_chord(notes)
        assert result.success is False
        assert result.best_match is None
        assert result.error

    def test_octave_doubling_is_not_analyzable(self, analyzer):
        result = analyzer.analyze_chord([40, 52, 64])
        assert result.success is False
        assert result.pitch_classes == [0]

    def test_no_match_is_not_an_error(self, analyzer):
        result = analyzer.analyze_chord([40, 41])  # C, C#

        assert result.success
        assert result.best_match is None
        assert result.confidence == 0.0
        assert [s.chord for s in result.suggestions] == ["C", "Am", "F", "G"]
        assert len(analyzer.progression()) == 0

    def test_structurally_invalid_input_raises(self, analyzer):
        with pytest.raises(InvalidInputError):
            analyzer.analyze_chord([])
        with pytest.raises(InvalidInputError):
            analyzer.analyze_chord("40,44,47")
        with pytest.raises(InvalidInputError):
            analyzer.analyze_chord([40, "44"])
        with pytest.raises(InvalidInputError):
            analyzer.analyze_chord(None)

    def test_out_of_range_note_raises(self, analyzer):
        with pytest.raises(NoteRangeError):
            analyzer.analyze_chord([40, 100])

    def test_is_analyzable(self):
        assert is_analyzable(C_MAJOR)
        assert not is_analyzable([40])
        assert not is_analyzable([40, 52])
        assert not is_analyzable([40, 999])


class TestMatchingModes:
    """Test strict versus flexible matching."""

    def test_compare_to_input_flexible(self):
        accepted, quality, missing, extra = compare_to_input(
            frozenset({0, 4, 7}), frozenset({0, 4, 7, 2}), strict_mode=False
        )
        assert accepted
        assert quality == pytest.approx(0.9)
        assert missing == []
        assert extra == [2]

    def test_compare_to_input_low_coverage_rejected(self):
        accepted, _, missing, _ = compare_to_input(
            frozenset({0, 4, 7, 10}), frozenset({0, 4}), strict_mode=False
        )
        assert not accepted
        assert missing == [7, 10]

    def test_strict_mode_requires_exact_set(self, analyzer):
        strict = AnalysisOptions(strict_mode=True)

        exact = analyzer.analyze_chord(C_MAJOR, strict)
        assert [(m.template_id, m.root) for m in exact.candidate_matches] == [("major", 0)]

        with_extra = analyzer.analyze_chord(C_MAJOR + [54], strict)  # add D
        assert with_extra.best_match.template_id == "add9"

    def test_strict_matches_are_perfect_flexible_matches(self, analyzer):
        strict = AnalysisOptions(strict_mode=True)
        note_sets = [C_MAJOR, E_MINOR, G_DOMINANT7, [40, 42, 47], [40, 43, 46], [40, 44, 48]]

        for notes in note_sets:
            strict_hits = {
                (m.template_id, m.root)
                for m in analyzer.analyze_chord(notes, strict).candidate_matches
            }
            flexible_perfect = {
                (m.template_id, m.root)
                for m in analyzer.analyze_chord(notes).candidate_matches
                if m.match_quality == 1.0
            }
            assert strict_hits <= flexible_perfect, notes

    def test_context_key_scores_candidates(self, analyzer):
        result = analyzer.analyze_chord([40, 47], AnalysisOptions(context_key=0))

        assert result.best_match.display_name == "C"
        assert result.best_match.context_score == pytest.approx(0.95)
        keys = [(m.match_quality, m.context_score) for m in result.candidate_matches]
        assert keys == sorted(keys, reverse=True)

    def test_context_score_breaks_quality_ties(self, analyzer):
        """C-Eb fits Cm and G# equally; the tonic/dominant weighting favors G#."""
        plain = analyzer.analyze_chord([40, 43])
        assert plain.best_match.display_name == "Cm"

        result = analyzer.analyze_chord([40, 43], AnalysisOptions(context_key=0))

        assert result.best_match.display_name == "G#"
        assert result.best_match.context_score == pytest.approx(0.95)
        tied = [m for m in result.candidate_matches if m.match_quality == pytest.approx(2 / 3)]
        assert [m.display_name for m in tied][:2] == ["G#", "Cm"]


class TestExtensionsAndInversions:
    """Test extension detection and inversion reporting."""

    def test_add9_reports_ninth(self, analyzer):
        result = analyzer.analyze_chord([40, 44, 47, 54])

        assert result.best_match.template_id == "add9"
        assert [(e.type, e.interval) for e in result.extensions] == [("9", 2)]

    def test_major_seventh_with_ninth(self, analyzer):
        result = analyzer.analyze_chord([40, 44, 47, 51, 54])

        assert result.best_match.display_name == "Cmaj7"
        assert [e.name for e in result.extensions] == ["ninth"]
        # 0.9 quality, -0.1 for five pitch classes, +0.1 consonant
        assert result.confidence == pytest.approx(0.9)

    def test_dense_input_confidence_penalized(self, analyzer):
        """Six pitch classes: 0.8 quality, -0.2 complexity, +0.1 consonant."""
        result = analyzer.analyze_chord([40, 42, 44, 47, 49, 51])

        assert result.best_match.display_name == "Cmaj7"
        assert result.best_match.match_quality == pytest.approx(0.8)
        assert result.confidence == pytest.approx(0.7)

    def test_calculate_confidence_penalty_steps(self, analyzer):
        major = analyzer.analyze_chord(C_MAJOR).best_match
        dominant = analyzer.analyze_chord(G_DOMINANT7).best_match

        assert analyzer.calculate_confidence(major, [0, 4, 7, 11]) == 1.0
        assert analyzer.calculate_confidence(major, [0, 2, 4, 7, 11]) == pytest.approx(1.0)
        assert analyzer.calculate_confidence(major, [0, 2, 4, 7, 9, 11]) == pytest.approx(0.9)
        assert analyzer.calculate_confidence(major, list(range(8))) == pytest.approx(0.7)
        assert analyzer.calculate_confidence(dominant, [0, 2, 4, 7, 9, 11]) == pytest.approx(0.8)
        assert analyzer.calculate_confidence(None, [0, 4, 7]) == 0.0

    def test_inversion_always_root_position(self, analyzer):
        result = analyzer.analyze_chord([44, 47, 52])  # E4 G4 C5
        assert result.best_match.display_name == "C"
        assert len(result.inversions) == 1
        assert result.inversions[0].type == "root_position"
        assert result.inversions[0].bass == 0

    def test_options_disable_extras(self, analyzer):
        options = AnalysisOptions(include_inversions=False, include_extensions=False)
        result = analyzer.analyze_chord([40, 44, 47, 54], options)
        assert result.inversions == []
        assert result.extensions == []


class TestSuggestions:
    """Test functional and circle-of-fifths suggestions."""

    def test_tonic_suggestions(self, analyzer):
        result = analyzer.analyze_chord(C_MAJOR)
        chords = [s.chord for s in result.suggestions]

        assert chords[:3] == ["F", "Am", "G"]
        assert len(chords) == 5

    def test_dominant_suggestions(self, analyzer):
        result = analyzer.analyze_chord(G_DOMINANT7)
        assert [s.chord for s in result.suggestions][:3] == ["C", "F", "Am"]
        assert result.suggestions[0].function == "tonic"

    def test_minor_subdominant_suggests_key_of_whole_step_below(self, analyzer):
        """Dm7 is ii in C: go to G, resolve to C, or step to Em."""
        result = analyzer.analyze_chord([42, 45, 49, 52])

        assert result.best_match.display_name == "Dm7"
        assert result.best_match.primary_function == "subdominant"
        assert [s.chord for s in result.suggestions] == ["G", "C", "Em", "A", "G"]
        assert [s.function for s in result.suggestions[:3]] == ["dominant", "tonic", "iii"]

    def test_circle_of_fifths(self, analyzer):
        neighbors = analyzer.circle_of_fifths_suggestions(0)
        assert [s.chord for s in neighbors] == ["G", "F"]

        neighbors = analyzer.circle_of_fifths_suggestions(5)
        assert [s.chord for s in neighbors] == ["C", "A#"]

    def test_suggestion_limit(self, database):
        analyzer = ChordAnalyzer(database, suggestion_limit=2)
        result = analyzer.analyze_chord(C_MAJOR)
        assert [s.chord for s in result.suggestions] == ["F", "Am"]


class TestProgressionAndScales:
    """Test progression history and scale ranking."""

    def test_progression_records_best_matches(self, analyzer):
        for notes in (C_MAJOR, E_MINOR, G_DOMINANT7):
            analyzer.analyze_chord(notes)

        assert [m.display_name for m in analyzer.progression()] == ["C", "Em", "G7"]

        analyzer.clear_progression()
        assert analyzer.progression() == []

    def test_progression_is_bounded(self, database):
        analyzer = ChordAnalyzer(database, history=ProgressionHistory(capacity=8))
        for _ in range(5):
            analyzer.analyze_chord(C_MAJOR)
            analyzer.analyze_chord(E_MINOR)

        progression = analyzer.progression()
        assert len(progression) == 8
        assert progression[0].display_name == "C"
        assert progression[-1].display_name == "Em"

    def test_progression_copy_is_detached(self, analyzer):
        analyzer.analyze_chord(C_MAJOR)
        snapshot = analyzer.progression()
        snapshot.clear()
        assert len(analyzer.progression()) == 1

    def test_rank_scales_for_c_major_triad(self, analyzer):
        fits = analyzer.rank_scales(C_MAJOR, limit=20)

        assert fits[0].scale.id == "pentatonic_major"
        assert fits[0].root == 0
        assert all(fit.coverage == 1.0 for fit in fits)
        assert "C Major (Ionian)" in [fit.display_name for fit in fits]

    def test_rank_scales_partial_coverage(self, analyzer):
        fits = analyzer.rank_scales([40, 41, 42], min_coverage=0.5, limit=132)
        assert fits
        assert all(fit.coverage >= 0.5 for fit in fits)
        assert fits[0].coverage >= fits[-1].coverage

    def test_stats(self, analyzer):
        analyzer.analyze_chord(C_MAJOR)
        stats = analyzer.get_stats()

        assert stats["chords_in_database"] == 10
        assert stats["current_progression"] == 1
        assert stats["last_analysis_confidence"] == 1.0
