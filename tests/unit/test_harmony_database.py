"""Unit tests for the chord and scale template tables."""

import dataclasses

import pytest

from theory.harmony_database import CHORD_TEMPLATES, ChordTemplate, HarmonyDatabase


class TestHarmonyDatabase:
    """Test template lookup."""

    def test_default_tables(self, database):
        assert database.chord_count == 10
        assert database.scale_count == 11
        ids = [t.id for t in database.all_chord_templates()]
        assert ids[:3] == ["major", "minor", "diminished"]
        assert "add9" in ids

    def test_lookup_by_id(self, database):
        major = database.chord_template("major")
        assert major.symbol == ""
        assert major.intervals == (0, 4, 7)
        assert major.primary_function == "tonic"

        assert database.chord_template("dominant7").symbol == "7"
        assert database.scale_template("blues").intervals == (0, 3, 5, 6, 7, 10)

    def test_unknown_id_lists_available(self, database):
        with pytest.raises(KeyError) as exc_info:
            database.chord_template("power")
        assert "major" in str(exc_info.value)

        with pytest.raises(KeyError):
            database.scale_template("bebop")

    def test_transposed_pitch_classes(self, database):
        add9 = database.chord_template("add9")
        assert add9.pitch_classes(0) == frozenset({0, 2, 4, 7})
        assert database.chord_template("major").pitch_classes(7) == frozenset({7, 11, 2})

    def test_templates_are_immutable(self, database):
        with pytest.raises(dataclasses.FrozenInstanceError):
            database.chord_template("major").symbol = "M"

    def test_custom_tables(self):
        power = ChordTemplate("power", "Power Chord", "5", (0, 7), "consonant", ("tonic",))
        db = HarmonyDatabase(chord_templates=(power,), scale_templates=())
        assert db.chord_count == 1
        assert db.scale_count == 0
        assert db.chord_template("power").display_label == "Power Chord"
        assert "chords=1" in repr(db)

    def test_every_template_has_a_primary_function(self):
        for template in CHORD_TEMPLATES:
            assert template.harmonic_functions
            assert template.intervals[0] == 0
