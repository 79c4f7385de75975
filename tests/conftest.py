"""Shared fixtures: recording collaborators and engine configuration."""

from typing import Optional

import pytest

from engine.config import GalaxyConfig
from engine.exceptions import ToneSourceError
from engine.interfaces import IToneSource, IVisualFeedbackSink
from theory.chord_analyzer import ChordAnalyzer
from theory.harmony_database import HarmonyDatabase


class RecordingToneSource(IToneSource):
    """Tone Source that records every call.

    Steps listed in fail_on_calls (1-based call numbers) raise
    ToneSourceError instead of playing. Every successful call is also
    appended to events in arrival order.
    """

    def __init__(self, fail_on_calls: tuple[int, ...] = ()):
        self.played: list[tuple[list[int], Optional[float], float]] = []
        self.stopped_notes: list[int] = []
        self.stop_all_calls = 0
        self.events: list[tuple] = []
        self.fail_on_calls = fail_on_calls
        self._calls = 0

    async def play_notes(self, note_numbers, duration_seconds, velocity):
        self._calls += 1
        if self._calls in self.fail_on_calls:
            raise ToneSourceError(f"Rejected call {self._calls}")
        self.played.append((list(note_numbers), duration_seconds, velocity))
        self.events.append(("play", list(note_numbers)))
        return list(note_numbers)

    def stop_note(self, note_number):
        self.stopped_notes.append(note_number)
        self.events.append(("stop_note", note_number))

    def stop_all(self):
        self.stop_all_calls += 1
        self.events.append(("stop_all",))


class RecordingVisualSink(IVisualFeedbackSink):
    """Visual Feedback Sink that records every star burst."""

    def __init__(self):
        self.stars: list[tuple[list[int], float, float]] = []

    def create_stars(self, note_numbers, duration_seconds, intensity):
        self.stars.append((list(note_numbers), duration_seconds, intensity))


@pytest.fixture
def tone_source() -> RecordingToneSource:
    return RecordingToneSource()


@pytest.fixture
def failing_tone_source() -> RecordingToneSource:
    """Tone Source that rejects its first play_notes call."""
    return RecordingToneSource(fail_on_calls=(1,))


@pytest.fixture
def visual_sink() -> RecordingVisualSink:
    return RecordingVisualSink()


@pytest.fixture
def database() -> HarmonyDatabase:
    return HarmonyDatabase()


@pytest.fixture
def analyzer(database) -> ChordAnalyzer:
    return ChordAnalyzer(database)


@pytest.fixture
def fast_config() -> GalaxyConfig:
    """Non-looping configuration with a very short step (2.5ms)."""
    return GalaxyConfig(
        default_bpm=6000.0,
        loop=False,
        total_steps=16,
        max_steps_per_track=64,
        analyze_steps=True,
    )
