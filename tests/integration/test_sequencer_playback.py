"""
Integration test: sequencer playback end to end.

Writes tracks from textual input, plays the pattern on the real step clock
(at a very fast tempo) and checks what reached the Tone Source, the Visual
Feedback Sink and the chord analyzer.
"""

import asyncio

import pytest

from engine.scheduler import TransportState
from engine.sequencer import Sequencer


@pytest.fixture
def sequencer(tone_source, visual_sink, analyzer, fast_config) -> Sequencer:
    return Sequencer(tone_source, visual_sink, analyzer=analyzer, config=fast_config)


async def _play_once(sequencer: Sequencer) -> None:
    state = await sequencer.play_sequence()
    assert state is TransportState.PLAYING
    await asyncio.wait_for(sequencer.scheduler.wait_stopped(), timeout=2.0)


class TestPlayback:
    """Test one non-looping pass over the pattern."""

    @pytest.mark.asyncio
    async def test_active_steps_emitted_in_order(self, sequencer, tone_source, visual_sink):
        result = sequencer.create_sequence_from_input("40,44,47", 0)
        assert result.success

        await _play_once(sequencer)

        assert [notes for notes, _, _ in tone_source.played] == [[40], [44], [47]]
        assert len(visual_sink.stars) == 3
        assert sequencer.scheduler.state is TransportState.STOPPED
        assert sequencer.scheduler.current_step == 0

        snapshot = sequencer.metrics.get_snapshot()
        print(f"Playback metrics: {snapshot}")
        assert snapshot["ticks"] == 16
        assert snapshot["emitted_steps"] == 3
        assert snapshot["failed_emissions"] == 0

    @pytest.mark.asyncio
    async def test_tracks_merge_per_step(self, sequencer, tone_source):
        """Notes on the same step of different tracks sound together."""
        sequencer.create_sequence_from_input("40,41", 0)
        sequencer.create_sequence_from_input("44,45", 1)
        sequencer.create_sequence_from_input("47", 2)
        sequencer.set_track_muted(2, True)

        await _play_once(sequencer)

        assert [notes for notes, _, _ in tone_source.played] == [[40, 44], [41, 45]]

    @pytest.mark.asyncio
    async def test_steps_beyond_playback_length_are_silent(self, sequencer, tone_source):
        """Only the first total_steps steps of a track are played."""
        text = ",".join(str(n) for n in range(30, 50))
        sequencer.create_sequence_from_input(text, 0)

        await _play_once(sequencer)

        assert len(tone_source.played) == 16
        assert tone_source.played[-1][0] == [45]

    @pytest.mark.asyncio
    async def test_stop_twice_is_safe(self, sequencer, tone_source):
        sequencer.create_sequence_from_input("40,44,47", 0)
        sequencer.set_loop(True)

        await sequencer.play_sequence()
        await asyncio.sleep(0.01)
        sequencer.stop_sequence()
        sequencer.stop_sequence()
        await sequencer.scheduler.drain()

        assert sequencer.scheduler.state is TransportState.STOPPED
        assert sequencer.scheduler.current_step == 0
        assert tone_source.stop_all_calls == 2

    @pytest.mark.asyncio
    async def test_play_toggles_off(self, sequencer):
        sequencer.set_loop(True)

        assert await sequencer.play_sequence() is TransportState.PLAYING
        assert await sequencer.play_sequence() is TransportState.STOPPED

    @pytest.mark.asyncio
    async def test_pause_and_resume_keep_position(self, sequencer, tone_source):
        sequencer.create_sequence_from_input(",".join(["40"] * 16), 0)
        sequencer.set_bpm(600)  # 25ms steps

        await sequencer.play_sequence()
        await asyncio.sleep(0.06)
        sequencer.pause_sequence()
        await sequencer.scheduler.drain()

        paused_at = sequencer.scheduler.current_step
        played = len(tone_source.played)
        await asyncio.sleep(0.02)
        assert len(tone_source.played) == played

        await sequencer.resume_sequence()
        await asyncio.wait_for(sequencer.scheduler.wait_stopped(), timeout=2.0)

        assert 0 < paused_at < 16
        assert len(tone_source.played) == 16


class TestStepAnalysis:
    """Test chord analysis of audible steps during playback."""

    @pytest.mark.asyncio
    async def test_chord_steps_are_analyzed(self, sequencer, analyzer):
        sequencer.create_sequence_from_input("40+44+47, 44+47+51", 0)

        await _play_once(sequencer)

        assert sequencer.last_step_analysis is not None
        assert sequencer.last_step_analysis.best_match.display_name == "Em"
        assert [m.display_name for m in analyzer.progression()] == ["C", "Em"]
        assert sequencer.get_stats()["last_step_chord"] == "Em"

    @pytest.mark.asyncio
    async def test_single_notes_are_not_analyzed(self, sequencer, analyzer):
        sequencer.create_sequence_from_input("40,44,47", 0)

        await _play_once(sequencer)

        assert sequencer.last_step_analysis is None
        assert analyzer.progression() == []


class TestPatternRoundTrip:
    """Test that an exported pattern plays identically after import."""

    @pytest.mark.asyncio
    async def test_export_then_import_replays(self, sequencer, tone_source):
        sequencer.create_sequence_from_input("40, 44+47@1.0v0.9", 0)
        document = sequencer.export_pattern()

        sequencer.clear_track(0)
        sequencer.import_pattern(document)
        await _play_once(sequencer)

        assert [notes for notes, _, _ in tone_source.played] == [[40], [44, 47]]
        _, duration, velocity = tone_source.played[1]
        assert duration == 1.0
        assert velocity == pytest.approx(0.9 * 0.7)
