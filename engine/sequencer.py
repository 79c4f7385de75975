"""Sequencer facade: owns the pattern and drives the step scheduler.

Textual input is parsed into a track, the scheduler plays the pattern, and
audible steps can optionally be fed to the chord analyzer.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Optional

from theory.chord_analyzer import ChordAnalysisResult, ChordAnalyzer, is_analyzable
from theory.input_parser import (
    InputValidation,
    ParsedInput,
    parse_musical_input,
    validate_musical_input,
)
from theory.options import ParseOptions

from engine.config import GalaxyConfig, get_config
from engine.exceptions import InvalidInputError, SequencerError, TrackIndexError
from engine.interfaces import IToneSource, IVisualFeedbackSink
from engine.metrics import SchedulerMetrics
from engine.pattern import Pattern, ResolvedNote, Step, Track, resolve_step
from engine.scheduler import StepScheduler, TransportState

logger = logging.getLogger(__name__)


@dataclass
class SequenceResult:
    """Outcome of writing parsed input into a track."""

    success: bool
    track_index: int
    steps_written: int = 0
    parsed: Optional[ParsedInput] = None
    validation: Optional[InputValidation] = None
    warnings: list[str] = field(default_factory=list)
    error: Optional[str] = None

    def to_json(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "track_index": self.track_index,
            "steps_written": self.steps_written,
            "parsed": self.parsed.to_json() if self.parsed else None,
            "validation": self.validation.to_json() if self.validation else None,
            "warnings": list(self.warnings),
            "error": self.error,
        }


class Sequencer:
    """Multi-track step sequencer.

    Pattern writes and step resolution share one lock so that overwriting a
    track never interleaves with a tick reading it.
    """

    def __init__(
        self,
        tone_source: IToneSource,
        visual_sink: Optional[IVisualFeedbackSink] = None,
        analyzer: Optional[ChordAnalyzer] = None,
        config: Optional[GalaxyConfig] = None,
        metrics: Optional[SchedulerMetrics] = None,
    ):
        """Initialize sequencer with a default empty pattern.

        Args:
            tone_source: Audio output collaborator
            visual_sink: Visual feedback collaborator
            analyzer: Chord analyzer fed with audible steps when
                config.analyze_steps is set
            config: Engine configuration (defaults to get_config())
            metrics: Scheduler metrics collector
        """
        self.config = config or get_config()
        self.analyzer = analyzer
        self.metrics = metrics or SchedulerMetrics(window=self.config.metrics_window)
        self.parse_options = ParseOptions(
            default_octave=self.config.default_octave,
            default_duration=self.config.default_duration,
            default_velocity=self.config.default_velocity,
        )

        self._lock = threading.Lock()
        self.pattern = Pattern.create_default(
            bpm=self.config.default_bpm,
            step_count=self.config.max_steps_per_track,
            track_count=self.config.default_track_count,
            velocity=self.config.default_velocity,
            duration=self.config.default_duration,
            octave_bias=self.config.default_octave,
        )
        self.last_step_analysis: Optional[ChordAnalysisResult] = None

        listener = self._analyze_step if analyzer is not None and self.config.analyze_steps else None
        self.scheduler = StepScheduler(
            resolver=self._resolve_step,
            tone_source=tone_source,
            visual_sink=visual_sink,
            bpm=self.pattern.bpm,
            quantization=self.config.quantization,
            total_steps=self.config.total_steps,
            loop=self.config.loop,
            metrics=self.metrics,
            step_listener=listener,
        )

        logger.info(
            f"Sequencer initialized ({len(self.pattern.tracks)} tracks, "
            f"{self.pattern.step_count} steps per track)"
        )

    # Pattern editing

    def create_sequence_from_input(self, text: str, track_index: int) -> SequenceResult:
        """Parse text and overwrite a track with the result.

        Individual notes fill steps 0, 1, 2, ...; chords follow in the
        steps after the last note. Entries past the end of the track land
        on its final step.

        Args:
            text: Musical input (see theory.input_parser)
            track_index: Target track

        Returns:
            SequenceResult; success=False with error on a bad track index or
            when parsing/validation fails (the track is left untouched)
        """
        if not self.has_track(track_index):
            return SequenceResult(
                success=False,
                track_index=track_index,
                error=f"Invalid track index: {track_index}",
            )

        parsed = parse_musical_input(text, self.parse_options)
        if not parsed.success:
            return SequenceResult(
                success=False, track_index=track_index, parsed=parsed, error=parsed.error
            )

        validation = validate_musical_input(parsed)
        if not validation.valid:
            return SequenceResult(
                success=False,
                track_index=track_index,
                parsed=parsed,
                validation=validation,
                error="; ".join(validation.errors) or "Invalid musical input",
            )

        entries: list[Step] = [
            Step(note_numbers=[note.number], velocity=note.velocity, duration=note.duration, active=True)
            for note in parsed.notes
        ]
        entries += [
            Step(note_numbers=chord.note_numbers, velocity=chord.velocity, duration=chord.duration, active=True)
            for chord in parsed.chords
        ]

        result = SequenceResult(
            success=True,
            track_index=track_index,
            parsed=parsed,
            validation=validation,
            warnings=list(parsed.warnings) + list(validation.warnings),
        )

        with self._lock:
            track = self.pattern.track(track_index)
            track.clear()
            last = len(track.steps) - 1

            for i, entry in enumerate(entries):
                step = track.steps[min(i, last)]
                step.note_numbers = list(entry.note_numbers)
                step.velocity = entry.velocity
                step.duration = entry.duration
                step.active = True

            self.pattern.touch()
            result.steps_written = len(track.active_steps())

        if len(entries) > len(track.steps):
            result.warnings.append(
                f"{len(entries) - len(track.steps)} entries exceed the track length "
                f"and were placed on the final step"
            )

        logger.info(
            f"Track {track_index} sequenced: {len(parsed.notes)} notes, {len(parsed.chords)} chords",
            extra={"track_index": track_index, "note_count": len(parsed.all_note_numbers())},
        )

        return result

    def clear_track(self, track_index: int) -> None:
        """Deactivate every step of a track.

        Raises:
            TrackIndexError: If the track does not exist
        """
        with self._lock:
            self.pattern.track(track_index).clear()
            self.pattern.touch()

    def add_track(self) -> Track:
        """Append an empty track.

        Raises:
            SequencerError: If the pattern already has max_tracks tracks
        """
        with self._lock:
            if len(self.pattern.tracks) >= self.config.max_tracks:
                raise SequencerError(f"Maximum of {self.config.max_tracks} tracks reached")

            track = Track.empty(
                len(self.pattern.tracks),
                self.pattern.step_count,
                self.config.default_velocity,
                self.config.default_duration,
                self.config.default_octave,
            )
            self.pattern.tracks.append(track)
            self.pattern.touch()

        logger.info(f"Added track {track.index}", extra={"track_index": track.index})
        return track

    def set_track_muted(self, track_index: int, muted: bool) -> None:
        with self._lock:
            self.pattern.track(track_index).muted = bool(muted)

    def set_track_volume(self, track_index: int, volume: float) -> None:
        """Set a track's volume.

        Raises:
            InvalidInputError: If volume is outside [0, 1]
            TrackIndexError: If the track does not exist
        """
        if not (0.0 <= volume <= 1.0):
            raise InvalidInputError(f"Invalid volume: {volume} (must be 0.0-1.0)")
        with self._lock:
            self.pattern.track(track_index).volume = float(volume)

    def track_timeline(self, track_index: int) -> list[dict[str, Any]]:
        """Active steps of a track with their start time in beats.

        Raises:
            TrackIndexError: If the track does not exist
        """
        beats_per_step = 4 / self.scheduler.quantization
        with self._lock:
            track = self.pattern.track(track_index)
            return [
                {"step": i, "start_beat": i * beats_per_step, **step.to_json()}
                for i, step in track.active_steps()
            ]

    def export_pattern(self) -> dict[str, Any]:
        with self._lock:
            return self.pattern.to_dict()

    def import_pattern(self, data: dict[str, Any]) -> Pattern:
        """Replace the current pattern with a deserialized one.

        Playback is stopped first.

        Raises:
            InvalidInputError: If the document is malformed
        """
        pattern = Pattern.from_dict(data)
        if not pattern.tracks:
            raise InvalidInputError("Pattern has no tracks")

        self.stop_sequence()
        with self._lock:
            self.pattern = pattern
            self.scheduler.set_bpm(pattern.bpm)

        logger.info(f"Imported pattern {pattern.id} ({len(pattern.tracks)} tracks)")
        return pattern

    # Transport

    async def play_sequence(self) -> TransportState:
        """Toggle playback: stop if playing, otherwise start from step 0."""
        if self.scheduler.is_playing():
            self.stop_sequence()
        else:
            await self.scheduler.start()
        return self.scheduler.state

    def stop_sequence(self) -> None:
        """Stop playback, rewind to step 0 and silence all notes."""
        self.scheduler.stop()

    def pause_sequence(self) -> None:
        self.scheduler.pause()

    async def resume_sequence(self) -> None:
        await self.scheduler.resume()

    def set_bpm(self, bpm: float) -> None:
        """Change tempo; takes effect from the next tick."""
        self.scheduler.set_bpm(bpm)
        with self._lock:
            self.pattern.bpm = self.scheduler.bpm
        logger.info(f"Tempo set to {self.scheduler.bpm} BPM")

    def set_loop(self, loop: bool) -> None:
        self.scheduler.loop = bool(loop)

    # Internals

    def has_track(self, track_index: Any) -> bool:
        try:
            self.pattern.track(track_index)
        except TrackIndexError:
            return False
        return True

    def _resolve_step(self, step_index: int) -> list[ResolvedNote]:
        with self._lock:
            return resolve_step(self.pattern, step_index)

    def _analyze_step(self, step_index: int, note_numbers: list[int]) -> None:
        if self.analyzer is None or not is_analyzable(note_numbers):
            return

        result = self.analyzer.analyze_chord(note_numbers)
        self.last_step_analysis = result
        if result.best_match is not None:
            logger.debug(
                f"Step {step_index} chord: {result.best_match.display_name}",
                extra={"step": step_index},
            )

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            tracks = [
                {
                    "index": track.index,
                    "name": track.name,
                    "muted": track.muted,
                    "volume": track.volume,
                    "active_steps": len(track.active_steps()),
                }
                for track in self.pattern.tracks
            ]

        return {
            "pattern_id": self.pattern.id,
            "transport": self.scheduler.get_status(),
            "tracks": tracks,
            "metrics": self.metrics.get_snapshot(),
            "last_step_chord": (
                self.last_step_analysis.best_match.display_name
                if self.last_step_analysis and self.last_step_analysis.best_match
                else None
            ),
        }
