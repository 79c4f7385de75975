"""Pattern/Track/Step data model for the step sequencer.

Steps are created once per track and mutated in place; a step is never
deleted, only zeroed (inactive, no notes).
"""

import time
from dataclasses import dataclass, field
from typing import Any, Optional

from theory.pitch import validate_note

from engine.exceptions import InvalidInputError, TrackIndexError

DEFAULT_TRACK_VOLUME = 0.7


@dataclass
class Step:
    """One quantized slot of a track.

    Attributes:
        note_numbers: Notes sounding at this step (may be empty)
        velocity: Step velocity (0.0-1.0)
        duration: Note length in beats
        active: Silent when False, regardless of note_numbers
    """

    note_numbers: list[int] = field(default_factory=list)
    velocity: float = 0.7
    duration: float = 0.5
    active: bool = False

    def clear(self) -> None:
        self.note_numbers = []
        self.active = False

    def is_audible(self) -> bool:
        return self.active and bool(self.note_numbers)

    def to_json(self) -> dict[str, Any]:
        return {
            "note_numbers": list(self.note_numbers),
            "velocity": self.velocity,
            "duration": self.duration,
            "active": self.active,
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "Step":
        """Build a step from its to_json() form.

        Raises:
            InvalidInputError: If a note, the velocity or the duration is invalid
            NoteRangeError: If a note number is outside [1, 88]
        """
        if not isinstance(data, dict):
            raise InvalidInputError(f"Step must be a mapping, got {type(data).__name__}")

        note_numbers = data.get("note_numbers", [])
        if not isinstance(note_numbers, list):
            raise InvalidInputError(f"note_numbers must be a list, got {note_numbers!r}")

        velocity = float(data.get("velocity", 0.7))
        if not (0.0 <= velocity <= 1.0):
            raise InvalidInputError(f"Invalid velocity: {velocity} (must be 0.0-1.0)")

        duration = float(data.get("duration", 0.5))
        if duration <= 0:
            raise InvalidInputError(f"Invalid duration: {duration} (must be > 0)")

        return cls(
            note_numbers=[validate_note(n) for n in note_numbers],
            velocity=velocity,
            duration=duration,
            active=bool(data.get("active", False)),
        )


@dataclass
class Track:
    """A fixed-length sequence of steps with mix settings."""

    id: str
    index: int
    name: str
    steps: list[Step]
    muted: bool = False
    volume: float = DEFAULT_TRACK_VOLUME
    octave_bias: int = 4

    def __post_init__(self) -> None:
        if not (0.0 <= self.volume <= 1.0):
            raise InvalidInputError(f"Invalid volume: {self.volume} (must be 0.0-1.0)")

    @classmethod
    def empty(
        cls,
        index: int,
        step_count: int = 64,
        velocity: float = 0.7,
        duration: float = 0.5,
        octave_bias: int = 4,
    ) -> "Track":
        """Create a track with step_count inactive steps."""
        return cls(
            id=f"track-{index}",
            index=index,
            name=f"Track {index + 1}",
            steps=[Step(velocity=velocity, duration=duration) for _ in range(step_count)],
            octave_bias=octave_bias,
        )

    def clear(self) -> None:
        for step in self.steps:
            step.clear()

    def active_steps(self) -> list[tuple[int, Step]]:
        """(index, step) pairs for every active step, in order."""
        return [(i, step) for i, step in enumerate(self.steps) if step.active]

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "muted": self.muted,
            "volume": self.volume,
            "octave_bias": self.octave_bias,
            "steps": [step.to_json() for step in self.steps],
        }


@dataclass
class Pattern:
    """A multi-track step pattern played by the scheduler."""

    id: str
    name: str
    bpm: float
    step_count: int
    tracks: list[Track] = field(default_factory=list)
    created_at: float = field(default_factory=time.time)
    modified_at: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        if self.bpm <= 0:
            raise InvalidInputError(f"Invalid BPM: {self.bpm} (must be > 0)")

    @classmethod
    def create_default(
        cls,
        bpm: float = 120.0,
        step_count: int = 64,
        track_count: int = 4,
        velocity: float = 0.7,
        duration: float = 0.5,
        octave_bias: int = 4,
    ) -> "Pattern":
        """Create the default pattern with empty tracks.

        Returns:
            Pattern "pattern-default" with track_count empty tracks
        """
        return cls(
            id="pattern-default",
            name="New Pattern",
            bpm=bpm,
            step_count=step_count,
            tracks=[
                Track.empty(i, step_count, velocity, duration, octave_bias)
                for i in range(track_count)
            ],
        )

    def track(self, index: int) -> Track:
        """Get a track by index.

        Raises:
            TrackIndexError: If index is outside the pattern
        """
        if (
            isinstance(index, bool)
            or not isinstance(index, int)
            or not (0 <= index < len(self.tracks))
        ):
            raise TrackIndexError(
                f"Invalid track index: {index} (pattern has {len(self.tracks)} tracks)"
            )
        return self.tracks[index]

    def touch(self) -> None:
        self.modified_at = time.time()

    def active_step_count(self) -> int:
        return sum(len(track.active_steps()) for track in self.tracks)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain mapping (track index -> track with steps)."""
        return {
            "id": self.id,
            "name": self.name,
            "bpm": self.bpm,
            "step_count": self.step_count,
            "created_at": self.created_at,
            "modified_at": self.modified_at,
            "tracks": {track.index: track.to_json() for track in self.tracks},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Pattern":
        """Rebuild a pattern from to_dict() output.

        Track keys may be ints or their string form (after a JSON round
        trip) and must number the tracks 0..n-1. Short step lists are
        padded with inactive steps.

        Raises:
            InvalidInputError: If required fields are missing or malformed
        """
        if not isinstance(data, dict):
            raise InvalidInputError(f"Pattern must be a mapping, got {type(data).__name__}")

        try:
            step_count = int(data["step_count"])
            if step_count < 1:
                raise InvalidInputError(f"Invalid step_count: {step_count} (must be >= 1)")

            track_map = data.get("tracks", {})
            if not isinstance(track_map, dict):
                raise InvalidInputError("tracks must map track index to track")

            indexed: dict[int, dict[str, Any]] = {}
            for key, track_data in track_map.items():
                index = int(key)
                if index in indexed:
                    raise InvalidInputError(f"Duplicate track index: {key!r}")
                if not isinstance(track_data, dict):
                    raise InvalidInputError(f"Track {key!r} must be a mapping")
                indexed[index] = track_data

            if sorted(indexed) != list(range(len(indexed))):
                raise InvalidInputError(
                    f"Track indices must be 0..{len(indexed) - 1}, got {sorted(indexed)}"
                )

            tracks: list[Track] = []
            for index, track_data in sorted(indexed.items()):
                raw_steps = track_data.get("steps", [])
                if not isinstance(raw_steps, list):
                    raise InvalidInputError(f"Track {index} steps must be a list")
                steps = [Step.from_json(s) for s in raw_steps][:step_count]
                steps += [Step() for _ in range(step_count - len(steps))]
                tracks.append(
                    Track(
                        id=str(track_data.get("id", f"track-{index}")),
                        index=index,
                        name=str(track_data.get("name", f"Track {index + 1}")),
                        steps=steps,
                        muted=bool(track_data.get("muted", False)),
                        volume=float(track_data.get("volume", DEFAULT_TRACK_VOLUME)),
                        octave_bias=int(track_data.get("octave_bias", 4)),
                    )
                )

            pattern = cls(
                id=str(data["id"]),
                name=str(data.get("name", "Imported Pattern")),
                bpm=float(data["bpm"]),
                step_count=step_count,
                tracks=tracks,
            )
            if "created_at" in data:
                pattern.created_at = float(data["created_at"])
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            if isinstance(e, InvalidInputError):
                raise
            raise InvalidInputError(f"Invalid pattern document: {e}") from e

        return pattern


@dataclass(frozen=True)
class ResolvedNote:
    """A note collected from one track at one step."""

    note_number: int
    effective_velocity: float
    duration: float
    track_index: int


def resolve_step(pattern: Pattern, step_index: int) -> list[ResolvedNote]:
    """Collect the notes sounding at step_index across non-muted tracks.

    Effective velocity is the step velocity scaled by the track volume.
    """
    collected: list[ResolvedNote] = []

    for track in pattern.tracks:
        if track.muted:
            continue

        step: Optional[Step] = track.steps[step_index] if step_index < len(track.steps) else None
        if step is None or not step.is_audible():
            continue

        for note_number in step.note_numbers:
            collected.append(
                ResolvedNote(
                    note_number=note_number,
                    effective_velocity=step.velocity * track.volume,
                    duration=step.duration,
                    track_index=track.index,
                )
            )

    return collected
