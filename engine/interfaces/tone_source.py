"""Tone Source interface: decides nothing, only sounds what it is told."""

from abc import ABC, abstractmethod
from typing import Optional


class IToneSource(ABC):
    """Note-on/off sink for audio output.

    Implementations manage their own polyphony ceiling and must not block
    the caller for longer than it takes to schedule the notes.
    """

    @abstractmethod
    async def play_notes(
        self, note_numbers: list[int], duration_seconds: Optional[float], velocity: float
    ) -> list[int]:
        """Start one or more notes simultaneously.

        Args:
            note_numbers: Note numbers (1-88)
            duration_seconds: Note length, or None to sustain until stopped
            velocity: Note velocity (0.0-1.0)

        Returns:
            Note numbers that were actually started

        Raises:
            ToneSourceError: If the notes could not be started
        """
        pass

    @abstractmethod
    def stop_note(self, note_number: int) -> None:
        """Release a single sounding note.

        Args:
            note_number: Note number (1-88)
        """
        pass

    @abstractmethod
    def stop_all(self) -> None:
        """Silence every sounding note."""
        pass
