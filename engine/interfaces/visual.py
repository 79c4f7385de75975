"""Visual Feedback Sink interface."""

from abc import ABC, abstractmethod


class IVisualFeedbackSink(ABC):
    """Receives note events for visualization (fire-and-forget)."""

    @abstractmethod
    def create_stars(
        self, note_numbers: list[int], duration_seconds: float, intensity: float
    ) -> None:
        """Visualize a simultaneous note onset.

        Args:
            note_numbers: Note numbers (1-88)
            duration_seconds: How long the notes sound
            intensity: Visual intensity (0.0-1.0), typically the velocity
        """
        pass
