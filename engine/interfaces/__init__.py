"""Collaborator interfaces for the Galaxy Piano engine.

Abstract Base Classes (ABCs) defining the contracts the sequencer needs
from the Tone Source (audio output) and the Visual Feedback Sink.
"""

from engine.interfaces.tone_source import IToneSource
from engine.interfaces.visual import IVisualFeedbackSink

__all__ = [
    "IToneSource",
    "IVisualFeedbackSink",
]
