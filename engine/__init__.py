"""Galaxy Piano Engine - Step sequencing and host runtime.

This module contains the pattern model, the step scheduler, the sequencer
facade, the WebSocket note stream and the FastAPI host application.
"""

from engine.config import GalaxyConfig, get_config
from engine.metrics import SchedulerMetrics
from engine.note_stream import NoteEventStream
from engine.pattern import Pattern, ResolvedNote, Step, Track, resolve_step
from engine.scheduler import StepScheduler, TransportState
from engine.sequencer import SequenceResult, Sequencer

__version__ = "1.0.0"

__all__ = [
    # Sequencing
    "Sequencer",
    "SequenceResult",
    "StepScheduler",
    "TransportState",
    # Data model
    "Pattern",
    "Track",
    "Step",
    "ResolvedNote",
    "resolve_step",
    # Collaborators
    "NoteEventStream",
    # Configuration
    "GalaxyConfig",
    "get_config",
    # Metrics
    "SchedulerMetrics",
]
