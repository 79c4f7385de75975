"""Dependency injection container for Galaxy Piano engine components.

Provides centralized management of service instances with proper lifecycle
and dependency resolution.
"""

import logging
from typing import Any, Optional

from pydantic import ValidationError

from theory.chord_analyzer import ChordAnalyzer
from theory.harmonic_validator import HarmonicValidator
from theory.harmony_database import HarmonyDatabase
from theory.progression_history import ProgressionHistory

from engine.config import GalaxyConfig, get_config
from engine.exceptions import ConfigurationError
from engine.metrics import SchedulerMetrics
from engine.note_stream import NoteEventStream
from engine.sequencer import Sequencer

logger = logging.getLogger(__name__)


class DIContainer:
    """Dependency injection container for engine components."""

    def __init__(self, config: Optional[GalaxyConfig] = None) -> None:
        """Initialize container.

        Raises:
            ConfigurationError: If the environment configuration is invalid
        """
        try:
            self._config = config or get_config()
        except ValidationError as e:
            raise ConfigurationError(f"Invalid engine configuration: {e}") from e
        self._instances: dict[str, Any] = {}

        logger.info("DI container initialized")

    def get_config(self) -> GalaxyConfig:
        return self._config

    def get_harmony_database(self) -> HarmonyDatabase:
        """Get or create the shared template database."""
        if "harmony_database" not in self._instances:
            self._instances["harmony_database"] = HarmonyDatabase()
        return self._instances["harmony_database"]

    def get_progression_history(self) -> ProgressionHistory:
        if "progression_history" not in self._instances:
            self._instances["progression_history"] = ProgressionHistory(
                capacity=self._config.progression_history_size
            )
        return self._instances["progression_history"]

    def get_chord_analyzer(self) -> ChordAnalyzer:
        """Get or create chord analyzer instance."""
        if "chord_analyzer" not in self._instances:
            self._instances["chord_analyzer"] = ChordAnalyzer(
                database=self.get_harmony_database(),
                history=self.get_progression_history(),
                suggestion_limit=self._config.suggestion_limit,
            )
        return self._instances["chord_analyzer"]

    def get_harmonic_validator(self) -> HarmonicValidator:
        if "harmonic_validator" not in self._instances:
            self._instances["harmonic_validator"] = HarmonicValidator()
        return self._instances["harmonic_validator"]

    def get_note_stream(self) -> NoteEventStream:
        """Get or create the WebSocket note stream (Tone Source and Visual Sink)."""
        if "note_stream" not in self._instances:
            self._instances["note_stream"] = NoteEventStream()
        return self._instances["note_stream"]

    def get_metrics(self) -> SchedulerMetrics:
        if "metrics" not in self._instances:
            self._instances["metrics"] = SchedulerMetrics(window=self._config.metrics_window)
        return self._instances["metrics"]

    def get_sequencer(self) -> Sequencer:
        """Get or create sequencer instance."""
        if "sequencer" not in self._instances:
            note_stream = self.get_note_stream()
            self._instances["sequencer"] = Sequencer(
                tone_source=note_stream,
                visual_sink=note_stream,
                analyzer=self.get_chord_analyzer(),
                config=self._config,
                metrics=self.get_metrics(),
            )
        return self._instances["sequencer"]

    def cleanup(self) -> None:
        """Clean up all managed instances."""
        logger.info("Cleaning up DI container")

        if "sequencer" in self._instances:
            try:
                self._instances["sequencer"].stop_sequence()
            except Exception as e:
                logger.error(f"Error stopping sequencer: {e}")

        self._instances.clear()
        logger.info("DI container cleaned up")


# Global container instance
_container: Optional[DIContainer] = None


def get_container() -> DIContainer:
    """Get the global DI container instance.

    Returns:
        DIContainer singleton
    """
    global _container
    if _container is None:
        _container = DIContainer()
    return _container


def cleanup_container() -> None:
    """Clean up the global DI container."""
    global _container
    if _container is not None:
        _container.cleanup()
        _container = None
