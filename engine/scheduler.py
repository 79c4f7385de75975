"""Step clock for sequencer playback.

Advances through pattern steps at a tempo-derived interval, resolves the
notes sounding at each step and emits them to the Tone Source and Visual
Feedback Sink without waiting for the emission to finish.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Any, Callable, Optional

from engine.exceptions import InvalidInputError, TransportError
from engine.interfaces import IToneSource, IVisualFeedbackSink
from engine.metrics import SchedulerMetrics
from engine.pattern import ResolvedNote

logger = logging.getLogger(__name__)

StepResolver = Callable[[int], list[ResolvedNote]]
StepListener = Callable[[int, list[int]], None]


class TransportState(str, Enum):
    """Transport state of the step clock."""

    STOPPED = "stopped"
    PLAYING = "playing"
    PAUSED = "paused"


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class StepScheduler:
    """Tempo-driven step clock with a run-generation cancellation token.

    Every start/stop/pause/resume bumps the run generation; a clock task
    only ticks while its generation is current, so a timer armed before
    stop() can never produce another tick.
    """

    def __init__(
        self,
        resolver: StepResolver,
        tone_source: IToneSource,
        visual_sink: Optional[IVisualFeedbackSink] = None,
        bpm: float = 120.0,
        quantization: int = 16,
        total_steps: int = 16,
        loop: bool = True,
        metrics: Optional[SchedulerMetrics] = None,
        step_listener: Optional[StepListener] = None,
    ):
        """Initialize step scheduler.

        Args:
            resolver: Returns the notes sounding at a step index
            tone_source: Receives one play_notes call per audible step
            visual_sink: Receives one create_stars call per audible step
            bpm: Tempo in beats per minute (> 0)
            quantization: Steps per whole note (16 = sixteenth notes)
            total_steps: Steps per cycle before wrapping to 0
            loop: Keep playing after the last step
            metrics: Timing metrics collector
            step_listener: Called with (step_index, note_numbers) for every
                audible step
        """
        if quantization < 1 or total_steps < 1:
            raise InvalidInputError("quantization and total_steps must be >= 1")

        self.resolver = resolver
        self.tone_source = tone_source
        self.visual_sink = visual_sink
        self.quantization = quantization
        self.total_steps = total_steps
        self.loop = loop
        self.metrics = metrics or SchedulerMetrics()
        self.step_listener = step_listener

        self._bpm = 0.0
        self.set_bpm(bpm)

        self._state = TransportState.STOPPED
        self.current_step = 0
        self._run_id = 0
        self._clock_task: Optional[asyncio.Task] = None
        self._pending: set[asyncio.Task] = set()

        logger.info(
            f"Step scheduler initialized: {self._bpm} BPM, 1/{quantization} steps, "
            f"{total_steps} steps per cycle"
        )

    @property
    def state(self) -> TransportState:
        return self._state

    @property
    def bpm(self) -> float:
        return self._bpm

    def is_playing(self) -> bool:
        return self._state is TransportState.PLAYING

    def set_bpm(self, bpm: float) -> None:
        """Change tempo; the next tick picks it up.

        Raises:
            InvalidInputError: If bpm is not positive
        """
        if isinstance(bpm, bool) or not isinstance(bpm, (int, float)) or bpm <= 0:
            raise InvalidInputError(f"Invalid BPM: {bpm} (must be > 0)")
        self._bpm = float(bpm)

    def step_duration_seconds(self) -> float:
        """Seconds per step: one beat divided by steps per beat."""
        return (60.0 / self._bpm) / (self.quantization / 4)

    async def start(self, clock: bool = True) -> None:
        """Start playback from step 0.

        Args:
            clock: Run the internal clock task. With False the transport is
                armed and the caller drives playback through tick().
        """
        if self._state is TransportState.PLAYING:
            logger.warning("Step clock already running")
            return

        self.current_step = 0
        self._launch(clock)
        logger.info(f"Playback started at {self._bpm} BPM")

    def stop(self) -> None:
        """Stop playback, rewind to step 0 and silence the Tone Source.

        Safe to call repeatedly and from inside a tick. Emissions still in
        flight are cancelled so that nothing sounds after stop_all().
        """
        was_active = self._state is not TransportState.STOPPED
        self._state = TransportState.STOPPED
        self.current_step = 0
        self._cancel_clock()
        self._cancel_emissions()

        try:
            self.tone_source.stop_all()
        except Exception as e:
            logger.error(f"Tone source failed to stop all notes: {e}", exc_info=True)

        if was_active:
            logger.info("Playback stopped")

    def pause(self) -> None:
        """Freeze playback at the current step.

        Raises:
            TransportError: If not playing
        """
        if self._state is not TransportState.PLAYING:
            raise TransportError(f"Cannot pause while {self._state.value}")

        self._state = TransportState.PAUSED
        self._cancel_clock()
        logger.info(f"Playback paused at step {self.current_step}")

    async def resume(self, clock: bool = True) -> None:
        """Continue playback from the paused step.

        Raises:
            TransportError: If not paused
        """
        if self._state is not TransportState.PAUSED:
            raise TransportError(f"Cannot resume while {self._state.value}")

        self._launch(clock)
        logger.info(f"Playback resumed at step {self.current_step}")

    def _launch(self, clock: bool) -> None:
        self._cancel_clock()
        self._state = TransportState.PLAYING
        if clock:
            self._clock_task = asyncio.create_task(self._clock(self._run_id))

    def _cancel_clock(self) -> None:
        self._run_id += 1
        task = self._clock_task
        self._clock_task = None

        # The clock stops itself through the run id when stop() is called
        # from within a tick
        if task is not None and not task.done() and task is not _current_task():
            task.cancel()

    def _cancel_emissions(self) -> None:
        cancelled = 0
        for task in list(self._pending):
            if not task.done():
                task.cancel()
                cancelled += 1
        if cancelled:
            logger.debug(f"Cancelled {cancelled} pending step emissions")

    async def _clock(self, run_id: int) -> None:
        """Tick loop for one play session."""
        loop = asyncio.get_running_loop()
        next_tick = loop.time()

        try:
            while self._run_id == run_id:
                drift_ms = (loop.time() - next_tick) * 1000.0
                self.metrics.record_tick(max(drift_ms, 0.0))

                if not await self.tick():
                    break

                next_tick += self.step_duration_seconds()
                await asyncio.sleep(max(0.0, next_tick - loop.time()))

        except asyncio.CancelledError:
            logger.debug("Step clock cancelled")
        except Exception as e:
            logger.error(f"Error in step clock: {e}", exc_info=True)
            self.stop()

    async def tick(self) -> bool:
        """Play the current step and advance.

        Returns:
            True if the clock should keep running
        """
        if self._state is not TransportState.PLAYING:
            return False

        step_index = self.current_step

        try:
            notes = self.resolver(step_index)
        except Exception as e:
            logger.error(
                f"Failed to resolve step {step_index}: {e}",
                exc_info=True,
                extra={"step": step_index},
            )
            notes = []

        if notes:
            self._emit(step_index, notes)

        self.current_step = (step_index + 1) % self.total_steps

        if not self.loop and self.current_step == 0:
            logger.info("Reached end of pattern")
            # Let the final steps sound before silencing the Tone Source
            run_id = self._run_id
            await self.drain()
            if self._run_id == run_id:
                self.stop()
            return False

        return True

    def _emit(self, step_index: int, notes: list[ResolvedNote]) -> None:
        task = asyncio.create_task(self._emit_step(step_index, notes))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

        if self.step_listener is not None:
            try:
                self.step_listener(step_index, [n.note_number for n in notes])
            except Exception as e:
                logger.error(f"Step listener failed at step {step_index}: {e}", exc_info=True)

    async def _emit_step(self, step_index: int, notes: list[ResolvedNote]) -> None:
        """Send one simultaneous onset using the first note's duration and velocity."""
        note_numbers = [n.note_number for n in notes]
        duration = notes[0].duration
        velocity = notes[0].effective_velocity
        started = time.perf_counter()

        try:
            await self.tone_source.play_notes(note_numbers, duration, velocity)
            if self.visual_sink is not None:
                self.visual_sink.create_stars(note_numbers, duration, velocity)
        except Exception as e:
            self.metrics.increment_failed_emission()
            logger.error(
                f"Failed to emit step {step_index}: {e}",
                exc_info=True,
                extra={"step": step_index, "note_count": len(note_numbers)},
            )
            return

        self.metrics.record_emission((time.perf_counter() - started) * 1000.0, len(note_numbers))
        logger.debug(
            f"Step {step_index}: {note_numbers}",
            extra={"step": step_index, "note_count": len(note_numbers)},
        )

    async def drain(self) -> None:
        """Wait for in-flight step emissions to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def wait_stopped(self) -> None:
        """Wait for the running clock task to exit, then drain emissions."""
        task = self._clock_task
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self.drain()

    def get_status(self) -> dict[str, Any]:
        return {
            "state": self._state.value,
            "current_step": self.current_step,
            "bpm": self._bpm,
            "loop": self.loop,
            "total_steps": self.total_steps,
            "quantization": self.quantization,
            "step_duration_seconds": self.step_duration_seconds(),
            "pending_emissions": len(self._pending),
        }
