"""WebSocket note-event stream.

Acts as the Tone Source and Visual Feedback Sink for the sequencer by
broadcasting note events to connected browser clients, which render the
audio and visuals themselves.
"""

import asyncio
import logging
import time
from typing import Any, Optional

from fastapi import WebSocket, WebSocketDisconnect

from theory.pitch import is_valid_note, to_display_name, to_frequency_hz

from engine.exceptions import InvalidInputError, ToneSourceError
from engine.interfaces import IToneSource, IVisualFeedbackSink

logger = logging.getLogger(__name__)

DEFAULT_MAX_POLYPHONY = 32


class ClientConnection:
    """Represents a connected WebSocket client."""

    def __init__(self, client_id: str, websocket: WebSocket):
        self.client_id = client_id
        self.websocket = websocket
        self.connected_at = time.time()
        self.events_sent = 0

    async def send_event(self, event: dict[str, Any]) -> bool:
        """Send one event to the client.

        Returns:
            True if sent successfully, False on error
        """
        try:
            await self.websocket.send_json(event)
            self.events_sent += 1
            return True
        except Exception as e:
            logger.error(
                f"Error sending {event.get('type')} event to client {self.client_id}: {e}",
                extra={"client_id": self.client_id},
            )
            return False

    def get_connection_duration(self) -> float:
        return time.time() - self.connected_at


class NoteEventStream(IToneSource, IVisualFeedbackSink):
    """Broadcasts note and star events to WebSocket clients."""

    def __init__(self, max_polyphony: int = DEFAULT_MAX_POLYPHONY):
        """Initialize note event stream.

        Args:
            max_polyphony: Maximum simultaneously sounding notes; the oldest
                note is stolen when a new note-on exceeds it
        """
        if max_polyphony < 1:
            raise InvalidInputError(f"max_polyphony must be >= 1, got {max_polyphony}")

        self.max_polyphony = max_polyphony
        self.clients: dict[str, ClientConnection] = {}
        self.next_client_id = 0
        # note number -> generation of its latest note-on, oldest first
        self.active_notes: dict[int, int] = {}
        self._note_generation = 0
        self._seq = 0
        self._pending: set[asyncio.Task] = set()

        logger.info(f"Note event stream initialized (max polyphony: {max_polyphony})")

    # IToneSource

    async def play_notes(
        self,
        note_numbers: list[int],
        duration_seconds: Optional[float],
        velocity: float,
    ) -> list[int]:
        """Broadcast a simultaneous note-on.

        Invalid note numbers are skipped. At the polyphony ceiling the
        oldest sounding note is stolen to make room. Notes with a duration
        are released locally once it has elapsed.

        Returns:
            Note numbers that were sent

        Raises:
            ToneSourceError: If notes were requested but none was valid
        """
        accepted: list[int] = []
        for note in note_numbers:
            if not is_valid_note(note):
                logger.warning(f"Skipping invalid note number: {note}")
                continue
            if note not in accepted:
                accepted.append(note)

        if not accepted:
            if note_numbers:
                raise ToneSourceError(f"No playable notes in {list(note_numbers)}")
            return []

        stolen: list[int] = []
        for note in accepted:
            # Retriggered notes move to the newest position
            self.active_notes.pop(note, None)
            if len(self.active_notes) >= self.max_polyphony:
                oldest = next(iter(self.active_notes))
                del self.active_notes[oldest]
                if oldest not in accepted:
                    stolen.append(oldest)

            self._note_generation += 1
            self.active_notes[note] = self._note_generation
            if duration_seconds is not None:
                self._schedule_release(note, self._note_generation, duration_seconds)

        # A chord wider than the limit keeps only its newest notes
        accepted = [n for n in accepted if n in self.active_notes]

        if stolen:
            logger.debug(f"Polyphony limit reached, stealing notes {stolen}")
            for note in stolen:
                await self.broadcast({"type": "stop_note", "number": note})

        await self.broadcast(
            {
                "type": "play_notes",
                "notes": [
                    {
                        "number": n,
                        "name": to_display_name(n),
                        "frequency": round(to_frequency_hz(n), 2),
                    }
                    for n in accepted
                ],
                "duration": duration_seconds,
                "velocity": velocity,
            }
        )
        return accepted

    def _schedule_release(self, note: int, generation: int, duration_seconds: float) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        loop.call_later(max(0.0, duration_seconds), self._release, note, generation)

    def _release(self, note: int, generation: int) -> None:
        """Forget a note whose duration elapsed, unless it was retriggered."""
        if self.active_notes.get(note) == generation:
            del self.active_notes[note]

    def stop_note(self, note_number: int) -> None:
        self.active_notes.pop(note_number, None)
        self._schedule({"type": "stop_note", "number": note_number})

    def stop_all(self) -> None:
        self.active_notes.clear()
        self._schedule({"type": "stop_all"})

    # IVisualFeedbackSink

    def create_stars(
        self, note_numbers: list[int], duration_seconds: Optional[float], intensity: float
    ) -> None:
        self._schedule(
            {
                "type": "stars",
                "note_numbers": list(note_numbers),
                "duration": duration_seconds,
                "intensity": intensity,
            }
        )

    # Broadcasting

    async def broadcast(self, event: dict[str, Any]) -> int:
        """Send an event to every client, dropping clients that fail.

        Returns:
            Number of clients reached
        """
        self._seq += 1
        event = {**event, "seq": self._seq, "timestamp": time.time()}

        reached = 0
        for client in list(self.clients.values()):
            if await client.send_event(event):
                reached += 1
            else:
                self.clients.pop(client.client_id, None)
                logger.warning(f"Dropped client {client.client_id} after send failure")
        return reached

    def _schedule(self, event: dict[str, Any]) -> None:
        """Broadcast from synchronous callers; no-op outside an event loop."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running loop, {event['type']} event not sent")
            return

        task = loop.create_task(self.broadcast(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def flush(self) -> None:
        """Wait for scheduled broadcasts to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # Connections

    def _generate_client_id(self) -> str:
        client_id = f"client_{self.next_client_id}"
        self.next_client_id += 1
        return client_id

    async def handle_connection(self, websocket: WebSocket) -> None:
        """Handle WebSocket connection lifecycle.

        Args:
            websocket: WebSocket connection instance
        """
        await websocket.accept()

        client_id = self._generate_client_id()
        client = ClientConnection(client_id, websocket)
        self.clients[client_id] = client

        logger.info(
            f"Client connected: {client_id} (total clients: {len(self.clients)})",
            extra={"client_id": client_id},
        )

        try:
            await client.send_event(
                {
                    "type": "welcome",
                    "client_id": client_id,
                    "message": "Connected to Galaxy Piano note stream",
                }
            )

            while True:
                message = await websocket.receive_json()
                msg_type = message.get("type")

                if msg_type == "ping":
                    await client.send_event({"type": "pong", "timestamp": time.time()})
                elif msg_type == "note_off":
                    # Browser reports a released key
                    self.active_notes.pop(message.get("number"), None)
                else:
                    logger.warning(
                        f"Unknown message type from {client_id}: {msg_type}",
                        extra={"client_id": client_id},
                    )

        except WebSocketDisconnect:
            logger.info(f"Client {client_id} disconnected normally", extra={"client_id": client_id})
        except Exception as e:
            logger.error(f"Error handling client {client_id}: {e}", extra={"client_id": client_id})
        finally:
            self.clients.pop(client_id, None)
            logger.info(
                f"Client {client_id} removed "
                f"(duration: {client.get_connection_duration():.1f}s, "
                f"events sent: {client.events_sent}, "
                f"remaining clients: {len(self.clients)})"
            )

    def get_active_connections(self) -> int:
        return len(self.clients)

    def get_client_stats(self) -> list[dict]:
        return [
            {
                "client_id": client.client_id,
                "connected_at": client.connected_at,
                "duration_sec": client.get_connection_duration(),
                "events_sent": client.events_sent,
            }
            for client in self.clients.values()
        ]
