"""FastAPI server entrypoint for Galaxy Piano.

Exposes chord analysis, input parsing and sequencer transport over REST,
and streams note events to the browser over a WebSocket.
"""

import time
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Query, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from theory.chord_analyzer import ChordMatch
from theory.input_parser import parse_musical_input, validate_musical_input
from theory.options import AnalysisOptions, ValidationOptions
from theory.pitch import to_pitch_class, validate_note

from engine.di_container import cleanup_container, get_container
from engine.exceptions import GalaxyError, TrackIndexError, TransportError
from engine.logging_config import get_logger, setup_logging
from engine.schemas import (
    AnalyzeRequest,
    LoopRequest,
    ParseRequest,
    TempoRequest,
    TrackSettingsRequest,
    ValidateRequest,
)

# Initialize logging
setup_logging()
logger = get_logger(__name__)

# Global startup timestamp
_startup_time = 0.0


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager (startup/shutdown).

    Args:
        app: FastAPI application instance

    Yields:
        Control during application lifetime
    """
    global _startup_time

    logger.info("=" * 60)
    logger.info("Starting Galaxy Piano engine...")
    _startup_time = time.time()

    container = get_container()
    config = container.get_config()

    logger.info(f"Environment: {config.env}")
    logger.info(f"Host: {config.host}:{config.port}")

    sequencer = container.get_sequencer()
    logger.info(
        f"Sequencer ready: {len(sequencer.pattern.tracks)} tracks @ {sequencer.scheduler.bpm} BPM"
    )
    logger.info("Galaxy Piano engine ready!")
    logger.info("=" * 60)

    yield

    logger.info("Shutting down Galaxy Piano engine...")
    cleanup_container()
    logger.info("Galaxy Piano engine stopped")


app = FastAPI(
    title="Galaxy Piano API",
    version="1.0.0",
    description="Chord analysis and step sequencing core for the Galaxy Piano",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _http_error(e: GalaxyError) -> HTTPException:
    if isinstance(e, TrackIndexError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, TransportError):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


# REST API Endpoints


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "service": "galaxy-piano"}


@app.get("/api/status")
async def get_status() -> dict[str, Any]:
    """Get system status.

    Returns:
        Dictionary with transport, pattern and connection information
    """
    container = get_container()
    sequencer = container.get_sequencer()
    note_stream = container.get_note_stream()

    return {
        "uptime_sec": time.time() - _startup_time,
        "active_connections": note_stream.get_active_connections(),
        "transport": sequencer.scheduler.get_status(),
        "analyzer": container.get_chord_analyzer().get_stats(),
        "timestamp": time.time(),
    }


@app.get("/api/metrics")
async def get_metrics() -> dict[str, Any]:
    """Get scheduler timing metrics."""
    return get_container().get_metrics().get_snapshot()


@app.post("/api/chords/analyze")
async def analyze_chord(request: AnalyzeRequest) -> dict[str, Any]:
    """Identify the chord formed by a set of notes."""
    analyzer = get_container().get_chord_analyzer()
    try:
        options = AnalysisOptions(
            strict_mode=request.strict_mode,
            include_inversions=request.include_inversions,
            include_extensions=request.include_extensions,
            context_key=request.context_key,
        )
        result = analyzer.analyze_chord(request.notes, options)
    except GalaxyError as e:
        raise _http_error(e)
    return result.to_json()


@app.post("/api/chords/validate")
async def validate_progression(request: ValidateRequest) -> dict[str, Any]:
    """Score a chord progression (explicit, or the recent history)."""
    container = get_container()
    analyzer = container.get_chord_analyzer()
    validator = container.get_harmonic_validator()

    progression: list[ChordMatch] = []
    unrecognized: list[list[int]] = []

    try:
        if request.progression is None:
            progression = analyzer.progression()
        else:
            for notes in request.progression:
                pitch_classes = sorted({to_pitch_class(validate_note(n)) for n in notes})
                matches = analyzer.find_matching_chords(pitch_classes, False, request.context_key)
                if matches:
                    progression.append(matches[0])
                else:
                    unrecognized.append(notes)

        validation = validator.validate_harmony(
            progression,
            ValidationOptions(
                context_key=request.context_key, valid_threshold=request.valid_threshold
            ),
        )
    except GalaxyError as e:
        raise _http_error(e)

    return {
        **validation.to_json(),
        "chords": [match.display_name for match in progression],
        "unrecognized": unrecognized,
    }


@app.get("/api/chords/progression")
async def get_progression() -> dict[str, Any]:
    """Recently recognized chords, oldest first."""
    analyzer = get_container().get_chord_analyzer()
    return {"progression": [match.to_json() for match in analyzer.progression()]}


@app.delete("/api/chords/progression")
async def clear_progression() -> dict[str, str]:
    get_container().get_chord_analyzer().clear_progression()
    return {"status": "cleared"}


@app.get("/api/scales/rank")
async def rank_scales(
    notes: str = Query(..., description="Comma-separated note numbers"),
    min_coverage: float = Query(default=1.0, ge=0.0, le=1.0),
    limit: int = Query(default=10, ge=1, le=132),
) -> dict[str, Any]:
    """Scales (with roots) that contain the given notes."""
    analyzer = get_container().get_chord_analyzer()
    try:
        note_numbers = [int(n) for n in notes.split(",") if n.strip()]
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid note list: {notes}")

    try:
        fits = analyzer.rank_scales(note_numbers, min_coverage=min_coverage, limit=limit)
    except GalaxyError as e:
        raise _http_error(e)
    return {"scales": [fit.to_json() for fit in fits]}


@app.post("/api/input/parse")
async def parse_input(request: ParseRequest) -> dict[str, Any]:
    """Parse musical input without touching the pattern."""
    sequencer = get_container().get_sequencer()
    parsed = parse_musical_input(request.text, sequencer.parse_options)
    validation = validate_musical_input(parsed)
    return {"parsed": parsed.to_json(), "validation": validation.to_json()}


# Pattern and tracks


@app.get("/api/pattern")
async def export_pattern() -> dict[str, Any]:
    return get_container().get_sequencer().export_pattern()


@app.put("/api/pattern")
async def import_pattern(document: dict[str, Any]) -> dict[str, Any]:
    """Replace the pattern with a previously exported document."""
    sequencer = get_container().get_sequencer()
    try:
        pattern = sequencer.import_pattern(document)
    except GalaxyError as e:
        raise _http_error(e)
    return {"status": "imported", "pattern_id": pattern.id, "tracks": len(pattern.tracks)}


@app.post("/api/tracks")
async def add_track() -> dict[str, Any]:
    sequencer = get_container().get_sequencer()
    try:
        track = sequencer.add_track()
    except GalaxyError as e:
        raise _http_error(e)
    return {"index": track.index, "name": track.name}


@app.post("/api/tracks/{track_index}/sequence")
async def sequence_track(track_index: int, request: ParseRequest) -> dict[str, Any]:
    """Overwrite a track from musical input."""
    sequencer = get_container().get_sequencer()
    result = sequencer.create_sequence_from_input(request.text, track_index)
    if not result.success and not sequencer.has_track(track_index):
        raise HTTPException(status_code=404, detail=result.error)
    return result.to_json()


@app.patch("/api/tracks/{track_index}")
async def update_track(track_index: int, request: TrackSettingsRequest) -> dict[str, Any]:
    sequencer = get_container().get_sequencer()
    try:
        if request.muted is not None:
            sequencer.set_track_muted(track_index, request.muted)
        if request.volume is not None:
            sequencer.set_track_volume(track_index, request.volume)
        track = sequencer.pattern.track(track_index)
    except GalaxyError as e:
        raise _http_error(e)
    return {"index": track.index, "muted": track.muted, "volume": track.volume}


@app.get("/api/tracks/{track_index}/timeline")
async def track_timeline(track_index: int) -> dict[str, Any]:
    sequencer = get_container().get_sequencer()
    try:
        steps = sequencer.track_timeline(track_index)
    except GalaxyError as e:
        raise _http_error(e)
    return {"track_index": track_index, "steps": steps}


# Transport


@app.post("/api/transport/play")
async def transport_play() -> dict[str, Any]:
    """Toggle playback."""
    sequencer = get_container().get_sequencer()
    state = await sequencer.play_sequence()
    return {"state": state.value}


@app.post("/api/transport/stop")
async def transport_stop() -> dict[str, Any]:
    sequencer = get_container().get_sequencer()
    sequencer.stop_sequence()
    return {"state": sequencer.scheduler.state.value}


@app.post("/api/transport/pause")
async def transport_pause() -> dict[str, Any]:
    sequencer = get_container().get_sequencer()
    try:
        sequencer.pause_sequence()
    except GalaxyError as e:
        raise _http_error(e)
    return {"state": sequencer.scheduler.state.value, "current_step": sequencer.scheduler.current_step}


@app.post("/api/transport/resume")
async def transport_resume() -> dict[str, Any]:
    sequencer = get_container().get_sequencer()
    try:
        await sequencer.resume_sequence()
    except GalaxyError as e:
        raise _http_error(e)
    return {"state": sequencer.scheduler.state.value}


@app.post("/api/transport/tempo")
async def transport_tempo(request: TempoRequest) -> dict[str, Any]:
    sequencer = get_container().get_sequencer()
    try:
        sequencer.set_bpm(request.bpm)
    except GalaxyError as e:
        raise _http_error(e)
    return {"bpm": sequencer.scheduler.bpm}


@app.post("/api/transport/loop")
async def transport_loop(request: LoopRequest) -> dict[str, Any]:
    sequencer = get_container().get_sequencer()
    sequencer.set_loop(request.loop)
    return {"loop": sequencer.scheduler.loop}


# WebSocket Endpoint


@app.websocket("/ws/notes")
async def websocket_notes(websocket: WebSocket) -> None:
    """WebSocket endpoint for note and star events."""
    await get_container().get_note_stream().handle_connection(websocket)
