"""
Pydantic schemas for the Galaxy Piano HTTP endpoints.

Defines request validation models; responses are the engine's own
``to_json()`` documents.
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator


class AnalyzeRequest(BaseModel):
    """Request body for ``POST /api/chords/analyze``."""

    notes: list[int] = Field(..., description="Sounding note numbers (1-88), any order.")
    strict_mode: bool = Field(
        default=False, description="Require the notes to equal a template exactly."
    )
    include_inversions: bool = Field(default=True)
    include_extensions: bool = Field(default=True)
    context_key: Optional[int] = Field(
        default=None, ge=0, le=11, description="Key pitch class used to break ties."
    )


class ValidateRequest(BaseModel):
    """Request body for ``POST /api/chords/validate``.

    When ``progression`` is omitted the analyzer's recent progression
    history is validated instead.
    """

    progression: Optional[list[list[int]]] = Field(
        default=None, description="Chords in playing order, each a list of note numbers."
    )
    context_key: Optional[int] = Field(default=None, ge=0, le=11)
    valid_threshold: float = Field(default=60.0, ge=0.0, le=100.0)


class ParseRequest(BaseModel):
    """Request body for ``POST /api/input/parse`` and track sequencing."""

    text: str = Field(..., max_length=4000, description="Musical input, e.g. 'C4,E4,G4@1.0v0.8'.")

    @field_validator("text")
    @classmethod
    def text_must_not_be_empty(cls, v: str) -> str:
        """Validate that text is not empty or whitespace-only."""
        if not v.strip():
            raise ValueError("text must be a non-empty string")
        return v


class TempoRequest(BaseModel):
    """Request body for ``POST /api/transport/tempo``."""

    bpm: float = Field(..., gt=0, le=999, description="Tempo in beats per minute.")


class TrackSettingsRequest(BaseModel):
    """Request body for ``PATCH /api/tracks/{track_index}``."""

    muted: Optional[bool] = None
    volume: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class LoopRequest(BaseModel):
    """Request body for ``POST /api/transport/loop``."""

    loop: bool
