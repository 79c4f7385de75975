"""Base exceptions shared by the theory and engine packages."""


class GalaxyError(Exception):
    """Base exception for all Galaxy Piano errors."""

    pass


class NoteRangeError(GalaxyError, ValueError):
    """Note number outside the 88-key range [1, 88]."""

    def __init__(self, note_number: int):
        self.note_number = note_number
        super().__init__(f"Invalid note number: {note_number} (must be 1-88)")


class InvalidInputError(GalaxyError, ValueError):
    """Structurally invalid input (empty collection, non-numeric entries)."""

    pass
