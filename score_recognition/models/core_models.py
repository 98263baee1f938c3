"""Core domain models for score recognition."""

import math

from pydantic import BaseModel, Field, field_validator


DURATIONS = ("whole", "half", "quarter", "eighth", "sixteenth")


class NoteEvent(BaseModel):
    """A single recognized note, ready for playback or practice tooling.

    Positions are normalized to the source image so the event can be drawn
    over any rescaled copy of the photograph. Measures are synthetic: notes
    are chunked in reading order, four per measure.

    Attributes:
        name: Letter name A-G with an optional sharp (e.g. "F#").
        octave: Octave in scientific pitch notation (middle C is C4).
        duration: One of "whole", "half", "quarter", "eighth", "sixteenth".
        measure: 1-based synthetic measure index.
        x: Horizontal note-head center, normalized to [0, 1].
        y: Vertical note-head center, normalized to [0, 1].
    """

    name: str = Field(..., pattern=r"^[A-G]#?$", description="Letter name")
    octave: int = Field(..., ge=0, le=9, description="Scientific pitch octave")
    duration: str = Field("quarter", description="Note value")
    measure: int = Field(1, ge=1, description="Synthetic 1-based measure index")
    x: float = Field(0.0, ge=0.0, le=1.0, description="Normalized x position")
    y: float = Field(0.0, ge=0.0, le=1.0, description="Normalized y position")

    class Config:
        frozen = True

    @field_validator("duration")
    @classmethod
    def check_duration(cls, value: str) -> str:
        if value not in DURATIONS:
            raise ValueError(f"unknown duration {value!r}")
        return value

    @property
    def pitch_name(self) -> str:
        """Name with octave, e.g. "E4"."""
        return f"{self.name}{self.octave}"


class StaffGroup(BaseModel):
    """One detected five-line staff.

    Attributes:
        lines_y: Five line y-positions in pixels, strictly increasing.
        spacing: Average distance between adjacent lines in pixels.
        x_start: First column covered by the staff lines.
        x_end: Last column covered by the staff lines (inclusive).
    """

    lines_y: list[float] = Field(..., min_length=5, max_length=5)
    spacing: float = Field(..., gt=0.0, description="Average inter-line distance")
    x_start: int = Field(0, description="Left edge of the staff x-span")
    x_end: int = Field(0, description="Right edge of the staff x-span (inclusive)")

    @field_validator("lines_y")
    @classmethod
    def check_lines_increasing(cls, value: list[float]) -> list[float]:
        if any(b <= a for a, b in zip(value, value[1:])):
            raise ValueError("staff lines must be strictly increasing")
        return [float(v) for v in value]

    @property
    def top(self) -> float:
        return self.lines_y[0]

    @property
    def bottom(self) -> float:
        return self.lines_y[4]

    @property
    def center(self) -> float:
        return (self.top + self.bottom) * 0.5

    @property
    def width(self) -> int:
        return self.x_end - self.x_start + 1


class StaffCorridor(BaseModel):
    """Normalized bounding rectangle of a staff group, for UI highlighting."""

    left: float = Field(..., ge=0.0, le=1.0)
    top: float = Field(..., ge=0.0, le=1.0)
    right: float = Field(..., ge=0.0, le=1.0)
    bottom: float = Field(..., ge=0.0, le=1.0)


class NoteCandidate(BaseModel):
    """A connected ink region that may be a note head.

    Candidates live only inside one detection pass. The centroid is
    contour-moment weighted when it comes from OpenCV contours and
    pixel-area weighted when it comes from the connected-component scan.
    """

    min_x: int = Field(..., ge=0)
    min_y: int = Field(..., ge=0)
    max_x: int = Field(..., ge=0)
    max_y: int = Field(..., ge=0)
    area: float = Field(..., ge=0.0, description="Filled region area in pixels")
    perimeter: float = Field(0.0, ge=0.0, description="Outer boundary length")
    cx: float = Field(..., description="Centroid x")
    cy: float = Field(..., description="Centroid y")

    @property
    def width(self) -> int:
        return self.max_x - self.min_x + 1

    @property
    def height(self) -> int:
        return self.max_y - self.min_y + 1

    @property
    def aspect(self) -> float:
        return self.width / self.height

    @property
    def fill(self) -> float:
        return self.area / max(1.0, float(self.width * self.height))

    @property
    def circularity(self) -> float:
        if self.perimeter <= 0:
            return 0.0
        return 4.0 * math.pi * self.area / (self.perimeter * self.perimeter)


class MidiEvent(BaseModel):
    """A single MIDI note event with timing information.

    Attributes:
        note: MIDI note number (0-127, where 60 is middle C).
        start_tick: Start time in MIDI ticks (non-negative).
        duration_tick: Duration in MIDI ticks (positive).
    """

    note: int = Field(..., ge=0, le=127, description="MIDI note number (0-127)")
    start_tick: int = Field(..., ge=0, description="Start time in MIDI ticks")
    duration_tick: int = Field(..., ge=1, description="Duration in MIDI ticks")
