"""Models for representing pipeline processing stages.

This module contains pydantic models that encapsulate the results of each
stage in the recognition pipeline. Each model represents the output data of
one processing step, so stages can be tested in isolation and the native
and fallback variants can hand the same types to the shared stages.
"""

from typing import Literal

import numpy as np
from pydantic import BaseModel, Field

from score_recognition.models.core_models import (
    NoteCandidate,
    NoteEvent,
    StaffCorridor,
    StaffGroup,
)


class BinaryResult(BaseModel):
    """Result of the binarization stage.

    Attributes:
        gray: 2D uint8 grayscale image, or None if processing failed.
        binary_mask: 2D boolean ink mask, or None if processing failed.
    """

    gray: np.ndarray | None = Field(None, description="Grayscale image")
    binary_mask: np.ndarray | None = Field(None, description="Boolean ink mask")

    class Config:
        arbitrary_types_allowed = True


class StaffResult(BaseModel):
    """Staff geometry for one image.

    Attributes:
        spacing: Global staff spacing estimate in pixels.
        groups: Detected five-line staves, top to bottom, x-span normalized.
        staff_mask: 2D boolean mask of staff-line pixels rebuilt from groups.
        staff_rows: Staff count reported to callers (1-10).
    """

    spacing: int = Field(12, ge=6, le=26, description="Staff spacing in pixels")
    groups: list[StaffGroup] = Field(
        default_factory=list, description="Detected staff groups"
    )
    staff_mask: np.ndarray | None = Field(None, description="Staff-line mask")
    staff_rows: int = Field(1, ge=1, le=10, description="Estimated staff count")

    class Config:
        arbitrary_types_allowed = True


class SymbolResult(BaseModel):
    """Symbols-only masks after staff-line removal.

    Attributes:
        symbol_mask: Staff-free ink restricted to the staff corridors; used
            for duration features.
        detection_mask: `symbol_mask` after noise suppression; used for
            note-head candidate extraction.
    """

    symbol_mask: np.ndarray | None = Field(None, description="Symbols-only mask")
    detection_mask: np.ndarray | None = Field(
        None, description="Denoised symbols-only mask"
    )

    class Config:
        arbitrary_types_allowed = True


class NoteDetectionDiagnostics(BaseModel):
    """Per-reason rejection counters for one detection run.

    Counters are only written while the run that owns them is in progress
    and are read-only afterwards.
    """

    rejected_by_area: int = 0
    rejected_by_bounds: int = 0
    rejected_by_size: int = 0
    rejected_by_aspect: int = 0
    rejected_by_fill: int = 0
    rejected_by_perimeter: int = 0
    rejected_by_circularity: int = 0
    rejected_by_staff_position: int = 0
    removed_by_center_distance_dedupe: int = 0
    removed_by_slot_dedupe: int = 0
    rejected_by_analytical_filter: int = 0
    rescued_gap_blobs: int = 0
    accepted: int = 0

    def summary(self) -> str:
        """One-line human-readable summary of every counter."""
        return (
            f"area={self.rejected_by_area} bounds={self.rejected_by_bounds} "
            f"size={self.rejected_by_size} aspect={self.rejected_by_aspect} "
            f"fill={self.rejected_by_fill} perimeter={self.rejected_by_perimeter} "
            f"circularity={self.rejected_by_circularity} "
            f"staffPos={self.rejected_by_staff_position} "
            f"centerDedupe={self.removed_by_center_distance_dedupe} "
            f"slotDedupe={self.removed_by_slot_dedupe} "
            f"analytical={self.rejected_by_analytical_filter} "
            f"rescued={self.rescued_gap_blobs} accepted={self.accepted}"
        )

    def primary_loss_reason(self) -> str:
        """Name the stage that discarded the most candidates, or "none"."""
        reasons = [
            ("area-threshold filtering", self.rejected_by_area),
            ("image-bounds filtering", self.rejected_by_bounds),
            ("size filtering", self.rejected_by_size),
            ("aspect-ratio filtering", self.rejected_by_aspect),
            ("fill-ratio filtering", self.rejected_by_fill),
            ("perimeter filtering", self.rejected_by_perimeter),
            ("circularity filtering", self.rejected_by_circularity),
            ("staff-corridor position filtering", self.rejected_by_staff_position),
            ("center-distance dedupe", self.removed_by_center_distance_dedupe),
            ("slot dedupe", self.removed_by_slot_dedupe),
            ("analytical filtering", self.rejected_by_analytical_filter),
        ]
        name, count = max(reasons, key=lambda item: item[1])
        return name if count > 0 else "none"


class DetectionResult(BaseModel):
    """Note-head candidates that survived filtering and deduplication.

    Attributes:
        candidates: Accepted note heads, unordered.
        diagnostics: Rejection counters gathered along the way.
    """

    candidates: list[NoteCandidate] = Field(
        default_factory=list, description="Accepted note-head candidates"
    )
    diagnostics: NoteDetectionDiagnostics = Field(
        default_factory=NoteDetectionDiagnostics
    )


class ProcessingResult(BaseModel):
    """Final output of one `process` call.

    Attributes:
        title: Title the caller attached to the piece.
        notes: Recognized notes in reading order.
        staff_rows: Number of staff groups found (1-10).
        barlines: Estimated bar-line count.
        quality_score: Image quality estimate in [20, 100].
        overlay_image: Optional RGB stage overlay (binary white, staff red,
            symbols green).
        staff_corridors: Normalized staff rectangles for UI highlighting.
        mode: Which pipeline variant produced the result.
        diagnostics: Optional note-detection rejection counters.
    """

    title: str = Field("", description="Piece title")
    notes: list[NoteEvent] = Field(default_factory=list, description="Notes")
    staff_rows: int = Field(1, ge=0, le=10, description="Staff groups found")
    barlines: int = Field(0, ge=0, description="Estimated bar lines")
    quality_score: int = Field(20, ge=20, le=100, description="Image quality")
    overlay_image: np.ndarray | None = Field(None, description="Stage overlay")
    staff_corridors: list[StaffCorridor] = Field(
        default_factory=list, description="Normalized staff corridors"
    )
    mode: Literal["native", "fallback"] = Field(
        "fallback", description="Pipeline variant that ran"
    )
    diagnostics: NoteDetectionDiagnostics | None = Field(
        None, description="Note detection diagnostics"
    )

    class Config:
        arbitrary_types_allowed = True


class ReferenceComparison(BaseModel):
    """How closely recognized pitches follow a reference piece.

    Attributes:
        lcs: Length of the longest common subsequence of MIDI pitches.
        expected_count: Number of reference notes.
        recognized_count: Number of recognized notes.
    """

    lcs: int = Field(0, ge=0, description="Longest common subsequence length")
    expected_count: int = Field(0, ge=0, description="Reference notes")
    recognized_count: int = Field(0, ge=0, description="Recognized notes")

    @property
    def coverage(self) -> float:
        """Share of reference notes matched; 1.0 for an empty reference."""
        if self.expected_count == 0:
            return 1.0
        return self.lcs / self.expected_count

    @property
    def precision(self) -> float:
        """Share of recognized notes matched; 0.0 when nothing was recognized."""
        if self.recognized_count == 0:
            return 0.0
        return self.lcs / self.recognized_count
