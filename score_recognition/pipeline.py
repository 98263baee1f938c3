"""
Pipeline processing functions for score recognition.

This module wires the recognition stages together: binarization, staff
geometry, symbol extraction, note-head detection, pitch and duration
resolution and result assembly. The OpenCV-backed stages run first; if they
raise, the native backend is disabled for the rest of the process and the
same call is answered by the numpy stages.
"""

import contextlib
import logging

import numpy as np

from score_recognition.backend import NativeBackend, get_default_backend
from score_recognition.duration import classify_duration
from score_recognition.image_processing import (
    binarize,
    compose_stage_overlay,
    estimate_quality_score,
    to_grayscale,
)
from score_recognition.models import (
    BinaryResult,
    DetectionResult,
    NoteEvent,
    ProcessingOptions,
    ProcessingResult,
    StaffResult,
    SymbolResult,
)
from score_recognition.note_detection import detect_note_heads, find_candidates
from score_recognition.pitch import pitch_for_step, refined_step, simple_step
from score_recognition.staff import (
    build_staff_result,
    estimate_barlines,
    estimate_spacing,
    line_mask_from_density,
    nearest_group,
    staff_corridors,
)
from score_recognition.symbols import extract_symbol_mask, suppress_noise


logger = logging.getLogger(__name__)

NOTES_PER_MEASURE = 4


# Custom exceptions
class PipelineError(Exception):
    """Base exception for pipeline processing errors."""

    pass


class InputError(PipelineError):
    """Exception raised when input data is invalid."""

    pass


class ProcessingError(PipelineError):
    """Exception raised when processing fails."""

    pass


class NativeBackendError(ProcessingError):
    """Exception raised when an OpenCV-backed stage fails."""

    pass


def validate_image(image) -> None:
    """Raise InputError unless `image` is a non-empty 2D or 3D array."""
    if image is None:
        raise InputError("No image provided for score recognition")
    if image.ndim not in (2, 3) or image.size == 0:
        raise InputError(f"Unusable image of shape {image.shape}")


def process_binary_image(gray, options):
    """Convert a grayscale page to an ink mask.

    Args:
        gray: Grayscale image as a NumPy array
        options: Processing options

    Returns:
        BinaryResult containing the grayscale image and the binary mask
    """
    try:
        if gray is None:
            logger.warning("No image provided for binarization")
            return BinaryResult()

        binary_mask = binarize(
            gray, options.threshold_offset, options.skip_adaptive_binarization
        )
        return BinaryResult(gray=gray, binary_mask=binary_mask)
    except Exception as e:
        logger.error(f"Error in binary image processing: {str(e)}")
        return BinaryResult()


def estimate_staff(binary_result):
    """Find the staff spacing and five-line staff groups.

    Args:
        binary_result: Binary mask from preprocessing

    Returns:
        StaffResult with spacing, groups and the rebuilt staff mask
    """
    try:
        binary_mask = binary_result.binary_mask
        if binary_mask is None:
            logger.warning("No binary mask provided for staff estimation")
            return StaffResult()
        if not binary_mask.any():
            logger.warning("Binary mask is empty, no staff to estimate")
            return StaffResult(staff_mask=np.zeros_like(binary_mask))

        spacing = estimate_spacing(binary_mask)
        return build_staff_result(line_mask_from_density(binary_mask), spacing)
    except Exception as e:
        logger.error(f"Error in staff estimation: {str(e)}")
        return StaffResult()


def extract_symbols(binary_result, staff_result, options):
    """Remove staff lines and keep the ink near each staff.

    Args:
        binary_result: Binary mask from preprocessing
        staff_result: Staff geometry
        options: Processing options

    Returns:
        SymbolResult with the symbols-only and denoised masks
    """
    try:
        binary_mask = binary_result.binary_mask
        if binary_mask is None:
            logger.warning("No binary mask provided for symbol extraction")
            return SymbolResult()

        symbol_mask = extract_symbol_mask(
            binary_mask, staff_result.groups, staff_result.spacing
        )
        return SymbolResult(
            symbol_mask=symbol_mask,
            detection_mask=suppress_noise(symbol_mask, options),
        )
    except Exception as e:
        logger.error(f"Error in symbol extraction: {str(e)}")
        return SymbolResult()


def detect_notes(symbol_result, staff_result, options):
    """Detect note heads in the denoised symbol mask.

    Args:
        symbol_result: Symbol masks
        staff_result: Staff geometry
        options: Processing options

    Returns:
        DetectionResult containing accepted note heads and diagnostics
    """
    try:
        detection_mask = symbol_result.detection_mask
        if detection_mask is None:
            logger.warning("No symbol mask provided for note detection")
            return DetectionResult()

        h, w = detection_mask.shape
        return detect_note_heads(
            find_candidates(detection_mask), staff_result, options, w, h
        )
    except Exception as e:
        logger.error(f"Error in note detection: {str(e)}")
        return DetectionResult()


def resolve_notes(
    binary_result: BinaryResult,
    staff_result: StaffResult,
    symbol_result: SymbolResult,
    detection_result: DetectionResult,
    options: ProcessingOptions,
) -> list[NoteEvent]:
    """Turn accepted note heads into NoteEvents in reading order.

    Heads are ordered by staff, then left to right, and chunked four to a
    synthetic measure. Positions are normalized to the image size.
    """
    binary_mask = binary_result.binary_mask
    symbol_mask = symbol_result.symbol_mask
    groups = staff_result.groups
    if binary_mask is None or symbol_mask is None or not groups:
        return []

    h, w = binary_mask.shape
    placed = []
    for c in detection_result.candidates:
        index, group = nearest_group(c.cx, c.cy, groups)
        if group is not None:
            placed.append((index, c.cx, c, group))
    placed.sort(key=lambda item: (item[0], item[1]))

    notes = []
    for i, (_, _, c, group) in enumerate(placed):
        if options.line_stripe_pitch_refinement:
            step = refined_step(binary_mask, c, group)
        else:
            step = simple_step(c.cy, group)
        name, octave = pitch_for_step(step)
        notes.append(
            NoteEvent(
                name=name,
                octave=max(0, min(9, octave)),
                duration=classify_duration(symbol_mask, c, staff_result.spacing),
                measure=1 + i // NOTES_PER_MEASURE,
                x=max(0.0, min(1.0, c.cx / max(1, w - 1))),
                y=max(0.0, min(1.0, c.cy / max(1, h - 1))),
            )
        )
    return notes


def assemble_notes(
    binary_result, staff_result, symbol_result, detection_result, options
):
    """Resolve pitch and duration for every note head.

    Returns:
        List of NoteEvents, empty if resolution fails
    """
    try:
        if not detection_result.candidates:
            logger.warning("No note heads available for pitch resolution")
            return []
        return resolve_notes(
            binary_result, staff_result, symbol_result, detection_result, options
        )
    except Exception as e:
        logger.error(f"Error in note resolution: {str(e)}")
        return []


def run_fallback_stages(gray, options):
    """Run every stage with the numpy implementations.

    Returns:
        Tuple of (binary_result, staff_result, symbol_result,
        detection_result, notes)
    """
    binary_result = process_binary_image(gray, options)
    staff_result = estimate_staff(binary_result)
    symbol_result = extract_symbols(binary_result, staff_result, options)
    detection_result = detect_notes(symbol_result, staff_result, options)
    notes = assemble_notes(
        binary_result, staff_result, symbol_result, detection_result, options
    )
    return binary_result, staff_result, symbol_result, detection_result, notes


def run_native_stages(gray, options):
    """Run every stage with the OpenCV implementations where they exist.

    Nothing is caught along the way: the first failure is raised as a
    NativeBackendError so the caller can switch to the numpy stages.

    Returns:
        Tuple of (binary_result, staff_result, symbol_result,
        detection_result, notes)

    Raises:
        NativeBackendError: If OpenCV is missing or any stage fails.
    """
    try:
        from score_recognition import native

        with contextlib.ExitStack() as scratch:
            binary_mask = native.binarize(gray, options, scratch)
            spacing = estimate_spacing(binary_mask)
            staff_result = build_staff_result(
                native.staff_line_mask(binary_mask, spacing), spacing
            )
            symbol_mask = extract_symbol_mask(
                binary_mask, staff_result.groups, spacing
            )
            detection_mask = native.suppress_noise(symbol_mask, options)

            h, w = binary_mask.shape
            detection_result = detect_note_heads(
                native.find_candidates(detection_mask), staff_result, options, w, h
            )
            binary_result = BinaryResult(gray=gray, binary_mask=binary_mask)
            symbol_result = SymbolResult(
                symbol_mask=symbol_mask, detection_mask=detection_mask
            )
            notes = resolve_notes(
                binary_result, staff_result, symbol_result, detection_result, options
            )
    except Exception as e:
        raise NativeBackendError(f"Native pipeline failed: {str(e)}") from e
    return binary_result, staff_result, symbol_result, detection_result, notes


def assemble_result(
    image,
    title,
    options,
    mode,
    binary_result,
    staff_result,
    symbol_result,
    detection_result,
    notes,
):
    """Package stage outputs and page metadata into a ProcessingResult."""
    h, w = image.shape[:2]
    binary_mask = binary_result.binary_mask

    barlines = 0
    overlay = None
    if binary_mask is not None:
        if not binary_mask.any():
            logger.warning("Binary mask is empty, no notes can be recognized")
        barlines = estimate_barlines(binary_mask, staff_result.spacing)
        if (
            options.build_overlay
            and staff_result.staff_mask is not None
            and symbol_result.symbol_mask is not None
        ):
            overlay = compose_stage_overlay(
                binary_mask, staff_result.staff_mask, symbol_result.symbol_mask
            )

    diagnostics = detection_result.diagnostics if options.include_diagnostics else None
    if diagnostics is not None and not notes:
        logger.info(
            f"No notes recognized, most candidates lost to "
            f"{diagnostics.primary_loss_reason()}"
        )

    return ProcessingResult(
        title=title,
        notes=notes,
        staff_rows=staff_result.staff_rows,
        barlines=barlines,
        quality_score=estimate_quality_score(image),
        overlay_image=overlay,
        staff_corridors=staff_corridors(staff_result.groups, w, h),
        mode=mode,
        diagnostics=diagnostics,
    )


class ScoreProcessor:
    """Recognizes notes on photographed or scanned staff pages.

    Args:
        backend: Native backend latch. Processors built without one share
            the process-wide default, so one native failure switches every
            processor to the numpy stages.
    """

    def __init__(self, backend: NativeBackend | None = None):
        self.backend = backend if backend is not None else get_default_backend()

    def process(
        self,
        image: np.ndarray | None,
        title: str = "",
        options: ProcessingOptions | None = None,
    ) -> ProcessingResult:
        """Recognize the notes on one page.

        Args:
            image: RGB (or grayscale) page as a NumPy array.
            title: Title attached to the result.
            options: Processing options; defaults are used when omitted.

        Returns:
            ProcessingResult. Degenerate input yields an empty note list.
        """
        options = options if options is not None else ProcessingOptions()
        try:
            validate_image(image)
        except InputError as e:
            logger.warning(str(e))
            mode = "native" if self.backend.is_ready else "fallback"
            return ProcessingResult(title=title, mode=mode)

        gray = to_grayscale(image)

        stages = None
        mode = "fallback"
        if self.backend.is_ready:
            try:
                stages = run_native_stages(gray, options)
                mode = "native"
            except Exception as e:
                logger.warning(f"Falling back to numpy stages: {str(e)}")
                self.backend.disable(str(e))
        if stages is None:
            stages = run_fallback_stages(gray, options)

        result = assemble_result(image, title, options, mode, *stages)
        logger.debug(
            f"Recognized {len(result.notes)} notes on {result.staff_rows} "
            f"staves ({mode})"
        )
        return result
