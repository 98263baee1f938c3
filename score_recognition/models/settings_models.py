"""Parameter models for pipeline configuration.

This module defines the pydantic models that configure a recognition run.
`ProcessingOptions` is the user-facing value object: every numeric field is
clamped into its safe range on construction, so building the same options
twice from the same out-of-range inputs always yields identical values.
`DetectionProfile` gathers every derived note-head threshold for one image
in a single validated object instead of scattering them through the
detection code.
"""

from pydantic import BaseModel, Field, field_validator, model_validator


def _clamp(value, lo, hi):
    return max(lo, min(hi, value))


def _clamped(lo, hi, cast):
    def validator(cls, value):
        if isinstance(value, bool) or value is None:
            return value
        try:
            return _clamp(cast(value), lo, hi)
        except (TypeError, ValueError):
            # let pydantic report the type error
            return value

    return validator


class ProcessingOptions(BaseModel):
    """Configuration for one recognition run.

    Attributes:
        threshold_offset: How much darker than its local mean a pixel must be
            to count as ink (1-32, default 7).
        symbol_neighborhood_hits: Minimum ink pixels in a 3x3 neighborhood for
            the fallback despeckle to keep a pixel (1-9, default 3).
        noise_level: Expected photo noise; selects the morphology kernel
            (0-1, default 0.5).
        skip_adaptive_binarization: Use a global Otsu threshold instead.
        skip_morph_noise_suppression: Leave the symbol mask undenoised.
        note_min_area_factor: Minimum head area in units of spacing².
        note_max_area_factor: Maximum head area in units of spacing².
        note_min_fill: Minimum area / bounding-box ratio.
        note_max_fill: Maximum area / bounding-box ratio.
        note_min_circularity: Minimum 4π·area/perimeter².
        recall_first_mode: Over-accept candidates and rely on the analytical
            filter to drop false positives.
        analytical_filter_strength: Strictness of the final analytical pass.
        staff_analytical_strength: Optional per-staff override of
            `analytical_filter_strength`; `None` entries use the global value.
        line_stripe_pitch_refinement: Resolve pitch with the local line
            re-estimation and ink/connectivity tests.
        include_diagnostics: Attach rejection counters to the result.
        build_overlay: Attach the stage overlay image to the result.
    """

    threshold_offset: int = Field(7, description="Adaptive threshold offset")
    symbol_neighborhood_hits: int = Field(
        3, description="Despeckle neighborhood hits (fallback path only)"
    )
    noise_level: float = Field(0.5, description="Expected noise level")
    skip_adaptive_binarization: bool = Field(
        False, description="Use a global threshold"
    )
    skip_morph_noise_suppression: bool = Field(
        False, description="Skip morphological denoising"
    )
    note_min_area_factor: float = Field(0.6, description="Min area / spacing²")
    note_max_area_factor: float = Field(4.0, description="Max area / spacing²")
    note_min_fill: float = Field(0.18, description="Min fill ratio")
    note_max_fill: float = Field(0.9, description="Max fill ratio")
    note_min_circularity: float = Field(0.32, description="Min circularity")
    recall_first_mode: bool = Field(False, description="Recall-first detection")
    analytical_filter_strength: float = Field(
        0.55, description="Analytical filter strictness"
    )
    staff_analytical_strength: tuple[float | None, ...] | None = Field(
        None, description="Per-staff analytical strength overrides"
    )
    line_stripe_pitch_refinement: bool = Field(
        False, description="Refined line/gap pitch resolution"
    )
    include_diagnostics: bool = Field(True, description="Attach diagnostics")
    build_overlay: bool = Field(True, description="Attach the stage overlay")

    class Config:
        frozen = True

    clamp_threshold = field_validator("threshold_offset", mode="before")(
        _clamped(1, 32, lambda v: int(round(float(v))))
    )
    clamp_hits = field_validator("symbol_neighborhood_hits", mode="before")(
        _clamped(1, 9, lambda v: int(round(float(v))))
    )
    clamp_noise = field_validator("noise_level", mode="before")(
        _clamped(0.0, 1.0, float)
    )
    clamp_min_area = field_validator("note_min_area_factor", mode="before")(
        _clamped(0.25, 2.2, float)
    )
    clamp_max_area = field_validator("note_max_area_factor", mode="before")(
        _clamped(1.5, 8.0, float)
    )
    clamp_min_fill = field_validator("note_min_fill", mode="before")(
        _clamped(0.08, 0.55, float)
    )
    clamp_max_fill = field_validator("note_max_fill", mode="before")(
        _clamped(0.55, 0.98, float)
    )
    clamp_circularity = field_validator("note_min_circularity", mode="before")(
        _clamped(0.08, 0.8, float)
    )
    clamp_strength = field_validator("analytical_filter_strength", mode="before")(
        _clamped(0.0, 1.0, float)
    )

    @field_validator("staff_analytical_strength", mode="before")
    @classmethod
    def clamp_overrides(cls, value):
        if value is None:
            return None
        return tuple(None if v is None else _clamp(float(v), 0.0, 1.0) for v in value)

    def analytical_strength_for(self, staff_index: int) -> float:
        """Return the analytical strength that applies to one staff."""
        overrides = self.staff_analytical_strength
        if overrides and 0 <= staff_index < len(overrides):
            override = overrides[staff_index]
            if override is not None:
                return override
        return self.analytical_filter_strength

    @property
    def morph_kernel_size(self) -> int:
        """Side of the denoising kernel: 3 for noisy photos, else 2."""
        return 3 if self.noise_level >= 0.66 else 2


class DetectionProfile(BaseModel):
    """Every note-head threshold derived for one image.

    Built once per run from `ProcessingOptions` and the estimated staff
    spacing; the recall-first variant relaxes each bound.

    Attributes:
        spacing: Global staff spacing in pixels.
        min_area: Minimum candidate area in pixels.
        max_area: Maximum candidate area in pixels.
        min_size: Minimum bounding-box side relative to the staff.
        max_size: Maximum bounding-box side relative to the staff.
        max_width: Absolute maximum bounding-box width (image relative).
        max_height: Absolute maximum bounding-box height (image relative).
        min_aspect: Minimum width / height.
        max_aspect: Maximum width / height.
        min_fill: Minimum area / bounding-box area.
        max_fill: Maximum area / bounding-box area.
        min_circularity: Minimum 4π·area/perimeter².
        x_margin_factor: Horizontal margin inside the staff span, in spacings.
        vertical_reach: Allowed distance beyond the outer lines, in spacings.
        recall_first: Whether the gap-sized rescue test is active.
    """

    spacing: float = Field(..., gt=0.0)
    min_area: float = Field(..., ge=1.0)
    max_area: float = Field(..., ge=1.0)
    min_size: float = Field(3.0, ge=1.0)
    max_size: float = Field(10.0, ge=1.0)
    max_width: float = Field(..., ge=1.0)
    max_height: float = Field(..., ge=1.0)
    min_aspect: float = Field(0.35, gt=0.0)
    max_aspect: float = Field(2.6, gt=0.0)
    min_fill: float = Field(0.18, ge=0.0, le=1.0)
    max_fill: float = Field(0.9, ge=0.0, le=1.0)
    min_circularity: float = Field(0.32, ge=0.0)
    x_margin_factor: float = Field(0.7, ge=0.0)
    vertical_reach: float = Field(1.5, ge=0.0)
    recall_first: bool = False

    @model_validator(mode="after")
    def check_ordered_bounds(self):
        if self.min_area > self.max_area:
            raise ValueError("min_area must not exceed max_area")
        if self.min_size > self.max_size:
            raise ValueError("min_size must not exceed max_size")
        if self.min_aspect > self.max_aspect:
            raise ValueError("min_aspect must not exceed max_aspect")
        if self.min_fill > self.max_fill:
            raise ValueError("min_fill must not exceed max_fill")
        return self

    @classmethod
    def from_options(
        cls, options: ProcessingOptions, spacing: float, width: int, height: int
    ) -> "DetectionProfile":
        s2 = spacing * spacing
        min_area = max(8.0, options.note_min_area_factor * s2)
        max_area = max(min_area, options.note_max_area_factor * s2)
        min_size = max(3.0, spacing * 0.35)
        max_size = max(10.0, spacing * 2.4)
        params = dict(
            spacing=spacing,
            min_area=min_area,
            max_area=max_area,
            min_size=min_size,
            max_size=max_size,
            max_width=max(3.0, width / 6.0),
            max_height=max(3.0, height / 5.0),
            min_aspect=0.35,
            max_aspect=2.6,
            min_fill=options.note_min_fill,
            max_fill=options.note_max_fill,
            min_circularity=options.note_min_circularity,
            vertical_reach=1.5,
        )
        if options.recall_first_mode:
            params.update(
                min_area=max(6.0, min_area * 0.6),
                max_area=max_area * 1.3,
                min_size=max(2.0, min_size * 0.75),
                max_size=max_size * 1.25,
                min_aspect=0.25,
                max_aspect=3.2,
                min_fill=options.note_min_fill * 0.7,
                max_fill=min(0.99, options.note_max_fill + 0.04),
                min_circularity=options.note_min_circularity * 0.7,
                x_margin_factor=0.4,
                vertical_reach=2.0,
                recall_first=True,
            )
        return cls(**params)
