"""Domain models for the score recognition pipeline.

This module provides a centralized location for all data models used
throughout the recognition pipeline. It includes:

- Core domain models (NoteEvent, StaffGroup, StaffCorridor, NoteCandidate)
- Pipeline processing stage results (BinaryResult, StaffResult, etc.)
- Reference comparison scores (ReferenceComparison)
- Configuration for a run (ProcessingOptions, DetectionProfile)

All models are built using pydantic for validation, ensuring type safety and
clear interfaces between pipeline components.
"""

# Re-export core models
from score_recognition.models.core_models import (
    MidiEvent,
    NoteCandidate,
    NoteEvent,
    StaffCorridor,
    StaffGroup,
)

# Re-export pipeline models
from score_recognition.models.pipeline_models import (
    BinaryResult,
    DetectionResult,
    NoteDetectionDiagnostics,
    ProcessingResult,
    ReferenceComparison,
    StaffResult,
    SymbolResult,
)

# Re-export setting models
from score_recognition.models.settings_models import (
    DetectionProfile,
    ProcessingOptions,
)
