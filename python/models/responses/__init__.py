"""
Response DTOs - service results and API output models.
"""

from models.responses.recognition import (
    DetectionResult,
    BoundMatch,
    RecognitionResult,
    PipelineResult,
    CommitResult,
    ReassignResult,
    TemplateCleanup,
    DeletionSummary,
    DriftReport,
    PhotoWithFaces,
)

__all__ = [
    'DetectionResult',
    'BoundMatch',
    'RecognitionResult',
    'PipelineResult',
    'CommitResult',
    'ReassignResult',
    'TemplateCleanup',
    'DeletionSummary',
    'DriftReport',
    'PhotoWithFaces',
]
