"""
Geometry utilities for face recognition.
Binding of similarity matches to detected face regions.
"""

import re
from typing import List, Optional, Sequence, Tuple

from models.domain.face import BoundingBox, DetectedFace
from models.recognition_schemas import TemplateMatch

# Rekognition template ids are UUIDs; anything else is a placeholder
TEMPLATE_ID_PATTERN = re.compile(
    r'^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$',
    re.IGNORECASE
)


def is_real_template_id(value: Optional[str]) -> bool:
    """True if value looks like a template id issued by the recognition service."""
    return bool(value) and bool(TEMPLATE_ID_PATTERN.match(value))


def best_overlap(
    region: BoundingBox,
    faces: Sequence[DetectedFace],
) -> Tuple[Optional[DetectedFace], float]:
    """
    Face whose own area is best covered by region.

    Returns (face, ratio); (None, 0.0) if nothing overlaps. On equal ratios the
    earlier face wins.
    """
    best_face = None
    best_ratio = 0.0
    for face in faces:
        ratio = face.bounding_box.overlap_ratio(region)
        if ratio > best_ratio:
            best_ratio = ratio
            best_face = face
    return best_face, best_ratio


def bind_matches(
    matches: Sequence[TemplateMatch],
    faces: Sequence[DetectedFace],
    min_overlap: float = 0.5,
) -> Tuple[List[Tuple[TemplateMatch, DetectedFace, float]], List[TemplateMatch]]:
    """
    Greedily bind matches to unassigned faces by bounding-box overlap.

    Matches are taken in the given order (callers sort by similarity). Each
    match goes to the still-free face with the highest overlap ratio, and only
    if that ratio is strictly above min_overlap. Assigned faces are never
    candidates and a face receives at most one match.

    Returns:
        (bound, unbound) where bound holds (match, face, overlap_ratio)
    """
    free = [f for f in faces if not f.is_assigned]
    bound = []
    unbound = []

    for match in matches:
        if match.matched_region is None or not free:
            unbound.append(match)
            continue

        face, ratio = best_overlap(match.matched_region, free)
        if face is None or ratio <= min_overlap:
            unbound.append(match)
            continue

        bound.append((match, face, ratio))
        free = [f for f in free if f.id != face.id]

    return bound, unbound
