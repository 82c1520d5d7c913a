"""
Remote template helpers.

Two deliberately separate policies for talking to the template collection:

- best_effort_delete_templates: used by cleanup paths. Never raises; the
  outcome is returned as a TemplateCleanup and failures are logged as
  warnings. Local state advances regardless, and leftovers surface in the
  drift audit.
- index_template_or_raise: used by the identity commit. Any failure raises
  TemplateIndexError so the caller's transaction rolls back.
"""

import asyncio
from typing import Iterable, Optional

from core.exceptions import ExternalServiceError, TemplateIndexError
from core.logging import get_logger
from infrastructure.rekognition import RecognitionBackend
from models.recognition_schemas import IndexedTemplate
from models.responses import TemplateCleanup
from utils.geometry import is_real_template_id

logger = get_logger(__name__)


def template_external_id(face_id: int, person_id: int) -> str:
    """ExternalImageId stored with a template, used to trace it back to local rows."""
    return f"face-{face_id}-person-{person_id}"


async def best_effort_delete_templates(
    backend: RecognitionBackend,
    template_ids: Iterable[Optional[str]],
    context: str = "cleanup",
) -> TemplateCleanup:
    """
    Delete real templates from the collection, tolerating any failure.

    Placeholder and empty ids are skipped without a remote call.
    """
    requested = sorted({t for t in template_ids if is_real_template_id(t)})
    if not requested:
        return TemplateCleanup()

    try:
        deleted = await asyncio.to_thread(backend.delete_templates, requested)
    except Exception as e:
        logger.warning(
            f"[{context}] Could not delete {len(requested)} template(s) from collection: {e}. "
            f"Local cleanup continues; ids: {requested}"
        )
        return TemplateCleanup(requested=requested, error=str(e))

    missing = set(requested) - set(deleted)
    if missing:
        logger.warning(f"[{context}] Collection did not confirm deletion of: {sorted(missing)}")
    else:
        logger.info(f"[{context}] Deleted {len(deleted)} template(s) from collection")
    return TemplateCleanup(requested=requested, deleted=sorted(deleted))


async def index_template_or_raise(
    backend: RecognitionBackend,
    face_image: bytes,
    face_id: int,
    person_id: int,
) -> IndexedTemplate:
    """Register one template for a face crop or raise TemplateIndexError."""
    external_id = template_external_id(face_id, person_id)
    try:
        indexed = await asyncio.to_thread(backend.index, face_image, external_id)
    except ExternalServiceError as e:
        logger.error(f"[commit] Indexing face {face_id} for person {person_id} failed: {e.message}")
        raise TemplateIndexError(e.message, face_id=face_id) from e
    except Exception as e:
        logger.error(f"[commit] Indexing face {face_id} for person {person_id} failed: {e}")
        raise TemplateIndexError(str(e), face_id=face_id) from e

    logger.info(f"[commit] Indexed face {face_id} as template {indexed.remote_template_id}")
    return indexed
