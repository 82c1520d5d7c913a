"""
Recognition service adapter.

RecognitionBackend is the narrow interface the engine consumes; the
RekognitionBackend implementation talks to AWS Rekognition via boto3 and
converts every raw response into the typed models in
models.recognition_schemas, so nothing past this module looks at vendor
dictionaries.

All methods are blocking; services call them through asyncio.to_thread.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from core.config import settings
from core.exceptions import TerminalExternalError, TransientExternalError, ExternalServiceError
from core.logging import get_logger
from models.domain.face import BoundingBox
from models.recognition_schemas import (
    DetectedRegion,
    IndexedTemplate,
    QualityHints,
    TemplateMatch,
)

logger = get_logger(__name__)

# DeleteFaces accepts at most this many ids per request
DELETE_BATCH_SIZE = 4096
LIST_PAGE_SIZE = 4096

TRANSIENT_CODES = {
    "ThrottlingException",
    "ProvisionedThroughputExceededException",
    "InternalServerError",
    "ServiceUnavailableException",
    "LimitExceededException",
    "RequestTimeoutException",
}

NO_FACE_MESSAGE = (
    "No clear face detected in the image region. The face may be too small, "
    "blurry, or at an angle that prevents indexing."
)


def _friendly_message(code: str, message: str, collection_id: str) -> str:
    if code == "InvalidImageFormatException":
        return "Image format not supported. Please ensure the image is a valid JPEG or PNG file."
    if code == "ImageTooLargeException":
        return "Image is too large for the recognition service. Please resize the image and try again."
    if code == "InvalidParameterException":
        return "Invalid parameters provided to the recognition service. Please check the image quality."
    if code == "ResourceNotFoundException":
        return f"Face collection '{collection_id}' does not exist. Please create the collection first."
    if code in ("AccessDeniedException", "AccessDenied"):
        return "Access denied to the recognition service. Please check AWS credentials and permissions."
    return message or code


class RecognitionBackend(ABC):
    """Operations the engine needs from an external face recognition service."""

    collection_id: str

    @abstractmethod
    def detect(self, image_bytes: bytes) -> List[DetectedRegion]:
        """Locate faces in an image."""

    @abstractmethod
    def search(
        self,
        image_bytes: bytes,
        min_similarity: float,
        max_results: int,
        collection_id: Optional[str] = None,
    ) -> List[TemplateMatch]:
        """Find stored templates similar to a face in the image."""

    @abstractmethod
    def index(self, image_bytes: bytes, external_id: str, collection_id: Optional[str] = None) -> IndexedTemplate:
        """Register at most one template from the image."""

    @abstractmethod
    def delete_templates(self, template_ids: List[str], collection_id: Optional[str] = None) -> List[str]:
        """Delete templates; returns the ids the service confirmed as deleted."""

    @abstractmethod
    def list_templates(self, collection_id: Optional[str] = None) -> List[str]:
        """All template ids in the collection."""


class RekognitionBackend(RecognitionBackend):
    """AWS Rekognition implementation."""

    def __init__(self, client=None, collection_id: Optional[str] = None):
        self.collection_id = collection_id or settings.collection_id
        self.client = client or boto3.client(
            "rekognition",
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            region_name=settings.aws_region,
            config=Config(
                connect_timeout=5,
                read_timeout=30,
                retries={"mode": "standard", "max_attempts": 2},
            ),
        )
        logger.info(f"Rekognition backend initialized (collection: {self.collection_id})")

    # === Errors ===

    def _translate(self, error: Exception, operation: str, collection_id: str) -> ExternalServiceError:
        if isinstance(error, ClientError):
            err = error.response.get("Error", {})
            code = err.get("Code", "")
            message = _friendly_message(code, err.get("Message", ""), collection_id)
            if code in TRANSIENT_CODES:
                return TransientExternalError(message, operation=operation)
            return TerminalExternalError(message, operation=operation)
        if isinstance(error, NoCredentialsError):
            return TerminalExternalError("AWS credentials are not configured", operation=operation)
        return TransientExternalError(f"Recognition service unreachable: {error}", operation=operation)

    # === Collection ===

    def ensure_collection(self, collection_id: Optional[str] = None) -> bool:
        """Create the collection if missing. Returns True if it was created."""
        collection_id = collection_id or self.collection_id
        try:
            self.client.describe_collection(CollectionId=collection_id)
            return False
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") != "ResourceNotFoundException":
                raise self._translate(e, "ensure_collection", collection_id) from e
        except BotoCoreError as e:
            raise self._translate(e, "ensure_collection", collection_id) from e

        try:
            self.client.create_collection(CollectionId=collection_id)
        except (ClientError, BotoCoreError) as e:
            raise self._translate(e, "ensure_collection", collection_id) from e
        logger.info(f"Created face collection '{collection_id}'")
        return True

    # === Operations ===

    def detect(self, image_bytes: bytes) -> List[DetectedRegion]:
        try:
            response = self.client.detect_faces(Image={"Bytes": image_bytes}, Attributes=["DEFAULT"])
        except (ClientError, BotoCoreError) as e:
            raise self._translate(e, "detect", self.collection_id) from e

        regions = []
        for detail in response.get("FaceDetails", []):
            box = detail.get("BoundingBox") or {}
            quality = detail.get("Quality") or {}
            regions.append(DetectedRegion(
                bounding_box=BoundingBox.clamped(
                    box.get("Left", 0.0),
                    box.get("Top", 0.0),
                    box.get("Width", 0.0),
                    box.get("Height", 0.0),
                ),
                quality=QualityHints(
                    brightness=quality.get("Brightness"),
                    sharpness=quality.get("Sharpness"),
                    confidence=detail.get("Confidence"),
                ),
            ))
        logger.debug(f"detect: {len(regions)} face(s)")
        return regions

    def search(
        self,
        image_bytes: bytes,
        min_similarity: float,
        max_results: int,
        collection_id: Optional[str] = None,
    ) -> List[TemplateMatch]:
        collection_id = collection_id or self.collection_id
        try:
            response = self.client.search_faces_by_image(
                CollectionId=collection_id,
                Image={"Bytes": image_bytes},
                MaxFaces=max_results,
                FaceMatchThreshold=min_similarity,
            )
        except ClientError as e:
            # Raised when the image contains no face to search with
            if e.response.get("Error", {}).get("Code") == "InvalidParameterException":
                logger.info("search: no searchable face in image")
                return []
            raise self._translate(e, "search", collection_id) from e
        except BotoCoreError as e:
            raise self._translate(e, "search", collection_id) from e

        searched = response.get("SearchedFaceBoundingBox")
        matches = []
        for match in response.get("FaceMatches", []):
            face = match.get("Face") or {}
            template_id = face.get("FaceId")
            if not template_id:
                continue
            region = searched or face.get("BoundingBox")
            matches.append(TemplateMatch(
                remote_template_id=template_id,
                similarity=match.get("Similarity", 0.0),
                matched_region=BoundingBox.clamped(
                    region.get("Left", 0.0),
                    region.get("Top", 0.0),
                    region.get("Width", 0.0),
                    region.get("Height", 0.0),
                ) if region else None,
            ))
        return matches

    def index(self, image_bytes: bytes, external_id: str, collection_id: Optional[str] = None) -> IndexedTemplate:
        collection_id = collection_id or self.collection_id
        try:
            response = self.client.index_faces(
                CollectionId=collection_id,
                Image={"Bytes": image_bytes},
                ExternalImageId=external_id,
                DetectionAttributes=["DEFAULT"],
                MaxFaces=1,
                QualityFilter="AUTO",
            )
        except (ClientError, BotoCoreError) as e:
            raise self._translate(e, "index", collection_id) from e

        records = response.get("FaceRecords", [])
        if not records:
            raise TerminalExternalError(NO_FACE_MESSAGE, operation="index")

        face = records[0].get("Face") or {}
        return IndexedTemplate(
            remote_template_id=face["FaceId"],
            confidence=face.get("Confidence"),
            external_id=face.get("ExternalImageId", external_id),
        )

    def delete_templates(self, template_ids: List[str], collection_id: Optional[str] = None) -> List[str]:
        collection_id = collection_id or self.collection_id
        deleted = []
        for start in range(0, len(template_ids), DELETE_BATCH_SIZE):
            batch = template_ids[start:start + DELETE_BATCH_SIZE]
            try:
                response = self.client.delete_faces(CollectionId=collection_id, FaceIds=batch)
            except (ClientError, BotoCoreError) as e:
                raise self._translate(e, "delete_templates", collection_id) from e
            deleted.extend(response.get("DeletedFaces", []))
        return deleted

    def list_templates(self, collection_id: Optional[str] = None) -> List[str]:
        collection_id = collection_id or self.collection_id
        template_ids = []
        kwargs = {"CollectionId": collection_id, "MaxResults": LIST_PAGE_SIZE}
        while True:
            try:
                response = self.client.list_faces(**kwargs)
            except (ClientError, BotoCoreError) as e:
                raise self._translate(e, "list_templates", collection_id) from e
            template_ids.extend(f["FaceId"] for f in response.get("Faces", []) if f.get("FaceId"))
            token = response.get("NextToken")
            if not token:
                break
            kwargs["NextToken"] = token
        return template_ids


# Singleton instance
_backend: Optional[RekognitionBackend] = None


def get_recognition_backend() -> RekognitionBackend:
    """Get singleton Rekognition backend instance."""
    global _backend
    if _backend is None:
        _backend = RekognitionBackend()
    return _backend
