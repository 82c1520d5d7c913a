"""
Image helpers (Pillow).
"""

import io

from PIL import Image, UnidentifiedImageError

from core.exceptions import InvalidBoundingBoxError, InvalidImageError
from models.domain.face import BoundingBox


def face_crop_box(bbox: BoundingBox, img_width: int, img_height: int, padding: float = 0.3):
    """
    Pixel crop box (left, upper, right, lower) for a face plus padding on each side,
    clamped to the image.
    """
    x = bbox.left * img_width
    y = bbox.top * img_height
    width = bbox.width * img_width
    height = bbox.height * img_height

    padding_x = width * padding
    padding_y = height * padding

    crop_left = max(0, int(x - padding_x))
    crop_top = max(0, int(y - padding_y))
    crop_right = min(img_width, int(round(x + width + padding_x)))
    crop_bottom = min(img_height, int(round(y + height + padding_y)))
    return crop_left, crop_top, crop_right, crop_bottom


def crop_face_region(image_bytes: bytes, bbox: BoundingBox, padding: float = 0.3, quality: int = 95) -> bytes:
    """
    Cut one face out of a photo and re-encode it as JPEG.

    Used for template indexing so the recognition service sees exactly one face.

    Raises:
        InvalidImageError: bytes are not a decodable image
        InvalidBoundingBoxError: box is empty after clamping
    """
    try:
        image = Image.open(io.BytesIO(image_bytes))
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        raise InvalidImageError(f"Cannot decode image: {e}") from e

    box = face_crop_box(bbox, image.width, image.height, padding)
    if box[2] <= box[0] or box[3] <= box[1]:
        raise InvalidBoundingBoxError()

    face = image.crop(box)
    if face.mode != "RGB":
        face = face.convert("RGB")

    out = io.BytesIO()
    face.save(out, format="JPEG", quality=quality)
    return out.getvalue()
