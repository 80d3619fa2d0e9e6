# app/services/photo_service.py
import logging
import uuid

from fastapi import HTTPException, status

from app.core import storage_utils
from app.core.log_utils import mask_uid

logger = logging.getLogger(__name__)

# --- Image config ---

MAX_IMAGE_BYTES = 5 * 1024 * 1024  # 5MB per image

ALLOWED_IMAGE_CONTENT_TYPES: dict[str, str] = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}


class PhotoService:
    """
    Item photo uploads.

    The photo is uploaded first; the returned URL is then sent
    as `photo_url` in the deposit payload.
    """

    @staticmethod
    def _validate_and_get_ext(content_type: str, file_bytes: bytes) -> str:
        if content_type not in ALLOWED_IMAGE_CONTENT_TYPES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Unsupported image type. Allowed: JPEG, PNG, WEBP.",
            )

        if len(file_bytes) > MAX_IMAGE_BYTES:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail="Image too large (max 5MB).",
            )

        if not file_bytes:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Uploaded file is empty",
            )

        return ALLOWED_IMAGE_CONTENT_TYPES[content_type]

    def upload_item_photo(
        self,
        user_id: uuid.UUID,
        content_type: str,
        file_bytes: bytes,
    ) -> str:
        """
        Upload a photo to a random filename under the attendant's folder.

        Path pattern:
            deposits/<user_id>/<uuid>.<ext>

        Raises:
            HTTPException(502): if the storage host rejects the upload.
        """
        ext = self._validate_and_get_ext(content_type, file_bytes)
        path = f"deposits/{user_id}/{storage_utils.generate_filename(ext)}"

        try:
            return storage_utils.upload_to_storage(path, file_bytes, content_type)
        except Exception as e:
            logger.error(
                "Photo upload failed for %s: %s", mask_uid(user_id), e
            )
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="Image upload failed, please try again",
            )
