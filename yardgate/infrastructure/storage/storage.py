"""
Local image storage for gate photos.

Photos are written under a date-partitioned directory and referenced
from container records by their path relative to the storage root.
"""

import uuid
from datetime import datetime
from pathlib import Path

from yardgate.core.config import get_settings
from yardgate.core.logging import get_logger
from yardgate.domain.models import ContainerFile, GateAction

logger = get_logger(__name__)

EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}


class StorageError(Exception):
    """Raised when a photo cannot be written or read."""

    pass


class ImageStorage:
    """
    Stores gate photos on the local filesystem.

    Example:
        storage = ImageStorage("./storage/gate_photos")
        attachment = storage.save(photo_bytes, "image/jpeg", "CSQU3054383",
                                  GateAction.ENTRADA, datetime.now())
    """

    def __init__(self, root: str | Path | None = None):
        """
        Initialize storage.

        Args:
            root: Storage directory. Defaults to the configured image path.
        """
        self.root = Path(root or get_settings().image_storage_path)

    def save(
        self,
        data: bytes,
        content_type: str,
        container_number: str,
        action: GateAction,
        timestamp: datetime,
    ) -> ContainerFile:
        """
        Write a gate photo and describe it as a container attachment.

        Args:
            data: Photo bytes.
            content_type: MIME type of the photo.
            container_number: Container the photo belongs to.
            action: Gate action the photo documents.
            timestamp: When the action was confirmed.

        Returns:
            ContainerFile: Attachment pointing at the stored photo.

        Raises:
            StorageError: If the photo cannot be written.
        """
        extension = EXTENSIONS.get(content_type.lower(), ".jpg")
        name = f"{action.value}_{container_number}_{timestamp:%d-%m-%Y}{extension}"
        relative = Path(f"{timestamp:%Y-%m-%d}") / (
            f"{Path(name).stem}_{uuid.uuid4().hex[:8]}{extension}"
        )
        target = self.root / relative

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            logger.error("photo_save_failed", path=str(target), error=str(e))
            raise StorageError(f"Failed to store photo: {e}") from e

        logger.debug("photo_saved", path=str(relative), size=len(data))

        return ContainerFile(
            name=name,
            content_type=content_type,
            size=len(data),
            path=relative.as_posix(),
            uploaded_at=timestamp,
        )

    def load(self, path: str) -> bytes:
        """
        Read a stored photo.

        Raises:
            StorageError: If the photo does not exist or is outside the root.
        """
        target = self._resolve(path)
        try:
            return target.read_bytes()
        except OSError as e:
            raise StorageError(f"Failed to read photo: {e}") from e

    def delete(self, path: str) -> None:
        """Remove a stored photo whose record write did not go through."""
        target = self._resolve(path)
        try:
            target.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("photo_delete_failed", path=path, error=str(e))

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if self.root.resolve() not in target.parents:
            raise StorageError(f"Path outside storage root: {path}")
        return target
