"""Local disk storage for ticket attachments."""
import logging
import os
import random
import shutil
import time
from typing import BinaryIO, List, Optional, Sequence

from fastapi import UploadFile

from chemflow.models.domain import StoredFile

logger = logging.getLogger(__name__)


class LocalFileStorage:
    """
    Saves uploads under upload_dir with a unique name and hands back metadata.
    Files are served by the app under /uploads.
    """

    def __init__(self, upload_dir: str):
        self.upload_dir = upload_dir
        os.makedirs(self.upload_dir, exist_ok=True)

    def _unique_name(self, original_name: str) -> str:
        unique_suffix = f"{int(time.time() * 1000)}-{random.randint(0, 10 ** 9)}"
        _, ext = os.path.splitext(original_name)
        return unique_suffix + ext

    def save(
        self,
        stream: BinaryIO,
        original_name: str,
        mime_type: Optional[str] = None
    ) -> StoredFile:
        filename = self._unique_name(original_name)
        path = os.path.join(self.upload_dir, filename)
        with open(path, "wb") as out:
            shutil.copyfileobj(stream, out)
        return StoredFile(
            filename=filename,
            original_name=original_name,
            mime_type=mime_type or "application/octet-stream",
            size_bytes=os.path.getsize(path),
            url=f"/uploads/{filename}",
        )

    def save_uploads(self, files: Optional[Sequence[UploadFile]]) -> List[StoredFile]:
        stored = []
        for upload in files or []:
            if not upload.filename:
                continue
            stored.append(self.save(upload.file, upload.filename, upload.content_type))
        return stored

    def discard(self, stored: Sequence[StoredFile]) -> None:
        """Remove files saved for a request that was then rejected."""
        for item in stored:
            path = os.path.join(self.upload_dir, item.filename)
            try:
                os.remove(path)
            except FileNotFoundError:
                logger.warning("Upload already gone: %s", item.filename)
