import io
import os
import uuid
import shutil
import logging
from dataclasses import dataclass
from typing import BinaryIO, Optional

from tutordesk.core.config import settings
from tutordesk.core.exceptions import ExternalServiceError, ValidationError

logger = logging.getLogger(__name__)

CHUNK = 1024 * 1024


@dataclass
class StoredBlob:
    path: str
    size: int


def build_rel_path(*parts: str) -> str:
    """Relative, forward-slash path as stored in the database."""
    return "/".join(str(p).strip("/\\") for p in parts if p)


class LocalBlobStore:
    """Blob store on the local filesystem under ``root``.

    Stored paths are relative to ``root``; anything resolving outside of it
    is treated as absent.
    """

    def __init__(self, root: str, max_bytes: int, allowed_extensions: list[str]):
        self.root = os.path.abspath(root)
        self.max_bytes = max_bytes
        self.allowed_extensions = {e.lower().lstrip(".") for e in allowed_extensions}

    def _abs(self, rel_path: str) -> Optional[str]:
        abs_path = os.path.abspath(os.path.join(self.root, rel_path.replace("/", os.sep)))
        if os.path.commonpath([self.root, abs_path]) != self.root:
            return None
        return abs_path

    def check_extension(self, filename: str) -> str:
        _, ext = os.path.splitext(filename or "")
        ext = ext.lower().lstrip(".")
        if ext not in self.allowed_extensions:
            raise ValidationError.for_field("file", f"File type '.{ext}' is not allowed" if ext else "File has no extension")
        return ext

    def put(self, owner_dir: str, filename: str, source: BinaryIO | bytes) -> StoredBlob:
        """Stores ``source`` under ``owner_dir`` with a random name.

        Raises ValidationError for a disallowed extension or an oversized file,
        ExternalServiceError when the filesystem refuses the write.
        """
        ext = self.check_extension(filename)
        if isinstance(source, (bytes, bytearray)):
            source = io.BytesIO(source)

        try:
            tmp_dir = os.path.join(self.root, "tmp")
            os.makedirs(tmp_dir, exist_ok=True)
            tmp_path = os.path.join(tmp_dir, f"{uuid.uuid4().hex}.upload")
            total = 0
            with open(tmp_path, "wb") as out:
                while True:
                    chunk = source.read(CHUNK)
                    if not chunk:
                        break
                    total += len(chunk)
                    if total > self.max_bytes:
                        break
                    out.write(chunk)
            if total > self.max_bytes:
                os.remove(tmp_path)
                raise ValidationError.for_field(
                    "file", f"File too large (limit {self.max_bytes // (1024 * 1024)} MB)"
                )

            rel_dir = build_rel_path("materials", owner_dir)
            dest_dir = os.path.join(self.root, rel_dir)
            os.makedirs(dest_dir, exist_ok=True)
            dest_name = f"{uuid.uuid4().hex}.{ext}"
            shutil.move(tmp_path, os.path.join(dest_dir, dest_name))
        except OSError as exc:
            raise ExternalServiceError("blob-store", f"could not store {filename}: {exc}") from exc

        return StoredBlob(path=build_rel_path(rel_dir, dest_name), size=total)

    def exists(self, rel_path: str) -> bool:
        abs_path = self._abs(rel_path)
        return bool(abs_path) and os.path.isfile(abs_path)

    def get(self, rel_path: str) -> BinaryIO:
        abs_path = self._abs(rel_path)
        if not abs_path or not os.path.isfile(abs_path):
            raise FileNotFoundError(rel_path)
        return open(abs_path, "rb")

    def delete(self, rel_path: str) -> bool:
        """Removes the blob; False when it was already gone."""
        abs_path = self._abs(rel_path)
        if not abs_path or not os.path.isfile(abs_path):
            return False
        try:
            os.remove(abs_path)
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise ExternalServiceError("blob-store", f"could not delete {rel_path}: {exc}") from exc
        return True


def discard_blob(store, rel_path: Optional[str], attempts: int = 2) -> Optional[str]:
    """Best-effort blob removal, retried once.

    Returns a warning message when the blob could not be removed, None otherwise.
    Never raises.
    """
    if not rel_path:
        return None
    last_error = None
    for _ in range(attempts):
        try:
            if not store.delete(rel_path):
                logger.info("Blob already gone: %s", rel_path)
            return None
        except ExternalServiceError as exc:
            last_error = exc
    logger.warning("Failed to delete blob %s: %s", rel_path, last_error)
    return f"Could not delete file {rel_path}: {last_error}"


def get_default_store() -> LocalBlobStore:
    return LocalBlobStore(settings.MEDIA_ROOT, settings.MAX_FILE_SIZE, settings.ALLOWED_EXTENSIONS)
