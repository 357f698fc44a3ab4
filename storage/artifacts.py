import os
import uuid
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os

from utils.logging import get_logger

logger = get_logger("artifacts")

URL_PREFIX = "/uploads"


class LocalArtifactStore:
    """Compressed images on local disk, served statically under /uploads.

    Filenames are random (uuid4) plus the output extension, so an artifact
    is never overwritten or shared between records.
    """

    def __init__(self, root: str):
        self.root = Path(root).resolve()

    def ensure_root(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def new_filename(extension: str) -> str:
        return f"{uuid.uuid4()}.{extension}"

    @staticmethod
    def url_for(filename: str) -> str:
        return f"{URL_PREFIX}/{filename}"

    def path_for(self, filename: str) -> Optional[Path]:
        """Resolve a filename inside the store; None if it escapes the root."""
        if not filename or os.sep in filename or "/" in filename or filename in (".", ".."):
            return None
        path = (self.root / filename).resolve()
        if path.parent != self.root:
            return None
        return path

    async def save(self, data: bytes, extension: str) -> str:
        """Write bytes under a fresh filename and return the filename."""
        self.ensure_root()
        filename = self.new_filename(extension)
        async with aiofiles.open(self.root / filename, "wb") as f:
            await f.write(data)
        return filename

    async def exists(self, filename: str) -> bool:
        path = self.path_for(filename)
        return path is not None and await aiofiles.os.path.isfile(path)

    async def delete(self, filename: str) -> bool:
        """Remove an artifact. Returns False if it was not there."""
        path = self.path_for(filename)
        if path is None:
            return False
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            return False
        logger.info("Artifact deleted", extra={"context": {"filename": filename}})
        return True
