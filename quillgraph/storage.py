import logging
import re
import uuid
from pathlib import Path

import aiofiles
import aiofiles.os

logger = logging.getLogger(__name__)

_UNSAFE_CHARS_RE = re.compile(r"[^\w.\-]+")


def safe_filename(filename: str | None) -> str:
    """Strip directories and anything outside ``[A-Za-z0-9_.-]``."""
    name = Path(filename or "").name
    name = _UNSAFE_CHARS_RE.sub("_", name).strip("._")
    return name or "upload"


class FileStorage:
    """
    Name-addressed blob store rooted at a local directory.

    Blobs are served read-only by the static files mount at *url_prefix*;
    this class only writes and deletes them.
    """

    def __init__(self, root: str | Path, url_prefix: str = "/uploads") -> None:
        self.root = Path(root)
        self.url_prefix = "/" + url_prefix.strip("/")

    def ensure_root(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def unique_name(self, filename: str | None) -> str:
        return f"{uuid.uuid4().hex}-{safe_filename(filename)}"

    def path_for(self, name: str) -> Path:
        path = (self.root / name).resolve()
        if path.parent != self.root.resolve():
            raise ValueError(f"Blob name escapes storage root: {name!r}")
        return path

    def url_for(self, name: str) -> str:
        return f"{self.url_prefix}/{name}"

    async def write(self, name: str, data: bytes) -> Path:
        self.ensure_root()
        path = self.path_for(name)
        async with aiofiles.open(path, "wb") as fh:
            await fh.write(data)
        logger.debug("Stored blob %s (%d bytes)", name, len(data))
        return path

    async def delete(self, name: str) -> None:
        """Remove a blob.  Raises ``OSError`` when it cannot be removed."""
        await aiofiles.os.remove(self.path_for(name))
        logger.debug("Deleted blob %s", name)

    async def exists(self, name: str) -> bool:
        return await aiofiles.os.path.exists(self.path_for(name))
