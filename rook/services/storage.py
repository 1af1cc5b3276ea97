"""
Attachment blob storage.

WHAT: Writes and reads attachment bytes on the local filesystem.

WHY: Attachment metadata lives in ticket_attachments; the bytes live here,
one directory per ticket, under a generated name so client-supplied file
names never become paths.

HOW: Blocking file I/O runs in Starlette's threadpool so an upload does not
stall the event loop.
"""

import logging
import os
import uuid
from pathlib import Path
from typing import Optional

from starlette.concurrency import run_in_threadpool

from rook.core.config import settings
from rook.core.exceptions import BlobStorageError


logger = logging.getLogger(__name__)


class LocalBlobStore:
    """
    Local-directory blob store.

    Layout: <root>/<ticket_type>/<ticket_id>/<uuid><ext>
    """

    def __init__(self, root: Optional[str] = None):
        self.root = Path(root or settings.STORAGE_DIR)

    def _build_path(self, ticket_type: str, ticket_id: int, file_name: str) -> Path:
        _, ext = os.path.splitext(file_name)
        # Keep short alphanumeric extensions only
        ext = ext.lower() if ext[1:].isalnum() and len(ext) <= 10 else ""
        return self.root / ticket_type / str(ticket_id) / f"{uuid.uuid4().hex}{ext}"

    async def save(self, ticket_type: str, ticket_id: int, file_name: str, data: bytes) -> str:
        """
        Write attachment bytes.

        Args:
            ticket_type: Parent ticket type value
            ticket_id: Parent ticket id
            file_name: Client file name (only its extension is used)
            data: Decoded file content

        Returns:
            Storage path to record in the attachment row

        Raises:
            BlobStorageError: If the file cannot be written
        """
        path = self._build_path(ticket_type, ticket_id, file_name)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        try:
            await run_in_threadpool(_write)
        except OSError as e:
            logger.error(f"Failed to write attachment for {ticket_type} {ticket_id}: {e}")
            raise BlobStorageError(message="Failed to store file", ticket_id=ticket_id) from e

        logger.info(f"Stored {len(data)} bytes for {ticket_type} {ticket_id} at {path}")
        return str(path)

    async def read(self, file_path: str) -> bytes:
        """
        Read attachment bytes.

        Raises:
            BlobStorageError: If the file is missing or unreadable
        """
        try:
            return await run_in_threadpool(Path(file_path).read_bytes)
        except OSError as e:
            logger.error(f"Failed to read attachment at {file_path}: {e}")
            raise BlobStorageError(message="Failed to read file") from e

    async def delete(self, file_path: str) -> None:
        """Remove stored bytes; a missing file is not an error."""
        await run_in_threadpool(Path(file_path).unlink, True)


def get_blob_store() -> LocalBlobStore:
    """FastAPI dependency returning the configured blob store."""
    return LocalBlobStore()
