"""Removal of uploaded files that belong to a rejected request."""

import asyncio
import os
from typing import Protocol


class FileCleanup(Protocol):
    """Deletes a stored upload. Callers treat failures as best-effort."""

    async def unlink(self, path: str) -> None:
        ...


class LocalFileCleanup:
    """Deletes uploads from the local filesystem."""

    async def unlink(self, path: str) -> None:
        # os.unlink blocks on slow disks and network mounts
        await asyncio.to_thread(os.unlink, path)
