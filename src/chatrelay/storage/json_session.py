# src/chatrelay/storage/json_session.py
"""
JSON file-based persistence for the session collection.

The slot is a single JSON file. Writes go to a sibling temporary file that
is then renamed over the target, so readers see either the old or the new
collection and never a partial one. File operations use aiofiles.
"""

import contextlib
import logging
import os
import pathlib
import uuid
from typing import Optional, Union

import aiofiles
import aiofiles.os as aios

from ..exceptions import PersistenceCorruptionError
from .base_session import DEFAULT_HISTORY_LIMIT, BaseSessionPersistence

logger = logging.getLogger(__name__)


class JsonFileSessionPersistence(BaseSessionPersistence):
    """
    Stores every chat session in one JSON file.
    """

    def __init__(self, path: Union[str, pathlib.Path], history_limit: int = DEFAULT_HISTORY_LIMIT):
        """
        Args:
            path: Location of the JSON file. `~` is expanded. The parent
                directory is created on the first write.
            history_limit: Messages kept per session on every write.
        """
        super().__init__(history_limit)
        self._path = pathlib.Path(os.path.expanduser(str(path)))
        logger.debug("JSON session persistence using %s", self._path)

    @property
    def path(self) -> pathlib.Path:
        return self._path

    def _temp_path(self) -> pathlib.Path:
        return self._path.with_name(f".{self._path.name}.{uuid.uuid4().hex}.tmp")

    async def _read_slot(self) -> Optional[str]:
        if not await aios.path.exists(self._path):
            return None
        try:
            async with aiofiles.open(self._path, mode="r", encoding="utf-8") as f:
                return await f.read()
        except UnicodeDecodeError as e:
            raise PersistenceCorruptionError(f"Session file {self._path} is not valid UTF-8: {e}")

    async def _write_slot(self, data: str) -> None:
        await aios.makedirs(self._path.parent, exist_ok=True)
        temp_path = self._temp_path()
        try:
            async with aiofiles.open(temp_path, mode="w", encoding="utf-8") as f:
                await f.write(data)
            await aios.replace(temp_path, self._path)
        except OSError:
            with contextlib.suppress(OSError):
                await aios.remove(temp_path)
            raise
        logger.debug("Wrote %d bytes to %s", len(data), self._path)

    async def _remove_slot(self) -> None:
        try:
            await aios.remove(self._path)
        except FileNotFoundError:
            logger.debug("Session file %s already absent.", self._path)
