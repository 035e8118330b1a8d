# src/chatrelay/storage/memory_session.py
"""
In-memory persistence: the slot is a plain string attribute.

Nothing survives the process. Useful for throwaway chats and for tests,
which can prime `data` with arbitrary (including corrupted) text.
"""

from typing import Optional

from .base_session import DEFAULT_HISTORY_LIMIT, BaseSessionPersistence


class InMemorySessionPersistence(BaseSessionPersistence):
    def __init__(self, data: Optional[str] = None, history_limit: int = DEFAULT_HISTORY_LIMIT):
        super().__init__(history_limit)
        self.data = data
        self.write_count = 0

    async def _read_slot(self) -> Optional[str]:
        return self.data

    async def _write_slot(self, data: str) -> None:
        self.data = data
        self.write_count += 1

    async def _remove_slot(self) -> None:
        self.data = None
