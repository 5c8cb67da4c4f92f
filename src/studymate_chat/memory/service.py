"""Read and write paths around the memory store."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from studymate_chat.config import MemoryConfig
from studymate_chat.memory.extraction import extract_memory_entries
from studymate_chat.memory.store import MemoryStore
from studymate_chat.types import MemoryEntry

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class MemoryState:
    entries: list[MemoryEntry] = field(default_factory=list)
    enabled: bool = False


class MemoryService:
    """Recall never raises; a failed read resolves per `MemoryConfig.fail_open`."""

    def __init__(self, store: MemoryStore, config: MemoryConfig | None = None) -> None:
        self.store = store
        self.config = config or MemoryConfig()

    async def recall(self, user_id: str | None) -> MemoryState:
        if user_id is None:
            return MemoryState()
        try:
            if not await self.store.get_preference(user_id):
                return MemoryState()
            entries = await self.store.get(user_id)
        except Exception:
            logger.warning(
                "Memory read failed for %s; continuing with memory %s",
                user_id,
                "enabled" if self.config.fail_open else "disabled",
                exc_info=True,
            )
            return MemoryState(enabled=self.config.fail_open)
        return MemoryState(entries=entries[-self.config.max_entries :], enabled=True)

    async def remember(self, user_id: str, text: str) -> int:
        """Persist facts extracted from `text`; returns how many were found."""

        entries = extract_memory_entries(text)
        if entries:
            await self.store.upsert(user_id, entries)
        return len(entries)
