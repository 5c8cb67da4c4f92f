"""Operator kill switch for the assistant."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Protocol

from studymate_chat.errors import AssistantDisabled

logger = logging.getLogger(__name__)

PRE_CLASSIFICATION = "pre_classification"
PRE_GENERATION = "pre_generation"
POST_GENERATION = "post_generation"


class FlagFetch(Protocol):
    def __call__(self, *, cache: bool = True) -> Awaitable[bool]: ...


class FeatureFlagStore:
    """Holds the "assistant enabled" flag with an optional remote source.

    Cached reads are served for `cache_seconds`; uncached reads always go to
    the source. Without a `loader` the locally set value is authoritative.
    """

    def __init__(
        self,
        enabled: bool = True,
        *,
        loader: Callable[[], Awaitable[bool]] | None = None,
        cache_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._value = enabled
        self._loader = loader
        self._cache_seconds = cache_seconds
        self._clock = clock
        self._cached_at: float | None = None
        self._lock = asyncio.Lock()

    async def is_enabled(self, *, cache: bool = True) -> bool:
        if self._loader is None:
            return self._value
        if cache and self._cached_at is not None:
            if self._clock() - self._cached_at < self._cache_seconds:
                return self._value
        async with self._lock:
            value = bool(await self._loader())
            self._value = value
            self._cached_at = self._clock()
        return value

    def set_enabled(self, enabled: bool) -> None:
        self._value = enabled
        self._cached_at = None
        logger.warning("assistant %s by operator", "enabled" if enabled else "disabled")


class FeatureGate:
    """Re-reads the flag, uncached, at each pipeline checkpoint."""

    def __init__(self, fetch: FlagFetch) -> None:
        self._fetch = fetch

    async def check(self, checkpoint: str) -> None:
        if not await self._fetch(cache=False):
            raise AssistantDisabled(checkpoint)
