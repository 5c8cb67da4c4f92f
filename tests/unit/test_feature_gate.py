import asyncio

import pytest

from studymate_chat.errors import AssistantDisabled
from studymate_chat.guard.feature_gate import (
    POST_GENERATION,
    PRE_CLASSIFICATION,
    FeatureFlagStore,
    FeatureGate,
)


def test_gate_raises_with_checkpoint_when_disabled() -> None:
    store = FeatureFlagStore(False)
    gate = FeatureGate(store.is_enabled)

    with pytest.raises(AssistantDisabled) as excinfo:
        asyncio.run(gate.check(POST_GENERATION))

    assert excinfo.value.checkpoint == POST_GENERATION
    assert excinfo.value.status_code == 503


def test_gate_reads_flag_uncached_at_every_checkpoint() -> None:
    calls: list[bool] = []

    async def _fetch(*, cache: bool = True) -> bool:
        calls.append(cache)
        return True

    gate = FeatureGate(_fetch)

    async def _run() -> None:
        await gate.check(PRE_CLASSIFICATION)
        await gate.check(POST_GENERATION)

    asyncio.run(_run())
    assert calls == [False, False]


def test_store_caches_loader_reads_until_ttl() -> None:
    now = [0.0]
    values = [True, False]
    loads: list[int] = []

    async def _loader() -> bool:
        loads.append(1)
        return values[len(loads) - 1]

    store = FeatureFlagStore(loader=_loader, cache_seconds=30.0, clock=lambda: now[0])

    async def _run() -> tuple[bool, bool, bool]:
        first = await store.is_enabled()
        cached = await store.is_enabled()
        now[0] = 5.0
        fresh = await store.is_enabled(cache=False)
        return first, cached, fresh

    assert asyncio.run(_run()) == (True, True, False)
    assert len(loads) == 2


def test_operator_toggle_is_visible_immediately() -> None:
    store = FeatureFlagStore(True)
    store.set_enabled(False)

    assert asyncio.run(store.is_enabled(cache=True)) is False
