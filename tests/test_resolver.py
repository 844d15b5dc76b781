import asyncio

import pytest

from browser_control.browser.errors import NoActiveSession
from browser_control.browser.registry import SessionRegistry
from browser_control.browser.resolver import SessionResolver
from browser_control.browser.runtime_common import CloudSession
from browser_control.storage.session_records import STATUS_CLOSED, STATUS_RUNNING

from browser_fakes import FakeCloudClient, FakeEngineFactory, SpyRecordStore, running_session


def _build(sessions=(), *, project_fallback=True, with_cloud=True):
    factory = FakeEngineFactory()
    store = SpyRecordStore()
    cloud = FakeCloudClient(list(sessions)) if with_cloud else None
    registry = SessionRegistry(factory, record_store=store)
    resolver = SessionResolver(
        registry,
        cloud_client=cloud,
        record_store=store,
        project_fallback=project_fallback,
    )
    return resolver, registry, factory, store, cloud


@pytest.mark.asyncio
async def test_local_registry_hit_skips_cloud():
    resolver, registry, _, store, cloud = _build([running_session("cs-1")])
    entry, _ = await registry.create("t1")

    assert await resolver.resolve("t1") is entry
    assert cloud.get_calls == []
    assert store.get_calls == []


@pytest.mark.asyncio
async def test_caller_supplied_id_is_tried_before_record():
    resolver, _, factory, store, cloud = _build([running_session("cs-caller"), running_session("cs-record")])
    store.mark_running("t1", "cs-record")

    entry = await resolver.resolve("t1", "cs-caller")

    assert entry.cloud_session_id == "cs-caller"
    assert cloud.get_calls == ["cs-caller"]
    assert store.get_calls == []
    assert factory.engines[0].calls == [("attach", "cs-caller")]


@pytest.mark.asyncio
async def test_record_is_used_when_caller_gives_no_id():
    resolver, _, _, store, cloud = _build([running_session("cs-record")])
    store.mark_running("t1", "cs-record")

    entry = await resolver.resolve("t1")

    assert entry.cloud_session_id == "cs-record"
    assert cloud.get_calls == ["cs-record"]
    assert cloud.list_calls == 0


@pytest.mark.asyncio
async def test_dead_caller_id_falls_through_to_record():
    stopped = CloudSession(id="cs-dead", status="COMPLETED", connect_url=None)
    resolver, _, factory, store, cloud = _build([stopped, running_session("cs-record")])
    store.mark_running("t1", "cs-record")

    entry = await resolver.resolve("t1", "cs-dead")

    assert entry.cloud_session_id == "cs-record"
    assert cloud.get_calls == ["cs-dead", "cs-record"]
    # The dead candidate never reached attach.
    assert [engine.calls for engine in factory.engines] == [[("attach", "cs-record")]]


@pytest.mark.asyncio
async def test_project_fallback_prefers_sessions_tagged_with_tab():
    resolver, _, _, store, cloud = _build(
        [running_session("cs-other", tab_id="t9"), running_session("cs-mine", tab_id="t1")]
    )

    entry = await resolver.resolve("t1")

    assert entry.cloud_session_id == "cs-mine"
    assert cloud.get_calls == ["cs-mine"]
    record = store.get("t1")
    assert record.status == STATUS_RUNNING
    assert record.cloud_session_id == "cs-mine"


@pytest.mark.asyncio
async def test_project_fallback_can_be_disabled():
    resolver, _, _, _, cloud = _build([running_session("cs-any")], project_fallback=False)

    with pytest.raises(NoActiveSession):
        await resolver.resolve("t1")
    assert cloud.list_calls == 0


@pytest.mark.asyncio
async def test_closed_tab_does_not_resolve_to_another_session():
    resolver, registry, _, store, cloud = _build([running_session("cs-1")])
    await registry.create("t1")
    await registry.close("t1")

    with pytest.raises(NoActiveSession):
        await resolver.resolve("t1")
    assert cloud.get_calls == []
    assert cloud.list_calls == 0


@pytest.mark.asyncio
async def test_resolution_without_cloud_host_fails_fast():
    resolver, _, _, store, _ = _build(with_cloud=False)
    store.mark_running("t1", "cs-1")

    with pytest.raises(NoActiveSession) as excinfo:
        await resolver.resolve("t1")
    assert excinfo.value.code == "no_active_session"


@pytest.mark.asyncio
async def test_resolution_never_creates_a_session():
    resolver, _, factory, _, _ = _build([])

    with pytest.raises(NoActiveSession):
        await resolver.resolve("t1")
    assert all(("launch",) not in engine.calls for engine in factory.engines)


@pytest.mark.asyncio
async def test_concurrent_resolves_attach_once():
    resolver, _, factory, store, _ = _build([running_session("cs-record")])
    store.mark_running("t1", "cs-record")

    first, second = await asyncio.gather(resolver.resolve("t1"), resolver.resolve("t1"))

    assert first is second
    attaches = [call for engine in factory.engines for call in engine.calls if call[0] == "attach"]
    assert attaches == [("attach", "cs-record")]


@pytest.mark.asyncio
async def test_project_fallback_skips_sessions_tagged_for_other_tabs():
    resolver, _, factory, _, cloud = _build([running_session("cs-t2", tab_id="t2")])

    with pytest.raises(NoActiveSession):
        await resolver.resolve("t9")
    assert cloud.get_calls == []
    assert factory.engines == []


@pytest.mark.asyncio
async def test_project_fallback_uses_untagged_sessions():
    resolver, _, _, _, cloud = _build(
        [running_session("cs-t2", tab_id="t2"), running_session("cs-free")]
    )

    entry = await resolver.resolve("t9")

    assert entry.cloud_session_id == "cs-free"
    assert cloud.get_calls == ["cs-free"]


@pytest.mark.asyncio
async def test_closing_a_second_tab_keeps_the_first_one_closed():
    resolver, registry, _, store, cloud = _build([running_session("cs-free")])
    store.mark_running("t1", "cs-t1")
    await registry.close("t1")
    store.mark_running("t3", None)
    await registry.close("t3")

    for tab_id in ("t1", "t3"):
        with pytest.raises(NoActiveSession):
            await resolver.resolve(tab_id)
    assert cloud.list_calls == 0
    assert store.get("t1").status == STATUS_CLOSED


@pytest.mark.asyncio
async def test_tab_lock_outlives_queued_resolves():
    resolver, _, factory, store, cloud = _build([running_session("cs-record")])
    store.mark_running("t1", "cs-record")
    cloud.gate = asyncio.Event()

    tasks = [asyncio.ensure_future(resolver.resolve("t1")) for _ in range(3)]
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    assert resolver.pending_tabs == 1

    cloud.gate.set()
    entries = await asyncio.gather(*tasks)
    late = await resolver.resolve("t1")

    assert all(entry is late for entry in entries)
    attaches = [call for engine in factory.engines for call in engine.calls if call[0] == "attach"]
    assert attaches == [("attach", "cs-record")]
    assert resolver.pending_tabs == 0
