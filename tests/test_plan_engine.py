from __future__ import annotations

import asyncio

import pytest

from solaris.domain.errors import AuthorizationError, InvalidTransitionError, KindMismatchError, ToolValidationError
from solaris.domain.models.document import DocumentKind
from solaris.domain.plan.plan_document import PlanDocument, PlanStatus
from solaris.domain.streaming.stream_parts import StreamPartType


async def drain(subscription):
    subscription.end()
    return await subscription.collect()


@pytest.mark.asyncio
async def test_create_plan_starts_with_every_step_pending(plans):
    result = await plans.create_plan("Launch", "Ship the beta", ["Docs", "Release", "Announce"], "alice")

    assert result["kind"] == "plan"
    assert result["message"] == 'Plan "Launch" created with 3 steps'

    state = await plans.read_plan(result["id"], "alice")
    assert state["status"] == "in_progress"
    assert state["current_step"] == 1
    plan = PlanDocument.parse(state["content"])
    assert [s.done for s in plan.steps] == [False, False, False]
    assert [s.description for s in plan.steps] == ["Docs", "Release", "Announce"]


@pytest.mark.asyncio
async def test_create_plan_streams_the_rendered_content(plans, channel, store):
    watcher = channel.watch("chat-1")
    result = await plans.create_plan("Launch", "Ship", ["Docs", "Release"], "alice", chat_id="chat-1")
    parts = await drain(watcher)

    types = [p.type for p in parts]
    assert types[:4] == [StreamPartType.ID, StreamPartType.TITLE, StreamPartType.KIND, StreamPartType.CLEAR]
    assert parts[0].data == result["id"]
    assert parts[2].data == "plan"
    assert types[-1] == StreamPartType.FINISH
    assert set(types[4:-1]) == {StreamPartType.PLAN_DELTA}

    streamed = "".join(p.data for p in parts if p.type == StreamPartType.PLAN_DELTA)
    assert streamed == (await store.get_latest(result["id"])).content


@pytest.mark.asyncio
async def test_create_plan_requires_title_and_steps(plans, store):
    with pytest.raises(ToolValidationError):
        await plans.create_plan("  ", "Ship", ["Docs"], "alice")
    with pytest.raises(ToolValidationError):
        await plans.create_plan("Launch", "Ship", [], "alice")

    assert await store.list_by_owner("alice") == []


@pytest.mark.asyncio
async def test_update_adds_exactly_one_version(plans, store, writer):
    created = await plans.create_plan("Launch", "Ship", ["Docs", "Release", "Announce"], "alice")
    original = (await store.get_latest(created["id"])).content
    writer.outputs.append(PlanDocument.parse(original).mark_step(1).render())

    result = await plans.update_plan(created["id"], "Mark step 1 as complete", "alice")

    assert result["message"] == 'Plan "Launch" updated: Mark step 1 as complete'
    versions = await store.list_versions(created["id"])
    assert [v.version for v in versions] == [1, 2]
    assert versions[0].content == original

    state = await plans.read_plan(created["id"], "alice")
    assert state["current_step"] == 2

    system, prompt = writer.calls[-1]
    assert original in system
    assert prompt == "Mark step 1 as complete"


@pytest.mark.asyncio
async def test_completed_plan_cannot_be_reopened(plans, store, writer):
    created = await plans.create_plan("Launch", "Ship", ["Docs"], "alice")
    plan = PlanDocument.parse((await store.get_latest(created["id"])).content)
    completed = plan.mark_step(1).transition_to(PlanStatus.COMPLETED)
    writer.outputs.extend([completed.render(), plan.render()])

    await plans.update_plan(created["id"], "Complete the plan", "alice")
    with pytest.raises(InvalidTransitionError):
        await plans.update_plan(created["id"], "Reopen", "alice")

    assert len(await store.list_versions(created["id"])) == 2


@pytest.mark.asyncio
async def test_rejected_revision_aborts_the_stream(plans, store, channel, writer):
    created = await plans.create_plan("Launch", "Ship", ["Docs", "Release"], "alice")
    plan = PlanDocument.parse((await store.get_latest(created["id"])).content)
    writer.outputs.append(plan.model_copy(update={"steps": plan.steps[:1]}).render())

    watcher = channel.watch("chat-1")
    with pytest.raises(InvalidTransitionError):
        await plans.update_plan(created["id"], "Drop a step", "alice", chat_id="chat-1")
    parts = await drain(watcher)

    assert StreamPartType.FINISH not in [p.type for p in parts]
    assert len(await store.list_versions(created["id"])) == 1


@pytest.mark.asyncio
async def test_update_plan_on_another_kind_is_a_kind_mismatch(plans, store):
    doc = await store.create_version("Notes", DocumentKind.TEXT, "hello", "alice")

    with pytest.raises(KindMismatchError):
        await plans.update_plan(doc.id, "Mark step 1 complete", "alice")
    with pytest.raises(KindMismatchError):
        await plans.read_plan(doc.id, "alice")

    assert len(await store.list_versions(doc.id)) == 1


@pytest.mark.asyncio
async def test_non_owner_cannot_update_or_read(plans, store):
    created = await plans.create_plan("Launch", "Ship", ["Docs"], "alice")

    with pytest.raises(AuthorizationError):
        await plans.update_plan(created["id"], "Mark step 1 complete", "mallory")
    with pytest.raises(AuthorizationError):
        await plans.read_plan(created["id"], "mallory")

    assert len(await store.list_versions(created["id"])) == 1


@pytest.mark.asyncio
async def test_finish_is_only_seen_after_the_version_is_stored(plans, store, channel, writer):
    created = await plans.create_plan("Launch", "Ship", ["Docs", "Release"], "alice")
    original = (await store.get_latest(created["id"])).content
    revised = PlanDocument.parse(original).mark_step(1).render()
    writer.outputs.append(revised)

    watcher = channel.watch("chat-1")
    seen_at_finish = []

    async def consume():
        async for part in watcher:
            if part.type == StreamPartType.FINISH:
                seen_at_finish.append((await store.get_latest(created["id"])).content)
                watcher.close()

    consumer = asyncio.create_task(consume())
    await plans.update_plan(created["id"], "Mark step 1 as complete", "alice", chat_id="chat-1")
    await asyncio.wait_for(consumer, 1)

    assert seen_at_finish == [revised]


@pytest.mark.asyncio
async def test_step_update_cannot_complete_the_plan(plans, store, writer):
    created = await plans.create_plan("Launch", "Ship", ["Docs"], "alice")
    plan = PlanDocument.parse((await store.get_latest(created["id"])).content)
    writer.outputs.append(plan.mark_step(1).transition_to(PlanStatus.COMPLETED).render())

    with pytest.raises(InvalidTransitionError):
        await plans.update_plan(created["id"], "Mark step 1 complete", "alice")

    state = await plans.read_plan(created["id"], "alice")
    assert state["status"] == "in_progress"
    assert len(await store.list_versions(created["id"])) == 1


@pytest.mark.asyncio
async def test_large_plan_reaches_a_live_watcher_in_full(plans, channel, store):
    steps = [f"Task number {i} with a longer description" for i in range(1, 41)]
    watcher = channel.watch("chat-1")
    received = []

    async def consume():
        async for part in watcher:
            received.append(part)
            if part.type == StreamPartType.FINISH:
                watcher.close()

    consumer = asyncio.create_task(consume())
    result = await plans.create_plan("Launch", "Ship", steps, "alice", chat_id="chat-1")
    await asyncio.wait_for(consumer, 1)

    assert not watcher.detached
    assert len(received) > channel.subscriber_buffer
    assert received[-1].type == StreamPartType.FINISH
    streamed = "".join(p.data for p in received if p.type == StreamPartType.PLAN_DELTA)
    assert streamed == (await store.get_latest(result["id"])).content
