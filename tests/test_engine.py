import asyncio

import pytest

from reddit_tree.engine import CommentTreeFetchEngine
from reddit_tree.errors import (
    DuplicateNode,
    FatalRootFetch,
    MalformedFragment,
    TransportError,
    UnknownParent,
)
from reddit_tree.models import EngineState


def refs(prefix, n):
    return [f"{prefix}{i}" for i in range(n)]


@pytest.mark.asyncio
async def test_article_comment_and_25_ref_continuation(reddit):
    children = {ref: [reddit.comment(f"t1_{ref}", "t3_abc")] for ref in refs("c", 25)}
    # One fetched child has a reply of its own
    children["c3"].append(reddit.comment("t1_c3r", "t1_c3"))
    transport = reddit.FakeTransport(
        thread_payload=reddit.thread(
            "t3_abc", reddit.comment("t1_1", "t3_abc"), reddit.more(refs("c", 25), "t3_abc")
        ),
        children=children,
    )
    emitted = []
    engine = CommentTreeFetchEngine(transport, "abc", emitted.append)

    summary = await engine.run()

    assert engine.state is EngineState.DONE
    assert emitted[0].id == "t3_abc" and emitted[0].path == ()
    assert emitted[1].id == "t1_1" and emitted[1].path == ("t3_abc",)
    assert transport.more_calls == [refs("c", 25)[:20], refs("c", 25)[20:]]
    by_id = {n.id: n for n in emitted}
    assert by_id["t1_c24"].path == ("t3_abc",)
    assert by_id["t1_c3r"].path == ("t1_c3", "t3_abc")
    assert by_id["t1_c3r"].level == 2
    assert summary.nodes_emitted == len(emitted) == 2 + 25 + 1
    assert summary.batches_processed == 2
    assert summary.batches_failed == 0


@pytest.mark.asyncio
async def test_root_transport_error_is_fatal(reddit):
    transport = reddit.FakeTransport(root_error=TransportError("status 503", status_code=503))
    emitted = []
    engine = CommentTreeFetchEngine(transport, "abc", emitted.append)

    with pytest.raises(FatalRootFetch) as exc:
        await engine.run()

    assert engine.state is EngineState.DONE
    assert emitted == []
    assert isinstance(exc.value.__cause__, TransportError)
    assert transport.more_calls == []


@pytest.mark.asyncio
async def test_root_malformed_json_is_fatal(reddit):
    transport = reddit.FakeTransport(root_error=MalformedFragment("invalid JSON"))
    with pytest.raises(FatalRootFetch):
        await CommentTreeFetchEngine(transport, "abc", lambda n: None).run()


@pytest.mark.asyncio
async def test_failed_batch_is_dropped_but_run_succeeds(reddit):
    transport = reddit.FakeTransport(
        thread_payload=reddit.thread(
            "t3_abc",
            reddit.comment("t1_1", "t3_abc", replies=reddit.listing(reddit.more(["bad"], "t1_1"))),
            reddit.comment("t1_2", "t3_abc", replies=reddit.listing(reddit.more(["good"], "t1_2"))),
        ),
        children={
            "bad": [reddit.comment("t1_bad", "t1_1")],
            "good": [reddit.comment("t1_good", "t1_2")],
        },
        failing={"bad"},
    )
    emitted = []
    summary = await CommentTreeFetchEngine(transport, "abc", emitted.append).run()

    ids = [n.id for n in emitted]
    assert "t1_bad" not in ids
    assert "t1_good" in ids
    assert summary.batches_failed == 1
    assert summary.batches_processed == 1


@pytest.mark.asyncio
async def test_nested_more_in_fetched_response_is_followed(reddit):
    transport = reddit.FakeTransport(
        thread_payload=reddit.thread("t3_abc", reddit.more(["a"], "t3_abc")),
        children={
            "a": [reddit.comment("t1_a", "t3_abc"), reddit.more(["b"], "t1_a")],
            "b": [reddit.comment("t1_b", "t1_a")],
        },
    )
    emitted = []
    await CommentTreeFetchEngine(transport, "abc", emitted.append).run()

    assert transport.more_calls == [["a"], ["b"]]
    assert emitted[-1].path == ("t1_a", "t3_abc")


@pytest.mark.asyncio
async def test_no_continuations_completes_immediately(reddit):
    transport = reddit.FakeTransport(
        thread_payload=reddit.thread("t3_abc", reddit.comment("t1_1", "t3_abc"))
    )
    summary = await asyncio.wait_for(
        CommentTreeFetchEngine(transport, "abc", lambda n: None).run(), timeout=2
    )
    assert summary.nodes_emitted == 2
    assert summary.batches_processed == 0


@pytest.mark.asyncio
async def test_continuation_fetches_never_overlap(reddit):
    in_flight = 0
    peak = 0

    class SlowTransport(reddit.FakeTransport):
        async def get_more_children(self, thread_id, child_refs):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.001)
            in_flight -= 1
            return await super().get_more_children(thread_id, child_refs)

    transport = SlowTransport(
        thread_payload=reddit.thread("t3_abc", reddit.more(refs("c", 70), "t3_abc")),
        children={ref: [reddit.comment(f"t1_{ref}", "t3_abc")] for ref in refs("c", 70)},
    )
    summary = await CommentTreeFetchEngine(transport, "abc", lambda n: None).run()

    assert peak == 1
    assert [len(c) for c in transport.more_calls] == [20, 20, 20, 10]
    assert summary.nodes_emitted == 71


@pytest.mark.asyncio
async def test_smaller_max_batch_resplits_remainders(reddit):
    transport = reddit.FakeTransport(
        thread_payload=reddit.thread("t3_abc", reddit.more(refs("c", 7), "t3_abc")),
    )
    await CommentTreeFetchEngine(transport, "abc", lambda n: None, max_batch=3).run()
    assert [len(c) for c in transport.more_calls] == [3, 3, 1]


@pytest.mark.asyncio
async def test_duplicate_node_aborts_the_run(reddit):
    transport = reddit.FakeTransport(
        thread_payload=reddit.thread(
            "t3_abc", reddit.comment("t1_1", "t3_abc"), reddit.more(["a"], "t3_abc")
        ),
        children={"a": [reddit.comment("t1_1", "t3_abc")]},
    )
    engine = CommentTreeFetchEngine(transport, "abc", lambda n: None)
    with pytest.raises(DuplicateNode):
        await engine.run()
    assert engine.state is EngineState.DONE


@pytest.mark.asyncio
async def test_engine_runs_once(reddit):
    transport = reddit.FakeTransport(thread_payload=reddit.thread("t3_abc"))
    engine = CommentTreeFetchEngine(transport, "abc", lambda n: None)
    await engine.run()
    with pytest.raises(RuntimeError):
        await engine.run()


def test_max_batch_cannot_exceed_api_cap(reddit):
    with pytest.raises(ValueError):
        CommentTreeFetchEngine(reddit.FakeTransport(), "abc", lambda n: None, max_batch=21)


@pytest.mark.asyncio
async def test_replies_to_failed_batch_are_skipped_in_later_batches(reddit):
    children = {ref: [reddit.comment(f"t1_{ref}", "t3_abc")] for ref in refs("c", 25)}
    # c20 lands in the remainder batch but replies to a comment from the failed one
    children["c20"] = [reddit.comment("t1_c20", "t1_c0")]
    children["s"] = [reddit.comment("t1_s", "t3_abc")]
    transport = reddit.FakeTransport(
        thread_payload=reddit.thread(
            "t3_abc",
            reddit.more(refs("c", 25), "t3_abc"),
            reddit.more(["s"], "t3_abc", name="t1_more2"),
        ),
        children=children,
        failing={"c0"},
    )
    emitted = []
    engine = CommentTreeFetchEngine(transport, "abc", emitted.append)

    summary = await engine.run()

    ids = {n.id for n in emitted}
    assert engine.state is EngineState.DONE
    assert "t1_c20" not in ids
    assert "t1_c19" not in ids
    assert {"t1_s", "t1_c21", "t1_c24"} <= ids
    assert summary.batches_failed == 1
    assert summary.batches_processed == 2
    assert summary.nodes_skipped == 1
    assert summary.nodes_emitted == len(emitted) == 1 + 1 + 4


@pytest.mark.asyncio
async def test_unknown_parent_in_continuation_aborts_the_run(reddit):
    transport = reddit.FakeTransport(
        thread_payload=reddit.thread("t3_abc", reddit.more(["a", "b"], "t3_abc")),
        children={"a": [reddit.comment("t1_a", "t3_abc")], "b": [reddit.comment("t1_b", "t1_zz")]},
    )
    with pytest.raises(UnknownParent):
        await CommentTreeFetchEngine(transport, "abc", lambda n: None).run()
