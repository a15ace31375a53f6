"""Tests for the coalescing write-behind buffer."""

import asyncio
from invoicemax.services.sync import CoalescingWriteBehind


class RecordingWriter:
    def __init__(self, fail_keys=()):
        self.calls = []
        self.fail_keys = set(fail_keys)

    def __call__(self, key, value):
        if key in self.fail_keys:
            raise RuntimeError(f"cannot write {key}")
        self.calls.append((key, value))


def test_burst_coalesces_into_single_write_with_latest_value():
    writer = RecordingWriter()

    async def scenario():
        buffer = CoalescingWriteBehind(writer, window=0.1)
        for n in range(10):
            buffer.submit("draft", {"notes": f"edit {n}"})
            await asyncio.sleep(0.005)
        await asyncio.sleep(0.3)
        return buffer

    buffer = asyncio.run(scenario())

    assert writer.calls == [("draft", {"notes": "edit 9"})]
    assert buffer.write_count == 1


def test_merge_folds_partial_updates():
    writer = RecordingWriter()

    async def scenario():
        buffer = CoalescingWriteBehind(writer, window=10)
        buffer.submit("client", {"name": "Globex"}, merge=True)
        buffer.submit("client", {"phone": "123"}, merge=True)
        buffer.submit("client", {"name": "Globex Ltd"}, merge=True)
        assert buffer.pending("client") == {"name": "Globex Ltd", "phone": "123"}
        await buffer.flush()

    asyncio.run(scenario())

    assert writer.calls == [("client", {"name": "Globex Ltd", "phone": "123"})]


def test_keys_have_independent_timers():
    writer = RecordingWriter()

    async def scenario():
        buffer = CoalescingWriteBehind(writer, window=0.05)
        buffer.submit("draft", {"notes": "a"})
        buffer.submit("client", {"name": "b"})
        await asyncio.sleep(0.15)

    asyncio.run(scenario())

    assert sorted(key for key, _ in writer.calls) == ["client", "draft"]


def test_flush_single_key_leaves_others_pending():
    writer = RecordingWriter()

    async def scenario():
        buffer = CoalescingWriteBehind(writer, window=10)
        buffer.submit("a", 1)
        buffer.submit("b", 2)
        await buffer.flush("a")
        assert buffer.pending("a") is None
        assert buffer.pending("b") == 2
        await buffer.close()

    asyncio.run(scenario())

    assert writer.calls == [("a", 1), ("b", 2)]


def test_pending_returns_a_copy():
    async def scenario():
        buffer = CoalescingWriteBehind(RecordingWriter(), window=10)
        buffer.submit("k", {"items": [1]})
        buffer.pending("k")["items"].append(2)
        value = buffer.pending("k")
        await buffer.close()
        return value

    assert asyncio.run(scenario()) == {"items": [1]}


def test_failed_write_is_recorded_and_kept_but_not_retried():
    writer = RecordingWriter(fail_keys={"bad"})

    async def scenario():
        buffer = CoalescingWriteBehind(writer, window=0.02)
        buffer.submit("bad", 1)
        buffer.submit("good", 2)
        await asyncio.sleep(0.1)
        return buffer

    buffer = asyncio.run(scenario())

    assert isinstance(buffer.failures["bad"], RuntimeError)
    assert "good" not in buffer.failures
    assert buffer.pending("bad") == 1
    assert writer.calls == [("good", 2)]


def test_failed_value_merges_with_next_edit_and_flush_clears_failure():
    writer = RecordingWriter(fail_keys={"draft"})

    async def scenario():
        buffer = CoalescingWriteBehind(writer, window=0.02)
        buffer.submit("draft", {"notes": "hello"}, merge=True)
        await asyncio.sleep(0.1)
        assert "draft" in buffer.failures

        writer.fail_keys.clear()
        buffer.submit("draft", {"terms": "Net 7"}, merge=True)
        await buffer.flush()
        return buffer

    buffer = asyncio.run(scenario())

    assert writer.calls == [("draft", {"notes": "hello", "terms": "Net 7"})]
    assert buffer.failures == {}
    assert buffer.pending_keys() == []


def test_async_writer_is_awaited():
    calls = []

    async def writer(key, value):
        await asyncio.sleep(0)
        calls.append((key, value))

    async def scenario():
        buffer = CoalescingWriteBehind(writer, window=10)
        buffer.submit("k", "v")
        await buffer.close()

    asyncio.run(scenario())

    assert calls == [("k", "v")]
