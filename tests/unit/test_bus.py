"""
Message Bus — Unit Tests
========================

FIFO delivery, handler isolation (timeouts and poison messages), broadcast
fan-out and tracked action cancellation.
"""

import asyncio

import pytest

from agentmesh.collaboration.bus import MessageBus
from agentmesh.collaboration.models import CollaborationMessage
from agentmesh.core.types import MessageType


def message(msg_id, msg_type=MessageType.INFORMATION, to_agent="B"):
    return CollaborationMessage(from_agent="A", to_agent=to_agent, type=msg_type, id=msg_id)


class Recorder:
    def __init__(self):
        self.seen = []

    async def __call__(self, collaboration_id, msg):
        self.seen.append((collaboration_id, msg.id))


class TestDelivery:

    @pytest.mark.asyncio
    async def test_fifo_across_collaborations(self):
        bus = MessageBus()
        recorder = Recorder()
        bus.subscribe(MessageType.INFORMATION, recorder)
        bus.subscribe(MessageType.STATUS, recorder)

        bus.enqueue("c1", message("m1"))
        bus.enqueue("c2", message("m2", MessageType.STATUS))
        bus.enqueue("c1", message("m3"))
        assert bus.pending == 3

        assert await bus.drain() == 3
        assert recorder.seen == [("c1", "m1"), ("c2", "m2"), ("c1", "m3")]
        assert bus.processed_count == 3
        assert bus.pending == 0

    @pytest.mark.asyncio
    async def test_messages_queued_by_handlers_are_drained(self):
        bus = MessageBus()
        seen = []

        async def chain(collaboration_id, msg):
            seen.append(msg.id)
            if msg.id == "m1":
                bus.enqueue(collaboration_id, message("m2"))

        bus.subscribe(MessageType.INFORMATION, chain)
        bus.enqueue("c1", message("m1"))
        await bus.drain()
        assert seen == ["m1", "m2"]

    @pytest.mark.asyncio
    async def test_drain_limit(self):
        bus = MessageBus()
        for i in range(3):
            bus.enqueue("c1", message(f"m{i}"))
        assert await bus.drain(max_messages=2) == 2
        assert bus.pending == 1

    @pytest.mark.asyncio
    async def test_unsubscribed_type_is_consumed(self):
        bus = MessageBus()
        bus.enqueue("c1", message("m1", MessageType.REQUEST))
        assert await bus.process_next() is True
        assert await bus.process_next() is False
        assert bus.error_count == 0

    @pytest.mark.asyncio
    async def test_metrics_track_outcomes(self, metrics):
        bus = MessageBus(metrics=metrics)

        async def boom(collaboration_id, msg):
            raise ValueError("bad payload")

        bus.subscribe(MessageType.INFORMATION, Recorder())
        bus.subscribe(MessageType.STATUS, boom)
        bus.enqueue("c1", message("m1"))
        bus.enqueue("c1", message("m2", MessageType.STATUS))
        await bus.drain()

        sample = metrics.registry.get_sample_value
        processed = "agentmesh_bus_messages_processed_total"
        assert sample(processed, {"type": "information", "status": "ok"}) == 1.0
        assert sample(processed, {"type": "status", "status": "error"}) == 1.0
        assert sample("agentmesh_bus_queue_depth") == 0.0


class TestIsolation:

    @pytest.mark.asyncio
    async def test_poison_message_does_not_block_queue(self):
        bus = MessageBus()
        recorder = Recorder()

        async def poison(collaboration_id, msg):
            raise RuntimeError("cannot parse")

        bus.subscribe(MessageType.STATUS, poison)
        bus.subscribe(MessageType.INFORMATION, recorder)
        bus.enqueue("c1", message("bad", MessageType.STATUS))
        bus.enqueue("c1", message("good"))

        await bus.drain()
        assert recorder.seen == [("c1", "good")]
        assert bus.error_count == 1
        assert bus.processed_count == 2

    @pytest.mark.asyncio
    async def test_slow_handler_times_out(self):
        bus = MessageBus(handler_timeout_s=0.01)
        recorder = Recorder()

        async def stuck(collaboration_id, msg):
            await asyncio.sleep(5)

        bus.subscribe(MessageType.STATUS, stuck)
        bus.subscribe(MessageType.INFORMATION, recorder)
        bus.enqueue("c1", message("slow", MessageType.STATUS))
        bus.enqueue("c1", message("fast"))

        await bus.drain()
        assert recorder.seen == [("c1", "fast")]
        assert bus.error_count == 1


class TestBroadcast:

    @pytest.mark.asyncio
    async def test_broadcast_reaches_handler_and_listeners(self):
        bus = MessageBus()
        recorder = Recorder()
        sync_seen = []
        async_seen = []

        async def async_listener(collaboration_id, msg):
            async_seen.append(msg.id)

        def failing_listener(collaboration_id, msg):
            raise RuntimeError("listener down")

        bus.subscribe(MessageType.INFORMATION, recorder)
        bus.add_broadcast_listener(lambda cid, msg: sync_seen.append(msg.id))
        bus.add_broadcast_listener(failing_listener)
        bus.add_broadcast_listener(async_listener)

        bus.enqueue("c1", message("direct"))
        bus.enqueue("c1", message("all", to_agent=None))
        await bus.drain()

        assert recorder.seen == [("c1", "direct"), ("c1", "all")]
        assert sync_seen == ["all"]
        assert async_seen == ["all"]
        assert bus.error_count == 0

    @pytest.mark.asyncio
    async def test_removed_listener_not_called(self):
        bus = MessageBus()
        seen = []

        def listener(cid, msg):
            seen.append(msg.id)

        bus.add_broadcast_listener(listener)
        bus.remove_broadcast_listener(listener)
        bus.remove_broadcast_listener(listener)
        bus.enqueue("c1", message("all", to_agent=None))
        await bus.drain()
        assert seen == []


class TestActions:

    @pytest.mark.asyncio
    async def test_cancel_group_only_touches_group(self):
        bus = MessageBus()
        bus.spawn_action("a1", "c1", asyncio.sleep(10))
        bus.spawn_action("a2", "c1", asyncio.sleep(10))
        survivor = bus.spawn_action("b1", "c2", asyncio.sleep(0, result="done"))

        assert bus.action_count == 3
        assert await bus.cancel_group("c1") == 2
        await asyncio.sleep(0)

        assert not bus.has_action("a1")
        assert not bus.has_action("a2")
        assert await survivor == "done"
        await asyncio.sleep(0)
        assert bus.action_count == 0

    @pytest.mark.asyncio
    async def test_duplicate_action_id_rejected(self):
        bus = MessageBus()
        bus.spawn_action("a1", "c1", asyncio.sleep(10))
        with pytest.raises(ValueError):
            bus.spawn_action("a1", "c1", asyncio.sleep(10))
        assert await bus.cancel_all() == 1

    @pytest.mark.asyncio
    async def test_cancel_unknown_group(self):
        bus = MessageBus()
        assert await bus.cancel_group("nobody") == 0


class TestLoop:

    @pytest.mark.asyncio
    async def test_running_loop_processes_messages(self):
        bus = MessageBus(tick_s=0.01)
        recorder = Recorder()
        bus.subscribe(MessageType.INFORMATION, recorder)
        bus.start()
        try:
            assert bus.running
            with pytest.raises(RuntimeError):
                await bus.drain()
            bus.enqueue("c1", message("m1"))
            for _ in range(100):
                if recorder.seen:
                    break
                await asyncio.sleep(0.01)
        finally:
            await bus.stop()

        assert recorder.seen == [("c1", "m1")]
        assert not bus.running

    @pytest.mark.asyncio
    async def test_stop_cancels_actions(self):
        bus = MessageBus(tick_s=0.01)
        bus.start()
        task = bus.spawn_action("a1", "c1", asyncio.sleep(10))
        await bus.stop()
        assert task.cancelled()
        assert bus.action_count == 0
