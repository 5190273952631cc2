"""
Test suite for EventChain execution engine.
Tests: 1) Event execution order 2) Hooks before subscribers 3) Error propagation
"""
import sys
from pathlib import Path

import pytest
from pydantic import BaseModel

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from erc20_txkit.engine.events import BaseEvent, BreakEvent, Dependencies, EventBus
from erc20_txkit.engine.executors import EventChain


class StepEvent(BaseModel, BaseEvent):
    step: int

    def __repr__(self) -> str:
        return f"StepEvent({self.step})"


class DoneEvent(BaseModel, BaseEvent):
    total: int

    def __repr__(self) -> str:
        return f"DoneEvent({self.total})"


def make_deps() -> Dependencies:
    return Dependencies(fees=None, signer=None, broadcaster=None, tracker=None, decisions=None)


def make_bus(limit: int = 3) -> EventBus:
    bus = EventBus()

    async def handle_step(event: StepEvent, deps: Dependencies):
        if event.step >= limit:
            return DoneEvent(total=event.step)
        return StepEvent(step=event.step + 1)

    async def handle_done(event: DoneEvent, deps: Dependencies):
        return BreakEvent(break_reason="done")

    bus.subscribe(StepEvent, handle_step)
    bus.subscribe(DoneEvent, handle_done)
    return bus


class TestEventChain:

    @pytest.mark.asyncio
    async def test_events_execute_in_order(self):
        chain = EventChain(make_bus(), make_deps())
        events = [event async for event in chain.execute(StepEvent(step=0))]

        assert [type(e).__name__ for e in events] == [
            "StepEvent", "StepEvent", "StepEvent", "DoneEvent", "BreakEvent",
        ]
        assert [e.step for e in events[:3]] == [1, 2, 3]
        assert events[3].total == 3

    @pytest.mark.asyncio
    async def test_run_returns_last_event(self):
        last = await EventChain(make_bus(limit=1), make_deps()).run(StepEvent(step=0))
        assert isinstance(last, BreakEvent)
        assert last.break_reason == "done"

    @pytest.mark.asyncio
    async def test_chain_stops_when_handler_returns_none(self):
        bus = EventBus()

        async def handle(event: StepEvent, deps: Dependencies):
            return None

        bus.subscribe(StepEvent, handle)
        assert await EventChain(bus, make_deps()).run(StepEvent(step=0)) is None

    @pytest.mark.asyncio
    async def test_hooks_run_before_subscribers(self):
        bus = make_bus(limit=1)
        seen = []

        async def record(event: StepEvent, deps: Dependencies):
            seen.append(("hook", event.step))

        async def observe(event: StepEvent, deps: Dependencies):
            seen.append(("subscriber", event.step))
            return None

        bus.hook(StepEvent, record)
        bus.subscribe(StepEvent, observe)

        await EventChain(bus, make_deps()).run(StepEvent(step=0))

        assert seen[0] == ("hook", 0)
        assert ("subscriber", 0) in seen
        assert seen.index(("hook", 1)) > seen.index(("subscriber", 0))

    @pytest.mark.asyncio
    async def test_handler_error_propagates(self):
        bus = EventBus()

        async def explode(event: StepEvent, deps: Dependencies):
            raise RuntimeError("boom")

        bus.subscribe(StepEvent, explode)
        with pytest.raises(RuntimeError, match="boom"):
            await EventChain(bus, make_deps()).run(StepEvent(step=0))

    @pytest.mark.asyncio
    async def test_hook_error_stops_handlers(self):
        bus = make_bus()
        called = []

        async def veto(event: StepEvent, deps: Dependencies):
            raise ValueError("vetoed")

        async def handler(event: StepEvent, deps: Dependencies):
            called.append(event)

        bus.hook(StepEvent, veto)
        bus.subscribe(StepEvent, handler)
        with pytest.raises(ValueError, match="vetoed"):
            await EventChain(bus, make_deps()).run(StepEvent(step=0))
        assert called == []

    @pytest.mark.asyncio
    async def test_rejected_event_is_never_streamed(self):
        bus = make_bus()
        streamed = []

        async def reject_done(event: DoneEvent, deps: Dependencies):
            raise ValueError("not allowed here")

        bus.hook(DoneEvent, reject_done)
        with pytest.raises(ValueError, match="not allowed here"):
            async for event in EventChain(bus, make_deps()).execute(StepEvent(step=0)):
                streamed.append(event)

        assert [e.step for e in streamed] == [1, 2, 3]
        assert not any(isinstance(e, DoneEvent) for e in streamed)

    @pytest.mark.asyncio
    async def test_unsupported_result_type(self):
        bus = EventBus()

        async def bad(event: StepEvent, deps: Dependencies):
            return "not an event"

        bus.subscribe(StepEvent, bad)
        with pytest.raises(TypeError):
            await EventChain(bus, make_deps()).run(StepEvent(step=0))

    def test_sync_handlers_rejected(self):
        bus = EventBus()

        def sync_handler(event, deps):
            return None

        with pytest.raises(TypeError):
            bus.subscribe(StepEvent, sync_handler)
        with pytest.raises(TypeError):
            bus.hook(StepEvent, sync_handler)
