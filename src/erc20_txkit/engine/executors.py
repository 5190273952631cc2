"""
Event chain execution engine.

Provides workflow orchestration on top of EventBus, processing events
recursively until termination conditions are met.
"""

import asyncio
from typing import AsyncGenerator, Optional, Union

from .events import BaseEvent, BreakEvent, EventBus, Dependencies


class EventChain:
    """Executes event-driven workflows by chaining event handler results.

    Handlers run in a background task and their events are streamed to the
    caller as they are produced. A handler error ends the chain and is raised
    from ``execute`` to the caller.
    """

    def __init__(
        self,
        event_bus: EventBus,
        deps: Dependencies,
    ) -> None:
        """
        Initialize event chain executor.

        Args:
            event_bus: The event bus to dispatch events through.
            deps: Dependencies container to pass to handlers.
        """
        self.event_bus = event_bus
        self.deps = deps

    async def execute(self, initial_event: BaseEvent) -> AsyncGenerator[BaseEvent, None]:
        """
        Execute event chain starting from initial event.

        Yields:
            Events encountered during chain execution, in order.

        Raises:
            Exception: Whatever a hook or handler raised.
        """
        events_queue: "asyncio.Queue[Union[BaseEvent, Exception, None]]" = asyncio.Queue()

        async def producer() -> None:
            try:
                async for event in self._process_event(initial_event):
                    await events_queue.put(event)
            except Exception as exc:
                await events_queue.put(exc)
            finally:
                await events_queue.put(None)  # Sentinel to indicate completion

        task = asyncio.create_task(producer())
        try:
            while True:
                item = await events_queue.get()
                if item is None:  # Chain complete
                    break
                if isinstance(item, Exception):
                    raise item
                yield item
        finally:
            if not task.done():
                task.cancel()

    async def run(self, initial_event: BaseEvent) -> Optional[BaseEvent]:
        """Execute the chain to completion and return the last event produced."""
        last: Optional[BaseEvent] = None
        async for event in self.execute(initial_event):
            last = event
        return last

    async def _process_event(self, event: BaseEvent, hooked: bool = False) -> AsyncGenerator[BaseEvent, None]:
        """
        Process single event and recursively handle results.

        A result event passes its hooks before it is yielded, so consumers of
        ``execute`` only see events the hooks accepted.

        Args:
            event: The event to process.
            hooked: Whether the hooks of ``event`` have already run.

        Yields:
            Events from the chain.
        """
        if isinstance(event, BreakEvent):
            return

        results = self.event_bus.notify(event, self.deps) if hooked else self.event_bus.dispatch(event, self.deps)
        async for result in results:
            if result is None:
                continue
            if isinstance(result, BaseEvent):
                await self.event_bus.run_hooks(result, self.deps)
                yield result
                async for e in self._process_event(result, hooked=True):
                    yield e
            else:
                raise TypeError(f"Handler returned unsupported type: {type(result).__name__}")
