"""
Event-driven system with typed events and clear data flow.

Events carry their own data, handlers return next events, and dependencies
are injected separately from business data. The events below are the states
of the interactive contract deployment.
"""

import asyncio
import inspect
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, AsyncGenerator, Awaitable, Callable, Dict, Optional

from pydantic import BaseModel, ConfigDict

from ..adapters.evm.broadcaster import Broadcaster
from ..adapters.evm.fees import FeeEstimator
from ..adapters.evm.schemas import DeployPlan, DeployReport, ReceiptSummary
from ..adapters.evm.signatures import Signer
from ..adapters.evm.tracker import StatusTracker

if TYPE_CHECKING:
    from ..deploy.decisions import DecisionSource


class DeployState(str, Enum):
    """States of the interactive deployment."""
    INITIAL = "initial"
    QUOTED = "quoted"
    OVERRIDDEN = "overridden"
    CONFIRMED = "confirmed"
    SUBMITTED = "submitted"
    MINED = "mined"
    REPORTED = "reported"
    ABORTED = "aborted"
    FAILED = "failed"


# ==================== Base Event ====================

class BaseEvent(ABC):
    """Base class for all events in the system."""

    @abstractmethod
    def __repr__(self) -> str:
        """String representation of the event."""
        pass


class DeployEvent(BaseModel, BaseEvent):
    """Base for deployment events; ``state`` is the state the event enters."""
    state: DeployState = DeployState.INITIAL

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


# ==================== Trigger Event (External) ====================

class DeployRequestedEvent(DeployEvent):
    """External trigger: deploy the given creation call data."""
    data: str

    def __repr__(self) -> str:
        return f"DeployRequestedEvent(data_len={len(self.data)})"


# ==================== State Events ====================

class QuotedEvent(DeployEvent):
    """Gas and fees quoted; waiting for an optional tip override."""
    state: DeployState = DeployState.QUOTED
    plan: DeployPlan

    def __repr__(self) -> str:
        return f"QuotedEvent(cost={self.plan.quote.estimated_cost})"


class OverriddenEvent(DeployEvent):
    """Quote re-priced with an operator-chosen tip."""
    state: DeployState = DeployState.OVERRIDDEN
    plan: DeployPlan

    def __repr__(self) -> str:
        return f"OverriddenEvent(tip={self.plan.quote.max_priority_fee_per_gas})"


class ConfirmedEvent(DeployEvent):
    """Operator approved the quote."""
    state: DeployState = DeployState.CONFIRMED
    plan: DeployPlan

    def __repr__(self) -> str:
        return f"ConfirmedEvent(sender={self.plan.sender})"


class SubmittedEvent(DeployEvent):
    """Signed deployment accepted by the node."""
    state: DeployState = DeployState.SUBMITTED
    plan: DeployPlan
    tx_hash: str

    def __repr__(self) -> str:
        return f"SubmittedEvent(tx_hash={self.tx_hash})"


class MinedEvent(DeployEvent):
    """Receipt observed."""
    state: DeployState = DeployState.MINED
    plan: DeployPlan
    receipt: ReceiptSummary

    def __repr__(self) -> str:
        return f"MinedEvent(status={self.receipt.status.value})"


# ==================== Terminal Events ====================

class ReportedEvent(DeployEvent):
    """Result: deployment succeeded and costs were reported."""
    state: DeployState = DeployState.REPORTED
    report: DeployReport

    def __repr__(self) -> str:
        return f"ReportedEvent(address={self.report.contract_address})"


class AbortedEvent(DeployEvent):
    """Result: operator declined; nothing was sent."""
    state: DeployState = DeployState.ABORTED
    plan: DeployPlan
    reason: str = "Deployment cancelled."

    def __repr__(self) -> str:
        return f"AbortedEvent(reason={self.reason})"


class FailedEvent(DeployEvent):
    """Result: the deployment was mined with a failure status."""
    state: DeployState = DeployState.FAILED
    plan: DeployPlan
    receipt: ReceiptSummary

    def __repr__(self) -> str:
        return f"FailedEvent(tx_hash={self.receipt.tx_hash})"


class BreakEvent(BaseModel, BaseEvent):
    """Internal event to break the event chain."""
    break_reason: str = ""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return "BreakEvent()"


# ==================== Dependencies Container ====================

def _print_line(line: str) -> None:
    print(line)


@dataclass(frozen=True)
class Dependencies:
    """Container for infrastructure dependencies (read-only)."""
    fees: FeeEstimator
    signer: Signer
    broadcaster: Broadcaster
    tracker: StatusTracker
    decisions: "DecisionSource"
    report: Callable[[str], None] = _print_line
    poll_interval: float = 1.0
    max_poll_interval: float = 8.0
    confirmation_deadline: Optional[float] = None


# ==================== Event Bus ====================

EventHandlerFunc = Callable[[BaseEvent, Dependencies], Awaitable[Optional[BaseEvent]]]
EventHookFunc = Callable[[BaseEvent, Dependencies], Awaitable[None]]


class EventBus:
    """Event dispatcher for publishing and subscribing to events."""

    def __init__(self) -> None:
        """Initialize with empty subscribers and hooks."""
        self._subscribers: Dict[type, list[EventHandlerFunc]] = {}
        self._hooks: Dict[type, list[EventHookFunc]] = {}

    def subscribe(self, event_class: type, handler: EventHandlerFunc) -> None:
        """
        Register an async handler for the given event class.

        Args:
            event_class: The event class to subscribe to.
            handler: The async handler function to call when the event is published.

        Raises:
            TypeError: If handler is not a coroutine function.
        """
        if not inspect.iscoroutinefunction(handler):
            raise TypeError(f"Handler must be a coroutine function, got {type(handler).__name__}")
        self._subscribers.setdefault(event_class, []).append(handler)

    def hook(self, event_class: type, hook_func: EventHookFunc) -> None:
        """
        Register a hook for the given event class.
        Hooks are executed before subscribers when the event is dispatched.
        """
        if not inspect.iscoroutinefunction(hook_func):
            raise TypeError(f"Hook must be a coroutine function, got {type(hook_func).__name__}")
        self._hooks.setdefault(event_class, []).append(hook_func)

    async def run_hooks(self, event: BaseEvent, deps: Dependencies) -> None:
        """Run the hooks registered for ``event``, in registration order."""
        for hook in self._hooks.get(type(event), []):
            await hook(event, deps)

    async def dispatch(self, event: BaseEvent, deps: Dependencies) -> AsyncGenerator[Optional[BaseEvent], None]:
        """
        Dispatch an event to all registered hooks and subscribers.
        Hooks run first (in registration order), then all subscribers run in parallel.

        Yields:
            Results from all subscribers as they complete. Yields nothing if no
            subscribers are registered.
        """
        await self.run_hooks(event, deps)
        async for result in self.notify(event, deps):
            yield result

    async def notify(self, event: BaseEvent, deps: Dependencies) -> AsyncGenerator[Optional[BaseEvent], None]:
        """Run the subscribers of ``event`` without its hooks and yield their results."""
        handlers = self._subscribers.get(type(event), [])
        if not handlers:
            return

        tasks = [handler(event, deps) for handler in handlers]
        for coro in asyncio.as_completed(tasks):
            result = await coro
            yield result

