"""
Interactive contract deployment.

A state machine on top of the event engine:

    Quoted -> (Overridden) -> Confirmed -> Submitted -> Mined -> Reported
                                                             \\-> Failed
    Quoted / Overridden / Confirmed -> Aborted

Each state is an event; each handler receives ``(event, deps)`` and returns the
next event. Every event passes a transition check before its handlers run, so
an out-of-order event raises ``InvalidTransition`` instead of acting.

Example:
    flow = InteractiveDeployFlow.from_adapter(adapter, PromptDecisionSource())
    final = await flow.run(encode_deployment(bytecode, abi, args))
"""

import logging
from typing import AsyncGenerator, Callable, Dict, FrozenSet, List, Optional

from web3.utils.address import get_create_address

from ..adapters.evm.adapter import EVMAdapter
from ..adapters.evm.addresses import normalize_hex
from ..adapters.evm.builder import build
from ..adapters.evm.constants import format_ether, format_gwei
from ..adapters.evm.schemas import DeployPlan, DeployReport
from ..engine.events import (
    AbortedEvent,
    BaseEvent,
    ConfirmedEvent,
    Dependencies,
    DeployEvent,
    DeployRequestedEvent,
    DeployState,
    EventBus,
    EventHookFunc,
    FailedEvent,
    MinedEvent,
    OverriddenEvent,
    QuotedEvent,
    ReportedEvent,
    SubmittedEvent,
)
from ..engine.exceptions import InvalidTransition
from ..engine.executors import EventChain
from ..schemas.bases import TransactionStatus
from .decisions import DecisionSource

logger = logging.getLogger(__name__)

TRANSITIONS: Dict[DeployState, FrozenSet[DeployState]] = {
    DeployState.INITIAL: frozenset({DeployState.QUOTED}),
    DeployState.QUOTED: frozenset({DeployState.OVERRIDDEN, DeployState.CONFIRMED, DeployState.ABORTED}),
    DeployState.OVERRIDDEN: frozenset({DeployState.CONFIRMED, DeployState.ABORTED}),
    DeployState.CONFIRMED: frozenset({DeployState.SUBMITTED, DeployState.ABORTED}),
    DeployState.SUBMITTED: frozenset({DeployState.MINED}),
    DeployState.MINED: frozenset({DeployState.REPORTED, DeployState.FAILED}),
    DeployState.REPORTED: frozenset(),
    DeployState.ABORTED: frozenset(),
    DeployState.FAILED: frozenset(),
}

_EVENT_CLASSES = (
    DeployRequestedEvent,
    QuotedEvent,
    OverriddenEvent,
    ConfirmedEvent,
    SubmittedEvent,
    MinedEvent,
    ReportedEvent,
    AbortedEvent,
    FailedEvent,
)


class InteractiveDeployFlow:
    """
    Event-driven deployment with operator confirmation.

    Attributes:
        deps: Injected pipeline components, decision source and reporter
        event_bus: Bus the state handlers are subscribed to
        state: Current state
        history: States entered so far, in order
    """

    def __init__(self, deps: Dependencies, event_bus: Optional[EventBus] = None):
        self.deps = deps
        self.event_bus = event_bus if event_bus is not None else EventBus()
        self.state = DeployState.INITIAL
        self.history: List[DeployState] = []
        self._register()

    @classmethod
    def from_adapter(
        cls,
        adapter: EVMAdapter,
        decisions: DecisionSource,
        *,
        report: Callable[[str], None] = print,
        poll_interval: float = 1.0,
        max_poll_interval: float = 8.0,
        confirmation_deadline: Optional[float] = None,
    ) -> "InteractiveDeployFlow":
        """Build a flow from the components of an ``EVMAdapter``."""
        deps = Dependencies(
            fees=adapter.fees,
            signer=adapter.signer,
            broadcaster=adapter.broadcaster,
            tracker=adapter.tracker,
            decisions=decisions,
            report=report,
            poll_interval=poll_interval,
            max_poll_interval=max_poll_interval,
            confirmation_deadline=confirmation_deadline,
        )
        return cls(deps)

    def _register(self) -> None:
        for event_class in _EVENT_CLASSES:
            self.event_bus.hook(event_class, self._advance)
        self.event_bus.subscribe(DeployRequestedEvent, self._on_requested)
        self.event_bus.subscribe(QuotedEvent, self._on_quoted)
        self.event_bus.subscribe(OverriddenEvent, self._on_overridden)
        self.event_bus.subscribe(ConfirmedEvent, self._on_confirmed)
        self.event_bus.subscribe(SubmittedEvent, self._on_submitted)
        self.event_bus.subscribe(MinedEvent, self._on_mined)

    def hook(self, event_class: type) -> Callable[[EventHookFunc], EventHookFunc]:
        """
        Decorator registering an extra hook, run before the state's handlers.

        Example:
            @flow.hook(SubmittedEvent)
            async def on_submitted(event, deps):
                audit_log.append(event.tx_hash)
        """
        def decorator(func: EventHookFunc) -> EventHookFunc:
            self.event_bus.hook(event_class, func)
            return func
        return decorator

    # ------------------------------------------------------------------
    # Transition check
    # ------------------------------------------------------------------

    async def _advance(self, event: DeployEvent, deps: Dependencies) -> None:
        if isinstance(event, DeployRequestedEvent):
            if self.state is not DeployState.INITIAL:
                raise InvalidTransition(self.state.value, DeployState.INITIAL.value)
            return
        next_state = event.state
        if next_state not in TRANSITIONS[self.state]:
            raise InvalidTransition(self.state.value, next_state.value)
        logger.info("Deploy flow: %s -> %s", self.state.value, next_state.value)
        self.state = next_state
        self.history.append(next_state)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    @staticmethod
    def _report_quote(plan: DeployPlan, deps: Dependencies, tip_label: str) -> None:
        quote = plan.quote
        deps.report(f"{tip_label}: {format_gwei(quote.max_priority_fee_per_gas)} gwei")
        deps.report(f"Total gas price: {format_gwei(quote.max_fee_per_gas)} gwei")
        deps.report(f"Estimated total cost: {format_ether(quote.estimated_cost)} ETH\n")

    # ------------------------------------------------------------------
    # State handlers
    # ------------------------------------------------------------------

    async def _on_requested(self, event: DeployRequestedEvent, deps: Dependencies) -> QuotedEvent:
        sender = deps.signer.address
        nonce = await deps.signer.fetch_pending_nonce(sender)
        predicted = get_create_address(sender, nonce)
        deps.report(f"Contract address will be: {predicted}\n")

        estimated = await deps.fees.estimate_gas(sender, None, event.data)
        deps.report(f"Estimated gas for deployment: {estimated}")
        quote = await deps.fees.market_quote(deps.fees.compute_gas_limit(estimated))

        plan = DeployPlan(
            data=event.data,
            sender=sender,
            nonce=nonce,
            predicted_address=predicted,
            quote=quote,
        )
        self._report_quote(plan, deps, "Recommended tip per gas")
        return QuotedEvent(plan=plan)

    async def _on_quoted(self, event: QuotedEvent, deps: Dependencies) -> DeployEvent:
        tip = await deps.decisions.choose_tip(event.plan)
        if tip is None:
            return await self._confirm(event.plan, deps)
        plan = event.plan.with_quote(deps.fees.override_tip(event.plan.quote, tip))
        self._report_quote(plan, deps, "New tip per gas")
        return OverriddenEvent(plan=plan)

    async def _on_overridden(self, event: OverriddenEvent, deps: Dependencies) -> DeployEvent:
        return await self._confirm(event.plan, deps)

    async def _confirm(self, plan: DeployPlan, deps: Dependencies) -> DeployEvent:
        if not await deps.decisions.confirm(plan):
            deps.report("Deployment cancelled.")
            return AbortedEvent(plan=plan)
        return ConfirmedEvent(plan=plan)

    async def _on_confirmed(self, event: ConfirmedEvent, deps: Dependencies) -> SubmittedEvent:
        plan = event.plan
        deps.report("Deploying contract...\n")
        descriptor = build(None, plan.data, 0, plan.quote).with_nonce(plan.nonce)
        signed = await deps.signer.sign(descriptor, plan.sender)
        tx_hash = await deps.broadcaster.submit(signed)
        deps.report(f"Transaction hash: {tx_hash}")
        deps.report("Waiting for transaction confirmation...\n")
        return SubmittedEvent(plan=plan, tx_hash=tx_hash)

    async def _on_submitted(self, event: SubmittedEvent, deps: Dependencies) -> MinedEvent:
        receipt = await deps.tracker.wait_for_receipt(
            event.tx_hash,
            poll_interval=deps.poll_interval,
            max_interval=deps.max_poll_interval,
            deadline=deps.confirmation_deadline,
        )
        return MinedEvent(plan=event.plan, receipt=receipt)

    async def _on_mined(self, event: MinedEvent, deps: Dependencies) -> DeployEvent:
        receipt = event.receipt
        if receipt.status is not TransactionStatus.SUCCESS:
            deps.report(f"Transaction failed: {receipt.tx_hash} (block {receipt.block_number})")
            return FailedEvent(plan=event.plan, receipt=receipt)

        report = DeployReport(plan=event.plan, receipt=receipt)
        deps.report(f"Contract deployed at address: {report.contract_address}\n")
        deps.report(f"Gas used: {receipt.gas_used}")
        deps.report(f"GasPrice: {format_gwei(receipt.effective_gas_price)} gwei")
        deps.report(
            f"Total cost: {format_ether(report.actual_cost)} ETH "
            f"(quoted {format_ether(report.quoted_cost)} ETH)\n"
        )
        deps.report("Deployment successful!")
        return ReportedEvent(report=report)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def execute(self, initial_event: BaseEvent) -> AsyncGenerator[BaseEvent, None]:
        """Stream the events of a run starting at ``initial_event``."""
        chain = EventChain(self.event_bus, self.deps)
        async for event in chain.execute(initial_event):
            yield event

    async def run(self, data: str) -> DeployEvent:
        """
        Run a deployment of ``data`` to a terminal state.

        Returns:
            The terminal event: ReportedEvent, AbortedEvent or FailedEvent.

        Raises:
            TxKitError: Any pipeline error (gas estimation, signing, broadcast,
                confirmation timeout, invalid transition).
        """
        initial = DeployRequestedEvent(data=normalize_hex(data, label="deployment data"))
        last = await EventChain(self.event_bus, self.deps).run(initial)
        if not isinstance(last, DeployEvent):
            raise InvalidTransition(self.state.value, "terminal")
        return last
