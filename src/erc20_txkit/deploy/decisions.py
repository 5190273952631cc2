"""
Operator decisions for the interactive deployment.

The deploy flow asks two questions: which tip to pay (or keep the
recommendation) and whether to go ahead. Where the answers come from is
injected through the ``DecisionSource`` protocol.
"""

import asyncio
import logging
from typing import Callable, Iterable, Iterator, Optional, Protocol

from ..adapters.evm.constants import to_gwei_wei
from ..adapters.evm.schemas import DeployPlan
from ..engine.exceptions import AmountOutOfRange, InputValidationError

logger = logging.getLogger(__name__)

TIP_PROMPT = "Please enter your desired tip, or press Enter to use the recommended amount: "
CONFIRM_PROMPT = "Do you want to deploy the contract? (Y/n): "

_DECLINE_ANSWERS = ("n", "no")


class DecisionSource(Protocol):
    """Source of operator answers for the deploy flow."""

    async def choose_tip(self, plan: DeployPlan) -> Optional[int]:
        """Return the tip in wei, or None to keep the recommended one."""
        ...

    async def confirm(self, plan: DeployPlan) -> bool:
        """Return True to deploy, False to abort."""
        ...


def parse_tip_answer(answer: str) -> Optional[int]:
    """
    Interpret a tip answer given in gwei.

    An empty answer keeps the recommendation.

    Raises:
        AmountOutOfRange: If the answer is not a non-negative gwei amount.
    """
    text = answer.strip()
    if not text:
        return None
    return to_gwei_wei(text)


def parse_confirm_answer(answer: str) -> bool:
    """``n``/``no`` (any case) declines; anything else, including empty, accepts."""
    return answer.strip().lower() not in _DECLINE_ANSWERS


class PromptDecisionSource:
    """
    Interactive answers read through an injected ``input``-style callable.

    An unparseable tip is reported and asked again.
    """

    def __init__(
        self,
        input_func: Callable[[str], str] = input,
        report: Callable[[str], None] = print,
    ):
        self._input = input_func
        self._report = report

    async def _ask(self, prompt: str) -> str:
        return await asyncio.to_thread(self._input, prompt)

    async def choose_tip(self, plan: DeployPlan) -> Optional[int]:
        while True:
            answer = await self._ask(TIP_PROMPT)
            try:
                return parse_tip_answer(answer)
            except AmountOutOfRange as exc:
                self._report(f"Invalid tip: {exc}")

    async def confirm(self, plan: DeployPlan) -> bool:
        return parse_confirm_answer(await self._ask(CONFIRM_PROMPT))


class ScriptedDecisionSource:
    """
    Answers taken from a pre-supplied sequence, in prompt order.

    Example:
        ScriptedDecisionSource(["5", "y"])   # tip 5 gwei, then confirm
        ScriptedDecisionSource(["", "n"])    # keep recommendation, then abort
    """

    def __init__(self, answers: Iterable[str]):
        self._answers: Iterator[str] = iter(answers)

    def _next(self, prompt: str) -> str:
        try:
            answer = next(self._answers)
        except StopIteration:
            raise InputValidationError(f"No scripted answer left for prompt: {prompt.strip()}")
        logger.debug("Scripted answer %r for %r", answer, prompt.strip())
        return answer

    async def choose_tip(self, plan: DeployPlan) -> Optional[int]:
        return parse_tip_answer(self._next(TIP_PROMPT))

    async def confirm(self, plan: DeployPlan) -> bool:
        return parse_confirm_answer(self._next(CONFIRM_PROMPT))


class AutoApprove:
    """Unattended policy: accept the quote, optionally with a fixed tip (wei)."""

    def __init__(self, tip: Optional[int] = None):
        self.tip = tip

    async def choose_tip(self, plan: DeployPlan) -> Optional[int]:
        return self.tip

    async def confirm(self, plan: DeployPlan) -> bool:
        return True
