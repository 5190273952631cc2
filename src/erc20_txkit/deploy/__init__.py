from .decisions import (
    DecisionSource,
    PromptDecisionSource,
    ScriptedDecisionSource,
    AutoApprove,
)
from .flows import InteractiveDeployFlow, TRANSITIONS

__all__ = [
    "DecisionSource",
    "PromptDecisionSource",
    "ScriptedDecisionSource",
    "AutoApprove",
    "InteractiveDeployFlow",
    "TRANSITIONS",
]
