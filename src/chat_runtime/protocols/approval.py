"""Tool approval matching.

A resubmitted turn carries approval decisions for tool calls the model
asked for in the previous pass. Before anything runs, each decision is
matched against the calls that are still pending in the session, so a
stale or forged decision can never trigger a tool.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..models import ToolCallContent
from ..protocol.messages import ToolApproval

logger = logging.getLogger(__name__)

ERROR_PREFIX = "Error: "


class ApprovalPolicy(str, Enum):
    """What to do with an approval that matches no pending tool call."""

    IGNORE = "ignore"  # Drop it and log a warning
    REJECT = "reject"  # Fail the whole turn before anything runs


class ApprovalMismatchError(ValueError):
    """Raised under REJECT when approvals reference unknown tool calls."""

    def __init__(self, tool_call_ids: list[str]) -> None:
        self.tool_call_ids = tool_call_ids
        super().__init__(f"No pending tool call for approval(s): {', '.join(tool_call_ids)}")


@dataclass(frozen=True)
class ResolvedApproval:
    """An approval matched to the pending call it answers."""

    approval: ToolApproval
    call: ToolCallContent

    @property
    def arguments(self) -> dict[str, Any]:
        """Arguments to run with: the client's override when one was sent."""
        if isinstance(self.approval.input, dict):
            return self.approval.input
        return self.call.arguments


def resolve_approvals(
    approvals: list[ToolApproval],
    pending: list[ToolCallContent],
    policy: ApprovalPolicy = ApprovalPolicy.IGNORE,
) -> list[ResolvedApproval]:
    """Match approvals to pending calls, keeping approval-list order.

    Args:
        approvals: Decisions extracted from the request
        pending: Tool calls in the session that have no result yet
        policy: Handling for approvals without a pending call

    Returns:
        Matched approvals; a call id appearing twice is resolved once

    Raises:
        ApprovalMismatchError: If policy is REJECT and any approval is unmatched
    """
    by_id = {call.call_id: call for call in pending}
    resolved: list[ResolvedApproval] = []
    unmatched: list[str] = []
    seen: set[str] = set()

    for approval in approvals:
        if approval.tool_call_id in seen:
            continue
        call = by_id.get(approval.tool_call_id)
        if call is None:
            unmatched.append(approval.tool_call_id)
            continue
        seen.add(approval.tool_call_id)
        resolved.append(ResolvedApproval(approval=approval, call=call))

    if unmatched:
        if policy == ApprovalPolicy.REJECT:
            raise ApprovalMismatchError(unmatched)
        logger.warning(f"Ignoring approvals with no pending tool call: {unmatched}")

    return resolved


def declined_result(tool_name: str) -> str:
    """Result text fed back to the model for a declined call."""
    return f"Tool '{tool_name}' was declined by the user."


def error_result(error: BaseException) -> str:
    """Result text fed back to the model for a failed call."""
    return f"{ERROR_PREFIX}{error}"
