"""Contract State Machine - owns the authoritative status field.

Graph:
    uploaded -> assigned -> analyzed -> reviewed -> approved | rejected
    uploaded -> analyzed              (admin-initiated analysis without assignment)
    analyzed -> approved | rejected   (approval without an explicit review)

``approved`` and ``rejected`` are terminal. Edge validity is checked before role
permissions, so an edge outside the graph is rejected for every role.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from app.models.contract import Actor, Contract, ContractStatus, UserRole
from core.errors import (
    ContractNotFoundError,
    ContractPermissionError,
    ContractValidationError,
    InvalidTransitionError,
)
from core.workflow.store import ContractStore


logger = logging.getLogger("aqd.state_machine")

TRANSITIONS: dict[ContractStatus, frozenset[ContractStatus]] = {
    ContractStatus.UPLOADED: frozenset({ContractStatus.ASSIGNED, ContractStatus.ANALYZED}),
    ContractStatus.ASSIGNED: frozenset({ContractStatus.ANALYZED}),
    ContractStatus.ANALYZED: frozenset({
        ContractStatus.REVIEWED,
        ContractStatus.APPROVED,
        ContractStatus.REJECTED,
    }),
    ContractStatus.REVIEWED: frozenset({ContractStatus.APPROVED, ContractStatus.REJECTED}),
    ContractStatus.APPROVED: frozenset(),
    ContractStatus.REJECTED: frozenset(),
}

TERMINAL_STATUSES = frozenset({ContractStatus.APPROVED, ContractStatus.REJECTED})

MANAGER_ROLES = frozenset({UserRole.ADMIN, UserRole.CREATOR})

_ROLE_LABELS: dict[UserRole, str] = {
    UserRole.ADMIN: "admin",
    UserRole.CREATOR: "creator",
    UserRole.LEGAL_ASSISTANT: "legal assistant",
}


def is_valid_transition(current: ContractStatus, target: ContractStatus) -> bool:
    return target in TRANSITIONS[current]


def default_decision_comment(target: ContractStatus, actor: Actor) -> str:
    """Comment recorded when an approve/reject arrives without one."""
    verb = "Approved" if target == ContractStatus.APPROVED else "Rejected"
    return f"{verb} by {_ROLE_LABELS.get(actor.role, actor.role.value)}"


def _check_tenant(contract: Contract, actor: Actor) -> None:
    if contract.organization_id and actor.organization_id != contract.organization_id:
        raise ContractPermissionError("You do not have access to this organization's contracts.")


def _is_assignee(contract: Contract, actor: Actor) -> bool:
    return contract.assigned_to is not None and contract.assigned_to == actor.user_id


def authorize_analysis(contract: Contract, actor: Actor) -> None:
    """Check the actor may run analysis on this contract.

    Managers may always analyze. Legal assistants only analyze contracts assigned
    to them. A standalone user may analyze their own contract.
    """
    _check_tenant(contract, actor)
    if actor.role in MANAGER_ROLES:
        return
    if actor.role == UserRole.LEGAL_ASSISTANT:
        if _is_assignee(contract, actor):
            return
        raise ContractPermissionError("Legal assistants can only analyze contracts assigned to them.")
    if (
        actor.role == UserRole.STANDALONE
        and contract.organization_id is None
        and contract.uploaded_by == actor.user_id
    ):
        return
    raise ContractPermissionError("You do not have permission to analyze this contract.")


def authorize_transition(contract: Contract, actor: Actor, target: ContractStatus) -> None:
    """Role and assignment check for one edge. Assumes the edge exists."""
    if target == ContractStatus.ANALYZED:
        authorize_analysis(contract, actor)
        return

    _check_tenant(contract, actor)
    if actor.role in MANAGER_ROLES:
        return

    if target == ContractStatus.ASSIGNED:
        raise ContractPermissionError("Only admins can assign contracts.")

    if actor.role == UserRole.LEGAL_ASSISTANT and _is_assignee(contract, actor):
        return
    raise ContractPermissionError(
        f"You do not have permission to mark this contract as {target.value}."
    )


class ContractStateMachine:
    """Validates role-gated transitions and records transition metadata."""

    def __init__(self, store: ContractStore) -> None:
        self.store = store

    async def get(self, contract_id: str) -> Contract:
        contract = await self.store.get(contract_id)
        if contract is None:
            raise ContractNotFoundError(contract_id)
        return contract

    def check(self, contract: Contract, actor: Actor, target: ContractStatus) -> None:
        """Raise unless ``contract.status -> target`` exists and the actor may take it."""
        if not is_valid_transition(contract.status, target):
            raise InvalidTransitionError(contract.status.value, target.value)
        authorize_transition(contract, actor, target)

    def transition_fields(
        self,
        contract: Contract,
        actor: Actor,
        target: ContractStatus,
        comment: str | None = None,
        assignee_id: str | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """Fields persisted alongside the new status."""
        now = now or datetime.now(timezone.utc)
        fields: dict[str, Any] = {"status": target, "updated_at": now}

        if target == ContractStatus.ASSIGNED:
            if not assignee_id or not assignee_id.strip():
                raise ContractValidationError("An assignee is required to assign a contract.")
            fields["assigned_to"] = assignee_id.strip()
            fields["assigned_at"] = now
        elif target == ContractStatus.ANALYZED:
            fields["analyzed_at"] = now
        elif target in TERMINAL_STATUSES:
            fields["approved_by"] = actor.user_id
            fields["approved_at"] = now
            fields["approval_comment"] = (
                comment.strip() if comment and comment.strip()
                else default_decision_comment(target, actor)
            )
        return fields

    async def apply(
        self,
        contract: Contract,
        actor: Actor,
        target: ContractStatus,
        comment: str | None = None,
        assignee_id: str | None = None,
        extra_fields: dict[str, Any] | None = None,
    ) -> Contract:
        """Validate and persist a transition for an already-loaded contract."""
        self.check(contract, actor, target)
        fields = self.transition_fields(contract, actor, target, comment, assignee_id)
        updated = await self.store.update(contract.id, {**(extra_fields or {}), **fields})
        logger.info(
            f"Contract {contract.id}: {contract.status.value} -> {target.value} "
            f"by {actor.user_id} ({actor.role.value})"
        )
        return updated

    async def transition(
        self,
        contract_id: str,
        actor: Actor,
        target: ContractStatus,
        comment: str | None = None,
        assignee_id: str | None = None,
        extra_fields: dict[str, Any] | None = None,
    ) -> Contract:
        """Load the contract, validate the edge and permission, and persist.

        Raises:
            ContractNotFoundError: contract missing.
            InvalidTransitionError: edge not in the graph.
            ContractPermissionError: role or assignment mismatch.
            ContractValidationError: missing assignee for an assignment.
        """
        contract = await self.get(contract_id)
        return await self.apply(contract, actor, target, comment, assignee_id, extra_fields)
