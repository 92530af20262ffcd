"""Workflow Façade - the single entry point callers use to move contracts along.

Each operation runs the permission check, then the domain action, then the
persisted status transition, as one logical unit. A failed domain action leaves
the status untouched. Notifications and analysis counting happen after the
transition is persisted and can never roll it back.

Mutations of one contract are serialized with a per-contract ``asyncio.Lock``,
so two concurrent analyses of the same contract cannot both write.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import AsyncIterator, Iterable

from app.models.contract import (
    Actor,
    Contract,
    ContractStatus,
    Language,
    UserRole,
)
from core.agents.contract_analysis_agent import DEFAULT_LANGUAGES, ContractAnalysisAgent
from core.agents.deadline_resolver import (
    DeadlineResolver,
    deadline_to_timestamp,
    is_resolvable_deadline_text,
)
from core.errors import (
    ContractPermissionError,
    ContractValidationError,
    InvalidTransitionError,
)
from core.workflow.notifications import (
    AnalysisCounter,
    InMemoryAnalysisCounter,
    LoggingNotifier,
    WorkflowEvent,
    WorkflowEventType,
    WorkflowNotifier,
)
from core.workflow.state_machine import ContractStateMachine, authorize_analysis
from core.workflow.store import ContractStore, InMemoryContractStore, visible_to


logger = logging.getLogger("aqd.workflow")

# Deadline clause language preference
_DEADLINE_LANGUAGES: tuple[Language, ...] = (Language.EN, Language.AR)


def deadline_clause(contract: Contract) -> str | None:
    """The first usable ``deadlines`` clause, English preferred."""
    for language in _DEADLINE_LANGUAGES:
        result = contract.analysis.get(language)
        if result and is_resolvable_deadline_text(result.extracted_clauses.deadlines):
            return result.extracted_clauses.deadlines
    return None


class ContractWorkflow:
    """Composes the state machine, analysis agent and deadline resolver."""

    def __init__(
        self,
        store: ContractStore | None = None,
        analysis_agent: ContractAnalysisAgent | None = None,
        deadline_resolver: DeadlineResolver | None = None,
        notifier: WorkflowNotifier | None = None,
        analysis_counter: AnalysisCounter | None = None,
    ) -> None:
        self.store = store or InMemoryContractStore()
        self.state_machine = ContractStateMachine(self.store)
        self.analysis_agent = analysis_agent or ContractAnalysisAgent()
        self.deadline_resolver = deadline_resolver or DeadlineResolver()
        self.notifier = notifier or LoggingNotifier()
        self.analysis_counter = analysis_counter or InMemoryAnalysisCounter()
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @asynccontextmanager
    async def _lock(self, contract_id: str) -> AsyncIterator[None]:
        """Hold the contract's lock. The entry is dropped once nobody holds or awaits it."""
        lock = self._locks.setdefault(contract_id, asyncio.Lock())
        self._lock_users[contract_id] = self._lock_users.get(contract_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[contract_id] -= 1
            if not self._lock_users[contract_id]:
                del self._lock_users[contract_id]
                del self._locks[contract_id]

    async def upload(
        self,
        actor: Actor,
        title: str,
        text: str,
        file_name: str = "",
        category: str = "",
    ) -> Contract:
        """Store a new contract in ``uploaded`` status."""
        if actor.role == UserRole.VIEWER:
            raise ContractPermissionError("Viewers cannot upload contracts.")
        if not text or not text.strip():
            raise ContractValidationError("Contract text is required.")

        contract = Contract(
            title=(title or "").strip() or file_name,
            file_name=file_name,
            category=category,
            organization_id=None if actor.role == UserRole.STANDALONE else actor.organization_id,
            uploaded_by=actor.user_id,
            text=text,
        )
        created = await self.store.create(contract)
        logger.info(f"Contract {created.id} uploaded by {actor.user_id}")
        return created

    async def get_contract(self, contract_id: str, actor: Actor) -> Contract:
        contract = await self.state_machine.get(contract_id)
        if not visible_to(contract, actor):
            raise ContractPermissionError("You do not have access to this contract.")
        return contract

    async def list_contracts(self, actor: Actor) -> list[Contract]:
        return await self.store.list_for_user(actor)

    async def assign(self, contract_id: str, actor: Actor, assignee_id: str) -> Contract:
        async with self._lock(contract_id):
            contract = await self.state_machine.transition(
                contract_id, actor, ContractStatus.ASSIGNED, assignee_id=assignee_id
            )
        await self._notify(contract, actor, WorkflowEventType.ASSIGNED, [contract.assigned_to])
        return contract

    async def analyze(
        self,
        contract_id: str,
        actor: Actor,
        languages: Iterable[Language | str] = DEFAULT_LANGUAGES,
        resolve_deadline: bool = True,
        today: date | None = None,
    ) -> Contract:
        """Analyze a contract and move it to ``analyzed``.

        On an ``uploaded`` or ``assigned`` contract the results are persisted with
        the status change. On an ``analyzed`` or ``reviewed`` contract only missing
        languages are filled in and the status stays as it is.

        Raises:
            ContractNotFoundError, InvalidTransitionError, ContractPermissionError:
                checked before any LLM call.
            ContractValidationError: the contract has no text.
            AnalysisFailedError: the LLM could not produce an analysis; the
                contract is left unchanged.
        """
        transitioned = False
        async with self._lock(contract_id):
            contract = await self.state_machine.get(contract_id)

            if contract.status in (ContractStatus.UPLOADED, ContractStatus.ASSIGNED):
                self.state_machine.check(contract, actor, ContractStatus.ANALYZED)
                outcome = await self.analysis_agent.analyze(
                    contract.text, languages, existing=contract.analysis, contract_id=contract.id
                )
                contract = await self.state_machine.apply(
                    contract,
                    actor,
                    ContractStatus.ANALYZED,
                    extra_fields={"analysis": outcome.results, "risk_level": outcome.risk_level},
                )
                transitioned = True
            elif contract.status in (ContractStatus.ANALYZED, ContractStatus.REVIEWED):
                authorize_analysis(contract, actor)
                outcome = await self.analysis_agent.analyze(
                    contract.text, languages, existing=contract.analysis, contract_id=contract.id
                )
                if outcome.changed:
                    contract = await self.store.update(contract.id, {
                        "analysis": outcome.results,
                        "risk_level": outcome.risk_level,
                        "updated_at": datetime.now(timezone.utc),
                    })
                    logger.info(
                        f"Contract {contract.id}: added analysis for "
                        f"{[language.value for language in outcome.analyzed_languages]}"
                    )
            else:
                raise InvalidTransitionError(contract.status.value, ContractStatus.ANALYZED.value)

        if transitioned:
            await self._notify(
                contract, actor, WorkflowEventType.ANALYZED,
                [contract.uploaded_by, contract.assigned_to],
            )
            await self._count_analysis(contract)

        if resolve_deadline and contract.deadline is None:
            contract = await self._enrich_deadline(contract, today)
        return contract

    async def review(self, contract_id: str, actor: Actor, comment: str | None = None) -> Contract:
        async with self._lock(contract_id):
            contract = await self.state_machine.transition(
                contract_id, actor, ContractStatus.REVIEWED, comment=comment
            )
        await self._notify(
            contract, actor, WorkflowEventType.REVIEWED, [contract.uploaded_by], comment
        )
        return contract

    async def approve(self, contract_id: str, actor: Actor, comment: str | None = None) -> Contract:
        return await self._decide(contract_id, actor, ContractStatus.APPROVED, comment)

    async def reject(self, contract_id: str, actor: Actor, comment: str | None = None) -> Contract:
        return await self._decide(contract_id, actor, ContractStatus.REJECTED, comment)

    async def _decide(
        self,
        contract_id: str,
        actor: Actor,
        target: ContractStatus,
        comment: str | None,
    ) -> Contract:
        async with self._lock(contract_id):
            contract = await self.state_machine.transition(contract_id, actor, target, comment=comment)
        event_type = (
            WorkflowEventType.APPROVED if target == ContractStatus.APPROVED
            else WorkflowEventType.REJECTED
        )
        await self._notify(
            contract, actor, event_type,
            [contract.uploaded_by, contract.assigned_to],
            contract.approval_comment,
        )
        return contract

    async def backfill_deadlines(self, actor: Actor, today: date | None = None) -> int:
        """Resolve deadlines for the actor's analyzed contracts that have none.

        Returns:
            Number of contracts that received a deadline.
        """
        candidates = [
            contract for contract in await self.store.list_missing_deadline(actor)
            if deadline_clause(contract) is not None
        ]
        logger.info(f"Deadline backfill: {len(candidates)} candidate contract(s) for {actor.user_id}")

        resolved = 0
        for contract in candidates:
            updated = await self._enrich_deadline(contract, today)
            if updated.deadline is not None:
                resolved += 1
        logger.info(f"Deadline backfill resolved {resolved}/{len(candidates)}")
        return resolved

    async def _enrich_deadline(self, contract: Contract, today: date | None = None) -> Contract:
        """Resolve and persist the contract deadline. Never raises."""
        free_text = deadline_clause(contract)
        if free_text is None:
            return contract

        resolved = await self.deadline_resolver.resolve(free_text, today=today, contract_id=contract.id)
        if resolved is None:
            return contract

        async with self._lock(contract.id):
            try:
                current = await self.store.get(contract.id)
                if current is None or current.deadline is not None:
                    return current or contract
                updated = await self.store.update(contract.id, {
                    "deadline": deadline_to_timestamp(resolved),
                    "updated_at": datetime.now(timezone.utc),
                })
            except Exception as e:
                logger.warning(f"Could not store deadline for contract {contract.id}: {e}")
                return contract

        logger.info(f"Contract {contract.id}: deadline set to {resolved.isoformat()}")
        return updated

    async def _notify(
        self,
        contract: Contract,
        actor: Actor,
        event_type: WorkflowEventType,
        recipients: list[str | None],
        comment: str | None = None,
    ) -> None:
        recipient_ids = [
            user_id for user_id in dict.fromkeys(recipients)
            if user_id and user_id != actor.user_id
        ]
        if not recipient_ids:
            return
        event = WorkflowEvent(
            event_type=event_type,
            contract_id=contract.id,
            contract_title=contract.title,
            actor_id=actor.user_id,
            recipient_ids=recipient_ids,
            organization_id=contract.organization_id,
            comment=comment,
        )
        try:
            await self.notifier.notify(event)
        except Exception as e:
            logger.warning(f"Notification failed for contract {contract.id} ({event_type.value}): {e}")

    async def _count_analysis(self, contract: Contract) -> None:
        if not contract.organization_id:
            return
        try:
            await self.analysis_counter.increment(contract.organization_id)
        except Exception as e:
            logger.warning(f"Failed to increment analysis count for {contract.organization_id}: {e}")
