"""Contract document store.

The core only needs per-document strong consistency: ``get``, ``create`` and a
partial ``update`` that returns the fresh document. Two implementations are
provided: an in-memory store (default, also used by tests) and a PostgreSQL
store on an asyncpg pool.
"""

import json
import logging
from typing import Any, Protocol

from app.models.contract import (
    Actor,
    AnalysisResult,
    Contract,
    ContractStatus,
    Language,
    RiskLevel,
    UserRole,
)
from core.errors import ContractNotFoundError


logger = logging.getLogger("aqd.store")

ORG_WIDE_ROLES = frozenset({UserRole.ADMIN, UserRole.CREATOR, UserRole.ORG_USER, UserRole.VIEWER})


def visible_to(contract: Contract, actor: Actor) -> bool:
    """Role-scoped visibility.

    Standalone users see their own uploads, legal assistants see contracts
    assigned to them, organization roles see their organization's contracts.
    """
    if contract.uploaded_by == actor.user_id:
        return True
    if actor.role == UserRole.LEGAL_ASSISTANT:
        return contract.assigned_to == actor.user_id
    if actor.role in ORG_WIDE_ROLES:
        return actor.organization_id is not None and contract.organization_id == actor.organization_id
    return False


class ContractStore(Protocol):
    """Persistence boundary for contracts."""

    async def get(self, contract_id: str) -> Contract | None: ...

    async def create(self, contract: Contract) -> Contract: ...

    async def update(self, contract_id: str, fields: dict[str, Any]) -> Contract: ...

    async def list_for_user(self, actor: Actor) -> list[Contract]: ...

    async def list_missing_deadline(self, actor: Actor) -> list[Contract]: ...


class InMemoryContractStore:
    """Dict-backed store. Returns copies so callers never alias stored state."""

    def __init__(self) -> None:
        self._contracts: dict[str, Contract] = {}

    async def get(self, contract_id: str) -> Contract | None:
        contract = self._contracts.get(contract_id)
        return contract.model_copy(deep=True) if contract else None

    async def create(self, contract: Contract) -> Contract:
        self._contracts[contract.id] = contract.model_copy(deep=True)
        return contract

    async def update(self, contract_id: str, fields: dict[str, Any]) -> Contract:
        current = self._contracts.get(contract_id)
        if current is None:
            raise ContractNotFoundError(contract_id)
        updated = Contract.model_validate({**current.model_dump(), **fields})
        self._contracts[contract_id] = updated
        return updated.model_copy(deep=True)

    async def list_for_user(self, actor: Actor) -> list[Contract]:
        contracts = [c.model_copy(deep=True) for c in self._contracts.values() if visible_to(c, actor)]
        return sorted(contracts, key=lambda c: c.created_at, reverse=True)

    async def list_missing_deadline(self, actor: Actor) -> list[Contract]:
        """Visible, analyzed contracts that have no resolved deadline yet."""
        return [
            contract for contract in await self.list_for_user(actor)
            if contract.deadline is None and contract.analysis
        ]


_COLUMNS: tuple[str, ...] = (
    "id", "title", "file_name", "category", "status", "organization_id",
    "uploaded_by", "assigned_to", "approved_by", "text", "analysis", "risk_level",
    "deadline", "approval_comment", "created_at", "assigned_at", "analyzed_at",
    "approved_at", "updated_at",
)


def _to_db_value(column: str, value: Any) -> Any:
    if column == "analysis":
        return json.dumps({
            Language(language).value: (
                result.model_dump() if isinstance(result, AnalysisResult) else result
            )
            for language, result in (value or {}).items()
        }, ensure_ascii=False)
    if isinstance(value, (ContractStatus, RiskLevel)):
        return value.value
    return value


def _row_to_contract(row: Any) -> Contract:
    data = dict(row)
    analysis = data.get("analysis") or {}
    if isinstance(analysis, str):
        analysis = json.loads(analysis)
    data["analysis"] = analysis
    return Contract.model_validate(data)


class PostgresContractStore:
    """Contract store on a PostgreSQL ``contracts`` table."""

    def __init__(self, pool: Any) -> None:
        """Initialize with an asyncpg connection pool."""
        self.pool = pool

    async def ensure_tables(self) -> None:
        """Ensure required database tables exist."""
        async with self.pool.acquire() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS contracts (
                    id VARCHAR(64) PRIMARY KEY,
                    title TEXT NOT NULL DEFAULT '',
                    file_name TEXT NOT NULL DEFAULT '',
                    category TEXT NOT NULL DEFAULT '',
                    status VARCHAR(20) NOT NULL,
                    organization_id VARCHAR(255),
                    uploaded_by VARCHAR(255) NOT NULL,
                    assigned_to VARCHAR(255),
                    approved_by VARCHAR(255),
                    text TEXT NOT NULL DEFAULT '',
                    analysis JSONB NOT NULL DEFAULT '{}'::jsonb,
                    risk_level VARCHAR(20) NOT NULL DEFAULT 'Unknown',
                    deadline TIMESTAMP WITH TIME ZONE,
                    approval_comment TEXT,
                    created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
                    assigned_at TIMESTAMP WITH TIME ZONE,
                    analyzed_at TIMESTAMP WITH TIME ZONE,
                    approved_at TIMESTAMP WITH TIME ZONE,
                    updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()
                )
            """)

            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_contracts_organization_id
                ON contracts(organization_id)
            """)

            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_contracts_assigned_to
                ON contracts(assigned_to)
            """)

            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_contracts_uploaded_by
                ON contracts(uploaded_by)
            """)

    async def get(self, contract_id: str) -> Contract | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow("SELECT * FROM contracts WHERE id = $1", contract_id)
            return _row_to_contract(row) if row else None

    async def create(self, contract: Contract) -> Contract:
        values = [_to_db_value(column, getattr(contract, column)) for column in _COLUMNS]
        placeholders = ", ".join(f"${i}" for i in range(1, len(_COLUMNS) + 1))
        async with self.pool.acquire() as conn:
            await conn.execute(
                f"INSERT INTO contracts ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
                *values,
            )
        logger.info(f"Contract created: {contract.id}")
        return contract

    async def update(self, contract_id: str, fields: dict[str, Any]) -> Contract:
        unknown = set(fields) - set(_COLUMNS) - {"id"}
        if unknown:
            raise ValueError(f"Unknown contract fields: {sorted(unknown)}")

        columns = [column for column in fields if column != "id"]
        assignments = ", ".join(
            f"{column} = ${i}::jsonb" if column == "analysis" else f"{column} = ${i}"
            for i, column in enumerate(columns, start=2)
        )
        values = [_to_db_value(column, fields[column]) for column in columns]

        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"UPDATE contracts SET {assignments} WHERE id = $1 RETURNING *",
                contract_id,
                *values,
            )
        if row is None:
            raise ContractNotFoundError(contract_id)
        return _row_to_contract(row)

    async def list_for_user(self, actor: Actor) -> list[Contract]:
        if actor.role == UserRole.LEGAL_ASSISTANT:
            query = "SELECT * FROM contracts WHERE assigned_to = $1 OR uploaded_by = $1"
            params: list[Any] = [actor.user_id]
        elif actor.role in ORG_WIDE_ROLES and actor.organization_id:
            query = "SELECT * FROM contracts WHERE organization_id = $1 OR uploaded_by = $2"
            params = [actor.organization_id, actor.user_id]
        else:
            query = "SELECT * FROM contracts WHERE uploaded_by = $1"
            params = [actor.user_id]
        query += " ORDER BY created_at DESC"

        async with self.pool.acquire() as conn:
            rows = await conn.fetch(query, *params)
            return [_row_to_contract(row) for row in rows]

    async def list_missing_deadline(self, actor: Actor) -> list[Contract]:
        return [
            contract for contract in await self.list_for_user(actor)
            if contract.deadline is None and contract.analysis
        ]
