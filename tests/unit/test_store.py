"""Unit tests for the contract document stores."""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.models.contract import (
    Actor,
    AnalysisResult,
    Contract,
    ContractStatus,
    ExtractedClauses,
    Language,
    RiskLevel,
    UserRole,
)
from core.errors import ContractNotFoundError
from core.workflow.store import InMemoryContractStore, PostgresContractStore, visible_to


def make_result(deadlines: str = "Within 30 days") -> AnalysisResult:
    return AnalysisResult(
        extracted_clauses=ExtractedClauses(
            deadlines=deadlines,
            responsibilities="r",
            payment_terms="p",
            penalties="x",
            confidentiality="c",
            termination_conditions="t",
        ),
        summary="s",
        risk_level="Low",
    )


class TestVisibility:
    def test_role_scoping(self) -> None:
        contract = Contract(uploaded_by="user-1", organization_id="org-1", assigned_to="assistant-1")

        assert visible_to(contract, Actor(user_id="user-1", role=UserRole.STANDALONE))
        assert visible_to(contract, Actor(user_id="admin-1", role=UserRole.ADMIN, organization_id="org-1"))
        assert visible_to(contract, Actor(user_id="assistant-1", role=UserRole.LEGAL_ASSISTANT, organization_id="org-1"))
        assert not visible_to(contract, Actor(user_id="assistant-2", role=UserRole.LEGAL_ASSISTANT, organization_id="org-1"))
        assert not visible_to(contract, Actor(user_id="admin-2", role=UserRole.ADMIN, organization_id="org-2"))
        assert not visible_to(contract, Actor(user_id="solo-2", role=UserRole.STANDALONE))


class TestInMemoryContractStore:
    """Tests for the dict-backed store."""

    @pytest.fixture
    def store(self) -> InMemoryContractStore:
        return InMemoryContractStore()

    @pytest.mark.asyncio
    async def test_get_returns_copy(self, store: InMemoryContractStore) -> None:
        contract = await store.create(Contract(uploaded_by="user-1", title="NDA"))

        fetched = await store.get(contract.id)
        fetched.title = "changed"

        assert (await store.get(contract.id)).title == "NDA"

    @pytest.mark.asyncio
    async def test_update_is_partial(self, store: InMemoryContractStore) -> None:
        contract = await store.create(Contract(uploaded_by="user-1", title="NDA"))

        updated = await store.update(contract.id, {
            "status": ContractStatus.ANALYZED,
            "analysis": {Language.EN: make_result()},
            "risk_level": RiskLevel.LOW,
        })

        assert updated.title == "NDA"
        assert updated.status == ContractStatus.ANALYZED
        assert updated.analysis[Language.EN].extracted_clauses.deadlines == "Within 30 days"

    @pytest.mark.asyncio
    async def test_update_missing_raises(self, store: InMemoryContractStore) -> None:
        with pytest.raises(ContractNotFoundError):
            await store.update("missing", {"title": "x"})

    @pytest.mark.asyncio
    async def test_list_newest_first_and_missing_deadline(self, store: InMemoryContractStore) -> None:
        now = datetime.now(timezone.utc)
        older = await store.create(Contract(
            uploaded_by="user-1", organization_id="org-1", created_at=now - timedelta(days=1),
            analysis={Language.EN: make_result()},
        ))
        newer = await store.create(Contract(
            uploaded_by="user-2", organization_id="org-1", created_at=now,
            analysis={Language.EN: make_result()}, deadline=now,
        ))
        await store.create(Contract(uploaded_by="user-3", organization_id="org-2"))

        admin = Actor(user_id="admin-1", role=UserRole.ADMIN, organization_id="org-1")

        assert [c.id for c in await store.list_for_user(admin)] == [newer.id, older.id]
        assert [c.id for c in await store.list_missing_deadline(admin)] == [older.id]


class TestPostgresContractStore:
    """Tests for the asyncpg-backed store with a mocked pool."""

    @pytest.fixture
    def conn(self) -> MagicMock:
        conn = MagicMock()
        conn.execute = AsyncMock()
        conn.fetchrow = AsyncMock()
        conn.fetch = AsyncMock(return_value=[])
        return conn

    @pytest.fixture
    def store(self, conn: MagicMock) -> PostgresContractStore:
        pool = MagicMock()
        pool.acquire.return_value.__aenter__ = AsyncMock(return_value=conn)
        pool.acquire.return_value.__aexit__ = AsyncMock(return_value=False)
        return PostgresContractStore(pool)

    @pytest.mark.asyncio
    async def test_ensure_tables(self, store: PostgresContractStore, conn: MagicMock) -> None:
        await store.ensure_tables()

        statements = " ".join(call.args[0] for call in conn.execute.await_args_list)
        assert "CREATE TABLE IF NOT EXISTS contracts" in statements
        assert "analysis JSONB" in statements

    @pytest.mark.asyncio
    async def test_update_serializes_analysis(self, store: PostgresContractStore, conn: MagicMock) -> None:
        row = Contract(uploaded_by="user-1", status=ContractStatus.ANALYZED).model_dump()
        row["analysis"] = json.dumps({"en": make_result().model_dump()})
        conn.fetchrow.return_value = row

        updated = await store.update("c1", {
            "status": ContractStatus.ANALYZED,
            "analysis": {Language.EN: make_result()},
        })

        query, *values = conn.fetchrow.await_args.args
        assert "analysis = $3::jsonb" in query
        assert values[0] == "c1"
        assert values[1] == "analyzed"
        assert json.loads(values[2])["en"]["risk_level"] == "Low"
        assert updated.analysis[Language.EN].summary == "s"

    @pytest.mark.asyncio
    async def test_update_missing_raises(self, store: PostgresContractStore, conn: MagicMock) -> None:
        conn.fetchrow.return_value = None
        with pytest.raises(ContractNotFoundError):
            await store.update("missing", {"title": "x"})

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_columns(self, store: PostgresContractStore) -> None:
        with pytest.raises(ValueError):
            await store.update("c1", {"password": "x"})

    @pytest.mark.asyncio
    async def test_list_for_assistant_filters_by_assignee(self, store: PostgresContractStore, conn: MagicMock) -> None:
        await store.list_for_user(Actor(user_id="assistant-1", role=UserRole.LEGAL_ASSISTANT, organization_id="org-1"))

        query, *params = conn.fetch.await_args.args
        assert "assigned_to = $1" in query
        assert params == ["assistant-1"]
