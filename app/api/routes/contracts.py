"""Contract workflow routes."""

from fastapi import APIRouter, Depends, Header, HTTPException

from app.config import get_settings
from app.models.contract import (
    Actor,
    AnalyzeRequest,
    AssignRequest,
    ContractCreate,
    ContractResponse,
    DecisionRequest,
    UserRole,
)
from core.workflow.facade import ContractWorkflow

router = APIRouter()

_workflow: ContractWorkflow | None = None


def get_workflow() -> ContractWorkflow:
    """Dependency returning the process-wide workflow (lazy initialization)."""
    global _workflow
    if _workflow is None:
        store = None
        if get_settings().storage_backend == "postgres":
            from app.database import db
            from core.workflow.store import PostgresContractStore
            store = PostgresContractStore(db.pool)
        _workflow = ContractWorkflow(store=store)
    return _workflow


async def get_actor(
    x_user_id: str = Header(...),
    x_user_role: str = Header(...),
    x_organization_id: str | None = Header(default=None),
) -> Actor:
    """Build the acting user from request headers."""
    try:
        role = UserRole(x_user_role)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown role: {x_user_role}")
    return Actor(user_id=x_user_id, role=role, organization_id=x_organization_id or None)


@router.post("/", response_model=ContractResponse, status_code=201)
async def upload_contract(
    request: ContractCreate,
    actor: Actor = Depends(get_actor),
    workflow: ContractWorkflow = Depends(get_workflow),
) -> ContractResponse:
    """Upload contract text."""
    contract = await workflow.upload(
        actor, request.title, request.text, request.file_name, request.category
    )
    return ContractResponse.from_contract(contract)


@router.get("/", response_model=list[ContractResponse])
async def list_contracts(
    actor: Actor = Depends(get_actor),
    workflow: ContractWorkflow = Depends(get_workflow),
) -> list[ContractResponse]:
    """List contracts visible to the acting user, newest first."""
    contracts = await workflow.list_contracts(actor)
    return [ContractResponse.from_contract(contract) for contract in contracts]


@router.post("/deadlines/backfill")
async def backfill_deadlines(
    actor: Actor = Depends(get_actor),
    workflow: ContractWorkflow = Depends(get_workflow),
) -> dict[str, int]:
    """Resolve deadlines for analyzed contracts that don't have one yet."""
    resolved = await workflow.backfill_deadlines(actor)
    return {"resolved": resolved}


@router.get("/{contract_id}", response_model=ContractResponse)
async def get_contract(
    contract_id: str,
    actor: Actor = Depends(get_actor),
    workflow: ContractWorkflow = Depends(get_workflow),
) -> ContractResponse:
    contract = await workflow.get_contract(contract_id, actor)
    return ContractResponse.from_contract(contract)


@router.post("/{contract_id}/assign", response_model=ContractResponse)
async def assign_contract(
    contract_id: str,
    request: AssignRequest,
    actor: Actor = Depends(get_actor),
    workflow: ContractWorkflow = Depends(get_workflow),
) -> ContractResponse:
    contract = await workflow.assign(contract_id, actor, request.assignee_id)
    return ContractResponse.from_contract(contract)


@router.post("/{contract_id}/analyze", response_model=ContractResponse)
async def analyze_contract(
    contract_id: str,
    request: AnalyzeRequest | None = None,
    actor: Actor = Depends(get_actor),
    workflow: ContractWorkflow = Depends(get_workflow),
) -> ContractResponse:
    """Run AI analysis in the requested languages (English and Arabic by default)."""
    request = request or AnalyzeRequest()
    contract = await workflow.analyze(contract_id, actor, request.languages)
    return ContractResponse.from_contract(contract)


@router.post("/{contract_id}/review", response_model=ContractResponse)
async def review_contract(
    contract_id: str,
    request: DecisionRequest | None = None,
    actor: Actor = Depends(get_actor),
    workflow: ContractWorkflow = Depends(get_workflow),
) -> ContractResponse:
    comment = request.comment if request else None
    contract = await workflow.review(contract_id, actor, comment)
    return ContractResponse.from_contract(contract)


@router.post("/{contract_id}/approve", response_model=ContractResponse)
async def approve_contract(
    contract_id: str,
    request: DecisionRequest | None = None,
    actor: Actor = Depends(get_actor),
    workflow: ContractWorkflow = Depends(get_workflow),
) -> ContractResponse:
    comment = request.comment if request else None
    contract = await workflow.approve(contract_id, actor, comment)
    return ContractResponse.from_contract(contract)


@router.post("/{contract_id}/reject", response_model=ContractResponse)
async def reject_contract(
    contract_id: str,
    request: DecisionRequest | None = None,
    actor: Actor = Depends(get_actor),
    workflow: ContractWorkflow = Depends(get_workflow),
) -> ContractResponse:
    comment = request.comment if request else None
    contract = await workflow.reject(contract_id, actor, comment)
    return ContractResponse.from_contract(contract)
