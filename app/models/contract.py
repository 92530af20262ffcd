"""Contract data models."""

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, BeforeValidator, Field
from typing_extensions import Annotated


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def strip_text(value: object) -> object:
    """Trim surrounding whitespace from string input."""
    return value.strip() if isinstance(value, str) else value


StrippedStr = Annotated[str, BeforeValidator(strip_text)]


class ContractStatus(str, Enum):
    """Workflow status of a contract."""
    UPLOADED = "uploaded"
    ASSIGNED = "assigned"
    ANALYZED = "analyzed"
    REVIEWED = "reviewed"
    APPROVED = "approved"
    REJECTED = "rejected"


class UserRole(str, Enum):
    """Roles known to the user registry."""
    STANDALONE = "standalone"
    ORG_USER = "org_user"
    LEGAL_ASSISTANT = "legal_assistant"
    ADMIN = "admin"
    CREATOR = "creator"
    VIEWER = "viewer"


class Language(str, Enum):
    """Languages an analysis can be produced in."""
    EN = "en"
    AR = "ar"


class RiskLevel(str, Enum):
    """Canonical, language-independent risk tier."""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    UNKNOWN = "Unknown"


class ExtractedClauses(BaseModel):
    """The six clause fields extracted from a contract.

    Every field is always populated; absence is expressed with a sentinel string.
    """
    deadlines: str
    responsibilities: str
    payment_terms: str
    penalties: str
    confidentiality: str
    termination_conditions: str


class AnalysisResult(BaseModel):
    """One language's clause extraction, summary and risk tier.

    ``risk_level`` is expressed in the result's own language vocabulary.
    """
    extracted_clauses: ExtractedClauses
    summary: str
    risk_level: str


class Actor(BaseModel):
    """The user performing a workflow action."""
    user_id: str
    role: UserRole
    organization_id: str | None = None


class Contract(BaseModel):
    """Contract moving through the upload -> review -> approval workflow."""
    id: str = Field(default_factory=lambda: uuid4().hex)
    title: str = ""
    file_name: str = ""
    category: str = ""
    status: ContractStatus = ContractStatus.UPLOADED
    organization_id: str | None = None
    uploaded_by: str
    assigned_to: str | None = None
    approved_by: str | None = None
    text: str = ""
    analysis: dict[Language, AnalysisResult] = Field(default_factory=dict)
    risk_level: RiskLevel = RiskLevel.UNKNOWN
    deadline: datetime | None = None
    approval_comment: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    assigned_at: datetime | None = None
    analyzed_at: datetime | None = None
    approved_at: datetime | None = None
    updated_at: datetime = Field(default_factory=utcnow)


class ContractCreate(BaseModel):
    """Schema for uploading a new contract."""
    title: StrippedStr
    text: str
    file_name: str = ""
    category: str = ""


class AssignRequest(BaseModel):
    """Schema for assigning a contract to a reviewer."""
    assignee_id: StrippedStr


class AnalyzeRequest(BaseModel):
    """Schema for requesting analysis in one or more languages."""
    languages: list[Language] = Field(default_factory=lambda: [Language.EN, Language.AR])


class DecisionRequest(BaseModel):
    """Schema for review, approve and reject actions."""
    comment: str | None = None


class ContractResponse(BaseModel):
    """Response schema for contract operations."""
    id: str
    title: str
    status: ContractStatus
    organization_id: str | None
    uploaded_by: str
    assigned_to: str | None
    approved_by: str | None
    analysis: dict[Language, AnalysisResult]
    risk_level: RiskLevel
    deadline: datetime | None
    approval_comment: str | None
    created_at: datetime
    assigned_at: datetime | None
    updated_at: datetime

    @classmethod
    def from_contract(cls, contract: Contract) -> "ContractResponse":
        return cls(**contract.model_dump(exclude={"text", "file_name", "category", "analyzed_at", "approved_at"}))
