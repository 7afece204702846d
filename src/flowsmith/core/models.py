"""Data model for the generation pipeline.

Inputs (jobs) and workflow drafts are pydantic models so that intake and
model output share one validation path. Derived, in-process records
(analysis, validation outcome, generation attempts) are plain dataclasses.
"""

import time
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

Classification = Literal["simple", "complex"]
Tier = Literal["standard", "advanced"]
GenerationPath = Literal["blueprint", "model"]
AttemptOutcome = Literal["success", "timeout", "error", "rate_limited", "skipped"]


class BusinessContext(BaseModel):
    """Optional business context attached to a job. Every field may be absent."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    industry: Optional[str] = None
    department: Optional[str] = None
    volume: Optional[str] = None
    sla_notes: Optional[str] = Field(default=None, alias="slaNotes")

    @field_validator("volume", mode="before")
    @classmethod
    def coerce_volume(cls, v: Any) -> Any:
        """Accept numeric volumes ("volume": 250) as well as free text."""
        if isinstance(v, (int, float)):
            return str(v)
        return v


class AutomationOpportunity(BaseModel):
    """One automation opportunity identified for the process."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    title: Optional[str] = None
    description: Optional[str] = None
    step_type: Optional[str] = Field(default=None, alias="stepType")
    integrations: tuple[str, ...] = Field(default_factory=tuple)
    automation_solution: Optional[str] = Field(default=None, alias="automationSolution")

    @model_validator(mode="after")
    def require_title_or_description(self) -> "AutomationOpportunity":
        if not (self.title or self.description):
            raise ValueError("opportunity needs a title or a description")
        return self

    def text(self) -> str:
        """All free text of the opportunity, for keyword matching."""
        parts = [self.title, self.description, self.automation_solution]
        return " ".join(p for p in parts if p)


class Job(BaseModel):
    """A submitted generation job. Immutable once created."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    process_description: str = Field(..., alias="processDescription", min_length=1)
    business_context: BusinessContext = Field(default_factory=BusinessContext, alias="businessContext")
    automation_opportunities: tuple[AutomationOpportunity, ...] = Field(
        default_factory=tuple, alias="automationOpportunities"
    )
    submitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), alias="submittedAt")

    @field_validator("process_description")
    @classmethod
    def strip_description(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("process description must not be blank")
        return v

    @field_validator("business_context", mode="before")
    @classmethod
    def default_business_context(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("automation_opportunities", mode="before")
    @classmethod
    def default_opportunities(cls, v: Any) -> Any:
        return () if v is None else v

    def searchable_text(self) -> str:
        """Lowercased description plus all opportunity text."""
        parts = [self.process_description, *(op.text() for op in self.automation_opportunities)]
        return " ".join(parts).lower()


@dataclass(frozen=True)
class FactorContribution:
    """Outcome of one complexity factor."""

    name: str
    weight: int
    contribution: int
    reason: str = ""


@dataclass(frozen=True)
class ComplexityAnalysis:
    """Weighted-factor complexity score for a job."""

    score: int
    classification: Classification
    factors: tuple[FactorContribution, ...]
    recommended_tier: Tier

    @property
    def is_complex(self) -> bool:
        return self.classification == "complex"

    @property
    def reasoning(self) -> list[str]:
        """Human-readable reasons of the factors that fired."""
        return [f.reason for f in self.factors if f.contribution]

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class NodeDraft(BaseModel):
    """A single node of a workflow draft."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: str
    name: str
    parameters: dict[str, Any] = Field(default_factory=dict)


class ConnectionDraft(BaseModel):
    """Directed connection between two node ids."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_node: str = Field(..., alias="from")
    to_node: str = Field(..., alias="to")


class WorkflowDraft(BaseModel):
    """Workflow graph produced by a blueprint or parsed from model output."""

    model_config = ConfigDict(frozen=True)

    name: str
    nodes: list[NodeDraft] = Field(..., min_length=1)
    connections: list[ConnectionDraft] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire format ("from"/"to" connection keys)."""
        return self.model_dump(by_alias=True)

    def node_ids(self) -> set[str]:
        return {node.id for node in self.nodes}


@dataclass(frozen=True)
class ValidationIssue:
    """One validation violation."""

    code: str
    message: str
    node_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data = {"code": self.code, "message": self.message}
        if self.node_id is not None:
            data["nodeId"] = self.node_id
        return data


@dataclass(frozen=True)
class RepairRecord:
    """An auto-repair that was applied to a draft."""

    code: str
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "description": self.description}


@dataclass
class ValidationResult:
    """Outcome of validating one draft."""

    valid: bool
    errors: list[ValidationIssue] = field(default_factory=list)
    repairs_applied: list[RepairRecord] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": [e.to_dict() for e in self.errors],
            "repairsApplied": [r.to_dict() for r in self.repairs_applied],
        }


@dataclass(frozen=True)
class GenerationAttempt:
    """One provider call (or skipped route) made by the generation invoker."""

    tier: Tier
    provider: str
    model: str
    prompt_tokens: int
    completion_tokens: int
    cost_usd: float
    duration_ms: float
    outcome: AttemptOutcome
    job_id: Optional[str] = None
    complexity: Optional[Classification] = None
    detail: Optional[str] = None
    recorded_at: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
