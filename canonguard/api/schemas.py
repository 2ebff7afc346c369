"""
Remote store wire models - camelCase JSON in, engine dataclasses out.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from ..core.frontmatter import governance_from_frontmatter
from ..core.gate import SystemMode
from ..core.integrity import ReadinessStatus
from ..core.schema import Document, Proposal, ProposalStatus


class StoreModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class DocumentRecord(StoreModel):
    id: str
    key: Optional[str] = None
    title: Optional[str] = None
    content: Optional[str] = None
    governed: Optional[bool] = Field(default=None, validation_alias=AliasChoices("governed", "isGovernance"))
    rag_ready: bool = Field(default=False, alias="ragReady")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")

    @field_validator('id', mode='before')
    @classmethod
    def id_as_string(cls, v):
        if v is None or not str(v).strip():
            raise ValueError('id cannot be empty')
        return str(v)

    def to_document(self) -> Document:
        """Convert to an engine Document; an omitted governed flag falls back to frontmatter."""
        governed = self.governed
        if governed is None:
            governed = governance_from_frontmatter(self.content)

        return Document(
            id=self.id,
            key=self.key,
            title=self.title,
            content=self.content,
            governed=governed,
            rag_ready=self.rag_ready,
            updated_at=self.updated_at
        )


class ProposalRecord(StoreModel):
    id: str
    title: str
    content: Optional[str] = None
    status: ProposalStatus
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")
    submitted_at: Optional[datetime] = Field(default=None, alias="submittedAt")
    submitted_by: Optional[str] = Field(default=None, alias="submittedBy")
    approved_at: Optional[datetime] = Field(default=None, alias="approvedAt")
    approved_by: Optional[str] = Field(default=None, alias="approvedBy")
    rejected_at: Optional[datetime] = Field(default=None, alias="rejectedAt")
    rejected_by: Optional[str] = Field(default=None, alias="rejectedBy")
    reason: Optional[str] = None
    applied_at: Optional[datetime] = Field(default=None, alias="appliedAt")
    applied_by: Optional[str] = Field(default=None, alias="appliedBy")

    @field_validator('id', mode='before')
    @classmethod
    def id_as_string(cls, v):
        if v is None or not str(v).strip():
            raise ValueError('id cannot be empty')
        return str(v)

    def to_proposal(self) -> Proposal:
        return Proposal(**self.model_dump())


class PatchRequest(StoreModel):
    """Partial update body; only supplied fields are sent."""
    title: Optional[str] = None
    content: Optional[str] = None
    updated_by: Optional[str] = Field(default=None, alias="updatedBy")

    @model_validator(mode='after')
    def must_change_something(self):
        if self.title is None and self.content is None:
            raise ValueError('patch must include title or content')
        return self

    def to_body(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class AIModeResponse(StoreModel):
    mode: SystemMode
    reasons: List[str] = Field(default_factory=list)


class WorkspaceReadinessResponse(StoreModel):
    readiness: Optional[ReadinessStatus] = None
    readiness_reasons: List[str] = Field(default_factory=list, alias="readinessReasons")
