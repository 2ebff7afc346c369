"""
Core records - documents, proposals and the typed results the engine returns.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Dict, List, Optional

if TYPE_CHECKING:
    from .gate import Refusal


class Severity(str, Enum):
    OK = "OK"
    WARN = "WARN"
    FAIL = "FAIL"

    @property
    def rank(self) -> int:
        return {"OK": 0, "WARN": 1, "FAIL": 2}[self.value]


class ProposalStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    APPLIED = "APPLIED"


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    STATE = "state"
    READINESS = "readiness"
    NOT_FOUND = "not_found"
    STORE = "store"


@dataclass
class Document:
    id: str
    key: Optional[str] = None
    title: Optional[str] = None
    content: Optional[str] = None
    governed: bool = False
    rag_ready: bool = False
    updated_at: Optional[datetime] = None

    @property
    def label(self) -> str:
        """Best human-facing identifier for this document."""
        return self.key or self.title or self.id


@dataclass
class AuditFinding:
    severity: Severity
    reasons: List[str]
    content_length: int
    markdown_score: float


@dataclass
class Proposal:
    id: str
    title: str
    content: Optional[str] = None
    status: ProposalStatus = ProposalStatus.DRAFT
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    submitted_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    rejected_at: Optional[datetime] = None
    rejected_by: Optional[str] = None
    reason: Optional[str] = None
    applied_at: Optional[datetime] = None
    applied_by: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (ProposalStatus.REJECTED, ProposalStatus.APPLIED)

    def to_dict(self) -> Dict:
        """Convert to dictionary with ISO timestamps."""
        data = asdict(self)
        data['status'] = self.status.value
        for name, value in data.items():
            if isinstance(value, datetime):
                data[name] = value.isoformat()
        return data


@dataclass
class TransitionResult:
    """Outcome of a lifecycle operation.

    On failure ``proposal`` is the untouched input record. ``document`` holds the
    updated target after a successful apply, or the restored target when the
    store refused the APPLIED transition and the patch was rolled back.
    """
    success: bool
    proposal: Proposal
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    warnings: List[str] = field(default_factory=list)
    document: Optional[Document] = None
    refusal: Optional["Refusal"] = None

    @classmethod
    def failed(cls, proposal: Proposal, kind: ErrorKind, error: str, **extra) -> 'TransitionResult':
        return cls(success=False, proposal=proposal, error=error, error_kind=kind, **extra)


def find_by_key(documents: List[Document], preferred_key: str) -> Optional[Document]:
    """
    Find a document by key with fallback matching.

    Matching order:
    1. Exact match
    2. Case-insensitive exact match
    3. Key contains the token (case-insensitive, trailing .md removed)
    """
    keyed = [doc for doc in documents if doc.key]

    for doc in keyed:
        if doc.key == preferred_key:
            return doc

    lower_preferred = preferred_key.lower()
    for doc in keyed:
        if doc.key.lower() == lower_preferred:
            return doc

    base_token = lower_preferred[:-3] if lower_preferred.endswith(".md") else lower_preferred
    for doc in keyed:
        if base_token in doc.key.lower():
            return doc

    return None
