"""
Canon integrity - verifies required canonical documents exist, are governed and RAG-ready.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .gate import SystemMode
from .schema import Document
from ..util.logging import logger

REQUIRED_CANON_DOCS = (
    "continuum-canon-index.md",
    "continuum-workspace-initialization-contract.md",
    "continuum-workspace-initialization-protocol_v1_0.md",
    "continuum-analysis-engine-architecture_v1_0.md",
)

# May exist, but must never be governed
OPTIONAL_SCAFFOLD_DOC = "Workspace-Canon-Template.md"

GOVERNED = "GOVERNED"
UNGOVERNED = "UNGOVERNED"

SUCCESS_SENTENCE = "All canonical documents are present, properly governed, and ready for RAG."


class ReadinessStatus(str, Enum):
    READY = "READY"
    NOT_READY = "NOT_READY"


@dataclass
class GovernanceMismatch:
    filename: str
    expected: str
    actual: str


@dataclass
class IntegrityCheckResult:
    passed: bool
    missing_docs: List[str] = field(default_factory=list)
    wrong_governance: List[GovernanceMismatch] = field(default_factory=list)
    not_ready_for_rag: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        """Wire shape matching the report consumers' field names."""
        return {
            "passed": self.passed,
            "missingDocs": list(self.missing_docs),
            "wrongGovernance": [asdict(item) for item in self.wrong_governance],
            "notReadyForRag": list(self.not_ready_for_rag),
        }


def _index_documents(documents: Iterable[Document]) -> Dict[str, Document]:
    """Map keys and titles to documents. Keys win over titles; first document wins."""
    docs = list(documents)
    index: Dict[str, Document] = {}
    for doc in docs:
        if doc.key:
            index.setdefault(doc.key, doc)
    for doc in docs:
        if doc.title:
            index.setdefault(doc.title, doc)
    return index


def check_integrity(documents: Iterable[Document],
                    required: Sequence[str] = REQUIRED_CANON_DOCS,
                    scaffold: Optional[str] = OPTIONAL_SCAFFOLD_DOC) -> IntegrityCheckResult:
    """
    Check a full document set against the canonical manifest.

    Always computed fresh from the given set. An empty set fails with every
    required key reported missing.
    """
    index = _index_documents(documents)
    missing_docs = []
    wrong_governance = []
    not_ready_for_rag = []

    for required_key in required:
        doc = index.get(required_key)
        if doc is None:
            missing_docs.append(required_key)
            continue

        if doc.governed is not True:
            wrong_governance.append(GovernanceMismatch(required_key, GOVERNED, UNGOVERNED))

        if doc.rag_ready is not True:
            not_ready_for_rag.append(required_key)

    if scaffold:
        scaffold_doc = index.get(scaffold)
        if scaffold_doc is not None and scaffold_doc.governed is True:
            wrong_governance.append(GovernanceMismatch(scaffold, UNGOVERNED, GOVERNED))

    passed = not missing_docs and not wrong_governance and not not_ready_for_rag

    return IntegrityCheckResult(
        passed=passed,
        missing_docs=missing_docs,
        wrong_governance=wrong_governance,
        not_ready_for_rag=not_ready_for_rag
    )


def format_timestamp(timestamp: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a Z suffix."""
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    utc = timestamp.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def generate_report(result: IntegrityCheckResult, label: str,
                    timestamp: Optional[datetime] = None) -> str:
    """
    Render the plain-text integrity report.

    Downstream tooling parses this text: section order and omission of empty
    sections must not change.
    """
    if timestamp is None:
        timestamp = datetime.now(timezone.utc)

    lines = [
        "CANON INTEGRITY CHECK REPORT",
        "=" * 50,
        "",
        f"Node: {label}",
        f"Timestamp: {format_timestamp(timestamp)}",
        f"Status: {'PASS' if result.passed else 'FAIL'}",
        "",
    ]

    if result.missing_docs:
        lines.append("MISSING DOCUMENTS:")
        for doc in result.missing_docs:
            lines.append(f"  - {doc}")
        lines.append("")

    if result.wrong_governance:
        lines.append("WRONG GOVERNANCE STATUS:")
        for item in result.wrong_governance:
            lines.append(f"  - {item.filename}: Expected {item.expected}, but is {item.actual}")
        lines.append("")

    if result.not_ready_for_rag:
        lines.append("NOT READY FOR RAG:")
        for doc in result.not_ready_for_rag:
            lines.append(f"  - {doc}")
        lines.append("")

    if result.passed:
        lines.append(SUCCESS_SENTENCE)

    return "\n".join(lines)


def integrity_reasons(result: IntegrityCheckResult) -> List[str]:
    """Flatten an integrity result into readiness reason strings."""
    reasons = [f"Missing canonical document: {doc}" for doc in result.missing_docs]
    reasons.extend(
        f"{item.filename}: Expected {item.expected}, but is {item.actual}"
        for item in result.wrong_governance
    )
    reasons.extend(f"Not ready for RAG: {doc}" for doc in result.not_ready_for_rag)
    return reasons


def readiness_from_integrity(result: IntegrityCheckResult) -> Tuple[ReadinessStatus, List[str]]:
    """Derive workspace readiness and its reasons from an integrity result."""
    if result.passed:
        return ReadinessStatus.READY, []
    return ReadinessStatus.NOT_READY, integrity_reasons(result)


def mode_from_integrity(result: IntegrityCheckResult) -> Tuple[SystemMode, List[str]]:
    """Derive the system mode (GOVERNED/GUARDED) and reasons from an integrity result."""
    status, reasons = readiness_from_integrity(result)
    mode = SystemMode.GOVERNED if status == ReadinessStatus.READY else SystemMode.GUARDED
    return mode, reasons


def run_integrity_check(documents: Iterable[Document], label: str,
                        timestamp: Optional[datetime] = None) -> Tuple[IntegrityCheckResult, str]:
    """Check integrity, log the outcome, and render the report."""
    result = check_integrity(documents)
    logger.log_integrity_check(
        label,
        result.passed,
        len(result.missing_docs),
        len(result.wrong_governance),
        len(result.not_ready_for_rag)
    )
    return result, generate_report(result, label, timestamp)
