"""
Content severity scoring - OK/WARN/FAIL verdicts for raw document text.

The markdown score is an additive heuristic on a 0-10 scale. Each structural
signal earns capped points, counted outside fenced blocks:

    headings            2.0 each, max 4.0
    list items          0.5 each, max 2.0
    closed fenced code  1.0 each, max 2.0
    paragraph breaks    0.5 each, max 1.0
    inline links        0.5 each, max 1.0

An unclosed fence swallows the rest of the content, so appending a closed
block after it can only add points.

Raw tab characters subtract TAB_PENALTY and always force at least WARN.
Content scoring at or below WARN_SCORE_THRESHOLD is WARN. The score is never
normalized by length, so adding well-formed structure cannot lower it.
"""

import hashlib
import re
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from . import config
from .schema import AuditFinding, Document, Severity
from ..util.logging import logger

MAX_SCORE = 10.0

FENCE_OPEN_RE = re.compile(r"^[ \t]*(`{3,})")
FENCE_CLOSE_RE = re.compile(r"^[ \t]*(`{3,})[ \t\r]*$")
HEADING_RE = re.compile(r"^[ \t]{0,3}#{1,6}[ \t]+\S", re.MULTILINE)
LIST_ITEM_RE = re.compile(r"^[ \t]*(?:[-*+]|\d+[.)])[ \t]+\S", re.MULTILINE)
LINK_RE = re.compile(r"\[[^\]\n]+\]\([^)\s]+\)")
BLOCK_SPLIT_RE = re.compile(r"\n[ \t]*\n")

# (points per signal, cap)
SIGNAL_WEIGHTS = {
    "headings": (2.0, 4.0),
    "list_items": (0.5, 2.0),
    "fenced_blocks": (1.0, 2.0),
    "paragraph_breaks": (0.5, 1.0),
    "links": (0.5, 1.0),
}

EMPTY_REASON = "empty or missing content"
TAB_REASON = "contains raw tab characters"


def split_fences(content: str) -> Tuple[str, int]:
    """
    Separate fenced code from prose.

    A fence opens on a line starting with three or more backticks and closes on
    a line holding only a run of backticks at least as long as the opener. An
    unclosed fence runs to the end of the content and is not counted.

    Returns:
        (content outside fences, number of closed fenced blocks)
    """
    outside = []
    closed = 0
    opener = None

    for line in content.split("\n"):
        if opener is None:
            match = FENCE_OPEN_RE.match(line)
            if match:
                opener = match.group(1)
                outside.append("")
            else:
                outside.append(line)
            continue

        match = FENCE_CLOSE_RE.match(line)
        if match and len(match.group(1)) >= len(opener):
            opener = None
            closed += 1

    return "\n".join(outside), closed


def count_signals(content: str) -> Dict[str, int]:
    """Count structural markdown signals in content."""
    outside, fenced_blocks = split_fences(content)
    blocks = [b for b in BLOCK_SPLIT_RE.split(outside) if b.strip()]

    return {
        "headings": len(HEADING_RE.findall(outside)),
        "list_items": len(LIST_ITEM_RE.findall(outside)),
        "fenced_blocks": fenced_blocks,
        "paragraph_breaks": max(len(blocks) - 1, 0),
        "links": len(LINK_RE.findall(outside)),
    }


def markdown_score(content: str, tab_penalty: Optional[float] = None) -> float:
    """Compute the markdown structure score for content."""
    if tab_penalty is None:
        tab_penalty = config.get_tab_penalty()

    signals = count_signals(content)
    total = 0.0
    for name, (points, cap) in SIGNAL_WEIGHTS.items():
        total += min(signals[name] * points, cap)

    if "\t" in content:
        total -= tab_penalty

    return round(min(max(total, 0.0), MAX_SCORE), 2)


def score_content(content: Optional[str], threshold: Optional[float] = None,
                  tab_penalty: Optional[float] = None) -> AuditFinding:
    """Score raw content. Deterministic and side-effect free."""
    if threshold is None:
        threshold = config.get_warn_threshold()

    if content is None or not content.strip():
        return AuditFinding(
            severity=Severity.FAIL,
            reasons=[EMPTY_REASON],
            content_length=len(content) if content else 0,
            markdown_score=0.0
        )

    value = markdown_score(content, tab_penalty)
    has_tabs = "\t" in content

    if value > threshold and not has_tabs:
        return AuditFinding(
            severity=Severity.OK,
            reasons=[],
            content_length=len(content),
            markdown_score=value
        )

    signals = count_signals(content)
    reasons = []
    if has_tabs:
        reasons.append(TAB_REASON)
    if signals["headings"] == 0:
        reasons.append("no headings")
    if signals["list_items"] == 0:
        reasons.append("no lists")
    if signals["paragraph_breaks"] == 0:
        reasons.append("no paragraph breaks")
    if value <= threshold:
        reasons.append(f"low markdown score ({value:.2f} <= {threshold:g})")

    return AuditFinding(
        severity=Severity.WARN,
        reasons=reasons,
        content_length=len(content),
        markdown_score=value
    )


def score(doc: Union[Document, Mapping[str, Any]], threshold: Optional[float] = None,
          tab_penalty: Optional[float] = None) -> AuditFinding:
    """Score a document or a ``{"content": ...}`` mapping."""
    content = doc.get("content") if isinstance(doc, Mapping) else doc.content
    return score_content(content, threshold, tab_penalty)


def content_hash(content: Optional[str]) -> str:
    """Stable cache key for a content snapshot."""
    return hashlib.sha256((content or "").encode("utf-8")).hexdigest()


@dataclass
class AuditItem:
    entity_type: str
    id: str
    key: Optional[str]
    title: Optional[str]
    content_length: int
    is_empty: bool
    markdown_score: float
    severity: Severity
    reasons: List[str]
    updated_at: Optional[datetime] = None
    governed: bool = False
    rag_ready: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["severity"] = self.severity.value
        data["updated_at"] = self.updated_at.isoformat() if self.updated_at else None
        return data


@dataclass
class AuditSummary:
    total: int = 0
    ok: int = 0
    warn: int = 0
    fail: int = 0


@dataclass
class AuditReport:
    summary: AuditSummary
    items: List[AuditItem] = field(default_factory=list)

    def by_id(self) -> Dict[str, AuditItem]:
        return {item.id: item for item in self.items if item.id}

    def by_key(self) -> Dict[str, AuditItem]:
        """Case-insensitive key lookup; the first item wins on duplicate keys."""
        lookup = {}
        for item in self.items:
            if item.key:
                lookup.setdefault(item.key.lower(), item)
        return lookup

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": asdict(self.summary),
            "items": [item.to_dict() for item in self.items]
        }


def audit_documents(documents: Iterable[Document], entity_type: str = "CANONICAL_DOCUMENT",
                    threshold: Optional[float] = None, tab_penalty: Optional[float] = None) -> AuditReport:
    """
    Run one audit pass over a document set.

    Findings are cached by content hash for the duration of this pass only.

    Returns:
        AuditReport with per-severity summary and one item per document.
    """
    cache: Dict[str, AuditFinding] = {}
    summary = AuditSummary()
    items = []

    for doc in documents:
        digest = content_hash(doc.content)
        finding = cache.get(digest)
        if finding is None:
            finding = score_content(doc.content, threshold, tab_penalty)
            cache[digest] = finding

        summary.total += 1
        if finding.severity == Severity.OK:
            summary.ok += 1
        elif finding.severity == Severity.WARN:
            summary.warn += 1
        else:
            summary.fail += 1

        if finding.severity != Severity.OK:
            logger.log_severity_finding(doc.id, finding.severity.value, finding.markdown_score, finding.reasons)

        items.append(AuditItem(
            entity_type=entity_type,
            id=doc.id,
            key=doc.key,
            title=doc.title,
            content_length=finding.content_length,
            is_empty=finding.severity == Severity.FAIL,
            markdown_score=finding.markdown_score,
            severity=finding.severity,
            reasons=list(finding.reasons),
            updated_at=doc.updated_at,
            governed=doc.governed,
            rag_ready=doc.rag_ready
        ))

    return AuditReport(summary=summary, items=items)


def render_audit_report(report: AuditReport, title: str = "Content Audit Report") -> str:
    """Render an audit pass as markdown, worst severity first."""
    lines = [f"# {title}", ""]
    lines.append(f"- Total: {report.summary.total}")
    lines.append(f"- OK: {report.summary.ok}")
    lines.append(f"- WARN: {report.summary.warn}")
    lines.append(f"- FAIL: {report.summary.fail}")
    lines.append("")

    for severity in sorted(Severity, key=lambda s: s.rank, reverse=True):
        matching = [item for item in report.items if item.severity == severity]
        if severity == Severity.OK or not matching:
            continue
        lines.append(f"## {severity.value}")
        lines.append("")
        for item in matching:
            label = item.key or item.title or item.id
            reasons = "; ".join(item.reasons)
            lines.append(f"- `{label}` ({item.id}, score {item.markdown_score:.2f}): {reasons}")
        lines.append("")

    return "\n".join(lines)
