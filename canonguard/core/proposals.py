"""
Proposal lifecycle - moves change proposals from draft to applied canon.

    DRAFT -> SUBMITTED -> APPROVED -> APPLIED
             SUBMITTED -> REJECTED

REJECTED and APPLIED are terminal. Every operation returns a TransitionResult;
a refused operation hands back the input proposal untouched.
"""

import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Dict, FrozenSet, Optional, Tuple

from . import config
from .actions import ApplyPreview, extract_apply_preview
from .schema import Document, ErrorKind, Proposal, ProposalStatus, Severity, TransitionResult
from .severity import score
from ..util.logging import audit_event, logger

# operation -> (allowed source states, target state)
TRANSITIONS: Dict[str, Tuple[FrozenSet[ProposalStatus], ProposalStatus]] = {
    "submit": (frozenset({ProposalStatus.DRAFT}), ProposalStatus.SUBMITTED),
    "approve": (frozenset({ProposalStatus.SUBMITTED}), ProposalStatus.APPROVED),
    "reject": (frozenset({ProposalStatus.SUBMITTED}), ProposalStatus.REJECTED),
    "apply": (frozenset({ProposalStatus.APPROVED}), ProposalStatus.APPLIED),
}

EDITABLE_STATES = frozenset({ProposalStatus.DRAFT, ProposalStatus.SUBMITTED})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProposalLifecycle:
    """Pure proposal state machine.

    Holds no records: callers pass a proposal snapshot in and persist the
    returned proposal (and, for apply, the returned document) themselves.
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow, block_on_warn: Optional[bool] = None):
        self._clock = clock
        self._block_on_warn = block_on_warn

    def create(self, title: str, content: Optional[str] = None, proposal_id: Optional[str] = None) -> Proposal:
        """Create a new proposal in DRAFT."""
        if not title or not title.strip():
            raise ValueError("title cannot be empty")

        now = self._clock()
        proposal = Proposal(
            id=proposal_id or str(uuid.uuid4()),
            title=title,
            content=content,
            status=ProposalStatus.DRAFT,
            created_at=now,
            updated_at=now
        )
        audit_event("proposal.created", {"proposal_id": proposal.id}, {"title": title})
        return proposal

    def submit(self, proposal: Proposal, actor: Optional[str] = None) -> TransitionResult:
        """Move a DRAFT proposal to SUBMITTED."""
        refused = self._check_transition(proposal, "submit")
        if refused:
            return refused

        now = self._clock()
        updated = replace(
            proposal,
            status=ProposalStatus.SUBMITTED,
            submitted_at=now,
            submitted_by=actor,
            updated_at=now
        )
        logger.log_transition(proposal.id, proposal.status.value, updated.status.value, actor)
        return TransitionResult(success=True, proposal=updated)

    def approve(self, proposal: Proposal, actor: Optional[str] = None) -> TransitionResult:
        """Move a SUBMITTED proposal to APPROVED. Content is not inspected."""
        refused = self._check_transition(proposal, "approve")
        if refused:
            return refused

        now = self._clock()
        updated = replace(
            proposal,
            status=ProposalStatus.APPROVED,
            approved_at=now,
            approved_by=actor,
            updated_at=now
        )
        logger.log_transition(proposal.id, proposal.status.value, updated.status.value, actor)
        return TransitionResult(success=True, proposal=updated)

    def reject(self, proposal: Proposal, reason: Optional[str] = None, actor: Optional[str] = None) -> TransitionResult:
        """Move a SUBMITTED proposal to REJECTED, keeping the free-text reason for audit."""
        refused = self._check_transition(proposal, "reject")
        if refused:
            return refused

        now = self._clock()
        updated = replace(
            proposal,
            status=ProposalStatus.REJECTED,
            rejected_at=now,
            rejected_by=actor,
            reason=reason,
            updated_at=now
        )
        logger.log_transition(proposal.id, proposal.status.value, updated.status.value, actor)
        audit_event("proposal.rejected", {"proposal_id": proposal.id}, {"reason": reason or ""})
        return TransitionResult(success=True, proposal=updated)

    def edit(self, proposal: Proposal, title: Optional[str] = None, content: Optional[str] = None,
             actor: Optional[str] = None) -> TransitionResult:
        """Edit title and/or content while the proposal is DRAFT or SUBMITTED."""
        if proposal.status not in EDITABLE_STATES:
            return self._refuse(
                proposal, "edit", ErrorKind.STATE,
                f"Cannot edit a proposal in {proposal.status.value} status"
            )

        if title is None and content is None:
            return self._refuse(proposal, "edit", ErrorKind.VALIDATION, "No changes supplied")

        if title is not None and not title.strip():
            return self._refuse(proposal, "edit", ErrorKind.VALIDATION, "title cannot be empty")

        changes = {"updated_at": self._clock()}
        if title is not None:
            changes["title"] = title
        if content is not None:
            changes["content"] = content

        updated = replace(proposal, **changes)
        audit_event(
            "proposal.edited",
            {"proposal_id": proposal.id, "actor": actor or "unknown"},
            {name: value for name, value in (("title", title), ("content", content)) if value is not None}
        )
        return TransitionResult(success=True, proposal=updated)

    def preview(self, proposal: Proposal) -> ApplyPreview:
        """Resolve the apply preview; recomputed on every call."""
        result = extract_apply_preview(proposal.content)
        if not result.success:
            logger.log_preview_error(proposal.id, result.error)
        return result

    def apply(self, proposal: Proposal, target: Optional[Document], actor: Optional[str] = None,
              block_on_warn: Optional[bool] = None) -> TransitionResult:
        """
        Apply an APPROVED proposal to its target document.

        The target must be the document named by the apply preview. A FAIL
        target always refuses; a WARN target refuses only under block_on_warn
        and otherwise comes back as a warning.

        Returns:
            TransitionResult with the APPLIED proposal and the updated document.
        """
        refused = self._check_transition(proposal, "apply")
        if refused:
            return refused

        preview = self.preview(proposal)
        if not preview.success:
            return self._refuse(proposal, "apply", ErrorKind.VALIDATION, f"Apply preview failed: {preview.error}")
        if preview.gaps:
            return self._refuse(proposal, "apply", ErrorKind.VALIDATION, f"Apply preview incomplete: {'; '.join(preview.gaps)}")

        target_id = preview.target_document_id
        if target is None:
            return self._refuse(proposal, "apply", ErrorKind.NOT_FOUND, f"Target document {target_id} not found")
        if target.id != target_id:
            return self._refuse(
                proposal, "apply", ErrorKind.VALIDATION,
                f"Target document mismatch: preview targets {target_id}, got {target.id}"
            )

        if block_on_warn is None:
            block_on_warn = self._block_on_warn if self._block_on_warn is not None else config.block_on_warn()

        warnings = []
        finding = score(target)
        if finding.severity == Severity.FAIL:
            return self._refuse(
                proposal, "apply", ErrorKind.VALIDATION,
                f"Target document {target_id} is FAIL: {', '.join(finding.reasons)}"
            )
        if finding.severity == Severity.WARN:
            caution = f"Target document {target_id} is WARN: {', '.join(finding.reasons)}"
            if block_on_warn:
                return self._refuse(proposal, "apply", ErrorKind.VALIDATION, caution)
            warnings.append(caution)
            logger.warning(caution)

        now = self._clock()
        document = replace(target, content=preview.new_content, updated_at=now)
        updated = replace(
            proposal,
            status=ProposalStatus.APPLIED,
            applied_at=now,
            applied_by=actor,
            updated_at=now
        )
        logger.log_transition(proposal.id, proposal.status.value, updated.status.value, actor)
        audit_event(
            "proposal.applied",
            {"proposal_id": proposal.id, "document_id": document.id},
            {"content": document.content}
        )
        return TransitionResult(success=True, proposal=updated, document=document, warnings=warnings)

    def _check_transition(self, proposal: Proposal, operation: str) -> Optional[TransitionResult]:
        allowed, target = TRANSITIONS[operation]
        if proposal.status in allowed:
            return None

        if proposal.is_terminal:
            return self._refuse(
                proposal, operation, ErrorKind.STATE,
                f"Cannot {operation} a proposal in {proposal.status.value} status ({proposal.status.value} is terminal)"
            )

        sources = ", ".join(sorted(status.value for status in allowed))
        return self._refuse(
            proposal, operation, ErrorKind.STATE,
            f"Cannot {operation} a proposal in {proposal.status.value} status (requires {sources})"
        )

    def _refuse(self, proposal: Proposal, operation: str, kind: ErrorKind, error: str) -> TransitionResult:
        logger.log_transition_rejected(proposal.id, operation, proposal.status.value, kind.value, error)
        return TransitionResult.failed(proposal, kind, error)


# Default lifecycle instance
lifecycle = ProposalLifecycle()


def create_proposal(title: str, content: Optional[str] = None) -> Proposal:
    """Create a new DRAFT proposal."""
    return lifecycle.create(title, content)


def submit(proposal: Proposal, actor: Optional[str] = None) -> TransitionResult:
    """Submit a proposal."""
    return lifecycle.submit(proposal, actor)


def approve(proposal: Proposal, actor: Optional[str] = None) -> TransitionResult:
    """Approve a proposal."""
    return lifecycle.approve(proposal, actor)


def reject(proposal: Proposal, reason: Optional[str] = None, actor: Optional[str] = None) -> TransitionResult:
    """Reject a proposal."""
    return lifecycle.reject(proposal, reason, actor)


def edit(proposal: Proposal, title: Optional[str] = None, content: Optional[str] = None,
         actor: Optional[str] = None) -> TransitionResult:
    """Edit a proposal."""
    return lifecycle.edit(proposal, title, content, actor)


def apply(proposal: Proposal, target: Optional[Document], actor: Optional[str] = None,
          block_on_warn: Optional[bool] = None) -> TransitionResult:
    """Apply a proposal to its target document."""
    return lifecycle.apply(proposal, target, actor, block_on_warn)
