"""
Governance service - threads store snapshots through the gate, lifecycle and integrity check.

Every evaluation refetches its inputs from the store; nothing is cached between
calls, so integrity and severity always reflect the current document set.
"""

from typing import List, Optional, Tuple

from . import config
from .actions import ApplyPreview
from .gate import GovernedAction, Refusal, SystemMode, check_allowed
from .integrity import IntegrityCheckResult, check_integrity, generate_report, mode_from_integrity
from .proposals import ProposalLifecycle
from .schema import AuditFinding, Document, ErrorKind, Proposal, TransitionResult
from .severity import AuditReport, audit_documents, score
from ..api.store_client import NotFoundError, StoreError
from ..util.logging import audit_event, logger


class GovernanceService:
    """Coordinates governed operations against a remote store.

    ``store`` is any object with the StoreClient interface. The system mode is
    derived from a fresh integrity check unless the caller passes one in.
    """

    def __init__(self, store, lifecycle: Optional[ProposalLifecycle] = None, node_name: Optional[str] = None):
        self.store = store
        self.lifecycle = lifecycle or ProposalLifecycle()
        self.node_name = node_name or config.get_node_name()

    def load_documents(self) -> List[Document]:
        return self.store.load_documents()

    def integrity(self) -> IntegrityCheckResult:
        result = check_integrity(self.load_documents())
        logger.log_integrity_check(
            self.node_name,
            result.passed,
            len(result.missing_docs),
            len(result.wrong_governance),
            len(result.not_ready_for_rag)
        )
        return result

    def integrity_report(self, timestamp=None) -> Tuple[IntegrityCheckResult, str]:
        result = self.integrity()
        return result, generate_report(result, self.node_name, timestamp)

    def current_mode(self) -> Tuple[SystemMode, List[str]]:
        return mode_from_integrity(self.integrity())

    def audit_content(self) -> AuditReport:
        return audit_documents(self.load_documents())

    def score_document(self, key: str) -> Tuple[Document, AuditFinding]:
        """Look a document up by key and score its current content."""
        document = self.store.find_document_by_key(key)
        return document, score(document)

    def guard(self, action: GovernedAction, mode: Optional[SystemMode] = None,
              reasons: Optional[List[str]] = None) -> Optional[Refusal]:
        """Run the action gate, deriving mode and reasons when not supplied."""
        if mode is None:
            mode, derived = self.current_mode()
            if reasons is None:
                reasons = derived

        refusal = check_allowed(mode, action, reasons)
        logger.log_gate_decision(
            GovernedAction(action).value,
            SystemMode(mode).value,
            refusal is None,
            refusal.reasons if refusal else None
        )
        return refusal

    def preview(self, proposal_id: str) -> ApplyPreview:
        """Resolve a stored proposal's apply preview; a failed load comes back as a failed preview."""
        proposal, failed = self._load_proposal(proposal_id)
        if failed:
            return ApplyPreview(success=False, error=failed.error)
        return self.lifecycle.preview(proposal)

    def _load_proposal(self, proposal_id: str) -> Tuple[Optional[Proposal], Optional[TransitionResult]]:
        try:
            return self.store.get_proposal(proposal_id), None
        except NotFoundError as e:
            return None, TransitionResult.failed(Proposal(id=proposal_id, title=""), ErrorKind.NOT_FOUND, e.message)
        except StoreError as e:
            return None, TransitionResult.failed(Proposal(id=proposal_id, title=""), ErrorKind.STORE, e.message)

    def _persist(self, original: Proposal, local: TransitionResult, call) -> TransitionResult:
        """Persist a locally validated transition; the store's record is authoritative."""
        if not local.success:
            return local
        try:
            stored = call()
        except StoreError as e:
            return TransitionResult.failed(original, ErrorKind.STORE, e.message)
        return TransitionResult(
            success=True,
            proposal=stored,
            warnings=local.warnings,
            document=local.document
        )

    def submit(self, proposal_id: str, actor: Optional[str] = None) -> TransitionResult:
        proposal, failed = self._load_proposal(proposal_id)
        if failed:
            return failed
        local = self.lifecycle.submit(proposal, actor)
        return self._persist(proposal, local, lambda: self.store.submit_proposal(proposal_id, actor))

    def approve(self, proposal_id: str, actor: Optional[str] = None) -> TransitionResult:
        proposal, failed = self._load_proposal(proposal_id)
        if failed:
            return failed
        local = self.lifecycle.approve(proposal, actor)
        return self._persist(proposal, local, lambda: self.store.approve_proposal(proposal_id, actor))

    def reject(self, proposal_id: str, reason: Optional[str] = None, actor: Optional[str] = None) -> TransitionResult:
        proposal, failed = self._load_proposal(proposal_id)
        if failed:
            return failed
        local = self.lifecycle.reject(proposal, reason, actor)
        return self._persist(proposal, local, lambda: self.store.reject_proposal(proposal_id, reason, actor))

    def edit(self, proposal_id: str, title: Optional[str] = None, content: Optional[str] = None,
             actor: Optional[str] = None) -> TransitionResult:
        proposal, failed = self._load_proposal(proposal_id)
        if failed:
            return failed
        local = self.lifecycle.edit(proposal, title, content, actor)
        return self._persist(proposal, local, lambda: self.store.update_proposal(proposal_id, title, content, actor))

    def apply(self, proposal_id: str, actor: Optional[str] = None, mode: Optional[SystemMode] = None,
              reasons: Optional[List[str]] = None, block_on_warn: Optional[bool] = None) -> TransitionResult:
        """
        Apply a proposal end to end.

        Gate check (MODIFY_CANON_DOC), then the lifecycle apply against a fresh
        copy of the target document, then the document patch, then the
        proposal's APPLIED transition in the store. If the store refuses that
        transition the target document is patched back to its prior content.
        """
        proposal, failed = self._load_proposal(proposal_id)
        if failed:
            return failed

        try:
            refusal = self.guard(GovernedAction.MODIFY_CANON_DOC, mode, reasons)
        except StoreError as e:
            return TransitionResult.failed(proposal, ErrorKind.STORE, e.message)
        if refusal:
            return TransitionResult.failed(proposal, ErrorKind.READINESS, refusal.message, refusal=refusal)

        target = None
        preview = self.lifecycle.preview(proposal)
        if preview.success:
            try:
                target = self.store.get_document(preview.target_document_id)
            except NotFoundError:
                target = None
            except StoreError as e:
                return TransitionResult.failed(proposal, ErrorKind.STORE, e.message)

        local = self.lifecycle.apply(proposal, target, actor, block_on_warn)
        if not local.success:
            return local

        try:
            document = self.store.patch_document(local.document.id, content=local.document.content)
        except StoreError as e:
            return TransitionResult.failed(proposal, ErrorKind.STORE, e.message)

        try:
            stored = self.store.apply_proposal(proposal_id, actor)
        except StoreError as e:
            return self._rollback(proposal, target, e.message)

        return TransitionResult(success=True, proposal=stored, warnings=local.warnings, document=document)

    def _rollback(self, proposal: Proposal, target: Document, error: str) -> TransitionResult:
        """Restore the target's pre-apply content after the store refused the APPLIED transition."""
        try:
            restored = self.store.patch_document(target.id, content=target.content)
        except StoreError as e:
            logger.error(f"Rollback of document {target.id} failed: {e.message}")
            return TransitionResult.failed(
                proposal, ErrorKind.STORE,
                f"{error}; rollback of document {target.id} failed: {e.message}"
            )

        audit_event("proposal.apply_rolled_back", {"proposal_id": proposal.id, "document_id": target.id})
        return TransitionResult.failed(
            proposal, ErrorKind.STORE,
            f"{error}; document {target.id} restored",
            document=restored
        )
