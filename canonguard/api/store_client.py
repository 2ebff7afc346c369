"""
Remote store client - fetches document/proposal snapshots and persists mutations over HTTP+JSON.

The engine never talks to storage itself; this client is the seam callers use
to load snapshots before evaluation and to persist results afterwards.
"""

from typing import Any, Dict, List, Optional, Tuple

import requests
from pydantic import ValidationError

from ..core import config
from ..core.gate import SystemMode
from ..core.integrity import ReadinessStatus
from ..core.schema import Document, Proposal, find_by_key
from ..util.logging import logger
from .schemas import (
    AIModeResponse,
    DocumentRecord,
    PatchRequest,
    ProposalRecord,
    WorkspaceReadinessResponse,
)

DOCUMENTS_PATH = "/api/canonical-documents"
PROPOSALS_PATH = "/api/proposals"


class StoreError(Exception):
    """A store call failed; the message is surfaced verbatim to callers."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class NotFoundError(StoreError):
    """The store answered 404 for the requested record."""


class StoreClient:
    """Thin request/response client for the content store."""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[int] = None,
                 session: Optional[requests.Session] = None, documents_path: str = DOCUMENTS_PATH):
        self.base_url = (base_url or config.get_store_api_base()).rstrip("/")
        self.timeout = timeout if timeout is not None else config.get_store_timeout()
        self.session = session or requests.Session()
        self.documents_path = documents_path

    def _request(self, method: str, path: str, body: Optional[Dict[str, Any]] = None,
                 not_found_message: str = "Not found") -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, json=body, timeout=self.timeout)
        except requests.RequestException as e:
            logger.log_store_request(method, path, payload=body)
            raise StoreError(f"Store request failed: {e}")

        logger.log_store_request(method, path, response.status_code, body)

        if response.status_code == 404:
            raise NotFoundError(not_found_message, 404)

        if not response.ok:
            raise StoreError(self._error_message(response), response.status_code)

        try:
            return response.json()
        except ValueError:
            raise StoreError(f"Invalid JSON from store: HTTP {response.status_code}", response.status_code)

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            data = None
        if isinstance(data, dict) and data.get("error"):
            return str(data["error"])
        return f"HTTP {response.status_code}"

    @staticmethod
    def _parse(model, data: Any):
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise StoreError(f"Unexpected {model.__name__} payload: {e.error_count()} validation error(s)")

    # Documents

    def list_documents(self) -> List[Document]:
        """List documents. Content may be omitted in list views."""
        data = self._request("GET", self.documents_path)
        if not isinstance(data, list):
            raise StoreError("Expected a list of documents")
        return [self._parse(DocumentRecord, item).to_document() for item in data]

    def get_document(self, document_id: str) -> Document:
        data = self._request("GET", f"{self.documents_path}/{document_id}", not_found_message="Document not found")
        return self._parse(DocumentRecord, data).to_document()

    def patch_document(self, document_id: str, title: Optional[str] = None, content: Optional[str] = None) -> Document:
        """Patch title and/or content and return the updated record."""
        try:
            patch = PatchRequest(title=title, content=content)
        except ValidationError as e:
            raise ValueError(f"Invalid document patch: {e.errors()[0]['msg']}")
        data = self._request("PATCH", f"{self.documents_path}/{document_id}", patch.to_body(),
                             not_found_message="Document not found")
        return self._parse(DocumentRecord, data).to_document()

    def load_documents(self) -> List[Document]:
        """List documents, fetching each one whose content the list view omitted."""
        documents = []
        for doc in self.list_documents():
            if doc.content is None:
                doc = self.get_document(doc.id)
            documents.append(doc)
        return documents

    def find_document_by_key(self, key: str) -> Document:
        """
        Find one document by key: exact, then case-insensitive, then partial match.

        Raises:
            NotFoundError: no key matches; the message lists the available keys.
        """
        documents = self.list_documents()
        matched = find_by_key(documents, key)
        if matched is None:
            available = "\n".join(f"- {doc.key}" for doc in documents if doc.key)
            raise NotFoundError(f"Document not found. Expected key: {key}. Available keys:\n{available}", 404)

        if matched.content is None:
            matched = self.get_document(matched.id)
        return matched

    # Proposals

    def list_proposals(self) -> List[Proposal]:
        data = self._request("GET", PROPOSALS_PATH)
        if not isinstance(data, list):
            raise StoreError("Expected a list of proposals")
        return [self._parse(ProposalRecord, item).to_proposal() for item in data]

    def get_proposal(self, proposal_id: str) -> Proposal:
        data = self._request("GET", f"{PROPOSALS_PATH}/{proposal_id}", not_found_message="Proposal not found")
        return self._parse(ProposalRecord, data).to_proposal()

    def update_proposal(self, proposal_id: str, title: Optional[str] = None, content: Optional[str] = None,
                        updated_by: Optional[str] = None) -> Proposal:
        try:
            patch = PatchRequest(title=title, content=content, updated_by=updated_by)
        except ValidationError as e:
            raise ValueError(f"Invalid proposal patch: {e.errors()[0]['msg']}")
        data = self._request("PATCH", f"{PROPOSALS_PATH}/{proposal_id}", patch.to_body(),
                             not_found_message="Proposal not found")
        return self._parse(ProposalRecord, data).to_proposal()

    def _transition(self, proposal_id: str, operation: str, body: Dict[str, Any]) -> Proposal:
        body = {k: v for k, v in body.items() if v is not None}
        data = self._request("PATCH", f"{PROPOSALS_PATH}/{proposal_id}/{operation}", body,
                             not_found_message="Proposal not found")
        return self._parse(ProposalRecord, data).to_proposal()

    def submit_proposal(self, proposal_id: str, submitted_by: Optional[str] = None) -> Proposal:
        return self._transition(proposal_id, "submit", {"submittedBy": submitted_by})

    def approve_proposal(self, proposal_id: str, approved_by: Optional[str] = None) -> Proposal:
        return self._transition(proposal_id, "approve", {"approvedBy": approved_by})

    def reject_proposal(self, proposal_id: str, reason: Optional[str] = None,
                        rejected_by: Optional[str] = None) -> Proposal:
        return self._transition(proposal_id, "reject", {"reason": reason, "rejectedBy": rejected_by})

    def apply_proposal(self, proposal_id: str, applied_by: Optional[str] = None) -> Proposal:
        return self._transition(proposal_id, "apply", {"appliedBy": applied_by})

    # Readiness

    def fetch_ai_mode(self, workspace_id: str) -> Tuple[SystemMode, List[str]]:
        """Fetch the workspace AI mode; any failure degrades to GUARDED with the error as reason."""
        try:
            data = self._request("GET", f"/api/workspaces/{workspace_id}/ai-mode")
            response = self._parse(AIModeResponse, data)
        except NotFoundError:
            return SystemMode.GUARDED, ["AI mode endpoint not yet implemented"]
        except StoreError as e:
            logger.error(f"Error fetching AI mode: {e.message}")
            return SystemMode.GUARDED, [e.message or "Failed to check AI mode"]
        return response.mode, list(response.reasons)

    def fetch_workspace_readiness(self, workspace_id: str) -> Tuple[ReadinessStatus, List[str]]:
        """Fetch workspace readiness; a missing or failed answer is NOT_READY."""
        try:
            data = self._request("GET", f"/api/workspaces/{workspace_id}", not_found_message="Workspace not found")
            response = self._parse(WorkspaceReadinessResponse, data)
        except StoreError as e:
            logger.error(f"Error fetching workspace readiness: {e.message}")
            return ReadinessStatus.NOT_READY, [e.message or "Failed to check readiness"]

        if response.readiness == ReadinessStatus.READY:
            return ReadinessStatus.READY, []
        return ReadinessStatus.NOT_READY, list(response.readiness_reasons)
