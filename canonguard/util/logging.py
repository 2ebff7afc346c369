"""
Structured audit logging for governance decisions, transitions and store traffic.
"""

import logging
from typing import Any, Dict, List

SENSITIVE_FIELDS = ['content', 'newContent', 'new_content', 'data', 'secret', 'password', 'token']


class StructuredLogger:
    """Structured logger for scoring, integrity, lifecycle and gate operations."""

    def __init__(self, name: str = "canonguard"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        self.logger.info(message)

    def log_severity_finding(self, document_id: str, severity: str, markdown_score: float, reasons: List[str] = None):
        """Log a content severity finding that is not OK."""
        log_details = {
            "document_id": document_id,
            "severity": severity,
            "markdown_score": markdown_score,
        }
        if reasons:
            log_details["reasons"] = reasons

        self.log_operation("severity.finding", "detected", log_details)

    def log_integrity_check(self, label: str, passed: bool, missing: int, wrong_governance: int, not_ready: int):
        """Log the outcome of a canon integrity check."""
        log_details = {
            "label": label,
            "missing_docs": missing,
            "wrong_governance": wrong_governance,
            "not_ready_for_rag": not_ready
        }
        self.log_operation("integrity.check", "passed" if passed else "failed", log_details)

    def log_transition(self, proposal_id: str, from_status: str, to_status: str, actor: str = None):
        """Log an accepted proposal transition."""
        log_details = {
            "proposal_id": proposal_id,
            "from": from_status,
            "to": to_status
        }
        if actor:
            log_details["actor"] = actor

        self.log_operation(f"proposal.{to_status.lower()}", "success", log_details)

    def log_transition_rejected(self, proposal_id: str, operation: str, status: str, error_kind: str, error: str):
        """Log a proposal transition refused before any mutation."""
        log_details = {
            "proposal_id": proposal_id,
            "current_status": status,
            "error_kind": error_kind,
            "error": error[:100]  # Limit error length
        }
        self.log_operation(f"proposal.{operation}", "rejected", log_details)

    def log_preview_error(self, proposal_id: str, error: str):
        """Log an apply preview that could not be resolved."""
        self.log_operation("proposal.preview", "invalid", {
            "proposal_id": proposal_id,
            "error": error[:100]
        })

    def log_gate_decision(self, action: str, mode: str, allowed: bool, reasons: List[str] = None):
        """Log an action gate verdict."""
        log_details = {
            "action": action,
            "mode": mode
        }
        if reasons:
            log_details["reasons"] = reasons

        self.log_operation("gate.check", "allowed" if allowed else "refused", log_details)

    def log_store_request(self, method: str, path: str, status_code: int = None, payload: Dict[str, Any] = None):
        """Log a remote store request with a sanitized body."""
        log_details = {
            "method": method,
            "path": path
        }
        if status_code is not None:
            log_details["status_code"] = status_code
        if payload:
            log_details["payload"] = sanitize_payload(payload)

        status = "success" if status_code is not None and status_code < 400 else "failed"
        self.log_operation("store.request", status, log_details)

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)


# Global logger instance
logger = StructuredLogger()


def audit_event(event_type: str, identifiers: Dict[str, Any], payload: Dict[str, Any] = None, sensitive_fields: List[str] = None):
    """General audit event logging with privacy controls."""
    if sensitive_fields is None:
        sensitive_fields = SENSITIVE_FIELDS

    log_details = identifiers.copy() if identifiers else {}

    if payload:
        sanitized_payload = {}
        for k, v in payload.items():
            if k not in sensitive_fields:
                # Truncate long values
                if isinstance(v, str) and len(v) > 100:
                    sanitized_payload[k] = v[:97] + "..."
                else:
                    sanitized_payload[k] = v
            else:
                sanitized_payload[k] = "[REDACTED]"
        log_details["payload"] = sanitized_payload

    if event_type.startswith("proposal"):
        operation = "proposal"
    elif event_type.startswith("integrity"):
        operation = "integrity"
    elif event_type.startswith("gate"):
        operation = "gate"
    else:
        operation = event_type.replace(".", "_")

    logger.log_operation(operation, "audit", log_details)


def sanitize_payload(payload: Any, reveal_sensitive: bool = False, sensitive_fields: List[str] = None) -> Any:
    """Sanitize payloads for audit logging."""
    if sensitive_fields is None:
        sensitive_fields = SENSITIVE_FIELDS

    if isinstance(payload, dict):
        sanitized = {}
        for k, v in payload.items():
            if reveal_sensitive or k not in sensitive_fields:
                sanitized[k] = sanitize_payload(v, reveal_sensitive, sensitive_fields)
            else:
                sanitized[k] = "[REDACTED]"
        return sanitized
    elif isinstance(payload, str):
        # Truncate long strings
        return payload[:100] + "..." if len(payload) > 100 else payload
    elif isinstance(payload, list):
        return [sanitize_payload(item, reveal_sensitive, sensitive_fields) for item in payload]
    else:
        return payload
