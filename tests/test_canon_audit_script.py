"""
Canon audit CLI tests - exit codes and output formats.
"""

import json
from unittest.mock import MagicMock, patch

import pytest

from canonguard.api.store_client import NotFoundError, StoreError
from canonguard.core.integrity import IntegrityCheckResult
from canonguard.core.severity import audit_documents, score
from canonguard.core.schema import Document
from scripts.canon_audit import build_parser, main


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("STORE_API_BASE", raising=False)
    monkeypatch.delenv("WARN_SCORE_THRESHOLD", raising=False)


@pytest.fixture
def service():
    with patch("scripts.canon_audit.StoreClient"), \
         patch("scripts.canon_audit.GovernanceService") as service_cls:
        instance = MagicMock()
        instance.integrity_report.return_value = (IntegrityCheckResult(passed=True), "CANON INTEGRITY CHECK REPORT")
        instance.audit_content.return_value = audit_documents([Document(id="1", key="a.md", content="")])
        service_cls.return_value = instance
        yield instance


class TestCanonAuditScript:
    """Command line entry point."""

    def test_requires_an_operation(self):
        with pytest.raises(SystemExit):
            main([])

    def test_parser_flags(self):
        args = build_parser().parse_args(["-i", "-c", "--node", "node-a", "--json"])
        assert args.integrity and args.content and args.json
        assert args.node == "node-a"

    def test_passing_integrity(self, service, capsys):
        assert main(["--integrity"]) == 0
        assert "CANON INTEGRITY CHECK REPORT" in capsys.readouterr().out

    def test_failing_integrity_exit_code(self, service):
        service.integrity_report.return_value = (
            IntegrityCheckResult(passed=False, missing_docs=["a.md"]), "report"
        )
        assert main(["--integrity"]) == 1

    def test_content_report(self, service, capsys):
        assert main(["--content"]) == 0
        out = capsys.readouterr().out
        assert "# Content Audit Report" in out
        assert "`a.md`" in out

    def test_json_output(self, service, capsys):
        service.integrity_report.return_value = (
            IntegrityCheckResult(passed=False, missing_docs=["a.md"]), "report"
        )
        assert main(["-i", "-c", "--json"]) == 1
        data = json.loads(capsys.readouterr().out)
        assert data["integrity"]["missingDocs"] == ["a.md"]
        assert data["integrity"]["reasons"] == ["Missing canonical document: a.md"]
        assert data["content"]["summary"]["fail"] == 1

    def test_document_report(self, service, capsys):
        doc = Document(id="7", key="continuum-canon-index.md", content="plain prose")
        service.score_document.return_value = (doc, score(doc))
        assert main(["--document", "canon-index"]) == 0
        out = capsys.readouterr().out
        service.score_document.assert_called_once_with("canon-index")
        assert "continuum-canon-index.md (7): WARN" in out
        assert "  - no headings" in out

    def test_failing_document_exit_code_and_json(self, service, capsys):
        doc = Document(id="7", title="Empty page", content="")
        service.score_document.return_value = (doc, score(doc))
        assert main(["-d", "empty", "--json"]) == 1
        data = json.loads(capsys.readouterr().out)
        assert data["document"]["label"] == "Empty page"
        assert data["document"]["severity"] == "FAIL"

    def test_unknown_document_key(self, service, capsys):
        service.score_document.side_effect = NotFoundError("Document not found. Expected key: x.md", 404)
        assert main(["--document", "x.md"]) == 2
        assert "Expected key: x.md" in capsys.readouterr().err

    def test_store_error(self, service, capsys):
        service.integrity_report.side_effect = StoreError("Store request failed: refused")
        assert main(["--integrity"]) == 2
        assert "Store request failed" in capsys.readouterr().err

    def test_bad_config(self, monkeypatch, capsys):
        monkeypatch.setenv("WARN_SCORE_THRESHOLD", "high")
        assert main(["--content"]) == 2
        assert "WARN_SCORE_THRESHOLD" in capsys.readouterr().err
