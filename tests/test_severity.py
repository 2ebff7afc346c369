"""
Content severity scoring tests - OK/WARN/FAIL verdicts and the audit pass.
"""

import pytest
from unittest.mock import patch

from canonguard.core.schema import Document, Severity
from canonguard.core.severity import (
    EMPTY_REASON,
    TAB_REASON,
    AuditReport,
    audit_documents,
    count_signals,
    markdown_score,
    render_audit_report,
    score,
    score_content,
)

RICH_CONTENT = """# Canon Index

The index of canonical documents.

## Documents

- [Contract](contract.md)
- [Protocol](protocol.md)
- Architecture

```json
{"version": 1}
```
"""


@pytest.fixture(autouse=True)
def default_thresholds(monkeypatch):
    """Pin scoring configuration regardless of the caller's environment."""
    monkeypatch.setenv("WARN_SCORE_THRESHOLD", "2")
    monkeypatch.setenv("TAB_PENALTY", "2")


class TestEmptyContent:
    """Empty and missing content always fails."""

    @pytest.mark.parametrize("content", [None, "", "   ", "\n\t\n", " \r\n "])
    def test_empty_or_whitespace_is_fail(self, content):
        finding = score({"content": content})
        assert finding.severity == Severity.FAIL
        assert finding.reasons == [EMPTY_REASON]
        assert finding.markdown_score == 0.0

    def test_content_length_is_raw_count(self):
        assert score({"content": "   "}).content_length == 3
        assert score({"content": None}).content_length == 0
        assert score({}).content_length == 0

    def test_document_with_flags_still_fails(self):
        """Governance flags do not influence severity."""
        doc = Document(id="d1", content="", governed=True, rag_ready=True)
        assert score(doc).severity == Severity.FAIL


class TestMarkdownScore:
    """Structural signal counting and the score heuristic."""

    def test_plain_text_scores_zero(self):
        assert markdown_score("just a single line of prose") == 0.0

    def test_rich_content_is_ok(self):
        finding = score_content(RICH_CONTENT)
        assert finding.severity == Severity.OK
        assert finding.reasons == []
        assert finding.markdown_score > 2
        assert finding.content_length == len(RICH_CONTENT)

    def test_signals_inside_fences_are_ignored(self):
        content = "```\n# not a heading\n- not a list\n```\n"
        signals = count_signals(content)
        assert signals["headings"] == 0
        assert signals["list_items"] == 0
        assert signals["fenced_blocks"] == 1

    def test_unclosed_fence_runs_to_end(self):
        signals = count_signals("# Title\n\n```\n# hidden\n- hidden")
        assert signals["headings"] == 1
        assert signals["list_items"] == 0
        assert signals["fenced_blocks"] == 0

    def test_closing_fence_is_bare_and_long_enough(self):
        signals = count_signals("````\n```\n# hidden\n```py\n````\n# Shown")
        assert signals["headings"] == 1
        assert signals["fenced_blocks"] == 1

    def test_info_string_line_does_not_close_fence(self):
        signals = count_signals("```py\nx\n```py\n# hidden")
        assert signals["headings"] == 0
        assert signals["fenced_blocks"] == 0

    def test_block_after_unclosed_fence_never_lowers_score(self):
        """Appending a closed block must not pair with an earlier unclosed fence."""
        base = "```\n# A\n# B\n- a\n- b\n\npara"
        extended = base + "\n\n```py\nx\n```"
        assert markdown_score(extended) >= markdown_score(base)
        assert count_signals(extended)["fenced_blocks"] == 1

    def test_block_after_closed_fence_never_lowers_score(self):
        base = "# A\n\n```\ncode\n```\n\n- a\n- b"
        extended = base + "\n\n```py\nx\n```"
        assert markdown_score(extended) >= markdown_score(base)
        assert count_signals(extended)["headings"] == 1

    def test_score_is_capped(self):
        content = "\n\n".join(f"# Heading {i}\n\n- item\n- item" for i in range(20))
        assert markdown_score(content) <= 10.0

    def test_adding_structure_never_lowers_score(self):
        base = "Some prose.\n\nMore prose."
        steps = [
            base,
            "# Title\n\n" + base,
            "# Title\n\n" + base + "\n\n- one\n- two",
            "# Title\n\n" + base + "\n\n- one\n- two\n\n```\ncode\n```",
            "# Title\n\n" + base + "\n\n- one\n- two\n\n```\ncode\n```\n\n## Next\n\nSee [x](y).",
        ]
        scores = [markdown_score(step) for step in steps]
        assert scores == sorted(scores)

    def test_tabs_lower_the_score(self):
        with_tabs = RICH_CONTENT.replace("The index", "The\tindex")
        assert markdown_score(with_tabs) < markdown_score(RICH_CONTENT)

    def test_tab_penalty_is_configurable(self, monkeypatch):
        monkeypatch.setenv("TAB_PENALTY", "0.5")
        with_tabs = RICH_CONTENT.replace("The index", "The\tindex")
        assert markdown_score(with_tabs) == markdown_score(RICH_CONTENT) - 0.5


class TestWarnSeverity:
    """Weak structure and raw tabs produce WARN with specific reasons."""

    def test_prose_without_structure_warns(self):
        finding = score_content("A short note without any markdown.")
        assert finding.severity == Severity.WARN
        assert "no headings" in finding.reasons
        assert "no lists" in finding.reasons
        assert "no paragraph breaks" in finding.reasons
        assert any(reason.startswith("low markdown score") for reason in finding.reasons)

    def test_threshold_is_inclusive(self):
        # One heading alone scores exactly 2.0
        finding = score_content("# Only a heading")
        assert finding.markdown_score == 2.0
        assert finding.severity == Severity.WARN

    def test_threshold_is_configurable(self, monkeypatch):
        monkeypatch.setenv("WARN_SCORE_THRESHOLD", "1")
        assert score_content("# Only a heading").severity == Severity.OK

    def test_explicit_threshold_overrides_config(self):
        assert score_content("# Only a heading", threshold=1.5).severity == Severity.OK

    def test_tabs_downgrade_ok_to_warn(self):
        with_tabs = RICH_CONTENT.replace("The index", "The\tindex")
        assert score_content(RICH_CONTENT).severity == Severity.OK

        finding = score_content(with_tabs)
        assert finding.severity == Severity.WARN
        assert TAB_REASON in finding.reasons

    def test_tabs_never_upgrade_severity(self):
        for content in [RICH_CONTENT, "plain prose", "# Heading\n\n- a\n- b"]:
            tabbed = content + "\n\tindented"
            assert score_content(tabbed).severity.rank >= score_content(content).severity.rank


class TestDeterminism:
    """Scoring is pure: same input, same finding."""

    def test_repeated_scoring_is_identical(self):
        doc = {"content": RICH_CONTENT, "governed": True, "ragReady": False}
        assert score(doc) == score(doc)

    def test_scoring_does_not_mutate_document(self):
        doc = Document(id="d1", content="plain", governed=False)
        score(doc)
        assert doc == Document(id="d1", content="plain", governed=False)


class TestAuditPass:
    """Content audit over a document set."""

    @pytest.fixture
    def documents(self):
        return [
            Document(id="1", key="rich.md", content=RICH_CONTENT, governed=True, rag_ready=True),
            Document(id="2", key="weak.md", content="plain prose"),
            Document(id="3", key="empty.md", content=""),
            Document(id="4", key="Weak.md", content="plain prose"),
        ]

    def test_summary_counts(self, documents):
        report = audit_documents(documents)
        assert report.summary.total == 4
        assert report.summary.ok == 1
        assert report.summary.warn == 2
        assert report.summary.fail == 1

    def test_items_carry_flags_and_findings(self, documents):
        report = audit_documents(documents, entity_type="DOCUMENT")
        item = report.by_id()["1"]
        assert item.entity_type == "DOCUMENT"
        assert item.governed is True
        assert item.rag_ready is True
        assert item.severity == Severity.OK
        assert report.by_id()["3"].is_empty is True

    def test_key_lookup_is_case_insensitive_first_wins(self, documents):
        lookup = audit_documents(documents).by_key()
        assert lookup["weak.md"].id == "2"

    def test_identical_content_scored_once_per_pass(self, documents):
        with patch("canonguard.core.severity.score_content", wraps=score_content) as spy:
            audit_documents(documents)
        assert spy.call_count == 3

    def test_non_ok_findings_are_logged(self, documents):
        with patch("canonguard.core.severity.logger") as mock_logger:
            audit_documents(documents)
        assert mock_logger.log_severity_finding.call_count == 3

    def test_to_dict_serializes_severity(self, documents):
        data = audit_documents(documents).to_dict()
        assert data["summary"] == {"total": 4, "ok": 1, "warn": 2, "fail": 1}
        assert data["items"][2]["severity"] == "FAIL"

    def test_rendered_report_lists_worst_first(self, documents):
        text = render_audit_report(audit_documents(documents))
        assert text.startswith("# Content Audit Report")
        assert "- FAIL: 1" in text
        assert text.index("## FAIL") < text.index("## WARN")
        assert "`empty.md`" in text
        assert "`rich.md`" not in text

    def test_rendered_report_omits_empty_sections(self):
        report = audit_documents([Document(id="1", content=RICH_CONTENT)])
        text = render_audit_report(report)
        assert "## FAIL" not in text
        assert "## WARN" not in text

    def test_empty_set(self):
        report = audit_documents([])
        assert isinstance(report, AuditReport)
        assert report.summary.total == 0
        assert report.items == []
