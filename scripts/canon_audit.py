#!/usr/bin/env python3
"""
Canon audit utility - integrity and content-quality checks against the remote store.
"""

import argparse
import json
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from canonguard.api.store_client import StoreClient, StoreError
from canonguard.core import config
from canonguard.core.governance import GovernanceService
from canonguard.core.integrity import integrity_reasons
from canonguard.core.schema import Severity
from canonguard.core.severity import render_audit_report


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Canonical document integrity and content audit",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --integrity              # Check required canonical documents
  %(prog)s --content                # Score content quality of every document
  %(prog)s --document canon-index   # Score one document found by key
  %(prog)s --integrity --json       # Output results as JSON

Environment variables:
- STORE_API_BASE=http://localhost:3001 (remote store)
- NODE_NAME=local-node (report label)
- WARN_SCORE_THRESHOLD=2, TAB_PENALTY=2 (content scoring)
        """
    )

    parser.add_argument(
        "--integrity", "-i",
        action="store_true",
        help="Check required canonical documents are present, governed and RAG-ready"
    )

    parser.add_argument(
        "--content", "-c",
        action="store_true",
        help="Score markdown quality of every document"
    )

    parser.add_argument(
        "--document", "-d",
        metavar="KEY",
        default=None,
        help="Score one document, matched by exact, case-insensitive or partial key"
    )

    parser.add_argument(
        "--node",
        default=None,
        help="Label written into the integrity report (default: NODE_NAME)"
    )

    parser.add_argument(
        "--api-base",
        default=None,
        help="Remote store base URL (default: STORE_API_BASE)"
    )

    parser.add_argument(
        "--json", "-j",
        action="store_true",
        help="Output results as JSON instead of human-readable text"
    )

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not (args.integrity or args.content or args.document):
        parser.error("Must specify at least one of --integrity, --content, --document")

    issues = config.validate_config()
    if issues:
        for issue in issues:
            print(f"Configuration error: {issue}", file=sys.stderr)
        return 2

    service = GovernanceService(StoreClient(base_url=args.api_base), node_name=args.node)
    exit_code = 0
    output = {}

    try:
        if args.integrity:
            result, report = service.integrity_report()
            if not result.passed:
                exit_code = 1
            if args.json:
                output["integrity"] = dict(result.to_dict(), reasons=integrity_reasons(result))
            else:
                print(report)

        if args.content:
            audit = service.audit_content()
            if args.json:
                output["content"] = audit.to_dict()
            else:
                if args.integrity:
                    print()
                print(render_audit_report(audit))

        if args.document:
            document, finding = service.score_document(args.document)
            if finding.severity == Severity.FAIL:
                exit_code = 1
            if args.json:
                output["document"] = {
                    "id": document.id,
                    "label": document.label,
                    "severity": finding.severity.value,
                    "markdownScore": finding.markdown_score,
                    "reasons": finding.reasons
                }
            else:
                if args.integrity or args.content:
                    print()
                print(f"{document.label} ({document.id}): {finding.severity.value}, score {finding.markdown_score:.2f}")
                for reason in finding.reasons:
                    print(f"  - {reason}")

    except StoreError as e:
        print(f"Store error: {e.message}", file=sys.stderr)
        return 2

    if args.json:
        print(json.dumps(output, indent=2))

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
