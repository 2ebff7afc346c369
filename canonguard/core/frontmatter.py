"""
YAML frontmatter - reads the governance marker authors put at the top of a document.
"""

import re
from typing import Any, Dict, Optional, Tuple

import yaml

from ..util.logging import logger

FRONTMATTER_RE = re.compile(r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)(.*)\Z", re.DOTALL)


def parse_frontmatter(content: Optional[str]) -> Tuple[Dict[str, Any], str]:
    """
    Split a leading ``---`` YAML block from markdown content.

    Returns (frontmatter, body). Content without a block, or with a block that
    is not a YAML mapping, yields an empty dict and the content unchanged.
    """
    if not content:
        return {}, content or ""

    match = FRONTMATTER_RE.match(content)
    if not match:
        return {}, content

    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError as e:
        logger.warning(f"Ignoring malformed frontmatter: {e}")
        return {}, content

    if not isinstance(data, dict):
        return {}, content

    return data, match.group(2)


def governance_from_frontmatter(content: Optional[str]) -> bool:
    """True when frontmatter declares ``governance: governed`` (any case) or ``governance: true``."""
    frontmatter, _ = parse_frontmatter(content)
    value = frontmatter.get("governance")

    if isinstance(value, str):
        return value.strip().lower() == "governed"

    return value is True
