"""
Engine configuration - environment driven, read on demand.
"""

import os

# Remote store configuration
STORE_API_BASE = os.getenv("STORE_API_BASE", "http://localhost:3001")
STORE_TIMEOUT_SEC = int(os.getenv("STORE_TIMEOUT_SEC", "10"))

# Label written into integrity reports
NODE_NAME = os.getenv("NODE_NAME", "local-node")

# Severity scoring (0-10 scale)
WARN_SCORE_THRESHOLD = float(os.getenv("WARN_SCORE_THRESHOLD", "2"))
TAB_PENALTY = float(os.getenv("TAB_PENALTY", "2"))

# Proposal apply policy
BLOCK_ON_WARN = os.getenv("BLOCK_ON_WARN", "false").lower() == "true"

# Debug flag is a function to stay dynamic
DEBUG = os.getenv("DEBUG", "false").lower() == "true"

VERSION = "1.0.0"


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "false").lower() == "true"


def get_store_api_base() -> str:
    """Get the remote store base URL without a trailing slash."""
    return os.getenv("STORE_API_BASE", STORE_API_BASE).rstrip("/")


def get_store_timeout() -> int:
    """Get the per-request store timeout in seconds."""
    return int(os.getenv("STORE_TIMEOUT_SEC", str(STORE_TIMEOUT_SEC)))


def get_node_name() -> str:
    """Get the node label used in integrity reports."""
    return os.getenv("NODE_NAME", NODE_NAME)


def get_warn_threshold() -> float:
    """Get the markdown score at or below which content is WARN."""
    return float(os.getenv("WARN_SCORE_THRESHOLD", str(WARN_SCORE_THRESHOLD)))


def get_tab_penalty() -> float:
    """Get the markdown score penalty for raw tab characters."""
    return float(os.getenv("TAB_PENALTY", str(TAB_PENALTY)))


def block_on_warn() -> bool:
    """Check whether a WARN target document blocks proposal apply."""
    return os.getenv("BLOCK_ON_WARN", str(BLOCK_ON_WARN)).lower() == "true"


def validate_config():
    """Validate engine configuration and return any issues."""
    issues = []

    for name, getter in (("WARN_SCORE_THRESHOLD", get_warn_threshold),
                         ("TAB_PENALTY", get_tab_penalty)):
        try:
            value = getter()
        except ValueError:
            issues.append(f"{name} must be numeric")
            continue
        if value < 0:
            issues.append(f"{name} must be >= 0")

    try:
        if get_store_timeout() < 1:
            issues.append("STORE_TIMEOUT_SEC must be >= 1")
    except ValueError:
        issues.append("STORE_TIMEOUT_SEC must be an integer")

    base = get_store_api_base()
    if not base.startswith(("http://", "https://")):
        issues.append(f"Invalid STORE_API_BASE: {base}")

    return issues
