"""
Action gate - governed actions run only while the system is GOVERNED.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Union

NOT_READY = "NOT_READY"

BASE_REFUSAL_MESSAGE = (
    "Workspace is NOT_READY, govern Workspace Canon and Scope Boundaries "
    "to unlock governed actions."
)


class SystemMode(str, Enum):
    GOVERNED = "GOVERNED"
    GUARDED = "GUARDED"


class GovernedAction(str, Enum):
    CREATE_CANON_DOC = "create_canon_doc"
    MODIFY_CANON_DOC = "modify_canon_doc"
    GOVERNANCE_EDIT = "governance_edit"
    SCHEMA_CHANGE = "schema_change"
    WORKSPACE_MODEL_CHANGE = "workspace_model_change"
    NODE_MODEL_CHANGE = "node_model_change"


@dataclass(frozen=True)
class Refusal:
    code: str
    action: GovernedAction
    message: str
    reasons: List[str] = field(default_factory=list)


def _coerce_mode(mode: Union[SystemMode, str]) -> SystemMode:
    try:
        return SystemMode(mode)
    except ValueError:
        raise ValueError(f"Invalid system mode: {mode}")


def _coerce_action(action: Union[GovernedAction, str]) -> GovernedAction:
    try:
        return GovernedAction(action)
    except ValueError:
        raise ValueError(f"Unknown governed action: {action}")


def check_allowed(mode: Union[SystemMode, str], action: Union[GovernedAction, str],
                  reasons: Optional[Sequence[str]] = None) -> Optional[Refusal]:
    """
    Check whether a governed action may run in the given mode.

    Returns None when allowed, or a Refusal carrying the NOT_READY code and
    every supplied reason. Raises ValueError for a mode or action outside the
    known enums; callers must tag actions explicitly.
    """
    mode = _coerce_mode(mode)
    action = _coerce_action(action)

    if mode == SystemMode.GOVERNED:
        return None

    reasons = list(reasons or [])
    message = BASE_REFUSAL_MESSAGE
    if reasons:
        message = f"{BASE_REFUSAL_MESSAGE} Current issues: {', '.join(reasons)}"

    return Refusal(code=NOT_READY, action=action, message=message, reasons=reasons)
