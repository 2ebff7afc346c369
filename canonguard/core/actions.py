"""
Apply actions - the structured change a proposal embeds in a fenced json block.

Action payloads form a tagged union on ``type``. Only CANONICAL_DOCUMENT_UPDATE
is supported; any other tag is rejected by name.
"""

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Type

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

JSON_BLOCK_RE = re.compile(r"```json\b(.*?)```", re.DOTALL | re.IGNORECASE)

NO_BLOCK_ERROR = "no structured block found"
MISSING_ACTIONS_ERROR = "missing actions array"
EMPTY_ACTIONS_ERROR = "empty actions array"
UNSUPPORTED_TYPE_ERROR = "unsupported action type"
MISSING_CONTENT_GAP = "action has no content; it cannot be applied until content is provided"
EMPTY_CONTENT_GAP = "action content is empty"


class ActionType(str, Enum):
    CANONICAL_DOCUMENT_UPDATE = "CANONICAL_DOCUMENT_UPDATE"


class CanonicalDocumentUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: ActionType = ActionType.CANONICAL_DOCUMENT_UPDATE
    target_document_id: str = Field(validation_alias=AliasChoices("targetDocumentId", "id", "target_document_id"))
    new_content: Optional[str] = Field(default=None, validation_alias=AliasChoices("content", "newContent", "new_content"))

    @field_validator('target_document_id', mode='before')
    @classmethod
    def target_must_not_be_empty(cls, v):
        if v is None or not str(v).strip():
            raise ValueError('target document id cannot be empty')
        return str(v)


# Tag -> payload model; new action types register here
ACTION_MODELS: Dict[str, Type[BaseModel]] = {
    ActionType.CANONICAL_DOCUMENT_UPDATE.value: CanonicalDocumentUpdate,
}


@dataclass(frozen=True)
class ApplyPreview:
    """Resolved single mutation a proposal performs, or why it cannot be resolved."""
    success: bool
    action: Optional[CanonicalDocumentUpdate] = None
    error: Optional[str] = None
    gaps: List[str] = field(default_factory=list)

    @property
    def target_document_id(self) -> Optional[str]:
        return self.action.target_document_id if self.action else None

    @property
    def new_content(self) -> Optional[str]:
        return self.action.new_content if self.action else None

    @property
    def applicable(self) -> bool:
        return self.success and not self.gaps

    def as_dict(self) -> Optional[Dict[str, Optional[str]]]:
        if not self.action:
            return None
        return {"targetDocumentId": self.target_document_id, "newContent": self.new_content}


def _failed(error: str) -> ApplyPreview:
    return ApplyPreview(success=False, error=error)


def _first_validation_message(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "invalid value")
    return f"{location}: {message}" if location else message


def extract_apply_preview(content: Optional[str]) -> ApplyPreview:
    """
    Resolve the apply preview from proposal content.

    Uses the first fenced json block and the first element of its ``actions``
    array; later actions are ignored. Never raises and never mutates input.
    """
    if not content:
        return _failed(NO_BLOCK_ERROR)

    match = JSON_BLOCK_RE.search(content)
    if not match:
        return _failed(NO_BLOCK_ERROR)

    try:
        parsed = json.loads(match.group(1).strip())
    except json.JSONDecodeError as e:
        return _failed(f"failed to parse JSON: {e}")

    if not isinstance(parsed, dict) or not isinstance(parsed.get("actions"), list):
        return _failed(MISSING_ACTIONS_ERROR)

    actions = parsed["actions"]
    if not actions:
        return _failed(EMPTY_ACTIONS_ERROR)

    raw = actions[0]
    action_type = raw.get("type") if isinstance(raw, dict) else None
    model = ACTION_MODELS.get(action_type) if isinstance(action_type, str) else None
    if model is None:
        return _failed(f"{UNSUPPORTED_TYPE_ERROR}: {action_type}")

    try:
        action = model.model_validate(raw)
    except ValidationError as e:
        return _failed(f"invalid {action_type} action: {_first_validation_message(e)}")

    gaps = []
    if action.new_content is None:
        gaps.append(MISSING_CONTENT_GAP)
    elif not action.new_content.strip():
        gaps.append(EMPTY_CONTENT_GAP)

    return ApplyPreview(success=True, action=action, gaps=gaps)
