"""
Action gate tests - governed actions are refused unless the system is GOVERNED.
"""

import pytest

from canonguard.core.gate import (
    BASE_REFUSAL_MESSAGE,
    NOT_READY,
    GovernedAction,
    Refusal,
    SystemMode,
    check_allowed,
)


class TestGovernedMode:
    """GOVERNED mode permits every governed action."""

    @pytest.mark.parametrize("action", list(GovernedAction))
    def test_every_action_allowed(self, action):
        assert check_allowed(SystemMode.GOVERNED, action) is None

    def test_reasons_ignored_when_governed(self):
        assert check_allowed(SystemMode.GOVERNED, GovernedAction.SCHEMA_CHANGE, ["stale"]) is None

    def test_string_values_accepted(self):
        assert check_allowed("GOVERNED", "create_canon_doc") is None


class TestGuardedMode:
    """GUARDED mode refuses every governed action with a structured refusal."""

    @pytest.mark.parametrize("action", list(GovernedAction))
    def test_every_action_refused(self, action):
        refusal = check_allowed(SystemMode.GUARDED, action)
        assert isinstance(refusal, Refusal)
        assert refusal.code == NOT_READY
        assert refusal.action == action

    def test_generic_message_without_reasons(self):
        refusal = check_allowed(SystemMode.GUARDED, GovernedAction.GOVERNANCE_EDIT)
        assert refusal.message == BASE_REFUSAL_MESSAGE
        assert refusal.reasons == []

    def test_message_contains_every_reason(self):
        reasons = ["Missing canonical document: a.md", "Not ready for RAG: b.md"]
        refusal = check_allowed(SystemMode.GUARDED, GovernedAction.MODIFY_CANON_DOC, reasons)
        for reason in reasons:
            assert reason in refusal.message
        assert refusal.message == f"{BASE_REFUSAL_MESSAGE} Current issues: {', '.join(reasons)}"
        assert refusal.reasons == reasons

    def test_empty_reason_list_gives_generic_message(self):
        refusal = check_allowed(SystemMode.GUARDED, GovernedAction.MODIFY_CANON_DOC, [])
        assert refusal.message == BASE_REFUSAL_MESSAGE

    def test_same_inputs_same_verdict(self):
        args = (SystemMode.GUARDED, GovernedAction.NODE_MODEL_CHANGE, ["x"])
        assert check_allowed(*args) == check_allowed(*args)

    def test_caller_reason_list_not_retained(self):
        reasons = ["x"]
        refusal = check_allowed(SystemMode.GUARDED, GovernedAction.NODE_MODEL_CHANGE, reasons)
        reasons.append("y")
        assert refusal.reasons == ["x"]


class TestClosedEnums:
    """Actions and modes must be tagged against the known enums."""

    def test_unknown_action_rejected(self):
        with pytest.raises(ValueError, match="Unknown governed action"):
            check_allowed(SystemMode.GOVERNED, "delete_everything")

    def test_unknown_mode_rejected(self):
        with pytest.raises(ValueError, match="Invalid system mode"):
            check_allowed("READY", GovernedAction.CREATE_CANON_DOC)
