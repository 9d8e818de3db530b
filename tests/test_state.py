"""Tests for expo.state helpers."""

import pytest

from expo.state import (
    REQUIRED_FIELDS,
    RevisionTarget,
    dependency_violations,
    is_terminal,
    missing_dependencies,
    new_state,
    parse_target,
)
from expo.utils.validator import validate_requirements


class TestNewState:
    def test_has_every_field(self, base_state):
        assert set(base_state) == REQUIRED_FIELDS

    def test_initial_values(self, base_state):
        assert base_state["iteration_count"] == 0
        assert base_state["status"] == "in_progress"
        assert base_state["waiting_for_human"] is False
        assert base_state["version"] == 0
        assert base_state["message_log"] == ["Exhibition design workflow started"]

    def test_human_mode_message(self, requirements):
        state = new_state("expo-x", validate_requirements(requirements), False, 2)
        assert state["message_log"][0].endswith("(human review mode)")


class TestDependencies:
    def test_missing_dependencies(self, artifacts):
        artifacts["spatial"] = None
        artifacts["visual"] = None
        assert missing_dependencies(artifacts, "budget") == ["spatial", "visual"]
        assert missing_dependencies(artifacts, "interactive") == []

    def test_violations(self, artifacts):
        artifacts["concept"] = None
        issues = dependency_violations(artifacts)
        assert len(issues) == 4  # spatial, visual, interactive and budget all depend on concept

    def test_consistent(self, artifacts):
        assert dependency_violations(artifacts) == []

    def test_is_terminal(self, complete_state):
        assert is_terminal(complete_state)
        complete_state["waiting_for_human"] = True
        assert not is_terminal(complete_state)


class TestParseTarget:
    @pytest.mark.parametrize("value,expected", [
        ("concept", RevisionTarget.CONCEPT),
        ("BUDGET", RevisionTarget.BUDGET),
        ("parallel_designs", RevisionTarget.PARALLEL_DESIGNS),
        ("none", RevisionTarget.NONE),
        (RevisionTarget.VISUAL, RevisionTarget.VISUAL),
    ])
    def test_known(self, value, expected):
        assert parse_target(value) is expected

    @pytest.mark.parametrize("value", ["lighting", "", None, 3])
    def test_unknown_is_none(self, value):
        assert parse_target(value) is None
