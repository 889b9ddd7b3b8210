"""Tests for state flags and the live predicate set."""

from __future__ import annotations

import pytest

from editorprobe.harness.errors import ErrorCode, InvariantViolationError, StateMismatchError, UsageError
from editorprobe.harness.flags import ModalSurface, StateFlag, StatePredicateSet, parse_flag
from editorprobe.simulated.workbench import SimulatedContextKeys


@pytest.mark.parametrize(
    "name",
    [StateFlag.PEEK_VISIBLE, "PEEK_VISIBLE", "peek-visible", "referenceSearchVisible", "reference-search-visible", " peek_visible "],
)
def test_parse_flag_accepts_every_spelling(name: object) -> None:
    assert parse_flag(name) is StateFlag.PEEK_VISIBLE  # type: ignore[arg-type]


def test_unknown_flag_is_a_usage_error() -> None:
    with pytest.raises(UsageError) as caught:
        parse_flag("tooltip-visible")

    assert caught.value.error_code == ErrorCode.UNKNOWN_FLAG
    assert "peek-visible" in caught.value.details["known"]


class TestStatePredicateSet:
    """Reads go straight to the host every time."""

    def test_values_are_never_cached(self) -> None:
        contexts = SimulatedContextKeys()
        flags = StatePredicateSet(contexts)
        hover = flags.predicate(StateFlag.HOVER_VISIBLE)

        assert hover() is False
        contexts.update({"hoverVisible": True})
        assert hover() is True
        assert flags.predicate("hover-visible", expected=False)() is False

    def test_managed_flag_uses_host_key(self) -> None:
        """The language-service flag is remapped to the configured context key."""
        contexts = SimulatedContextKeys()
        flags = StatePredicateSet(contexts, managed_key="python.isManagedFile")

        contexts.update({"typescript.isManagedFile": True})
        assert flags.match(StateFlag.LANGUAGE_SERVICE_MANAGED) is False

        contexts.update({"python.isManagedFile": True})
        assert flags.match("language-service-managed") is True
        assert flags.context_key(StateFlag.LANGUAGE_SERVICE_MANAGED) == "python.isManagedFile"

    def test_active_modal(self) -> None:
        contexts = SimulatedContextKeys()
        flags = StatePredicateSet(contexts)
        assert flags.active_modal() is ModalSurface.NONE

        contexts.update({"renameInputVisible": True})

        assert flags.active_modal() is ModalSurface.RENAME
        assert flags.visible_modals() == (ModalSurface.RENAME,)

    def test_two_modals_violate_exclusivity(self) -> None:
        contexts = SimulatedContextKeys()
        flags = StatePredicateSet(contexts)
        contexts.update({"referenceSearchVisible": True, "suggestWidgetVisible": True})

        with pytest.raises(InvariantViolationError) as caught:
            flags.assert_exclusive()

        assert caught.value.visible == ("peek", "suggest")
        assert caught.value.details["flags"]["peek-visible"] is True
        assert caught.value.failure_kind == "invariant"

    def test_expect_reports_every_mismatch(self) -> None:
        contexts = SimulatedContextKeys()
        contexts.update({"listFocus": True})
        flags = StatePredicateSet(contexts)

        with pytest.raises(StateMismatchError) as caught:
            flags.expect(
                {StateFlag.TEXT_FOCUS: True, "list-focus": True, "hover-visible": True},
                phase="before",
            )

        error = caught.value
        assert error.phase == "before"
        assert error.mismatches == {"text-focus": (True, False), "hover-visible": (True, False)}
        assert error.to_dict()["mismatches"]["text-focus"] == {"expected": True, "actual": False}

    def test_expect_passes_silently(self) -> None:
        flags = StatePredicateSet(SimulatedContextKeys())
        flags.expect({StateFlag.PEEK_VISIBLE: False})

    def test_snapshot_covers_every_flag(self) -> None:
        labels = StatePredicateSet(SimulatedContextKeys()).snapshot_labels()
        assert set(labels) == {flag.label for flag in StateFlag}
