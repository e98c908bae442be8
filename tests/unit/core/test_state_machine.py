"""Unit tests for StateMachine."""

import pytest

from clipbinder.core.state_machine import InvalidTransitionError, StateMachine
from clipbinder.models.job import AcquisitionState


class TestStateMachine:
    """Tests for generic StateMachine."""

    @pytest.fixture
    def simple_transitions(self):
        """Create simple transition map for testing."""
        return {
            "start": ["middle", "end"],
            "middle": ["end"],
            "end": [],
        }

    @pytest.fixture
    def state_machine(self, simple_transitions):
        """Create state machine with simple transitions."""
        return StateMachine("start", simple_transitions)

    def test_initial_state(self, state_machine):
        """Test that initial state is set correctly."""
        assert state_machine.current == "start"
        assert state_machine.history == ["start"]

    def test_can_transition_valid(self, state_machine):
        """Test can_transition returns True for valid transitions."""
        assert state_machine.can_transition("middle") is True
        assert state_machine.can_transition("end") is True

    def test_can_transition_invalid(self, state_machine):
        """Test can_transition returns False for invalid transitions."""
        assert state_machine.can_transition("nonexistent") is False

    def test_transition_valid(self, state_machine):
        """Test valid transition updates state and history."""
        state_machine.transition("middle")
        assert state_machine.current == "middle"
        assert state_machine.history == ["start", "middle"]

    def test_transition_invalid_raises(self, state_machine):
        """Test invalid transition raises error."""
        state_machine.transition("middle")

        with pytest.raises(InvalidTransitionError) as exc_info:
            state_machine.transition("start")  # Can't go back

        assert exc_info.value.current == "middle"
        assert exc_info.value.target == "start"
        assert "end" in exc_info.value.allowed
        assert state_machine.current == "middle"

    def test_transition_to_returns_state(self, state_machine):
        """Test transition_to returns new state."""
        result = state_machine.transition_to("middle")
        assert result == "middle"

    def test_is_terminal(self, state_machine):
        """Test is_terminal for states without outgoing transitions."""
        assert state_machine.is_terminal is False
        state_machine.transition("end")
        assert state_machine.is_terminal is True
        assert state_machine.allowed_transitions == []

    def test_reset_bypasses_validation(self, state_machine):
        """Test reset allows setting any state."""
        state_machine.transition("end")
        state_machine.reset("start")

        assert state_machine.current == "start"
        assert state_machine.history == ["start"]

    def test_listener_called_after_transition(self, simple_transitions):
        """Test on_transition receives previous and new state."""
        seen = []
        sm = StateMachine(
            "start", simple_transitions, on_transition=lambda prev, cur: seen.append((prev, cur))
        )

        sm.transition("middle")
        sm.transition("end")

        assert seen == [("start", "middle"), ("middle", "end")]

    def test_listener_not_called_on_invalid_transition(self, simple_transitions):
        """Test rejected transitions do not notify."""
        seen = []
        sm = StateMachine("end", simple_transitions, on_transition=lambda p, c: seen.append(c))

        with pytest.raises(InvalidTransitionError):
            sm.transition("start")
        assert seen == []

    def test_enum_states(self):
        """Test state machine works with str enums."""
        sm = StateMachine(
            AcquisitionState.IDLE,
            {
                AcquisitionState.IDLE: [AcquisitionState.GENERATING_IMAGE],
                AcquisitionState.GENERATING_IMAGE: [AcquisitionState.DONE],
                AcquisitionState.DONE: [],
            },
        )

        sm.transition(AcquisitionState.GENERATING_IMAGE)
        sm.transition(AcquisitionState.DONE)

        assert sm.is_terminal
        assert "done" in repr(sm)
