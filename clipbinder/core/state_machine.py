"""Generic State Machine for status transitions.

This module provides a reusable state machine pattern. The acquisition
pipeline builds its transition map from the ordered tier descriptors and
drives one machine per scene.

Example:
    # Define transitions
    TRANSITIONS: TransitionMap[str] = {
        "idle": ["searching_video", "generating_image"],
        "searching_video": ["downloading_video", "generating_image"],
        "downloading_video": ["done", "generating_image"],
        "generating_image": ["done", "failed"],
        "done": [],
        "failed": [],
    }

    # Create state machine
    sm = StateMachine("idle", TRANSITIONS)

    # Check and perform transitions
    if sm.can_transition("searching_video"):
        sm.transition("searching_video")

    # Or use transition_to for simpler API
    sm.transition_to("downloading_video")
"""

from collections.abc import Callable
from enum import Enum
from typing import Generic, TypeVar

from clipbinder.core.exceptions import ClipBinderError

T = TypeVar("T", bound=str | Enum)

# Type alias for transition maps
TransitionMap = dict[T, list[T]]


class InvalidTransitionError(ClipBinderError):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, current: T, target: T, allowed: list[T] | None = None):
        self.current = current
        self.target = target
        self.allowed = allowed or []
        self.error_code = "INVALID_TRANSITION"
        allowed_str = ", ".join(str(s) for s in self.allowed) if self.allowed else "none"
        super().__init__(
            message=f"Invalid transition from '{current}' to '{target}'. "
            f"Allowed transitions: {allowed_str}",
            context={
                "current": str(current),
                "target": str(target),
                "allowed": [str(s) for s in self.allowed],
            },
        )


class StateMachine(Generic[T]):
    """Generic state machine for status transitions.

    Provides a type-safe way to manage status transitions with
    explicit allowed transitions defined upfront. An optional listener is
    called after every successful transition with ``(previous, current)``.

    Attributes:
        current: Current state
        transitions: Map of allowed transitions from each state
    """

    def __init__(
        self,
        initial: T,
        transitions: TransitionMap[T],
        on_transition: Callable[[T, T], None] | None = None,
    ):
        """Initialize state machine.

        Args:
            initial: Initial state
            transitions: Map of state -> list of allowed target states
            on_transition: Optional listener called after each transition
        """
        self._current = initial
        self._transitions = transitions
        self._on_transition = on_transition
        self._history: list[T] = [initial]

    @property
    def current(self) -> T:
        """Get current state."""
        return self._current

    @property
    def history(self) -> list[T]:
        """States visited so far, starting with the initial one."""
        return list(self._history)

    @property
    def allowed_transitions(self) -> list[T]:
        """Get list of states we can transition to from current state."""
        return self._transitions.get(self._current, [])

    @property
    def is_terminal(self) -> bool:
        """Check if the current state has no outgoing transitions."""
        return not self.allowed_transitions

    def can_transition(self, target: T) -> bool:
        """Check if transition to target state is allowed.

        Args:
            target: Target state to check

        Returns:
            True if transition is allowed, False otherwise
        """
        return target in self.allowed_transitions

    def transition(self, target: T) -> None:
        """Perform transition to target state.

        Args:
            target: Target state

        Raises:
            InvalidTransitionError: If transition is not allowed
        """
        if not self.can_transition(target):
            raise InvalidTransitionError(
                current=self._current,
                target=target,
                allowed=self.allowed_transitions,
            )
        previous = self._current
        self._current = target
        self._history.append(target)
        if self._on_transition is not None:
            self._on_transition(previous, target)

    def transition_to(self, target: T) -> T:
        """Perform transition and return new state.

        Args:
            target: Target state

        Returns:
            The new current state (same as target)

        Raises:
            InvalidTransitionError: If transition is not allowed
        """
        self.transition(target)
        return self._current

    def reset(self, state: T) -> None:
        """Reset state machine to a specific state (bypass transition rules).

        Use with caution - this bypasses transition validation.

        Args:
            state: State to reset to
        """
        self._current = state
        self._history = [state]

    def __str__(self) -> str:
        return f"StateMachine(current={self._current})"

    def __repr__(self) -> str:
        return f"StateMachine(current={self._current!r}, allowed={self.allowed_transitions!r})"


__all__ = ["InvalidTransitionError", "StateMachine", "TransitionMap"]
