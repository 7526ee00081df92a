"""ConnectionStateMachine — state machine for one gateway connection.

Pure, synchronous component with no knowledge of the WebSocket or the backend.
The caller (ConnectionHandler) decides when to call transition().

States:
    INIT -> CONFIGURED -> BUFFERING -> STREAMING -> CLOSED

Rules:
- CLOSED is terminal: no transitions are accepted from CLOSED.
- Any state can transition to CLOSED (stop, disconnect, transport error).
- Transitioning to the current state is a no-op (repeated config messages,
  repeated open failures).
- Invalid transitions raise InvalidTransitionError.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from voxgate._types import ConnectionState
from voxgate.exceptions import InvalidTransitionError

if TYPE_CHECKING:
    from collections.abc import Callable

# Valid transitions: {current_state: {allowed_target_states}}
_VALID_TRANSITIONS: dict[ConnectionState, frozenset[ConnectionState]] = {
    ConnectionState.INIT: frozenset(
        {
            ConnectionState.CONFIGURED,
            ConnectionState.BUFFERING,
            ConnectionState.STREAMING,
            ConnectionState.CLOSED,
        }
    ),
    ConnectionState.CONFIGURED: frozenset(
        {ConnectionState.BUFFERING, ConnectionState.STREAMING, ConnectionState.CLOSED}
    ),
    ConnectionState.BUFFERING: frozenset({ConnectionState.STREAMING, ConnectionState.CLOSED}),
    ConnectionState.STREAMING: frozenset({ConnectionState.BUFFERING, ConnectionState.CLOSED}),
    ConnectionState.CLOSED: frozenset(),
}


class ConnectionStateMachine:
    """State machine for a gateway connection.

    Args:
        on_transition: Optional callback ``(previous, target)`` called after
            every effective transition (used for logging).
    """

    def __init__(
        self,
        on_transition: Callable[[ConnectionState, ConnectionState], None] | None = None,
    ) -> None:
        self._state = ConnectionState.INIT
        self._on_transition = on_transition

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def is_closed(self) -> bool:
        return self._state is ConnectionState.CLOSED

    def can_transition(self, target: ConnectionState) -> bool:
        if target is self._state:
            return self._state is not ConnectionState.CLOSED
        return target in _VALID_TRANSITIONS[self._state]

    def transition(self, target: ConnectionState) -> None:
        """Transition to the target state.

        Raises:
            InvalidTransitionError: If the transition is invalid.
        """
        if target is self._state and target is not ConnectionState.CLOSED:
            return
        if target not in _VALID_TRANSITIONS[self._state]:
            raise InvalidTransitionError(self._state.value, target.value)

        previous = self._state
        self._state = target

        if self._on_transition is not None:
            self._on_transition(previous, target)
