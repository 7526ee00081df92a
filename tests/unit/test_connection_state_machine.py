"""Tests for ConnectionStateMachine."""

from __future__ import annotations

import pytest

from voxgate._types import ConnectionState
from voxgate.exceptions import InvalidTransitionError
from voxgate.session.state_machine import ConnectionStateMachine

S = ConnectionState


class TestValidTransitions:
    @pytest.mark.parametrize(
        ("path"),
        [
            [S.CONFIGURED, S.BUFFERING, S.STREAMING, S.CLOSED],
            [S.BUFFERING, S.STREAMING, S.BUFFERING, S.STREAMING, S.CLOSED],
            [S.STREAMING, S.BUFFERING, S.CLOSED],
            [S.CONFIGURED, S.STREAMING],
            [S.CLOSED],
        ],
    )
    def test_paths(self, path: list[ConnectionState]) -> None:
        machine = ConnectionStateMachine()
        for target in path:
            machine.transition(target)
        assert machine.state is path[-1]

    def test_initial_state_is_init(self) -> None:
        assert ConnectionStateMachine().state is S.INIT

    def test_same_state_is_noop(self) -> None:
        seen: list[tuple[ConnectionState, ConnectionState]] = []
        machine = ConnectionStateMachine(on_transition=lambda a, b: seen.append((a, b)))
        machine.transition(S.CONFIGURED)
        machine.transition(S.CONFIGURED)
        assert seen == [(S.INIT, S.CONFIGURED)]

    def test_callback_receives_previous_and_target(self) -> None:
        seen: list[tuple[ConnectionState, ConnectionState]] = []
        machine = ConnectionStateMachine(on_transition=lambda a, b: seen.append((a, b)))
        machine.transition(S.BUFFERING)
        machine.transition(S.CLOSED)
        assert seen == [(S.INIT, S.BUFFERING), (S.BUFFERING, S.CLOSED)]


class TestInvalidTransitions:
    @pytest.mark.parametrize(
        ("setup", "target"),
        [
            ([S.BUFFERING], S.CONFIGURED),
            ([S.STREAMING], S.CONFIGURED),
            ([S.STREAMING], S.INIT),
            ([S.CONFIGURED], S.INIT),
        ],
    )
    def test_rejected(self, setup: list[ConnectionState], target: ConnectionState) -> None:
        machine = ConnectionStateMachine()
        for state in setup:
            machine.transition(state)
        assert not machine.can_transition(target)
        with pytest.raises(InvalidTransitionError):
            machine.transition(target)

    @pytest.mark.parametrize("target", list(ConnectionState))
    def test_closed_is_terminal(self, target: ConnectionState) -> None:
        machine = ConnectionStateMachine()
        machine.transition(S.CLOSED)
        assert machine.is_closed
        assert not machine.can_transition(target)
        with pytest.raises(InvalidTransitionError):
            machine.transition(target)

    def test_error_names_both_states(self) -> None:
        machine = ConnectionStateMachine()
        machine.transition(S.STREAMING)
        with pytest.raises(InvalidTransitionError, match="streaming -> configured"):
            machine.transition(S.CONFIGURED)
