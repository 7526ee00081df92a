"""Typed exceptions for Voxgate.

Hierarchy:
    VoxgateError (base)
    +-- ConfigError
    +-- BackendError
    |   +-- BackendOpenError
    |   +-- BackendWriteError
    |   +-- BackendStreamError
    +-- SessionError
        +-- InvalidTransitionError
"""

from __future__ import annotations


class VoxgateError(Exception):
    """Base for all Voxgate exceptions."""


# --- Configuration ---


class ConfigError(VoxgateError):
    """Runtime configuration error."""


# --- Backend ---


class BackendError(VoxgateError):
    """Speech-recognition backend error."""


class BackendOpenError(BackendError):
    """The backend refused or failed to open a streaming session."""

    def __init__(self, backend: str, reason: str) -> None:
        self.backend = backend
        self.reason = reason
        super().__init__(f"Failed to open '{backend}' session: {reason}")


class BackendWriteError(BackendError):
    """Audio could not be handed to the backend stream."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Backend write failed: {reason}")


class BackendStreamError(BackendError):
    """The backend stream terminated with an error."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


# --- Session ---


class SessionError(VoxgateError):
    """Connection / recognizer session error."""


class InvalidTransitionError(SessionError):
    """Invalid state transition in the connection state machine."""

    def __init__(self, from_state: str, to_state: str) -> None:
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Invalid transition: {from_state} -> {to_state}")
