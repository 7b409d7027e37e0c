"""SessionState state machine for an SMTP connection

State flow:
GREETING → READY → TRANSACTION → DATA → READY
RSET returns to READY from any open state, QUIT or stream end → CLOSED
"""

from enum import Enum
from typing import Dict, List


class SessionState(str, Enum):
    """Connection protocol phase"""
    GREETING = "GREETING"        # Connected, banner not yet sent
    READY = "READY"              # Waiting for MAIL
    TRANSACTION = "TRANSACTION"  # MAIL accepted, collecting recipients
    DATA = "DATA"                # Receiving raw message bytes
    CLOSED = "CLOSED"            # Terminal


ALLOWED_TRANSITIONS: Dict[SessionState, List[SessionState]] = {
    SessionState.GREETING: [SessionState.READY, SessionState.CLOSED],
    SessionState.READY: [SessionState.READY, SessionState.TRANSACTION, SessionState.CLOSED],
    SessionState.TRANSACTION: [SessionState.READY, SessionState.DATA, SessionState.CLOSED],
    SessionState.DATA: [SessionState.READY, SessionState.CLOSED],
    SessionState.CLOSED: [],
}

# Verbs each state will act on; anything else known yields 503
ACCEPTED_COMMANDS: Dict[SessionState, frozenset] = {
    SessionState.GREETING: frozenset(),
    SessionState.READY: frozenset({"HELO", "EHLO", "MAIL", "RSET", "NOOP", "QUIT"}),
    SessionState.TRANSACTION: frozenset({"HELO", "EHLO", "RCPT", "DATA", "RSET", "NOOP", "QUIT"}),
    SessionState.DATA: frozenset(),
    SessionState.CLOSED: frozenset(),
}

KNOWN_COMMANDS = frozenset({"HELO", "EHLO", "MAIL", "RCPT", "DATA", "RSET", "NOOP", "QUIT"})


def can_transition(from_state: SessionState, to_state: SessionState) -> bool:
    """Validate if state transition is allowed

    Example:
        >>> can_transition(SessionState.READY, SessionState.TRANSACTION)
        True
        >>> can_transition(SessionState.READY, SessionState.DATA)
        False
    """
    return to_state in ALLOWED_TRANSITIONS.get(from_state, [])


def accepts(state: SessionState, verb: str) -> bool:
    """Whether ``verb`` is valid in ``state``."""
    return verb in ACCEPTED_COMMANDS.get(state, frozenset())


class StateTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""
    pass


def validate_transition(from_state: SessionState, to_state: SessionState) -> None:
    """Validate that a state transition is allowed.

    Raises:
        StateTransitionError: If transition is not allowed
    """
    if not can_transition(from_state, to_state):
        raise StateTransitionError(
            f"Invalid session transition {from_state.value} -> {to_state.value}"
        )
