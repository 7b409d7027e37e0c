"""SMTP protocol handling: session state machine, parser and listener"""

from .listener import ListenerStartupError, SMTPListener
from .parser import TERMINATOR, find_terminator, parse_message_data
from .replies import Reply
from .session import MailSession, extract_address
from .session_state import SessionState, StateTransitionError, can_transition

__all__ = [
    "ListenerStartupError",
    "SMTPListener",
    "TERMINATOR",
    "find_terminator",
    "parse_message_data",
    "Reply",
    "MailSession",
    "extract_address",
    "SessionState",
    "StateTransitionError",
    "can_transition",
]
