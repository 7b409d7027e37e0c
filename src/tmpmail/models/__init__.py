"""Domain models for tmpmail"""

from .message import Message

__all__ = [
    "Message",
]
