"""Mailbox query API: generate addresses and read stored messages"""

from .router import router

__all__ = ["router"]
