"""Message domain model.

A Message is the parsed result of one mail transaction. It is built up in
place by a connection while the transaction runs, then copied into the
store once per recipient.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import List, Optional, Tuple
from uuid import uuid4


@dataclass
class Message:
    """Parsed representation of one inbound mail transaction.

    ``id`` and ``received_at`` stay None on the in-progress message and
    are assigned to each stored copy.
    """
    sender: str = ""
    recipients: List[str] = field(default_factory=list)
    subject: str = ""
    body: str = ""
    attachments: List[Tuple[str, bytes]] = field(default_factory=list)
    id: Optional[str] = None
    received_at: Optional[datetime] = None

    @property
    def is_deliverable(self) -> bool:
        """True once both sender and at least one recipient are declared."""
        return bool(self.sender) and bool(self.recipients)

    def stored_copy(self, received_at: datetime) -> "Message":
        """Return an independent copy with a fresh id for storage."""
        return replace(
            self,
            recipients=list(self.recipients),
            attachments=list(self.attachments),
            id=uuid4().hex,
            received_at=received_at,
        )
