"""Per-connection SMTP protocol state machine.

MailSession consumes raw bytes exactly as they arrive from the transport
and returns the replies to send back. It never touches the socket itself,
so it can be driven by the asyncio listener or fed directly in tests.

Command mode:
- Input is split into CRLF (or bare LF) terminated lines
- The verb is the first whitespace-delimited token, case-insensitive
- Each line produces exactly one reply

Data mode (after a successful DATA):
- Bytes accumulate until the ``\\r\\n.\\r\\n`` terminator, which may be
  split across any number of reads
- Bytes after the terminator in the same read are discarded, not replayed
  as commands. Pipelining clients will lose a command sent in the same
  packet as the end of data
- The parsed message is stored once per recipient

No limit is enforced on data size or recipient count unless
``max_data_bytes`` / ``max_recipients`` are given.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from ..models.message import Message
from ..observability import metrics
from ..store.expiring_store import ExpiringStore
from . import replies
from .parser import TERMINATOR, find_terminator, parse_message_data
from .replies import Reply
from .session_state import KNOWN_COMMANDS, SessionState, accepts, validate_transition

logger = logging.getLogger(__name__)

# Bytes of a partial terminator that can sit at the end of a read
_TERMINATOR_OVERLAP = len(TERMINATOR) - 1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def extract_address(argument: str) -> str:
    """Take the address out of a MAIL/RCPT argument.

    A bracketed path loses its brackets and any parameters after them
    (``<a@x.com> SIZE=10`` gives ``a@x.com``). Case is preserved. The null
    path ``<>`` is kept as is so it stays non-empty.

    Example:
        >>> extract_address(" <b@y.com> ")
        'b@y.com'
    """
    address = argument.strip()
    if address.startswith("<"):
        end = address.find(">")
        if end > 1:
            return address[1:end].strip()
    return address


class MailSession:
    """SMTP conversation for one client connection.

    Usage:
        session = MailSession(store)
        send(session.start())
        while not session.closed:
            for reply in session.feed(read()):
                send(reply)
    """

    def __init__(
        self,
        store: ExpiringStore,
        banner: str = "Simple SMTP Server",
        max_data_bytes: Optional[int] = None,
        max_recipients: Optional[int] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """Initialize session.

        Args:
            store: Shared store receiving completed messages
            banner: Server name used in greeting and EHLO replies
            max_data_bytes: Reject messages whose DATA exceeds this size
            max_recipients: Reject RCPT commands beyond this count
            clock: Source of the received_at timestamp
        """
        self.store = store
        self.banner = banner
        self.max_data_bytes = max_data_bytes
        self.max_recipients = max_recipients
        self._clock = clock

        self.state = SessionState.GREETING
        self.message = Message()

        self._line_buffer = bytearray()
        self._data_buffer = bytearray()
        self._scan_from = 0
        self._data_overflow = False

    @property
    def closed(self) -> bool:
        return self.state == SessionState.CLOSED

    def _transition(self, to_state: SessionState) -> None:
        validate_transition(self.state, to_state)
        if to_state != self.state:
            logger.debug(f"Session state {self.state.value} -> {to_state.value}")
        self.state = to_state

    def _reset_transaction(self) -> None:
        self.message = Message()
        self._data_buffer.clear()
        self._scan_from = 0
        self._data_overflow = False

    def start(self) -> Reply:
        """Produce the greeting and move to READY."""
        self._transition(SessionState.READY)
        return replies.greeting(self.banner)

    def close(self) -> None:
        """Mark the session closed, dropping any message in progress."""
        if self.closed:
            return
        if self.state in (SessionState.TRANSACTION, SessionState.DATA):
            logger.info(f"Connection closed mid-transaction, discarding message from {self.message.sender!r}")
        self._reset_transaction()
        self._line_buffer.clear()
        self._transition(SessionState.CLOSED)

    def feed(self, chunk: bytes) -> List[Reply]:
        """Consume bytes from the client.

        Args:
            chunk: Bytes from one read, of any size

        Returns:
            List[Reply]: Replies to send, in order. Empty while a message
                or a command line is still incomplete.
        """
        if self.state == SessionState.GREETING:
            raise RuntimeError("Session fed before greeting was sent")
        if self.closed:
            return []

        if self.state == SessionState.DATA:
            reply = self._feed_data(chunk)
            return [reply] if reply else []

        out: List[Reply] = []
        self._line_buffer += chunk

        while self.state in (SessionState.READY, SessionState.TRANSACTION):
            newline = self._line_buffer.find(b"\n")
            if newline == -1:
                break
            raw = bytes(self._line_buffer[:newline])
            del self._line_buffer[:newline + 1]
            if raw.endswith(b"\r"):
                raw = raw[:-1]
            out.append(self.handle_command(raw.decode("utf-8", errors="replace")))

        if self.state == SessionState.DATA and self._line_buffer:
            # Message bytes sent in the same packet as the DATA command
            pending = bytes(self._line_buffer)
            self._line_buffer.clear()
            reply = self._feed_data(pending)
            if reply:
                out.append(reply)
        elif self.closed:
            self._line_buffer.clear()

        return out

    def handle_command(self, line: str) -> Reply:
        """Dispatch one command line and return its reply."""
        logger.debug(f"C: {line}")
        tokens = line.split(maxsplit=1)
        verb = tokens[0].upper() if tokens else ""

        if verb not in KNOWN_COMMANDS:
            reply = replies.UNKNOWN_COMMAND
            verb = "UNKNOWN"
        elif not accepts(self.state, verb):
            reply = replies.BAD_SEQUENCE
        else:
            handler = getattr(self, f"_cmd_{verb.lower()}")
            reply = handler(line)

        metrics.smtp_commands_total.labels(command=verb, code=str(reply.code)).inc()
        logger.debug(f"S: {reply}")
        return reply

    # Command handlers

    def _cmd_helo(self, line: str) -> Reply:
        return replies.capabilities(self.banner)

    _cmd_ehlo = _cmd_helo

    def _cmd_noop(self, line: str) -> Reply:
        return replies.OK

    def _cmd_mail(self, line: str) -> Reply:
        idx = line.find("FROM:")
        if idx == -1:
            return replies.SYNTAX_ERROR
        sender = extract_address(line[idx + len("FROM:"):])
        if not sender:
            return replies.SYNTAX_ERROR
        self.message.sender = sender
        logger.info(f"Mail from: {self.message.sender}")
        self._transition(SessionState.TRANSACTION)
        return replies.OK

    def _cmd_rcpt(self, line: str) -> Reply:
        idx = line.find("TO:")
        if idx == -1:
            return replies.SYNTAX_ERROR
        if self.max_recipients is not None and len(self.message.recipients) >= self.max_recipients:
            logger.warning(f"Recipient limit {self.max_recipients} reached, rejecting RCPT")
            return replies.TOO_MANY_RECIPIENTS
        recipient = extract_address(line[idx + len("TO:"):])
        if not recipient:
            return replies.SYNTAX_ERROR
        self.message.recipients.append(recipient)
        logger.info(f"Rcpt to: {recipient}")
        return replies.OK

    def _cmd_data(self, line: str) -> Reply:
        if not self.message.is_deliverable:
            return replies.BAD_SEQUENCE
        self._data_buffer.clear()
        self._scan_from = 0
        self._data_overflow = False
        self._transition(SessionState.DATA)
        return replies.START_MAIL_INPUT

    def _cmd_rset(self, line: str) -> Reply:
        self._reset_transaction()
        self._transition(SessionState.READY)
        return replies.OK

    def _cmd_quit(self, line: str) -> Reply:
        self._reset_transaction()
        self._transition(SessionState.CLOSED)
        return replies.BYE

    # Data phase

    def _feed_data(self, chunk: bytes) -> Optional[Reply]:
        self._data_buffer += chunk
        end = find_terminator(
            self._data_buffer,
            self._scan_from,
            allow_empty=not self._data_overflow,
        )

        if end is None:
            self._scan_from = max(len(self._data_buffer) - _TERMINATOR_OVERLAP, 0)
            if self.max_data_bytes is not None and len(self._data_buffer) > self.max_data_bytes:
                if not self._data_overflow:
                    logger.warning(
                        f"Message data exceeds {self.max_data_bytes} bytes, "
                        f"discarding until end of data"
                    )
                self._data_overflow = True
                # Keep only what could be the start of the terminator
                del self._data_buffer[:-_TERMINATOR_OVERLAP]
                self._scan_from = 0
            return None

        oversized = self._data_overflow or (
            self.max_data_bytes is not None and end > self.max_data_bytes
        )
        if oversized:
            metrics.smtp_messages_rejected_total.labels(reason="too_big").inc()
            reply = replies.MESSAGE_TOO_BIG
        else:
            self._store_message(bytes(self._data_buffer[:end]))
            reply = replies.MESSAGE_ACCEPTED

        self._reset_transaction()
        self._transition(SessionState.READY)
        logger.debug(f"S: {reply}")
        return reply

    def _store_message(self, raw: bytes) -> None:
        parsed = parse_message_data(raw)
        self.message.subject = parsed.subject
        self.message.body = parsed.body

        received_at = self._clock()
        for recipient in self.message.recipients:
            logger.info(f"Storing email for {recipient}", extra={"recipient": recipient})
            self.store.put(recipient, self.message.stored_copy(received_at))

        metrics.smtp_messages_accepted_total.inc()
        logger.info(
            f"Message accepted: from={self.message.sender}, "
            f"recipients={len(self.message.recipients)}, size={len(raw)} bytes"
        )
