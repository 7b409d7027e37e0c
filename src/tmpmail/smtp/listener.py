"""Asyncio TCP listener for inbound mail.

Binds one address, accepts connections without limit and runs one
MailSession per connection in its own task. The only state shared between
connections is the ExpiringStore passed in at construction.

Error handling:
- Bind failure raises ListenerStartupError (fatal at startup)
- Transport errors end the affected connection only
- Accept failures are logged by the event loop and accepting continues
"""

import asyncio
import logging
from typing import List, Optional, Set

from ..config import Settings
from ..observability import metrics
from ..observability.request_id import generate_request_id, set_request_id
from ..store.expiring_store import ExpiringStore
from . import replies
from .replies import Reply
from .session import MailSession

logger = logging.getLogger(__name__)

TRANSPORT_ERRORS = (ConnectionError, asyncio.IncompleteReadError, OSError)


class ListenerStartupError(Exception):
    """Raised when the listening socket cannot be bound."""
    pass


class SMTPListener:
    """Accepts SMTP connections and feeds them into MailSessions.

    Usage:
        listener = SMTPListener(store, host="127.0.0.1", port=2525)
        await listener.start()
        ...
        await listener.stop()
    """

    def __init__(
        self,
        store: ExpiringStore,
        host: str = "0.0.0.0",
        port: int = 2525,
        banner: str = "Simple SMTP Server",
        read_chunk_size: int = 1024,
        idle_timeout: Optional[float] = None,
        max_data_bytes: Optional[int] = None,
        max_recipients: Optional[int] = None,
    ):
        """Initialize listener.

        Args:
            store: Shared message store
            host: Bind address
            port: Listen port (0 picks a free port)
            banner: Server name used in greeting and EHLO replies
            read_chunk_size: Maximum bytes per socket read
            idle_timeout: Close connections silent for this many seconds
                (None = never)
            max_data_bytes: Per-message DATA size limit (None = unbounded)
            max_recipients: Per-transaction RCPT limit (None = unbounded)
        """
        self.store = store
        self.host = host
        self.port = port
        self.banner = banner
        self.read_chunk_size = read_chunk_size
        self.idle_timeout = idle_timeout
        self.max_data_bytes = max_data_bytes
        self.max_recipients = max_recipients

        self._server: Optional[asyncio.AbstractServer] = None
        self._writers: Set[asyncio.StreamWriter] = set()

    @classmethod
    def from_settings(cls, store: ExpiringStore, settings: Settings) -> "SMTPListener":
        return cls(
            store,
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            banner=settings.SMTP_BANNER,
            read_chunk_size=settings.SMTP_READ_CHUNK_SIZE,
            idle_timeout=settings.SMTP_IDLE_TIMEOUT,
            max_data_bytes=settings.SMTP_MAX_DATA_BYTES,
            max_recipients=settings.SMTP_MAX_RECIPIENTS,
        )

    @property
    def is_serving(self) -> bool:
        return self._server is not None and self._server.is_serving()

    @property
    def bound_port(self) -> Optional[int]:
        """Port actually bound, useful when constructed with port 0."""
        if self._server is None or not self._server.sockets:
            return None
        return self._server.sockets[0].getsockname()[1]

    def create_session(self) -> MailSession:
        return MailSession(
            self.store,
            banner=self.banner,
            max_data_bytes=self.max_data_bytes,
            max_recipients=self.max_recipients,
        )

    async def start(self) -> None:
        """Bind the listening socket and begin accepting.

        Raises:
            ListenerStartupError: If the address cannot be bound
        """
        try:
            self._server = await asyncio.start_server(
                self.handle_connection,
                self.host,
                self.port,
            )
        except OSError as e:
            logger.error(f"Failed to bind mail listener on {self.host}:{self.port}: {e}")
            raise ListenerStartupError(f"Cannot bind {self.host}:{self.port}: {e}") from e

        logger.info(f"Mail server starting on {self.host}:{self.bound_port}...")

    async def stop(self) -> None:
        """Stop accepting and drop every open connection."""
        if self._server is None:
            return
        self._server.close()
        for writer in list(self._writers):
            writer.close()
        await self._server.wait_closed()
        self._server = None
        logger.info("Mail server stopped")

    async def serve_forever(self) -> None:
        """Start (if needed) and serve until cancelled."""
        if self._server is None:
            await self.start()
        try:
            await self._server.serve_forever()
        finally:
            await self.stop()

    async def _send(self, writer: asyncio.StreamWriter, out: List[Reply]) -> None:
        writer.write(b"".join(reply.encode() for reply in out))
        await writer.drain()

    async def _read(self, reader: asyncio.StreamReader) -> Optional[bytes]:
        """Read one chunk. Returns None if the idle timeout elapsed."""
        if self.idle_timeout is None:
            return await reader.read(self.read_chunk_size)
        try:
            return await asyncio.wait_for(reader.read(self.read_chunk_size), self.idle_timeout)
        except asyncio.TimeoutError:
            return None

    async def handle_connection(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        """Run one SMTP conversation until QUIT, EOF or a transport error."""
        set_request_id(generate_request_id())
        peer = writer.get_extra_info("peername")
        self._writers.add(writer)
        metrics.smtp_connections_total.inc()
        metrics.smtp_active_connections.inc()
        logger.info(f"New connection from {peer}", extra={"peer": peer})

        session = self.create_session()
        try:
            await self._send(writer, [session.start()])

            while not session.closed:
                chunk = await self._read(reader)
                if chunk is None:
                    logger.info(f"Idle timeout after {self.idle_timeout}s, closing", extra={"peer": peer})
                    await self._send(writer, [replies.closing_idle(self.banner)])
                    break
                if not chunk:
                    logger.info("Client connection closed", extra={"peer": peer})
                    break

                out = session.feed(chunk)
                if out:
                    await self._send(writer, out)

        except TRANSPORT_ERRORS as e:
            metrics.smtp_transport_errors_total.labels(error_type=type(e).__name__).inc()
            logger.warning(f"Transport error on connection from {peer}: {e}", extra={"peer": peer})
        except Exception as e:
            logger.error(f"Error handling SMTP connection: {e}", exc_info=True)
        finally:
            session.close()
            self._writers.discard(writer)
            metrics.smtp_active_connections.dec()
            writer.close()
            try:
                await writer.wait_closed()
            except TRANSPORT_ERRORS as e:
                logger.debug(f"Error while closing connection from {peer}: {e}")
