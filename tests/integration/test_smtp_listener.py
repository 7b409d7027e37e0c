"""Integration tests for the asyncio mail listener

Real TCP connections against a listener bound to a free loopback port:
- Full transactions, in one write or byte by byte
- Several clients at once
- Disconnects, idle timeout and shutdown
"""

import asyncio

import pytest

from tmpmail.smtp.listener import ListenerStartupError, SMTPListener
from tmpmail.store.expiring_store import ExpiringStore

pytestmark = [pytest.mark.integration, pytest.mark.asyncio]

READ_TIMEOUT = 5


async def read_reply(reader: asyncio.StreamReader) -> bytes:
    """Read one complete (possibly multi-line) reply."""
    lines = []
    while True:
        line = await asyncio.wait_for(reader.readline(), READ_TIMEOUT)
        assert line, "connection closed while waiting for a reply"
        lines.append(line)
        if line[3:4] != b"-":
            return b"".join(lines)


async def connect(listener: SMTPListener):
    reader, writer = await asyncio.open_connection("127.0.0.1", listener.bound_port)
    greeting = await read_reply(reader)
    assert greeting == b"220 Simple SMTP Server\r\n"
    return reader, writer


async def command(reader, writer, line: bytes) -> bytes:
    writer.write(line)
    await writer.drain()
    return await read_reply(reader)


async def send_mail(reader, writer, sender: bytes, recipient: bytes, data: bytes) -> None:
    assert (await command(reader, writer, b"EHLO test\r\n")).startswith(b"250-")
    assert await command(reader, writer, b"MAIL FROM:<" + sender + b">\r\n") == b"250 Ok\r\n"
    assert await command(reader, writer, b"RCPT TO:<" + recipient + b">\r\n") == b"250 Ok\r\n"
    assert (await command(reader, writer, b"DATA\r\n")).startswith(b"354 ")
    assert await command(reader, writer, data) == b"250 Ok: message accepted\r\n"


async def close(writer: asyncio.StreamWriter) -> None:
    writer.close()
    try:
        await writer.wait_closed()
    except ConnectionError:
        pass


class TestConversation:
    """Test complete conversations over TCP"""

    async def test_end_to_end(self, listener):
        reader, writer = await connect(listener)

        await send_mail(reader, writer, b"a@x.com", b"b@y.com", b"Subject: Hi\r\n\r\nHello\r\n.\r\n")

        message = listener.store.get("b@y.com")
        assert message.subject == "Hi"
        assert message.body == "Hello"
        assert message.sender == "a@x.com"
        await close(writer)

    async def test_ehlo_reply_is_multiline(self, listener):
        reader, writer = await connect(listener)
        reply = await command(reader, writer, b"EHLO test\r\n")
        assert reply == (
            b"250-Simple SMTP Server\r\n"
            b"250-SIZE 10240000\r\n"
            b"250-8BITMIME\r\n"
            b"250 HELP\r\n"
        )
        await close(writer)

    async def test_byte_by_byte_writes(self, listener):
        reader, writer = await connect(listener)
        await command(reader, writer, b"MAIL FROM:<a@x.com>\r\n")
        await command(reader, writer, b"RCPT TO:<slow@y.com>\r\n")
        await command(reader, writer, b"DATA\r\n")

        payload = b"Subject: Drip\r\n\r\none byte at a time\r\n.\r\n"
        for i in range(len(payload)):
            writer.write(payload[i:i + 1])
            await writer.drain()

        assert await read_reply(reader) == b"250 Ok: message accepted\r\n"
        assert listener.store.get("slow@y.com").body == "one byte at a time"
        await close(writer)

    async def test_quit_closes_connection(self, listener):
        reader, writer = await connect(listener)
        assert await command(reader, writer, b"QUIT\r\n") == b"221 Bye\r\n"
        assert await asyncio.wait_for(reader.read(), READ_TIMEOUT) == b""
        await close(writer)

    async def test_sequence_errors_keep_connection_open(self, listener):
        reader, writer = await connect(listener)
        assert await command(reader, writer, b"DATA\r\n") == b"503 Bad sequence of commands\r\n"
        assert await command(reader, writer, b"VRFY someone\r\n") == b"500 Unknown command\r\n"
        assert await command(reader, writer, b"NOOP\r\n") == b"250 Ok\r\n"
        await close(writer)


class TestConcurrency:
    """Test independent connections sharing one store"""

    async def test_concurrent_clients(self, listener):
        async def client(n: int) -> None:
            reader, writer = await connect(listener)
            await send_mail(
                reader, writer,
                f"sender{n}@x.com".encode(),
                f"user{n}@y.com".encode(),
                f"Subject: Message {n}\r\n\r\nbody {n}\r\n.\r\n".encode(),
            )
            await close(writer)

        await asyncio.gather(*(client(n) for n in range(10)))

        for n in range(10):
            message = listener.store.get(f"user{n}@y.com")
            assert message.subject == f"Message {n}"
            assert message.sender == f"sender{n}@x.com"

    async def test_disconnect_mid_data_does_not_affect_others(self, listener):
        reader_a, writer_a = await connect(listener)
        reader_b, writer_b = await connect(listener)

        await command(reader_a, writer_a, b"MAIL FROM:<a@x.com>\r\n")
        await command(reader_a, writer_a, b"RCPT TO:<dropped@y.com>\r\n")
        await command(reader_a, writer_a, b"DATA\r\n")
        writer_a.write(b"Subject: never finished\r\n\r\npartial")
        await writer_a.drain()
        await close(writer_a)

        await send_mail(reader_b, writer_b, b"b@x.com", b"kept@y.com", b"Subject: Fine\r\n\r\nok\r\n.\r\n")

        assert listener.store.get("dropped@y.com") is None
        assert listener.store.get("kept@y.com").subject == "Fine"
        await close(writer_b)

    async def test_new_connection_accepted_after_disconnect(self, listener):
        _, writer = await connect(listener)
        await close(writer)

        reader, writer = await connect(listener)
        assert await command(reader, writer, b"NOOP\r\n") == b"250 Ok\r\n"
        await close(writer)


class TestGuards:
    """Test listener-level limits"""

    async def test_idle_timeout(self):
        listener = SMTPListener(
            ExpiringStore(ttl_seconds=60),
            host="127.0.0.1",
            port=0,
            idle_timeout=0.2,
        )
        await listener.start()
        try:
            reader, writer = await connect(listener)
            reply = await read_reply(reader)
            assert reply == b"421 Simple SMTP Server closing connection\r\n"
            assert await asyncio.wait_for(reader.read(), READ_TIMEOUT) == b""
            await close(writer)
        finally:
            await listener.stop()

    async def test_data_limit_over_tcp(self):
        listener = SMTPListener(
            ExpiringStore(ttl_seconds=60),
            host="127.0.0.1",
            port=0,
            max_data_bytes=32,
        )
        await listener.start()
        try:
            reader, writer = await connect(listener)
            await command(reader, writer, b"MAIL FROM:<a@x.com>\r\n")
            await command(reader, writer, b"RCPT TO:<b@y.com>\r\n")
            await command(reader, writer, b"DATA\r\n")
            reply = await command(reader, writer, b"Subject: big\r\n\r\n" + b"z" * 4000 + b"\r\n.\r\n")
            assert reply.startswith(b"552 ")
            assert listener.store.get("b@y.com") is None
            await close(writer)
        finally:
            await listener.stop()


class TestLifecycle:
    """Test bind and shutdown behaviour"""

    async def test_bound_port_reported(self, listener):
        assert listener.is_serving is True
        assert listener.bound_port > 0

    async def test_bind_conflict_raises(self, listener):
        second = SMTPListener(ExpiringStore(), host="127.0.0.1", port=listener.bound_port)
        with pytest.raises(ListenerStartupError):
            await second.start()
        assert second.is_serving is False

    async def test_stop_drops_open_connections(self):
        listener = SMTPListener(ExpiringStore(ttl_seconds=60), host="127.0.0.1", port=0)
        await listener.start()
        reader, writer = await connect(listener)

        await listener.stop()

        try:
            remaining = await asyncio.wait_for(reader.read(), READ_TIMEOUT)
        except ConnectionError:
            remaining = b""
        assert remaining == b""
        assert listener.is_serving is False
        await close(writer)

    async def test_stop_without_start(self):
        listener = SMTPListener(ExpiringStore(), host="127.0.0.1", port=0)
        await listener.stop()
        assert listener.bound_port is None
