"""SMTP reply codes and wire encoding.

Replies are one or more CRLF-terminated lines starting with a three-digit
code. Multi-line replies put ``-`` after the code on every line but the
last.
"""

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class Reply:
    """A server reply: status code plus one or more text lines."""
    code: int
    lines: Tuple[str, ...]

    @classmethod
    def single(cls, code: int, text: str) -> "Reply":
        return cls(code, (text,))

    def encode(self) -> bytes:
        """Encode reply for the wire.

        Example:
            >>> Reply(250, ("a", "b")).encode()
            b'250-a\\r\\n250 b\\r\\n'
        """
        out = []
        last = len(self.lines) - 1
        for i, line in enumerate(self.lines):
            sep = " " if i == last else "-"
            out.append(f"{self.code}{sep}{line}\r\n")
        return "".join(out).encode("utf-8")

    def __str__(self) -> str:
        return self.encode().decode("utf-8").rstrip("\r\n").replace("\r\n", " | ")


def greeting(banner: str) -> Reply:
    return Reply.single(220, banner)


def capabilities(banner: str) -> Reply:
    """EHLO/HELO capability banner."""
    return Reply(250, (banner, "SIZE 10240000", "8BITMIME", "HELP"))


def closing_idle(banner: str) -> Reply:
    return Reply.single(421, f"{banner} closing connection")


OK = Reply.single(250, "Ok")
MESSAGE_ACCEPTED = Reply.single(250, "Ok: message accepted")
BYE = Reply.single(221, "Bye")
START_MAIL_INPUT = Reply.single(354, "Start mail input; end with <CRLF>.<CRLF>")
TOO_MANY_RECIPIENTS = Reply.single(452, "Too many recipients")
UNKNOWN_COMMAND = Reply.single(500, "Unknown command")
SYNTAX_ERROR = Reply.single(501, "Syntax error in parameters or arguments")
BAD_SEQUENCE = Reply.single(503, "Bad sequence of commands")
MESSAGE_TOO_BIG = Reply.single(552, "Message exceeds fixed maximum message size")
