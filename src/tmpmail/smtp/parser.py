"""Parser for raw DATA sections and the terminator scan.

Splits the bytes received between DATA and the terminator into headers
and body. Only the Subject header is extracted; attachments are not
decoded.
"""

from dataclasses import dataclass
from typing import List, Optional

TERMINATOR = b"\r\n.\r\n"

# A DATA section that is empty ends with ".\r\n" right after the DATA line
EMPTY_DATA = b".\r\n"


@dataclass
class ParsedData:
    """Subject and body extracted from a DATA section."""
    subject: str
    body: str


def find_terminator(buffer: bytes, start: int = 0, allow_empty: bool = True) -> Optional[int]:
    """Locate the end-of-data sequence in an accumulating buffer.

    Args:
        buffer: Bytes received since the DATA command
        start: Offset to resume scanning from. Callers pass a position a
            few bytes before the previous end of the buffer so a sequence
            split across reads is still found.
        allow_empty: Treat a buffer starting with ``.\\r\\n`` as an empty
            message. Only valid while the buffer still begins at the first
            byte after the DATA line.

    Returns:
        Optional[int]: Offset where message data ends, or None if the
            terminator has not arrived yet
    """
    if allow_empty and buffer[:len(EMPTY_DATA)] == EMPTY_DATA:
        return 0
    pos = buffer.find(TERMINATOR, max(start, 0))
    if pos == -1:
        return None
    return pos


def split_lines(text: str) -> List[str]:
    """Split on LF, dropping a trailing CR from each line.

    A final line break does not produce a trailing empty line.
    """
    if not text:
        return []
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def parse_message_data(raw: bytes) -> ParsedData:
    """Parse a raw DATA section into subject and body.

    Lines up to the first empty line are headers; everything after it,
    including further empty lines, is body. Header keys are matched
    case-insensitively and only ``subject`` is kept.

    Args:
        raw: Bytes preceding the terminator

    Returns:
        ParsedData: Extracted subject (empty if absent) and body
    """
    text = raw.decode("utf-8", errors="replace")

    subject = ""
    body_lines: List[str] = []
    in_headers = True

    for line in split_lines(text):
        if in_headers:
            if line == "":
                in_headers = False
                continue
            key, sep, value = line.partition(":")
            if not sep:
                continue
            if key.strip().casefold() == "subject":
                subject = value.strip()
        else:
            body_lines.append(line)

    return ParsedData(subject=subject, body="\n".join(body_lines))
