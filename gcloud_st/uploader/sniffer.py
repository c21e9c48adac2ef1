"""
Content-type sniffing from leading file bytes.

Classifies the first 512 bytes of a file with the magic-byte rules of the
WHATWG MIME sniffing standard (the same table web servers use), so objects
get a Content-Type that matches what they contain rather than what their
name claims. Unknown binary content is reported as
application/octet-stream.

Example usage:
    >>> detect_content_type(b"\\x89PNG\\r\\n\\x1a\\n...")
    'image/png'
    >>> with open("site/index.html", "rb") as f:
    ...     sniff_content_type(f)
    'text/html; charset=utf-8'
"""

from typing import BinaryIO, Callable, List, Optional, Tuple

from gcloud_st.utils.errors import FileOpenError
from gcloud_st.utils.logging import get_logger

logger = get_logger(__name__)

SNIFF_LENGTH = 512
DEFAULT_CONTENT_TYPE = "application/octet-stream"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"

_WHITESPACE = b"\t\n\x0c\r "

# Tags that identify an HTML document when they open the content
_HTML_TAGS = [
    b"<!DOCTYPE HTML",
    b"<HTML",
    b"<HEAD",
    b"<SCRIPT",
    b"<IFRAME",
    b"<H1",
    b"<DIV",
    b"<FONT",
    b"<TABLE",
    b"<A",
    b"<STYLE",
    b"<TITLE",
    b"<B",
    b"<BODY",
    b"<BR",
    b"<P",
    b"<!--",
]

Matcher = Callable[[bytes], bool]


def _strip_leading_whitespace(data: bytes) -> bytes:
    return data.lstrip(_WHITESPACE)


def _html_matcher(tag: bytes) -> Matcher:
    def match(data: bytes) -> bool:
        data = _strip_leading_whitespace(data)
        if len(data) < len(tag) + 1:
            return False
        if data[: len(tag)].upper() != tag:
            return False
        # Tag must be terminated by a space or '>'
        return data[len(tag)] in b" >"

    return match


def _prefix(signature: bytes, skip_whitespace: bool = False) -> Matcher:
    def match(data: bytes) -> bool:
        if skip_whitespace:
            data = _strip_leading_whitespace(data)
        return data.startswith(signature)

    return match


def _riff(form_type: bytes) -> Matcher:
    """RIFF container: 'RIFF' + 4 size bytes + form type."""

    def match(data: bytes) -> bool:
        return data[:4] == b"RIFF" and data[8 : 8 + len(form_type)] == form_type

    return match


def _aiff(data: bytes) -> bool:
    return data[:4] == b"FORM" and data[8:12] == b"AIFF"


def _utf16(bom: bytes) -> Matcher:
    def match(data: bytes) -> bool:
        return data[:2] == bom

    return match


def _mp4(data: bytes) -> bool:
    """ISO base media file with an 'mp4' major or compatible brand."""
    if len(data) < 12:
        return False
    box_size = int.from_bytes(data[:4], "big")
    if box_size % 4 != 0 or len(data) < box_size:
        return False
    if data[4:8] != b"ftyp":
        return False
    for start in range(8, box_size, 4):
        if start == 12:
            # minor version field, not a brand
            continue
        if data[start : start + 3] == b"mp4":
            return True
    return False


# Ordered: the first matching rule wins
_SIGNATURES: List[Tuple[Matcher, str]] = [
    *[(_html_matcher(tag), "text/html; charset=utf-8") for tag in _HTML_TAGS],
    (_prefix(b"<?xml", skip_whitespace=True), "text/xml; charset=utf-8"),
    (_prefix(b"%PDF-"), "application/pdf"),
    (_prefix(b"%!PS-Adobe-"), "application/postscript"),
    (_utf16(b"\xfe\xff"), "text/plain; charset=utf-16be"),
    (_utf16(b"\xff\xfe"), "text/plain; charset=utf-16le"),
    (_prefix(b"\xef\xbb\xbf"), TEXT_CONTENT_TYPE),
    # Images
    (_prefix(b"\x00\x00\x01\x00"), "image/x-icon"),
    (_prefix(b"\x00\x00\x02\x00"), "image/x-icon"),
    (_prefix(b"BM"), "image/bmp"),
    (_prefix(b"GIF87a"), "image/gif"),
    (_prefix(b"GIF89a"), "image/gif"),
    (_riff(b"WEBPVP"), "image/webp"),
    (_prefix(b"\x89PNG\r\n\x1a\n"), "image/png"),
    (_prefix(b"\xff\xd8\xff"), "image/jpeg"),
    # Audio and video
    (_aiff, "audio/aiff"),
    (_prefix(b"ID3"), "audio/mpeg"),
    (_prefix(b"OggS\x00"), "application/ogg"),
    (_prefix(b"MThd\x00\x00\x00\x06"), "audio/midi"),
    (_riff(b"AVI "), "video/avi"),
    (_riff(b"WAVE"), "audio/wave"),
    (_mp4, "video/mp4"),
    (_prefix(b"\x1a\x45\xdf\xa3"), "video/webm"),
    # Fonts
    (_prefix(b"\x00\x01\x00\x00"), "font/ttf"),
    (_prefix(b"OTTO"), "font/otf"),
    (_prefix(b"ttcf"), "font/collection"),
    (_prefix(b"wOFF"), "font/woff"),
    (_prefix(b"wOF2"), "font/woff2"),
    # Archives
    (_prefix(b"\x1f\x8b\x08"), "application/x-gzip"),
    (_prefix(b"PK\x03\x04"), "application/zip"),
    (_prefix(b"Rar!\x1a\x07\x00"), "application/x-rar-compressed"),
    (_prefix(b"Rar!\x1a\x07\x01\x00"), "application/x-rar-compressed"),
    (_prefix(b"7z\xbc\xaf\x27\x1c"), "application/x-7z-compressed"),
    (_prefix(b"\x00asm"), "application/wasm"),
]

# Control bytes that never occur in text
_BINARY_BYTES = frozenset(
    list(range(0x00, 0x09)) + [0x0B] + list(range(0x0E, 0x1B)) + list(range(0x1C, 0x20))
)


def _looks_like_text(data: bytes) -> bool:
    return not any(byte in _BINARY_BYTES for byte in data)


def detect_content_type(data: bytes) -> str:
    """
    Classify leading bytes into a MIME type.

    Only the first 512 bytes are considered. Always returns a valid MIME
    type; application/octet-stream when nothing matched.

    Args:
        data: Leading bytes of the content

    Returns:
        MIME type string
    """
    data = data[:SNIFF_LENGTH]
    for matcher, content_type in _SIGNATURES:
        if matcher(data):
            return content_type
    if _looks_like_text(data):
        return TEXT_CONTENT_TYPE
    return DEFAULT_CONTENT_TYPE


def sniff_content_type(fileobj: BinaryIO, path: Optional[str] = None) -> str:
    """
    Sniff the content type of an open binary file.

    Reads up to 512 bytes from the current position and seeks back to it
    afterwards, so the same handle can be uploaded next.

    Args:
        fileobj: Binary file object opened for reading
        path: Path used in error messages

    Returns:
        MIME type string

    Raises:
        FileOpenError: If reading or seeking fails
    """
    name = path if path is not None else getattr(fileobj, "name", None)
    try:
        position = fileobj.tell()
        head = fileobj.read(SNIFF_LENGTH)
        fileobj.seek(position)
    except OSError as e:
        raise FileOpenError("Error reading file for content sniffing", str(name), e) from e

    content_type = detect_content_type(head)
    logger.debug(f"Sniffed {content_type} for {name}")
    return content_type

