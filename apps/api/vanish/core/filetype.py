from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass

SNIFF_LENGTH = 12
BINARY_SAMPLE_SIZE = 1024


@dataclass(frozen=True)
class FileType:
    extension: str
    mime_type: str
    label: str


BINARY = FileType(extension="bin", mime_type="application/octet-stream", label="Binary")


def _prefix(magic: bytes) -> Callable[[bytes], bool]:
    return lambda head: head.startswith(magic)


def _riff_webp(head: bytes) -> bool:
    return head[:4] == b"RIFF" and head[8:12] == b"WEBP"


def _iso_bmff(head: bytes) -> bool:
    return head[4:8] == b"ftyp"


def _quicktime(head: bytes) -> bool:
    return _iso_bmff(head) and head[8:10] == b"qt"


# Order matters: QuickTime is an ISO-BMFF brand and must win over MP4.
_SIGNATURES: tuple[tuple[Callable[[bytes], bool], FileType], ...] = (
    (_prefix(b"\x89PNG"), FileType("png", "image/png", "PNG Image")),
    (_prefix(b"\xff\xd8\xff"), FileType("jpg", "image/jpeg", "JPEG Image")),
    (_prefix(b"GIF"), FileType("gif", "image/gif", "GIF Image")),
    (_riff_webp, FileType("webp", "image/webp", "WebP Image")),
    (_prefix(b"\x1a\x45\xdf\xa3"), FileType("webm", "video/webm", "WebM Video")),
    (_quicktime, FileType("mov", "video/quicktime", "QuickTime Video")),
    (_iso_bmff, FileType("mp4", "video/mp4", "MP4 Video")),
    (_prefix(b"ID3"), FileType("mp3", "audio/mpeg", "MP3 Audio")),
    (_prefix(b"fLaC"), FileType("flac", "audio/flac", "FLAC Audio")),
    (_prefix(b"%PDF"), FileType("pdf", "application/pdf", "PDF Document")),
    (_prefix(b"PK\x03\x04"), FileType("zip", "application/zip", "ZIP Archive")),
    (_prefix(b"\x1f\x8b"), FileType("gz", "application/gzip", "Gzip Archive")),
)


def classify(data: bytes) -> FileType:
    """Best-effort rendering hint for decrypted bytes. Never raises."""
    if len(data) < SNIFF_LENGTH:
        return BINARY
    head = bytes(data[:SNIFF_LENGTH])
    for matches, file_type in _SIGNATURES:
        if matches(head):
            return file_type
    return BINARY


def looks_binary(data: bytes) -> bool:
    return b"\x00" in data[:BINARY_SAMPLE_SIZE]


def guess_text_kind(text: str) -> str:
    if text.startswith(("{", "[")):
        try:
            json.loads(text)
        except ValueError:
            return "text"
        return "json"
    if text.startswith(("<!DOCTYPE", "<html")):
        return "html"
    if text.startswith(("---\n", "# ")):
        return "markdown"
    return "text"
