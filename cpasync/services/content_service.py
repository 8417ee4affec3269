"""CPA content codec: gzip for transit and CPA id extraction."""

from __future__ import annotations

import gzip
import re

_CPA_ID_RE = re.compile(r'cpaid="(?P<cpa_id>.+?)"')


def compress(text: str) -> bytes:
    """Gzip UTF-8 text. Output is deterministic for equal input."""
    return gzip.compress(text.encode("utf-8"), mtime=0)


def decompress(data: bytes) -> str:
    """Inverse of :func:`compress`."""
    return gzip.decompress(data).decode("utf-8")


def extract_document_id(text: str) -> str | None:
    """Return the value of the first ``cpaid`` attribute, or None if absent."""
    match = _CPA_ID_RE.search(text)
    if match is None:
        return None
    return match.group("cpa_id")
