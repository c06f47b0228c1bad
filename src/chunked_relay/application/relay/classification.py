"""Best-effort content classification from filename and content type."""

from __future__ import annotations

import mimetypes

from chunked_relay.domain.entities import ContentAttributes, ContentKind

_STREAMABLE_VIDEO_EXTENSIONS = frozenset({".mp4", ".mkv", ".webm", ".mov", ".m4v"})
_GENERIC_MIME_TYPE = "application/octet-stream"


def classify_content(filename: str, content_type: str | None = None) -> ContentAttributes:
    """Map a filename to the attributes advertised on compose.

    Both kinds go through the same compose call; only the attributes differ.
    """

    lowered = filename.lower()
    extension = lowered[lowered.rfind(".") :] if "." in lowered else ""
    guessed, _ = mimetypes.guess_type(lowered)
    declared = _normalize_content_type(content_type)

    if extension in _STREAMABLE_VIDEO_EXTENSIONS:
        mime_type = guessed or (declared if declared.startswith("video/") else "video/mp4")
        return ContentAttributes(
            kind=ContentKind.VIDEO,
            mime_type=mime_type,
            supports_streaming=True,
        )

    return ContentAttributes(
        kind=ContentKind.DOCUMENT,
        mime_type=guessed or declared or _GENERIC_MIME_TYPE,
    )


def _normalize_content_type(content_type: str | None) -> str:
    if content_type is None:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


__all__ = ["classify_content"]
