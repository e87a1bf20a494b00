import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import httpx

from deskbridge.config import settings

DEFAULT_MIMETYPE = "application/octet-stream"


class MediaFetchError(Exception):
    """Raised when an attachment cannot be downloaded."""


@dataclass
class MediaPayload:
    data: bytes
    mimetype: str


def guess_extension(mime: str | None, file_name: str | None = None) -> str:
    if file_name:
        suffix = Path(file_name).suffix
        if suffix:
            return suffix
    if mime:
        ext = mimetypes.guess_extension(mime.split(";")[0].strip())
        if ext:
            return ext
    return ""


def guess_mimetype(file_name: str | None, declared: str | None = None) -> str:
    if declared and declared.strip():
        return declared.strip()
    if file_name:
        guessed, _ = mimetypes.guess_type(file_name)
        if guessed:
            return guessed
    return DEFAULT_MIMETYPE


def file_name_from_url(url: str, default: str = "file") -> str:
    try:
        name = Path(urlparse(url).path).name
    except ValueError:
        return default
    return name or default


def fetch_media(
    url: str,
    *,
    timeout: Optional[float] = None,
    max_bytes: Optional[int] = None,
    transport: httpx.BaseTransport | None = None,
) -> MediaPayload:
    """Download an attachment and report its MIME type."""
    if not url:
        raise MediaFetchError("missing_url")
    parsed = urlparse(url)
    if parsed.scheme not in {"http", "https"}:
        raise MediaFetchError(f"unsupported_scheme:{parsed.scheme}")

    limit = settings.media_max_bytes if max_bytes is None else max_bytes
    data = bytearray()
    try:
        with httpx.Client(
            timeout=timeout or settings.media_fetch_timeout_seconds,
            follow_redirects=True,
            transport=transport,
        ) as client:
            with client.stream("GET", url) as response:
                response.raise_for_status()
                content_type = response.headers.get("content-type", "")
                for chunk in response.iter_bytes():
                    if not chunk:
                        continue
                    data.extend(chunk)
                    if limit and len(data) > limit:
                        raise MediaFetchError("too_large")
    except httpx.HTTPError as exc:
        raise MediaFetchError(f"download_failed:{exc}") from exc

    mimetype = content_type.split(";")[0].strip() if content_type else ""
    if not mimetype or mimetype == DEFAULT_MIMETYPE:
        mimetype = guess_mimetype(file_name_from_url(url, default=""))
    return MediaPayload(data=bytes(data), mimetype=mimetype)
