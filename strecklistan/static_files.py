"""Serve static files for requests that no route handled."""

from __future__ import annotations

import functools
import hashlib
import logging
import mimetypes
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from http import HTTPStatus
from pathlib import Path
from urllib.parse import unquote

log = logging.getLogger(__name__)


@functools.cache
def _start_time() -> int:
    return int(datetime.now(timezone.utc).timestamp())


def generate_etag(path: str | os.PathLike[str]) -> str:
    """An ETag derived from the path and the time the process started."""
    hasher = hashlib.sha256(os.fsencode(path))
    hasher.update(_start_time().to_bytes(8, "big", signed=True))
    return hasher.hexdigest()


@dataclass
class FileResponse:
    """A response carrying a file, or none for 304 Not Modified."""

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""


def _named_file(path: Path) -> FileResponse:
    body = path.read_bytes()
    headers = {}
    content_type, _ = mimetypes.guess_type(path.name)
    if content_type is not None:
        headers["Content-Type"] = content_type
    return FileResponse(HTTPStatus.OK, headers, body)


def _header(headers: Mapping[str, str] | None, name: str) -> str | None:
    if not headers:
        return None
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


@dataclass
class CachedFile:
    """A file served with ETag and Cache-Control headers."""

    etag: str
    cache_control: str
    file: FileResponse | None = None

    @classmethod
    def open(
        cls,
        path: str | os.PathLike[str],
        req_etag: str | None,
        cache_control: str,
    ) -> CachedFile:
        """Read the file unless the client's ETag is still current."""
        path = Path(path)
        etag = generate_etag(path)
        file = None if req_etag is not None and req_etag == etag else _named_file(path)
        return cls(etag, cache_control, file)

    def to_response(self) -> FileResponse:
        if self.file is None:
            response = FileResponse(HTTPStatus.NOT_MODIFIED)
        else:
            response = FileResponse(
                self.file.status, dict(self.file.headers), self.file.body
            )
        response.headers["ETag"] = self.etag
        response.headers["Cache-Control"] = self.cache_control
        return response


@dataclass
class FileResponder:
    """Replace 404 responses with a file from ``folder`` when one exists."""

    folder: str
    enable_cache: bool = False
    max_age: int = 0

    def _open(self, path: Path, headers: Mapping[str, str] | None) -> FileResponse | None:
        if not path.is_file():
            return None
        try:
            if self.enable_cache:
                cache_control = f"must-revalidate, max-age={self.max_age}"
                req_etag = _header(headers, "If-None-Match")
                return CachedFile.open(path, req_etag, cache_control).to_response()
            return _named_file(path)
        except OSError:
            return None

    def on_response(
        self,
        path: str,
        status: int,
        headers: Mapping[str, str] | None = None,
    ) -> FileResponse | None:
        """A file response to use instead, or None to keep the original."""
        if status != HTTPStatus.NOT_FOUND:
            return None

        raw_segments = [s for s in path.split("?", 1)[0].split("/") if s]
        if raw_segments[:1] == ["api"]:
            return None

        segments = [unquote(s) for s in raw_segments]
        if any(s in (".", "..") or "/" in s or "\\" in s or "\0" in s for s in segments):
            return None

        root = Path(self.folder)
        file_path = root.joinpath(*segments)
        response = self._open(file_path, headers)
        if response is None:
            if len(segments) > 1:
                return None
            file_path = root / "index.html"
            response = self._open(file_path, headers)
            if response is None:
                return None

        log.info("FileResponder: intercepted 404, responding with file %s", file_path)
        return response