"""Serialize responses in the format the client asks for in ``Accept``."""

from __future__ import annotations

import enum
import json
import logging
import math
import re
from dataclasses import dataclass
from datetime import datetime
from http import HTTPStatus
from typing import Any

import msgpack

from strecklistan.currency import AbsCurrency, Currency
from strecklistan.status import StatusJson

log = logging.getLogger(__name__)

DEFAULT_QUALITY_WEIGHT = 1.0

_MEDIA_NAME = re.compile(r"[A-Za-z0-9!#$&^_.+*-]+")
_INDENT = "    "


@dataclass(frozen=True)
class MediaRange:
    """One entry of an ``Accept`` header; type names are lower case."""

    top: str
    sub: str
    params: tuple[tuple[str, str], ...] = ()
    weight: float | None = None

    def weight_or(self, default: float) -> float:
        return default if self.weight is None else self.weight

    def __str__(self) -> str:
        return f"{self.top}/{self.sub}"


def parse_accept(header: str) -> list[MediaRange]:
    """Parse an ``Accept`` header, raising ValueError if it is malformed."""
    ranges = []
    for entry in header.split(","):
        entry = entry.strip()
        if not entry:
            continue
        media, *raw_params = (part.strip() for part in entry.split(";"))
        top, sep, sub = media.partition("/")
        if not sep or not _MEDIA_NAME.fullmatch(top) or not _MEDIA_NAME.fullmatch(sub):
            raise ValueError(f"malformed media type {media!r}")
        params = []
        weight = None
        for raw in raw_params:
            if not raw:
                continue
            key, sep, value = raw.partition("=")
            key = key.strip().lower()
            value = value.strip().strip('"')
            if not sep or not key:
                raise ValueError(f"malformed media parameter {raw!r}")
            if key == "q":
                weight = float(value)
                if not math.isfinite(weight) or not 0.0 <= weight <= 1.0:
                    raise ValueError(f"quality value out of range: {value!r}")
            else:
                params.append((key, value))
        ranges.append(MediaRange(top.lower(), sub.lower(), tuple(params), weight))
    return ranges


def _plain(value: Any) -> Any:
    """Reduce models and containers to plain serializable data."""
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        value = to_dict()
    if isinstance(value, Currency):
        return int(value)
    if isinstance(value, AbsCurrency):
        return int(value.to_currency())
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {_plain(key): _plain(item) for key, item in value.items()}
    if isinstance(value, tuple):
        return tuple(_plain(item) for item in value)
    if isinstance(value, list):
        return [_plain(item) for item in value]
    return value


def _ron(value: Any, depth: int) -> str:
    if value is None:
        return "None"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return repr(value)
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, tuple):
        return "(" + ", ".join(_ron(item, depth) for item in value) + ")"

    inner = _INDENT * (depth + 1)
    outer = _INDENT * depth
    if isinstance(value, list):
        if not value:
            return "[]"
        lines = "".join(f"{inner}{_ron(item, depth + 1)},\n" for item in value)
        return f"[\n{lines}{outer}]"
    if isinstance(value, dict):
        if not value:
            return "{}"
        lines = "".join(
            f"{inner}{_ron(key, depth + 1)}: {_ron(item, depth + 1)},\n"
            for key, item in value.items()
        )
        return f"{{\n{lines}{outer}}}"
    raise TypeError(f"cannot serialize {type(value).__name__} as RON")


def to_ron(value: Any) -> str:
    """Pretty-printed RON text for ``value``."""
    return _ron(_plain(value), 0)


class Encoding(enum.Enum):
    """Supported response formats; the first one is the default."""

    JSON = "application/json"
    RON = "application/ron"
    MSGPACK = "application/msgpack"

    def mime(self) -> str:
        return self.value

    def serialize(self, value: Any) -> bytes:
        plain = _plain(value)
        if self is Encoding.JSON:
            return json.dumps(plain, ensure_ascii=False, separators=(",", ":")).encode()
        if self is Encoding.RON:
            return _ron(plain, 0).encode()
        return msgpack.packb(plain, use_bin_type=True)

    def matches(self, media: MediaRange) -> bool:
        top, _, sub = self.mime().partition("/")
        if media.sub == "*":
            return media.top == "*" or media.top == top
        return media.top == top and media.sub == sub


@dataclass(frozen=True)
class Ser:
    """A value waiting to be serialized with a chosen encoding."""

    encoding: Encoding
    value: Any

    def respond(self) -> tuple[str, bytes]:
        """The content type and the serialized body."""
        try:
            body = self.encoding.serialize(self.value)
        except (TypeError, ValueError, OverflowError) as exc:
            log.error("error serializing response: %s", exc)
            raise StatusJson.from_status(HTTPStatus.INTERNAL_SERVER_ERROR) from exc
        return self.encoding.mime(), body


@dataclass(frozen=True)
class SerAccept:
    """The encoding chosen for a client from its ``Accept`` header."""

    encoding: Encoding = Encoding.JSON

    @classmethod
    def from_accept_header(cls, header: str | None) -> SerAccept:
        """Choose an encoding, raising StatusJson 406 if none is acceptable."""
        try:
            accepted = parse_accept(header) if header else []
        except ValueError:
            accepted = []

        if not accepted:
            return cls(next(iter(Encoding)))

        accepted.sort(key=lambda media: -media.weight_or(DEFAULT_QUALITY_WEIGHT))
        for media in accepted:
            for encoding in Encoding:
                if encoding.matches(media):
                    return cls(encoding)
        raise StatusJson.from_status(HTTPStatus.NOT_ACCEPTABLE)

    def ser(self, value: Any) -> Ser:
        return Ser(self.encoding, value)