"""JSON error responses and the default error handlers."""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any, Callable

log = logging.getLogger(__name__)


class NotFoundInDatabase(LookupError):
    """Raised when a queried row does not exist."""


def _reason(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return ""


class StatusJson(Exception):
    """An HTTP status with a description, sent to clients as JSON.

    The body looks like ``{"status": 404, "description": "Not Found"}``.
    """

    def __init__(self, status: int, description: str) -> None:
        super().__init__(int(status), str(description))
        self.status = int(status)
        self.description = str(description)

    def __str__(self) -> str:
        return f"{self.status}: {self.description}"

    def __repr__(self) -> str:
        return f"StatusJson(status={self.status!r}, description={self.description!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StatusJson):
            return NotImplemented
        return (self.status, self.description) == (other.status, other.description)

    __hash__ = None  # type: ignore[assignment]

    @classmethod
    def from_status(cls, status: int) -> StatusJson:
        """A response described by the standard reason phrase of ``status``."""
        return cls(status, _reason(int(status)))

    @classmethod
    def from_exception(cls, error: BaseException) -> StatusJson:
        """Map an error raised while handling a request to a response."""
        if isinstance(error, StatusJson):
            return error
        if isinstance(error, NotFoundInDatabase):
            return cls(HTTPStatus.NOT_FOUND, "Not Found in Database")
        return cls(HTTPStatus.INTERNAL_SERVER_ERROR, str(error))

    def describe(self, description: str) -> StatusJson:
        """The same status with another description."""
        return StatusJson(self.status, description)

    def to_body(self) -> dict[str, Any]:
        """The JSON body of the response; the response is logged."""
        if self.status >= 400:
            log.warning(
                "Responding with status %s.\nDescription: %s",
                self.status,
                self.description,
            )
        else:
            log.info("Responding with status %s", self.status)
        return {"status": self.status, "description": self.description}


def not_found(request: Any) -> StatusJson:
    return StatusJson(HTTPStatus.NOT_FOUND, "Route Not Found")


def unauthorized(request: Any) -> StatusJson:
    return StatusJson.from_status(HTTPStatus.UNAUTHORIZED)


def bad_request(request: Any) -> StatusJson:
    return StatusJson.from_status(HTTPStatus.BAD_REQUEST)


def catchers() -> dict[int, Callable[[Any], StatusJson]]:
    """Error handlers keyed by the status code they handle."""
    return {404: not_found, 401: unauthorized, 400: bad_request}