"""State kept by the user interface: notifications, inputs and selections."""

from __future__ import annotations

import dataclasses
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, Protocol, TypeVar

T = TypeVar("T")

NotificationId = int


@dataclass(frozen=True)
class FuzzyCharMatch:
    """A character of the search string found in the searched string."""

    base_str_index: int = 0
    search_str_index: int = 0


@dataclass
class FuzzyScore:
    """How well a string matched a search; scores order by ``score`` alone."""

    score: int = 0
    matches: list[FuzzyCharMatch] = field(default_factory=list)

    def __lt__(self, other: FuzzyScore) -> bool:
        if not isinstance(other, FuzzyScore):
            return NotImplemented
        return self.score < other.score

    def __le__(self, other: FuzzyScore) -> bool:
        if not isinstance(other, FuzzyScore):
            return NotImplemented
        return self.score <= other.score

    def __gt__(self, other: FuzzyScore) -> bool:
        if not isinstance(other, FuzzyScore):
            return NotImplemented
        return self.score > other.score

    def __ge__(self, other: FuzzyScore) -> bool:
        if not isinstance(other, FuzzyScore):
            return NotImplemented
        return self.score >= other.score


class FuzzySearch(Protocol):
    def compare_fuzzy(self, search: str) -> FuzzyScore: ...


@dataclass(frozen=True)
class Notification:
    title: str
    body: str | None = None


@dataclass(frozen=True)
class ShowNotification:
    duration_ms: int
    notification: Notification


@dataclass(frozen=True)
class RemoveNotification:
    id: NotificationId


class NotificationManager:
    """Notifications on screen, each removed again after its duration."""

    def __init__(self) -> None:
        self._next_id: NotificationId = 0
        self._notifications: dict[NotificationId, Notification] = {}

    def update(
        self,
        msg: ShowNotification | RemoveNotification,
        schedule: Callable[[int, RemoveNotification], Any],
    ) -> None:
        """Apply ``msg``; ``schedule`` delivers a removal after a delay in ms."""
        if isinstance(msg, ShowNotification):
            notification_id = self._next_id
            self._next_id += 1
            self._notifications[notification_id] = msg.notification
            schedule(msg.duration_ms, RemoveNotification(notification_id))
        elif isinstance(msg, RemoveNotification):
            self._notifications.pop(msg.id, None)
        else:
            raise TypeError(f"unknown notification message: {msg!r}")

    def notifications(self) -> list[tuple[NotificationId, Notification]]:
        """The shown notifications, oldest first."""
        return sorted(self._notifications.items())


@dataclass
class ParsedInput(Generic[T]):
    """A text field whose contents are parsed as the user types."""

    text: str
    parse: Callable[[str], T]
    input_kind: str = "text"
    error_message: str | None = None
    value: T | None = field(init=False, default=None)

    def __post_init__(self) -> None:
        self.text = str(self.text)
        self.value = self._try_parse(self.text)

    def _try_parse(self, text: str) -> T | None:
        try:
            return self.parse(text)
        except ValueError:
            return None

    def with_error_message(self, error_message: str) -> ParsedInput[T]:
        return dataclasses.replace(self, error_message=error_message)

    def with_input_kind(self, input_kind: str) -> ParsedInput[T]:
        return dataclasses.replace(self, input_kind=input_kind)

    def update(self, text: str) -> None:
        """Take new text from the user and parse it."""
        self.value = self._try_parse(text)
        self.text = text

    def set_value(self, value: T) -> None:
        self.text = str(value)
        self.value = value

    def error(self) -> str | None:
        """The message to show while the text does not parse."""
        if self.value is None:
            return self.error_message
        return None


@dataclass
class SelectInput(Generic[T]):
    """A choice among options, each shown by its label."""

    options: Sequence[T]
    display: Callable[[T], str]
    selected: T = field(init=False)

    def __post_init__(self) -> None:
        self.options = list(self.options)
        if not self.options:
            raise ValueError("a select input needs at least one option")
        self.selected = self.options[0]

    def select_str(self, text: str) -> T:
        """Select the option labelled ``text``; raises ValueError if none is."""
        for option in self.options:
            if self.display(option) == text:
                self.select(option)
                return option
        raise ValueError(f"no option labelled {text!r}")

    def select(self, option: T) -> None:
        self.selected = option

    def labels(self) -> list[str]:
        return [self.display(option) for option in self.options]