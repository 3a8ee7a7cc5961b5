from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Generic, Optional, TypeVar, Union

from impactmining.errors import AppError, AuthError, AuthRequired, NotFound

log = logging.getLogger(__name__)

T = TypeVar("T")


class ErrorKind(str, Enum):
    BACKEND = "backend"
    NOT_FOUND = "not_found"
    AUTH = "auth"


@dataclass(frozen=True)
class Idle:
    tag = "idle"


@dataclass(frozen=True)
class Loading:
    key: Any = None
    tag = "loading"


@dataclass(frozen=True)
class Loaded(Generic[T]):
    value: T
    tag = "loaded"


@dataclass(frozen=True)
class Failed:
    kind: ErrorKind
    message: str = ""
    tag = "failed"


State = Union[Idle, Loading, Loaded, Failed]


def error_kind(error: BaseException) -> ErrorKind:
    if isinstance(error, NotFound):
        return ErrorKind.NOT_FOUND
    if isinstance(error, (AuthError, AuthRequired)):
        return ErrorKind.AUTH
    return ErrorKind.BACKEND


class Fetchable(Generic[T]):
    """
    Idle -> Loading -> Loaded(value) | Failed(kind)

    Every ``begin`` hands out a generation token. ``settle``/``fail`` calls that
    carry an older token are dropped, so only the most recent load can land.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self.state: State = Idle()
        self._generation = 0

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Fetchable {self.name} {self.state.tag}>"

    # ── Reducer ─────────────────────────────────────────────────
    def begin(self, key: Any = None) -> int:
        self._generation += 1
        self.state = Loading(key)
        return self._generation

    def is_current(self, token: int) -> bool:
        return token == self._generation

    def settle(self, token: int, value: T) -> bool:
        if not self.is_current(token):
            log.debug("%s: dropping stale result (token %s < %s)", self.name, token, self._generation)
            return False
        self.state = Loaded(value)
        return True

    def fail(self, token: int, error: BaseException) -> bool:
        if not self.is_current(token):
            log.debug("%s: dropping stale failure (token %s < %s)", self.name, token, self._generation)
            return False
        kind = error_kind(error)
        if kind is ErrorKind.NOT_FOUND:
            log.info("%s: not found (%s)", self.name, error)
        else:
            log.error("Error fetching %s: %s", self.name, error)
        self.state = Failed(kind, str(error))
        return True

    def load(self, loader: Callable[[], T], key: Any = None) -> "Fetchable[T]":
        token = self.begin(key)
        try:
            value = loader()
        except AppError as e:
            self.fail(token, e)
        else:
            self.settle(token, value)
        return self

    # ── Template helpers ────────────────────────────────────────
    @property
    def tag(self) -> str:
        return self.state.tag

    @property
    def loading(self) -> bool:
        return isinstance(self.state, Loading)

    @property
    def loaded(self) -> bool:
        return isinstance(self.state, Loaded)

    @property
    def failed(self) -> bool:
        return isinstance(self.state, Failed)

    @property
    def not_found(self) -> bool:
        return isinstance(self.state, Failed) and self.state.kind is ErrorKind.NOT_FOUND

    @property
    def value(self) -> Optional[T]:
        return self.state.value if isinstance(self.state, Loaded) else None

    def value_or(self, default: T) -> T:
        return self.state.value if isinstance(self.state, Loaded) else default
