"""Tagged outcome type returned by every foreground operation."""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


class ErrorKind(str, enum.Enum):
    VALIDATION = "validation"
    AUTHORIZATION = "authorization"
    NOT_FOUND = "not_found"
    STORE = "store"
    UPLOAD = "upload"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def success(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    message: str

    @property
    def success(self) -> bool:
        return False


Result = Union[Ok[Any], Err]


def validation_error(message: str) -> Err:
    return Err(ErrorKind.VALIDATION, message)


def authorization_error(message: str) -> Err:
    return Err(ErrorKind.AUTHORIZATION, message)


def not_found(message: str) -> Err:
    return Err(ErrorKind.NOT_FOUND, message)


def store_error(message: str) -> Err:
    return Err(ErrorKind.STORE, message)
