"""
Result types for every operation that talks to the backend.

Backend calls never raise to their callers. They return either an
``Ok`` carrying the value or an ``Err`` carrying a message that can be
shown to the user as-is.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union


class ErrorKind(str, Enum):
    VALIDATION = "validation"          # local, field-level, nothing was sent
    AUTHENTICATION = "authentication"  # credentials rejected by the service
    CONFLICT = "conflict"              # uniqueness pre-check failed
    STORAGE = "storage"                # photo upload failed
    BACKEND = "backend"                # table read/write rejected
    NETWORK = "network"                # transport failure or unreadable reply
    NOT_CONFIGURED = "not_configured"  # Supabase env vars missing


@dataclass(frozen=True)
class Ok:
    value: Any = None

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    message: str
    kind: ErrorKind = ErrorKind.BACKEND
    field: str | None = None

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok, Err]


def validation_error(field: str, message: str) -> Err:
    return Err(message=message, kind=ErrorKind.VALIDATION, field=field)
