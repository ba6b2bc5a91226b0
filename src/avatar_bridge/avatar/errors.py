from typing import Optional

from avatar_bridge.avatar.types import BuildFailure, ErrorKind


class AvatarError(Exception):
    """Base class for errors carrying an :class:`ErrorKind`."""

    def __init__(self, kind: ErrorKind, message: str, subject: Optional[str] = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.subject = subject


class SkeletonValidationError(AvatarError, ValueError):
    """Raised when a configured skeleton cannot be built."""

    def __init__(self, failure: BuildFailure) -> None:
        super().__init__(failure.kind, failure.message, failure.subject)
        self.failure = failure


class BindingError(AvatarError):
    """Raised when a bone/sensor/driver binding request is rejected."""


__all__ = [
    "AvatarError",
    "BindingError",
    "SkeletonValidationError",
]
