"""Failure taxonomy for directory-backed account provisioning."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class FailureKind(str, Enum):
    directory_unavailable = "directory_unavailable"
    validation_error = "validation_error"
    internal_provisioning_error = "internal_provisioning_error"
    secret_source_unavailable = "secret_source_unavailable"


class DirectoryLookupError(Exception):
    """Raised by directory clients when a username cannot be resolved.

    Covers both an unreachable directory and an unknown username; ``reason``
    carries the distinction for the caller-facing message only.
    """

    def __init__(self, username: str, reason: str = "not_found") -> None:
        super().__init__(f"directory lookup failed for {username}: {reason}")
        self.username = username
        self.reason = reason


class SecretSourceUnavailable(RuntimeError):
    """Raised when the operating system cannot supply secure random bytes."""


@dataclass(frozen=True, slots=True)
class ProvisioningFailure:
    """Structured failure returned by the provisioning orchestrator."""

    kind: FailureKind
    message: str
    username: str
    field: str | None = None

    @property
    def internal(self) -> bool:
        """Return ``True`` for server-class failures the caller cannot act on."""
        return self.kind in (
            FailureKind.internal_provisioning_error,
            FailureKind.secret_source_unavailable,
        )
