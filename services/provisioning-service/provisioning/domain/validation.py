"""Profile checks applied to directory users before provisioning."""

from __future__ import annotations

from dataclasses import dataclass

from .account import DirectoryUser

# Checked in this order; the first missing attribute is reported.
REQUIRED_PROFILE_FIELDS: tuple[tuple[str, str], ...] = (
    ("email", "email address"),
    ("first_name", "firstname"),
    ("last_name", "lastname"),
)


@dataclass(frozen=True, slots=True)
class MissingField:
    """Validation result naming the first absent profile attribute."""

    field: str
    label: str


def validate_profile(user: DirectoryUser) -> MissingField | None:
    """Return the first missing required attribute of ``user`` or ``None``."""
    for attribute, label in REQUIRED_PROFILE_FIELDS:
        value = getattr(user, attribute)
        if value is None or not value.strip():
            return MissingField(field=attribute, label=label)
    return None
