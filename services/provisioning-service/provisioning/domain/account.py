from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum


class AccountType(IntEnum):
    """Account roles understood by the account service."""

    USER = 0
    ROOT_ADMIN = 1
    DOMAIN_ADMIN = 2


@dataclass(frozen=True, slots=True)
class DirectoryUser:
    """User record resolved from the external directory.

    Only ``username`` is guaranteed; the profile attributes must pass
    :func:`provisioning.domain.validation.validate_profile` before use.
    """

    username: str
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None


@dataclass(slots=True)
class ProvisionedAccount:
    """Account/user pair created by the account service."""

    account_id: str
    account_name: str
    account_type: AccountType
    domain_id: str
    user_id: str
    username: str
    first_name: str
    last_name: str
    email: str
    created_at: datetime
    timezone: str | None = None
    network_domain: str | None = None
    state: str = "enabled"
