"""Domain-level request contracts and collaborator protocols."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from .account import AccountType, DirectoryUser, ProvisionedAccount


@dataclass(frozen=True, slots=True)
class ProvisionRequest:
    """Caller inputs for creating an account from a directory user."""

    username: str
    account_type: AccountType
    account_name: str | None = None
    domain_id: str | None = None
    timezone: str | None = None
    network_domain: str | None = None
    details: dict[str, str] | None = None
    external_account_id: str | None = None
    external_user_id: str | None = None

    @property
    def effective_account_name(self) -> str:
        """Account name to provision; the username is used when none was given."""
        return self.account_name or self.username


@dataclass(frozen=True, slots=True)
class CreateUserAccountInput:
    """Validated inputs handed to the account service."""

    username: str
    password: str = field(repr=False)
    first_name: str
    last_name: str
    email: str
    account_name: str
    account_type: AccountType
    domain_id: str | None = None
    timezone: str | None = None
    network_domain: str | None = None
    details: dict[str, str] | None = None
    external_account_id: str | None = None
    external_user_id: str | None = None


class DirectoryClient(Protocol):
    def lookup(self, username: str) -> DirectoryUser:
        """Resolve ``username`` or raise :class:`~.errors.DirectoryLookupError`."""
        ...


class AccountProvisioningClient(Protocol):
    def create_user_account(self, payload: CreateUserAccountInput) -> ProvisionedAccount | None:
        """Create the account/user pair; ``None`` when nothing was created."""
        ...
