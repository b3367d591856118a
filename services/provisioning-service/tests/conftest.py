from __future__ import annotations

import uuid
from threading import Lock
from dataclasses import dataclass
from datetime import datetime, timezone

import pytest

from provisioning.domain.account import DirectoryUser, ProvisionedAccount
from provisioning.domain.contracts import CreateUserAccountInput
from provisioning.domain.errors import DirectoryLookupError


class FakeDirectory:
    """In-memory directory keyed by username."""

    def __init__(self) -> None:
        self.users: dict[str, DirectoryUser] = {}
        self.unreachable = False
        self.lookups: list[str] = []

    def add(self, username: str, **attrs: str | None) -> DirectoryUser:
        user = DirectoryUser(username=username, **attrs)
        self.users[username] = user
        return user

    def lookup(self, username: str) -> DirectoryUser:
        self.lookups.append(username)
        if self.unreachable:
            raise DirectoryLookupError(username, reason="unreachable")
        try:
            return self.users[username]
        except KeyError:
            raise DirectoryLookupError(username, reason="not_found") from None


@dataclass
class FakeAuditLogRecord:
    audit_id: int
    account_id: str | None
    domain_id: str | None
    event_type: str
    actor: str | None
    metadata: dict
    created_at: datetime


class FakeAccountStore:
    """In-memory account service mimicking the Postgres repository."""

    def __init__(self, default_domain_id: str = "ROOT") -> None:
        self.default_domain_id = default_domain_id
        self.accounts: dict[tuple[str, str], ProvisionedAccount] = {}
        self.payloads: list[CreateUserAccountInput] = []
        self.audit_log: list[FakeAuditLogRecord] = []
        self.return_none = False
        self.error: Exception | None = None
        self._lock = Lock()

    def create_user_account(self, payload: CreateUserAccountInput) -> ProvisionedAccount | None:
        with self._lock:
            return self._create(payload)

    def _create(self, payload: CreateUserAccountInput) -> ProvisionedAccount | None:
        self.payloads.append(payload)
        if self.error is not None:
            raise self.error
        if self.return_none:
            return None
        domain_id = payload.domain_id or self.default_domain_id
        if any(
            acc.domain_id == domain_id and acc.account_name == payload.account_name
            for acc in self.accounts.values()
        ):
            return None
        account = ProvisionedAccount(
            account_id=payload.external_account_id or str(uuid.uuid4()),
            account_name=payload.account_name,
            account_type=payload.account_type,
            domain_id=domain_id,
            user_id=payload.external_user_id or str(uuid.uuid4()),
            username=payload.username,
            first_name=payload.first_name,
            last_name=payload.last_name,
            email=payload.email,
            created_at=datetime.now(timezone.utc),
            timezone=payload.timezone,
            network_domain=payload.network_domain,
        )
        self.accounts[(domain_id, account.account_id)] = account
        return account

    def get_account(self, account_id: str, domain_id: str) -> ProvisionedAccount | None:
        return self.accounts.get((domain_id, account_id))

    def write_audit_event(
        self,
        *,
        account_id: str | None,
        domain_id: str | None,
        event_type: str,
        actor: str | None,
        metadata: dict | None = None,
    ) -> None:
        self.audit_log.append(
            FakeAuditLogRecord(
                audit_id=len(self.audit_log) + 1,
                account_id=account_id,
                domain_id=domain_id,
                event_type=event_type,
                actor=actor,
                metadata=metadata or {},
                created_at=datetime.now(timezone.utc),
            )
        )


@pytest.fixture
def directory() -> FakeDirectory:
    directory = FakeDirectory()
    directory.add("carol", first_name="Carol", last_name="Diaz", email="carol@example.com")
    return directory


@pytest.fixture
def account_store() -> FakeAccountStore:
    return FakeAccountStore()
