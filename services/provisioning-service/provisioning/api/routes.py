"""HTTP route definitions for the provisioning service."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from pydantic import BaseModel, Field

from ..config import get_settings
from ..domain.account import AccountType, ProvisionedAccount
from ..domain.context import AuditEvent, CallContext
from ..domain.contracts import ProvisionRequest
from ..domain.errors import FailureKind, ProvisioningFailure
from ..domain.service import ProvisioningService
from ..security.throttle import build_throttle

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1")


class UserResponse(BaseModel):
    """User created alongside a provisioned account."""

    user_id: str
    username: str
    first_name: str
    last_name: str
    email: str
    timezone: str | None = None


class AccountResponse(BaseModel):
    """Serialised representation of a `ProvisionedAccount`."""

    account_id: str
    account_name: str
    account_type: AccountType
    domain_id: str
    state: str
    network_domain: str | None = None
    created_at: str
    user: UserResponse

    @classmethod
    def from_domain(cls, account: ProvisionedAccount) -> "AccountResponse":
        """Build a response model from the domain record."""
        return cls(
            account_id=account.account_id,
            account_name=account.account_name,
            account_type=account.account_type,
            domain_id=account.domain_id,
            state=account.state,
            network_domain=account.network_domain,
            created_at=account.created_at.isoformat(),
            user=UserResponse(
                user_id=account.user_id,
                username=account.username,
                first_name=account.first_name,
                last_name=account.last_name,
                email=account.email,
                timezone=account.timezone,
            ),
        )


class DirectoryAccountRequest(BaseModel):
    """Payload accepted when creating an account from a directory user."""

    username: str = Field(..., min_length=1)
    account_type: AccountType
    account_name: str | None = None
    domain_id: str | None = None
    timezone: str | None = None
    network_domain: str | None = None
    details: dict[str, str] | None = None
    account_id: str | None = Field(default=None, description="Account id assigned by an external provisioning system")
    user_id: str | None = Field(default=None, description="User id assigned by an external provisioning system")

    def to_domain(self) -> ProvisionRequest:
        return ProvisionRequest(
            username=self.username,
            account_type=self.account_type,
            account_name=self.account_name,
            domain_id=self.domain_id,
            timezone=self.timezone,
            network_domain=self.network_domain,
            details=self.details,
            external_account_id=self.account_id,
            external_user_id=self.user_id,
        )


class AccountStore(Protocol):
    def get_account(self, account_id: str, domain_id: str) -> ProvisionedAccount | None:
        ...

    def write_audit_event(
        self,
        *,
        account_id: str | None,
        domain_id: str | None,
        event_type: str,
        actor: str | None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        ...


settings = get_settings()
throttle = build_throttle(settings)

_FAILURE_STATUS = {
    FailureKind.directory_unavailable: status.HTTP_424_FAILED_DEPENDENCY,
    FailureKind.validation_error: 422,
    FailureKind.internal_provisioning_error: status.HTTP_500_INTERNAL_SERVER_ERROR,
    FailureKind.secret_source_unavailable: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def get_service(request: Request) -> ProvisioningService:
    """Resolve the `ProvisioningService` stored on the FastAPI application state."""
    service: ProvisioningService = request.app.state.provisioning_service
    return service


def get_store(request: Request) -> AccountStore:
    """Resolve the account store used for reads and audit persistence."""
    store: AccountStore = request.app.state.account_store
    return store


@router.post("/accounts/directory", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
def create_account_from_directory(
    payload: DirectoryAccountRequest,
    service: ProvisioningService = Depends(get_service),
    store: AccountStore = Depends(get_store),
    actor: str | None = Header(default=None, alias="X-Actor-ID"),
    request_id: str | None = Header(default=None, alias="X-Request-ID"),
) -> AccountResponse:
    """Create an account and user from the directory record of ``username``."""
    rate_key = f"provision:{payload.domain_id or settings.default_domain_id}:{actor or 'anonymous'}"
    if not throttle.allow(rate_key):
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="rate limited")

    context = CallContext(actor=actor, domain_id=payload.domain_id)
    if request_id:
        context.request_id = request_id
    try:
        outcome = service.provision(payload.to_domain(), context)
    finally:
        _flush_audit(store, context)

    if outcome.failure is not None:
        raise _http_error_from_failure(outcome.failure)
    return AccountResponse.from_domain(outcome.account)


@router.get("/accounts/{account_id}", response_model=AccountResponse)
def get_account(
    account_id: str,
    domain_id: str = Header(..., alias="X-Domain-ID"),
    store: AccountStore = Depends(get_store),
) -> AccountResponse:
    """Retrieve a provisioned account within the requester's domain."""
    account = store.get_account(account_id, domain_id)
    if account is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="account not found")
    return AccountResponse.from_domain(account)


def _flush_audit(store: AccountStore, context: CallContext) -> None:
    """Persist the audit events of ``context`` without affecting the response."""
    events = list(context.events)
    if not events and context.event_details:
        # The attempt stopped before reaching an outcome; keep the details line.
        events.append(
            AuditEvent(
                event_type="account.provision_aborted",
                metadata={"details": context.event_details, "request_id": context.request_id},
                domain_id=context.domain_id,
            )
        )
    for event in events:
        try:
            store.write_audit_event(
                account_id=event.account_id,
                domain_id=event.domain_id,
                event_type=event.event_type,
                actor=context.actor,
                metadata=event.metadata,
            )
        except Exception:
            logger.exception(
                "failed to persist audit event %s for request %s", event.event_type, context.request_id
            )


def _http_error_from_failure(failure: ProvisioningFailure) -> HTTPException:
    if failure.internal:
        logger.error("internal provisioning failure for %s: %s", failure.username, failure.kind.value)
    return HTTPException(
        status_code=_FAILURE_STATUS[failure.kind],
        detail={
            "kind": failure.kind.value,
            "message": failure.message,
            "username": failure.username,
            "field": failure.field,
        },
    )
