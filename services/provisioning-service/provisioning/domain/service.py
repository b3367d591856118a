"""Provisioning service creating internal accounts from directory users."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from platform_schemas import AccountProvisioned, ProvisioningFailed
from prometheus_client import Counter

from .account import DirectoryUser, ProvisionedAccount
from .context import CallContext
from .contracts import (
    AccountProvisioningClient,
    CreateUserAccountInput,
    DirectoryClient,
    ProvisionRequest,
)
from .errors import DirectoryLookupError, FailureKind, ProvisioningFailure, SecretSourceUnavailable
from .validation import validate_profile
from ..security.passwords import generate_password

logger = logging.getLogger(__name__)

PROVISIONING_OUTCOMES = Counter(
    "directory_provisioning_outcomes_total",
    "Directory provisioning attempts by outcome.",
    ["outcome"],
)


@dataclass(frozen=True, slots=True)
class ProvisionOutcome:
    """Either the provisioned account or the failure that stopped the attempt."""

    account: ProvisionedAccount | None = None
    failure: ProvisioningFailure | None = None

    @property
    def ok(self) -> bool:
        return self.account is not None

    @classmethod
    def succeeded(cls, account: ProvisionedAccount) -> "ProvisionOutcome":
        return cls(account=account)

    @classmethod
    def failed(cls, failure: ProvisioningFailure) -> "ProvisionOutcome":
        return cls(failure=failure)


class ProvisioningService:
    """Create account/user pairs for directory users.

    One call to :meth:`provision` looks the user up, checks the profile,
    generates a password and delegates creation to the account service, stopping
    at the first step that fails. The service keeps no per-request state.
    """

    def __init__(self, directory: DirectoryClient, accounts: AccountProvisioningClient) -> None:
        """Store the collaborators used by every provisioning attempt."""
        self._directory = directory
        self._accounts = accounts

    def provision(self, request: ProvisionRequest, context: CallContext) -> ProvisionOutcome:
        """Provision an account for ``request.username``.

        Parameters
        ----------
        request:
            Username, account type and pass-through account attributes.
        context:
            Call context receiving the audit details and outcome event.

        Returns
        -------
        ProvisionOutcome
            The created account, or a failure of one of the :class:`FailureKind`
            values. Exceptions raised by the account service other than the
            ``None`` result are not caught here.
        """
        account_name = request.effective_account_name
        context.set_event_details(f"Account Name: {account_name}, Domain Id: {request.domain_id}")
        logger.info(
            "provisioning account %s in domain %s from directory user %s",
            account_name,
            request.domain_id,
            request.username,
        )

        user = self._lookup(request.username)
        if isinstance(user, ProvisioningFailure):
            return self._fail(request, context, user)

        missing = validate_profile(user)
        if missing is not None:
            return self._fail(
                request,
                context,
                ProvisioningFailure(
                    kind=FailureKind.validation_error,
                    message=f"{request.username} has no {missing.label} set within the directory",
                    username=request.username,
                    field=missing.field,
                ),
            )

        try:
            password = generate_password()
        except SecretSourceUnavailable:
            logger.exception("cannot generate a password for %s", request.username)
            return self._fail(
                request,
                context,
                ProvisioningFailure(
                    kind=FailureKind.secret_source_unavailable,
                    message="Secure random source unavailable",
                    username=request.username,
                ),
            )

        account = self._accounts.create_user_account(self._build_input(request, user, password))
        if account is None:
            return self._fail(
                request,
                context,
                ProvisioningFailure(
                    kind=FailureKind.internal_provisioning_error,
                    message="Failed to create a user account",
                    username=request.username,
                ),
            )

        event = AccountProvisioned(
            account_id=account.account_id,
            account_name=account.account_name,
            domain_id=account.domain_id,
            account_type=int(account.account_type),
            user_id=account.user_id,
            occurred_at=datetime.now(timezone.utc),
        )
        context.record(
            "account.provisioned",
            event.model_dump(mode="json"),
            account_id=account.account_id,
            domain_id=account.domain_id,
        )
        PROVISIONING_OUTCOMES.labels(outcome="success").inc()
        logger.info("provisioned account %s (%s) for %s", account.account_name, account.account_id, request.username)
        return ProvisionOutcome.succeeded(account)

    def _lookup(self, username: str) -> DirectoryUser | ProvisioningFailure:
        try:
            return self._directory.lookup(username)
        except DirectoryLookupError as exc:
            if exc.reason == "not_found":
                message = f"No directory user exists with the username of {username}"
            else:
                message = f"Directory unavailable while looking up {username}"
            return ProvisioningFailure(
                kind=FailureKind.directory_unavailable,
                message=message,
                username=username,
            )

    def _build_input(
        self, request: ProvisionRequest, user: DirectoryUser, password: str
    ) -> CreateUserAccountInput:
        # Only reached once validate_profile(user) returned None.
        return CreateUserAccountInput(
            username=request.username,
            password=password,
            first_name=user.first_name,
            last_name=user.last_name,
            email=user.email,
            account_name=request.effective_account_name,
            account_type=request.account_type,
            domain_id=request.domain_id,
            timezone=request.timezone,
            network_domain=request.network_domain,
            details=dict(request.details) if request.details else None,
            external_account_id=request.external_account_id,
            external_user_id=request.external_user_id,
        )

    def _fail(
        self, request: ProvisionRequest, context: CallContext, failure: ProvisioningFailure
    ) -> ProvisionOutcome:
        event = ProvisioningFailed(
            account_name=request.effective_account_name,
            domain_id=request.domain_id,
            kind=failure.kind.value,
            field=failure.field,
            occurred_at=datetime.now(timezone.utc),
        )
        context.record("account.provision_failed", event.model_dump(mode="json"))
        PROVISIONING_OUTCOMES.labels(outcome=failure.kind.value).inc()
        logger.warning("provisioning %s failed: %s", request.username, failure.kind.value)
        return ProvisionOutcome.failed(failure)
