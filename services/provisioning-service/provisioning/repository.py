"""Database repository for provisioned accounts and their audit trail."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from psycopg.rows import tuple_row
from psycopg.types.json import Json
from psycopg_pool import ConnectionPool

from .domain.account import AccountType, ProvisionedAccount
from .domain.contracts import CreateUserAccountInput
from .security.passwords import hash_password

logger = logging.getLogger(__name__)

_ACCOUNT_COLUMNS = """
    a.account_id, a.account_name, a.account_type, a.domain_id,
    u.user_id, u.username, u.first_name, u.last_name, u.email,
    a.created_at, u.timezone, a.network_domain, a.state
"""


class AccountRepository:
    """Postgres-backed account service used as the provisioning client."""

    def __init__(self, pool: ConnectionPool, default_domain_id: str) -> None:
        """Store the connection pool and the domain used when a request names none."""
        self._pool = pool
        self._default_domain_id = default_domain_id

    def create_user_account(self, payload: CreateUserAccountInput) -> ProvisionedAccount | None:
        """Create an account and its first user in one transaction.

        Returns ``None`` without raising when the account name, username or an
        externally supplied identifier is already taken in the domain.
        """
        domain_id = payload.domain_id or self._default_domain_id
        account_id = payload.external_account_id or str(uuid.uuid4())
        user_id = payload.external_user_id or str(uuid.uuid4())
        now = datetime.now(timezone.utc)
        password_hash = hash_password(payload.password)

        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute("SELECT set_config('app.domain_id', %s, true)", (domain_id,))
                cur.execute(
                    """
                    INSERT INTO accounts (account_id, account_name, account_type, domain_id, network_domain, details, state, created_at)
                    VALUES (%s, %s, %s, %s, %s, %s, 'enabled', %s)
                    ON CONFLICT DO NOTHING
                    RETURNING account_id
                    """,
                    (
                        account_id,
                        payload.account_name,
                        int(payload.account_type),
                        domain_id,
                        payload.network_domain,
                        Json(payload.details or {}),
                        now,
                    ),
                )
                if cur.fetchone() is None:
                    conn.rollback()
                    logger.info("account %s already exists in domain %s", payload.account_name, domain_id)
                    return None

                cur.execute(
                    """
                    INSERT INTO users (user_id, account_id, domain_id, username, password_hash, first_name, last_name, email, timezone, created_at)
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                    ON CONFLICT DO NOTHING
                    RETURNING user_id
                    """,
                    (
                        user_id,
                        account_id,
                        domain_id,
                        payload.username,
                        password_hash,
                        payload.first_name,
                        payload.last_name,
                        payload.email,
                        payload.timezone,
                        now,
                    ),
                )
                if cur.fetchone() is None:
                    conn.rollback()
                    logger.info("user %s already exists in domain %s", payload.username, domain_id)
                    return None

                conn.commit()

        return ProvisionedAccount(
            account_id=account_id,
            account_name=payload.account_name,
            account_type=payload.account_type,
            domain_id=domain_id,
            user_id=user_id,
            username=payload.username,
            first_name=payload.first_name,
            last_name=payload.last_name,
            email=payload.email,
            created_at=now,
            timezone=payload.timezone,
            network_domain=payload.network_domain,
        )

    def get_account(self, account_id: str, domain_id: str) -> ProvisionedAccount | None:
        """Fetch an account in the given domain together with its first user."""
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute("SELECT set_config('app.domain_id', %s, true)", (domain_id,))
                cur.execute(
                    f"""
                    SELECT {_ACCOUNT_COLUMNS}
                    FROM accounts a
                    JOIN users u ON u.account_id = a.account_id
                    WHERE a.account_id = %s AND a.domain_id = %s
                    ORDER BY u.created_at
                    LIMIT 1
                    """,
                    (account_id, domain_id),
                )
                row = cur.fetchone()
                if not row:
                    return None
        return self._map_record(row)

    def _map_record(self, row: tuple) -> ProvisionedAccount:
        """Convert a joined account/user row into a ``ProvisionedAccount``."""
        return ProvisionedAccount(
            account_id=row[0],
            account_name=row[1],
            account_type=AccountType(row[2]),
            domain_id=row[3],
            user_id=row[4],
            username=row[5],
            first_name=row[6],
            last_name=row[7],
            email=row[8],
            created_at=row[9],
            timezone=row[10],
            network_domain=row[11],
            state=row[12],
        )

    def write_audit_event(
        self,
        *,
        account_id: str | None,
        domain_id: str | None,
        event_type: str,
        actor: str | None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Record an audit trail entry for a provisioning attempt."""
        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO identity_audit_log (account_id, domain_id, event_type, actor, metadata)
                    VALUES (%s, %s, %s, %s, %s)
                    """,
                    (account_id, domain_id, event_type, actor, Json(metadata or {})),
                )
                conn.commit()
