"""Per-request call context carrying the audit trail."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class AuditEvent:
    event_type: str
    metadata: dict[str, Any]
    account_id: str | None = None
    domain_id: str | None = None


@dataclass(slots=True)
class CallContext:
    """Caller identity plus the audit events produced while serving one request."""

    actor: str | None = None
    domain_id: str | None = None
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    event_details: str | None = None
    events: list[AuditEvent] = field(default_factory=list)

    def set_event_details(self, details: str) -> None:
        """Record the human-readable description of the attempted action."""
        self.event_details = details

    def record(
        self,
        event_type: str,
        metadata: dict[str, Any],
        *,
        account_id: str | None = None,
        domain_id: str | None = None,
    ) -> None:
        """Append an audit event; it is persisted by whoever owns the context."""
        payload = dict(metadata)
        if self.event_details is not None:
            payload.setdefault("details", self.event_details)
        payload.setdefault("request_id", self.request_id)
        self.events.append(
            AuditEvent(
                event_type=event_type,
                metadata=payload,
                account_id=account_id,
                domain_id=domain_id or self.domain_id,
            )
        )
