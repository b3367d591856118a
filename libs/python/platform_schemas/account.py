"""Account provisioning events shared across services."""

from __future__ import annotations

from datetime import datetime
from pydantic import BaseModel


class AccountProvisioned(BaseModel):
    account_id: str
    account_name: str
    domain_id: str
    account_type: int
    user_id: str
    occurred_at: datetime
    source: str = "directory"
    version: str = "v1"


class ProvisioningFailed(BaseModel):
    account_name: str
    domain_id: str | None = None
    kind: str
    field: str | None = None
    occurred_at: datetime
    source: str = "directory"
    version: str = "v1"
