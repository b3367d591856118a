"""Shared schema exports."""

from .account import AccountProvisioned, ProvisioningFailed

__all__ = [
    "AccountProvisioned",
    "ProvisioningFailed",
]
