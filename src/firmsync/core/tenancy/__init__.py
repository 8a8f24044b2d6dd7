"""Tenant boundary: isolation gate, connection pools and tenant routing."""

from firmsync.core.tenancy.connections import (
    ConnectionManager,
    PoolSettings,
    TenantMigrationResult,
    to_async_url,
)
from firmsync.core.tenancy.context import RequestMeta, TenantContext, TenantQueryScope
from firmsync.core.tenancy.isolation import TenantIsolationGate, validate_firm_code
from firmsync.core.tenancy.router import ResolvedTenant, TenantRouter


__all__ = [
    "ConnectionManager",
    "PoolSettings",
    "RequestMeta",
    "ResolvedTenant",
    "TenantContext",
    "TenantIsolationGate",
    "TenantMigrationResult",
    "TenantQueryScope",
    "TenantRouter",
    "to_async_url",
    "validate_firm_code",
]
