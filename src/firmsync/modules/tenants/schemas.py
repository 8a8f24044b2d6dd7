"""Pydantic schemas for tenants and tenant-scoped data."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from firmsync.core.constants import FIRM_CODE_PATTERN, MAX_NAME_LENGTH, MAX_SLUG_LENGTH
from firmsync.modules.tenants.models import ProvisioningStatus, TenantStatus


# ============================================================
# Admin: tenant records
# ============================================================


class TenantCreate(BaseModel):
    """Schema for registering a new firm."""

    name: str = Field(..., min_length=1, max_length=MAX_NAME_LENGTH)
    slug: str = Field(
        ...,
        min_length=1,
        max_length=MAX_SLUG_LENGTH,
        pattern=FIRM_CODE_PATTERN,
        description="Firm code used in tenant URLs; cannot be changed later",
    )
    plan: str = Field(default="standard", max_length=50)


class TenantStatusUpdate(BaseModel):
    status: TenantStatus


class TenantResponse(BaseModel):
    """Tenant as shown to platform admins. Never carries the DSN."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    slug: str
    plan: str
    status: TenantStatus
    provisioning_status: ProvisioningStatus
    database_name: str | None = None
    database_host: str | None = None
    provisioning_error: str | None = None
    provisioned_at: datetime | None = None
    created_at: datetime | None = None


class ProvisionJobResponse(BaseModel):
    tenant_id: int
    job_id: str | None = None
    status: str = "queued"


# ============================================================
# Tenant-scoped data
# ============================================================


class TenantContextResponse(BaseModel):
    """What the isolation gate resolved for this request."""

    firm_id: int
    firm_code: str
    firm_name: str
    is_admin_access: bool
    ghost_session_id: int | None = None


class ClientCreate(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=255)
    last_name: str = Field(..., min_length=1, max_length=255)
    email: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=50)


class ClientResponse(BaseModel):
    id: int
    firm_id: int
    first_name: str
    last_name: str
    email: str | None = None
    phone: str | None = None
    created_at: datetime | None = None


class CaseResponse(BaseModel):
    id: int
    firm_id: int
    client_id: int | None = None
    title: str
    status: str
    created_at: datetime | None = None
    first_name: str | None = None
    last_name: str | None = None
