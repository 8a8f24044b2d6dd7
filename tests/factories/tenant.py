"""Factory for Tenant seed data."""

from uuid import uuid4

from polyfactory.factories.pydantic_factory import ModelFactory
from pydantic import BaseModel

from firmsync.modules.tenants.models import ProvisioningStatus, TenantStatus


class TenantSeed(BaseModel):
    """Column values for a Tenant row (for factory use)."""

    name: str
    slug: str
    plan: str = "standard"
    status: TenantStatus = TenantStatus.ACTIVE
    provisioning_status: ProvisioningStatus = ProvisioningStatus.PENDING


class TenantFactory(ModelFactory[TenantSeed]):
    """Factory for generating Tenant test data."""

    __model__ = TenantSeed

    @classmethod
    def name(cls) -> str:
        """Generate a law firm name."""
        return f"{cls.__faker__.last_name()} & {cls.__faker__.last_name()} LLP"

    @classmethod
    def slug(cls) -> str:
        """Generate a URL-safe firm code."""
        return f"{cls.__faker__.slug()}-{uuid4().hex[:6]}"

    @classmethod
    def plan(cls) -> str:
        return "standard"

    @classmethod
    def status(cls) -> TenantStatus:
        return TenantStatus.ACTIVE

    @classmethod
    def provisioning_status(cls) -> ProvisioningStatus:
        return ProvisioningStatus.PENDING
